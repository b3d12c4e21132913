"""
Storage Tests
=============

Tests for local file storage, folder creation and two-layout path resolution.
"""

import threading
from pathlib import Path

import pytest

from fontcache.core.exceptions import FilesystemError, FilesystemErrorKind
from fontcache.core.models import FontFormat, FontStyle, VariantDescriptor
from fontcache.storage.filesystem import LocalFileStorage
from fontcache.storage.folders import FolderOrganizer
from fontcache.storage.paths import PathResolver, sanitize_family_name, variant_file_name


@pytest.fixture
def storage():
    return LocalFileStorage()


@pytest.fixture
def resolver(temp_dir):
    return PathResolver(temp_dir)


def regular(family="Open Sans", fmt=FontFormat.WOFF2):
    return VariantDescriptor(family, 400, FontStyle.NORMAL, fmt)


class TestLocalFileStorage:
    """Test the local-disk storage implementation."""

    def test_write_and_read(self, storage, temp_dir):
        path = temp_dir / "a.bin"
        storage.write_file(path, b"first")
        storage.write_file(path, b"second")

        assert storage.read_file(path) == b"second"
        assert [p.name for p in storage.list_entries(temp_dir)] == ["a.bin"]

    def test_write_into_missing_folder(self, storage, temp_dir):
        with pytest.raises(FilesystemError) as exc_info:
            storage.write_file(temp_dir / "missing" / "a.bin", b"data")
        assert exc_info.value.kind == FilesystemErrorKind.NOT_FOUND

    def test_read_missing_file(self, storage, temp_dir):
        with pytest.raises(FilesystemError) as exc_info:
            storage.read_file(temp_dir / "absent.bin")
        assert exc_info.value.kind == FilesystemErrorKind.NOT_FOUND

    def test_delete_folder(self, storage, temp_dir):
        folder = temp_dir / "family"
        folder.mkdir()
        (folder / "file.ttf").write_bytes(b"x")

        storage.delete_folder(folder)
        storage.delete_folder(folder)

        assert not folder.exists()

    def test_list_entries_sorted(self, storage, temp_dir):
        for name in ("b.ttf", "a.ttf", "c.ttf"):
            (temp_dir / name).write_bytes(b"x")
        assert [p.name for p in storage.list_entries(temp_dir)] == ["a.ttf", "b.ttf", "c.ttf"]


class TestFolderOrganizer:
    """Test idempotent folder creation."""

    def test_ensure_folder_idempotent(self, temp_dir):
        organizer = FolderOrganizer()
        folder = temp_dir / "cache" / "Open-Sans"

        organizer.ensure_folder(folder)
        organizer.ensure_folder(folder)

        assert folder.is_dir()

    def test_concurrent_callers(self, temp_dir):
        organizer = FolderOrganizer()
        folder = temp_dir / "cache" / "Racing"
        errors = []

        def create():
            try:
                organizer.ensure_folder(folder)
            except FilesystemError as e:
                errors.append(e)

        threads = [threading.Thread(target=create) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert folder.is_dir()

    def test_file_in_the_way(self, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_bytes(b"x")

        with pytest.raises(FilesystemError) as exc_info:
            FolderOrganizer().ensure_folder(blocker)
        assert exc_info.value.kind == FilesystemErrorKind.IO_FAILURE


class TestPathResolver:
    """Test canonical paths and layout fallback."""

    def test_sanitize(self):
        assert sanitize_family_name("Open  Sans\tCondensed") == "Open-Sans-Condensed"
        assert variant_file_name("Open Sans", 700, FontStyle.ITALIC, FontFormat.TTF) == (
            "Open-Sans-700-italic.ttf"
        )

    def test_canonical_and_legacy_paths(self, resolver, temp_dir):
        assert resolver.canonical_path("Open Sans", regular()) == (
            temp_dir / "Open-Sans" / "Open-Sans-400-normal.woff2"
        )
        assert resolver.legacy_path("Open Sans", regular()) == (
            temp_dir / "Open-Sans-400-normal.woff2"
        )

    def test_relative_path_is_posix(self, resolver, temp_dir):
        path = temp_dir / "Open-Sans" / "Open-Sans-400-normal.woff2"
        assert resolver.relative_path(path) == "Open-Sans/Open-Sans-400-normal.woff2"
        assert resolver.absolute_path("Open-Sans/Open-Sans-400-normal.woff2") == path

    def test_resolution_falls_back_to_legacy(self, resolver):
        """Legacy file is found until a subfolder file exists."""
        descriptor = regular()
        assert resolver.resolve_existing("Open Sans", descriptor) is None

        legacy = resolver.legacy_path("Open Sans", descriptor)
        legacy.write_bytes(b"legacy")
        assert resolver.resolve_existing("Open Sans", descriptor) == legacy

        canonical = resolver.canonical_path("Open Sans", descriptor)
        canonical.parent.mkdir(parents=True)
        canonical.write_bytes(b"new")
        assert resolver.resolve_existing("Open Sans", descriptor) == canonical

    def test_resolve_any_prefers_new_layout_over_format(self, resolver):
        """A new-layout ttf shadows a legacy woff2."""
        legacy = resolver.legacy_path("Open Sans", regular(fmt=FontFormat.WOFF2))
        legacy.write_bytes(b"legacy")
        canonical = resolver.canonical_path("Open Sans", regular(fmt=FontFormat.TTF))
        canonical.parent.mkdir(parents=True)
        canonical.write_bytes(b"new")

        assert resolver.resolve_any("Open Sans", 400, FontStyle.NORMAL) == canonical
        assert resolver.resolve_any("Open Sans", 400, FontStyle.NORMAL, [FontFormat.WOFF2]) == legacy

    def test_resolve_any_nothing(self, resolver):
        assert resolver.resolve_any("Nope", 400, FontStyle.NORMAL) is None

    def test_cache_root_is_path(self, temp_dir):
        assert PathResolver(str(temp_dir)).cache_root == Path(temp_dir)
