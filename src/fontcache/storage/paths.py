"""
Path Resolution
===============

Maps variants onto the on-disk cache layout.

Two layouts exist side by side under the cache root:

- per-family subfolders (current): ``<root>/<Family>/<Family>-<weight>-<style>.<format>``
- flat files (legacy): ``<root>/<Family>-<weight>-<style>.<format>``

New files are always written to the subfolder layout. Lookups try the
subfolder layout first and fall back to the flat layout, so legacy caches keep
working without a migration step.
"""

import re
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from fontcache.core.models import FORMAT_PREFERENCE, FontFormat, FontStyle, VariantDescriptor

from .filesystem import FileStorage, LocalFileStorage

_WHITESPACE = re.compile(r"\s+")


def sanitize_family_name(family: str) -> str:
    """Replace whitespace runs with hyphens for folder and file names."""
    return _WHITESPACE.sub("-", family.strip())


def variant_file_name(family: str, weight: int, style: FontStyle, fmt: FontFormat) -> str:
    return f"{sanitize_family_name(family)}-{weight}-{style.value}.{fmt.value}"


class PathResolver:
    """Canonical and legacy path computation for cached variants."""

    def __init__(self, cache_root: Path, storage: FileStorage | None = None):
        self.cache_root = Path(cache_root)
        self.storage = storage or LocalFileStorage()

    def family_folder(self, family: str) -> Path:
        return self.cache_root / sanitize_family_name(family)

    def canonical_path(self, family: str, descriptor: VariantDescriptor) -> Path:
        """Path every new write for `descriptor` goes to."""
        file_name = variant_file_name(
            family, descriptor.weight, descriptor.style, descriptor.format
        )
        return self.family_folder(family) / file_name

    def legacy_path(self, family: str, descriptor: VariantDescriptor) -> Path:
        file_name = variant_file_name(
            family, descriptor.weight, descriptor.style, descriptor.format
        )
        return self.cache_root / file_name

    def relative_path(self, path: Path) -> str:
        """POSIX path of `path` relative to the cache root."""
        relative = Path(path).relative_to(self.cache_root)
        return PurePosixPath(*relative.parts).as_posix()

    def absolute_path(self, local_path: str) -> Path:
        return self.cache_root.joinpath(*PurePosixPath(local_path).parts)

    def resolve_existing(self, family: str, descriptor: VariantDescriptor) -> Path | None:
        """Existing file for `descriptor`: subfolder layout first, then flat layout."""
        for candidate in (
            self.canonical_path(family, descriptor),
            self.legacy_path(family, descriptor),
        ):
            if self.storage.is_file(candidate):
                return candidate
        return None

    def resolve_any(
        self,
        family: str,
        weight: int,
        style: FontStyle,
        formats: Iterable[FontFormat] = FORMAT_PREFERENCE,
    ) -> Path | None:
        """Existing file for a weight/style in any of `formats`.

        All subfolder-layout candidates are tried before any flat-layout one,
        so a freshly written file always shadows a legacy file.
        """
        descriptors = [VariantDescriptor(family, weight, style, fmt) for fmt in formats]
        for path_for in (self.canonical_path, self.legacy_path):
            for descriptor in descriptors:
                candidate = path_for(family, descriptor)
                if self.storage.is_file(candidate):
                    return candidate
        return None
