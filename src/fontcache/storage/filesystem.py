"""
File Storage
============

The managed file-storage interface the cache core depends on, and its
local-disk implementation. Every `OSError` is translated into
`FilesystemError` so callers deal with a single taxonomy.
"""

import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from fontcache.core.exceptions import FilesystemError, FilesystemErrorKind

logger = logging.getLogger(__name__)


class FileStorage(ABC):
    """Filesystem operations used by the cache."""

    @abstractmethod
    def create_folder_if_absent(self, path: Path) -> None:
        """Create a folder (and parents); existing folders are left alone."""

    @abstractmethod
    def write_file(self, path: Path, data: bytes) -> None:
        """Write bytes to a file, replacing it atomically."""

    @abstractmethod
    def read_file(self, path: Path) -> bytes:
        """Read a whole file."""

    @abstractmethod
    def delete_folder(self, path: Path) -> None:
        """Delete a folder and everything below it. Missing folders are ignored."""

    @abstractmethod
    def list_entries(self, path: Path) -> list[Path]:
        """List the direct children of a folder, sorted by name."""

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Check whether anything exists at a path."""

    @abstractmethod
    def is_file(self, path: Path) -> bool:
        """Check whether a regular file exists at a path."""


class LocalFileStorage(FileStorage):
    """`FileStorage` backed by the local disk."""

    def create_folder_if_absent(self, path: Path) -> None:
        path = Path(path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except FileExistsError as e:
            # exist_ok only covers directories; something else occupies the path
            raise FilesystemError(
                str(path), FilesystemErrorKind.IO_FAILURE, f"Not a directory: {path}"
            ) from e
        except OSError as e:
            raise FilesystemError.from_os_error(path, e) from e

    def write_file(self, path: Path, data: bytes) -> None:
        path = Path(path)
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
            ) as temp_file:
                temp_path = Path(temp_file.name)
                temp_file.write(data)
                temp_file.flush()
                os.fsync(temp_file.fileno())
            os.replace(temp_path, path)
            logger.debug(f"Wrote {len(data)} bytes to {path}")
        except OSError as e:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink(missing_ok=True)
            raise FilesystemError.from_os_error(path, e) from e

    def read_file(self, path: Path) -> bytes:
        path = Path(path)
        try:
            return path.read_bytes()
        except IsADirectoryError as e:
            raise FilesystemError(
                str(path), FilesystemErrorKind.IO_FAILURE, f"Is a directory: {path}"
            ) from e
        except OSError as e:
            raise FilesystemError.from_os_error(path, e) from e

    def delete_folder(self, path: Path) -> None:
        path = Path(path)
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
            logger.debug(f"Deleted folder {path}")
        except OSError as e:
            raise FilesystemError.from_os_error(path, e) from e

    def list_entries(self, path: Path) -> list[Path]:
        path = Path(path)
        try:
            return sorted(path.iterdir(), key=lambda p: p.name)
        except NotADirectoryError as e:
            raise FilesystemError(
                str(path), FilesystemErrorKind.IO_FAILURE, f"Not a directory: {path}"
            ) from e
        except OSError as e:
            raise FilesystemError.from_os_error(path, e) from e

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def is_file(self, path: Path) -> bool:
        return Path(path).is_file()
