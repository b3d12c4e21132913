"""Per-family folder creation."""

import logging
from pathlib import Path

from .filesystem import FileStorage, LocalFileStorage

logger = logging.getLogger(__name__)


class FolderOrganizer:
    """Ensures cache folders exist.

    Safe to call concurrently: creation is delegated to
    `FileStorage.create_folder_if_absent`, which treats an existing folder
    (including one created by a racing caller) as success. No state is
    shared between families.
    """

    def __init__(self, storage: FileStorage | None = None):
        self.storage = storage or LocalFileStorage()

    def ensure_folder(self, path: Path) -> None:
        """Create `path` if it does not exist yet."""
        path = Path(path)
        if self.storage.exists(path) and not self.storage.is_file(path):
            return
        self.storage.create_folder_if_absent(path)
        logger.debug(f"Ensured folder {path}")
