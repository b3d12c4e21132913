"""
Font Registry
=============

Persisted mapping from family name to `FontRecord`. Names are matched by
their folder form, so spellings that share a cache folder share a record.

Every mutation builds a new mapping, writes it to disk and only then swaps it
in, so the in-memory view and the file never disagree after a failed write.
Records are immutable; readers always see whole records.
"""

import json
import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from fontcache.core.exceptions import FilesystemError, RegistryPersistenceError
from fontcache.core.models import FontRecord
from fontcache.storage.filesystem import FileStorage, LocalFileStorage
from fontcache.storage.paths import sanitize_family_name

logger = logging.getLogger(__name__)

REGISTRY_VERSION = 1

# One lock per registry file, shared by every Registry instance in the process
_locks: dict[Path, threading.RLock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = Path(path).expanduser().absolute()
    with _locks_guard:
        if key not in _locks:
            _locks[key] = threading.RLock()
        return _locks[key]


class Registry:
    """
    Registry of cached font families.

    Features:
    - Atomic persistence (temp file + replace)
    - Mutations serialized per registry file
    - Corrupt or unreadable files load as an empty registry
    """

    def __init__(self, path: Path, storage: FileStorage | None = None):
        self.path = Path(path)
        self.storage = storage or LocalFileStorage()
        self._lock = _lock_for(self.path)
        self._records: dict[str, FontRecord] = {}

    def load(self) -> None:
        """(Re)load the registry from disk."""
        with self._lock:
            self._records = self._read()

    def _read(self) -> dict[str, FontRecord]:
        if not self.storage.exists(self.path):
            logger.debug(f"No registry at {self.path}, starting empty")
            return {}

        try:
            data = json.loads(self.storage.read_file(self.path).decode("utf-8"))
        except (FilesystemError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load registry {self.path}, treating as empty: {e}")
            return {}

        fonts = data.get("fonts") if isinstance(data, dict) else None
        if not isinstance(fonts, dict):
            logger.warning(f"Registry {self.path} has an unexpected shape, treating as empty")
            return {}

        records = {}
        for name, record_data in fonts.items():
            try:
                record = FontRecord.model_validate(record_data)
            except ValidationError as e:
                logger.warning(f"Skipping invalid registry entry {name!r}: {e}")
                continue
            key = self._key(record.name)
            if key in records:
                logger.warning(
                    f"Skipping registry entry {name!r}: shares folder {key} "
                    f"with {records[key].name!r}"
                )
                continue
            records[key] = record

        logger.info(f"Loaded {len(records)} fonts from {self.path}")
        return records

    @staticmethod
    def _key(name: str) -> str:
        # Same form as the family folder name
        return sanitize_family_name(name)

    def _persist(self, records: dict[str, FontRecord]) -> None:
        ordered = sorted(records.values(), key=lambda record: record.name)
        payload = {
            "version": REGISTRY_VERSION,
            "updated_at": datetime.now(UTC).isoformat(),
            "fonts": {record.name: record.model_dump(mode="json") for record in ordered},
        }
        data = json.dumps(payload, indent=2).encode("utf-8")

        try:
            self.storage.create_folder_if_absent(self.path.parent)
            self.storage.write_file(self.path, data)
        except FilesystemError as e:
            raise RegistryPersistenceError(
                e.path, e.kind, f"Failed to save registry {self.path}: {e}"
            ) from e

        logger.debug(f"Registry saved to {self.path} ({len(records)} fonts)")

    def get(self, name: str) -> FontRecord | None:
        """Record for `name`, matched by its folder name."""
        return self._records.get(self._key(name))

    def names(self) -> list[str]:
        return sorted(record.name for record in self._records.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._records

    def __len__(self) -> int:
        return len(self._records)

    def modify(
        self, name: str, change: Callable[[FontRecord | None], FontRecord | None]
    ) -> FontRecord | None:
        """
        Atomic read-modify-write of one entry.

        `change` receives the current record (or None) and returns the new
        record, or None to remove the entry.
        """
        key = self._key(name)
        with self._lock:
            current = self._records.get(key)
            updated = change(current)

            records = dict(self._records)
            records.pop(key, None)
            if updated is not None:
                records[self._key(updated.name)] = updated

            self._persist(records)
            self._records = records
            return updated

    def upsert(self, record: FontRecord) -> FontRecord:
        """Insert or replace a record."""
        return self.modify(record.name, lambda _current: record)

    def remove(self, name: str) -> bool:
        """Remove a record; returns False when it was not present."""
        with self._lock:
            if name not in self:
                return False
            self.modify(name, lambda _current: None)
            logger.info(f"Removed {name} from registry")
            return True

    def clear(self) -> list[str]:
        """Remove every record; returns the removed names."""
        with self._lock:
            removed = self.names()
            self._persist({})
            self._records = {}
            return removed

    # Defined last: inside the class body this name shadows the builtin
    def list(self) -> list[FontRecord]:
        """All records sorted by name."""
        return sorted(self._records.values(), key=lambda record: record.name)
