"""Persistent list of backup entries."""

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from filelock import FileLock

from ..errors import BackupError, DuplicateEntryError, EntryNotFoundError, InvalidPathError
from ..models import BackupEntry, utc_now
from ..utils.file_utils import FileHelper

logger = logging.getLogger(__name__)


class EntryStore:
    """Track the files and directories selected for backup.

    Entries are kept in insertion order in a JSON file. Other processes (the
    CLI next to a running trigger service) edit the same file, so every read
    reloads it and every change is a read-modify-write under a file lock.
    Stored entries are replaced on update, never mutated, so a list returned
    to a caller stays a stable snapshot.
    """

    def __init__(self, store_file: Path):
        """Initialize entry store.

        Args:
            store_file: Path to the JSON entries file
        """
        self.store_file = Path(store_file)
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self.store_file) + ".lock")
        self._entries: Dict[str, BackupEntry] = {}
        self.store_file.parent.mkdir(parents=True, exist_ok=True)
        with self._file_lock:
            self._load_state()

    def _load_state(self):
        """Load entries from disk, replacing the in-memory copy."""
        if not self.store_file.exists():
            self._entries = {}
            return

        try:
            with open(self.store_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            entries = [BackupEntry.from_dict(item) for item in data.get('items', [])]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise BackupError(f"could not load entries from {self.store_file}: {e}") from e

        self._entries = {entry.id: entry for entry in entries}
        logger.debug(f"Loaded {len(self._entries)} entries from {self.store_file}")

    def _save_state(self):
        """Save entries to disk atomically."""
        data = {'items': [entry.to_dict() for entry in self._entries.values()]}

        tmp_file = self.store_file.with_name(self.store_file.name + ".tmp")
        with open(tmp_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_file, self.store_file)

    def add_entry(self, path: str) -> BackupEntry:
        """Add a file or directory to the backup list.

        Args:
            path: Path to an existing file or directory

        Returns:
            The new entry
        """
        if not os.path.lexists(path):
            raise InvalidPathError(path, "not_found")

        try:
            item_type = FileHelper.detect_item_type(Path(path))
        except OSError as e:
            raise InvalidPathError(path, "not_readable") from e

        canonical = os.path.realpath(path)
        try:
            canonical.encode('utf-8')
        except UnicodeEncodeError as e:
            raise InvalidPathError(canonical, "not_readable",
                                   f"path is not valid UTF-8 and cannot be listed: {canonical!r}") from e

        with self._lock, self._file_lock:
            self._load_state()
            if any(entry.path == canonical for entry in self._entries.values()):
                raise DuplicateEntryError(canonical)

            entry = BackupEntry(path=canonical, item_type=item_type)
            self._entries[entry.id] = entry
            self._save_state()

        logger.info(f"Added {item_type.value} {canonical}")
        return entry

    def remove_entry(self, entry_id: str) -> BackupEntry:
        """Remove an entry by id.

        Args:
            entry_id: Entry UUID

        Returns:
            The removed entry
        """
        with self._lock, self._file_lock:
            self._load_state()
            entry = self._entries.pop(entry_id, None)
            if entry is None:
                raise EntryNotFoundError(entry_id)
            self._save_state()

        logger.info(f"Removed {entry.path}")
        return entry

    def get_entry(self, entry_id: str) -> Optional[BackupEntry]:
        with self._lock, self._file_lock:
            self._load_state()
            return self._entries.get(entry_id)

    def list_entries(self) -> List[BackupEntry]:
        """Snapshot of all entries in insertion order, as currently on disk."""
        with self._lock, self._file_lock:
            self._load_state()
            return list(self._entries.values())

    def mark_synced(self, entry_ids: Iterable[str], synced_at: Optional[datetime] = None):
        """Update last-synced time for the given entries.

        Ids that were removed in the meantime are ignored; entries added in
        the meantime are kept.

        Args:
            entry_ids: Ids of the entries that were synced
            synced_at: Sync completion time (now if None)
        """
        synced_at = synced_at or utc_now()
        with self._lock, self._file_lock:
            self._load_state()
            updated = 0
            for entry_id in entry_ids:
                entry = self._entries.get(entry_id)
                if entry is not None:
                    self._entries[entry_id] = entry.with_last_synced(synced_at)
                    updated += 1
            if updated:
                self._save_state()

    def __len__(self) -> int:
        with self._lock, self._file_lock:
            self._load_state()
            return len(self._entries)
