"""Sync engine for backup operations."""

from .backup_manager import BackupManager
from .entry_store import EntryStore
from .executor import SyncExecutor
from .manifest import Manifest, ManifestCodec
from .orchestrator import SyncOrchestrator
from .validation import PathValidator

__all__ = [
    "BackupManager",
    "EntryStore",
    "Manifest",
    "ManifestCodec",
    "PathValidator",
    "SyncExecutor",
    "SyncOrchestrator",
]
