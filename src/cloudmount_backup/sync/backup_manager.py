"""Main backup manager used by the CLI and the trigger service."""

import asyncio
import logging
import os
from typing import Any, Dict, Optional

from ..config.settings import BackupConfig
from ..models import SyncResult
from .entry_store import EntryStore
from .executor import SyncExecutor
from .orchestrator import SyncOrchestrator

# Module logger
logger = logging.getLogger(__name__)


class BackupManager:
    """Snapshot entries and destination, then drive the sync orchestrator.

    Within a process every caller shares one manager and one orchestrator.
    The CLI and a running trigger service are separate processes; they share
    the entries file and the sync lock file next to it.
    """

    def __init__(self, config: BackupConfig, store: Optional[EntryStore] = None,
                 orchestrator: Optional[SyncOrchestrator] = None):
        """Initialize backup manager.

        Args:
            config: Backup configuration
            store: Entry store (loaded from config.entries_file if None)
            orchestrator: Sync orchestrator (built from config.sync_options if None,
                locked across processes through config.lock_path)
        """
        self.config = config
        self.store = store or EntryStore(config.entries_path)
        self.orchestrator = orchestrator or SyncOrchestrator(
            executor=SyncExecutor(
                rsync_binary=config.sync_options.rsync_binary,
                timeout=config.sync_options.timeout_seconds,
            ),
            lock_file=config.lock_path,
        )

    @property
    def destination(self) -> str:
        return self.config.destination_path()

    def run_backup(self) -> SyncResult:
        """Run one sync of every tracked entry.

        On success every entry of the snapshot gets its last-synced time
        stamped with the completion time of the rsync run.

        Returns:
            SyncResult of the run
        """
        entries = self.store.list_entries()
        destination = self.destination
        logger.info(f"Starting backup of {len(entries)} entries to {destination}")

        result = self.orchestrator.trigger_sync(entries, destination)

        self.store.mark_synced([entry.id for entry in entries], result.synced_at)
        return result

    async def run_backup_async(self) -> SyncResult:
        """Run a backup on a worker thread so the event loop stays responsive."""
        return await asyncio.to_thread(self.run_backup)

    def get_status(self) -> Dict[str, Any]:
        """Status payload shared by the CLI and the trigger service."""
        state = self.orchestrator.snapshot()
        return {
            'status': state.status.value,
            'last_result': state.last_result.to_dict() if state.last_result else None,
            'last_error': state.last_error.message if state.last_error else None,
            'entries_count': len(self.store),
            'destination': self.destination,
        }

    def check_environment(self) -> Dict[str, bool]:
        """Check that everything a sync needs is in place.

        Returns:
            Mapping of check name to outcome
        """
        results = {}

        version = self.orchestrator.executor.tool_version()
        results['rsync'] = version is not None
        if version:
            logger.info(f"Found {version}")
        else:
            logger.error(f"rsync not available: {self.config.sync_options.rsync_binary}")

        mount_root = self.config.destination.mount_root
        results['mount_root'] = os.path.isdir(mount_root)
        if not results['mount_root']:
            logger.error(f"Mount root is not a directory: {mount_root}")

        destination = self.destination
        if os.path.exists(destination):
            results['destination'] = os.path.isdir(destination) and os.access(destination, os.W_OK)
        else:
            results['destination'] = results['mount_root'] and os.access(mount_root, os.W_OK)

        results['entries'] = len(self.store) > 0
        results['trigger_token'] = bool(self.config.trigger.token)
        if not results['trigger_token']:
            logger.error("No trigger token configured; run 'cloudmount-backup token'")
        return results

    def get_backup_summary(self, result: SyncResult) -> Dict[str, Any]:
        """Generate summary of a backup result.

        Args:
            result: Result of a sync run

        Returns:
            Summary dictionary
        """
        return {
            'destination': self.destination,
            'files_transferred': result.files_transferred,
            'dirs_transferred': result.dirs_transferred,
            'bytes_transferred': result.bytes_transferred,
            'has_changes': result.has_changes,
            'exit_code': result.exit_code,
            'backup_time': result.synced_at.isoformat(),
        }
