"""Sync orchestration: manifest → validation → rsync, one attempt at a time."""

import logging
import threading
from pathlib import Path
from typing import Optional, Sequence

from filelock import FileLock, Timeout

from ..errors import BackupError, SyncAlreadyRunning
from ..models import BackupEntry, SyncFailure, SyncResult, SyncState, SyncStatus, ValidationReport
from ..utils.logging import TimedOperation
from .executor import SyncExecutor
from .manifest import ManifestCodec
from .validation import PathValidator

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Run the sync pipeline and own the shared sync state.

    One instance is shared by every caller in a process. The thread lock
    guards status, last result and last error. When ``lock_file`` is given, an
    exclusive file lock is held for the whole attempt as well, so a CLI backup
    and a sync started through the trigger service never run rsync at the same
    time. A concurrent trigger fails with SyncAlreadyRunning instead of
    waiting.
    """

    def __init__(
        self,
        codec: Optional[ManifestCodec] = None,
        validator: Optional[PathValidator] = None,
        executor: Optional[SyncExecutor] = None,
        lock_file: Optional[Path] = None,
    ):
        """Initialize orchestrator.

        Args:
            codec: Manifest codec
            validator: Path validator
            executor: Rsync executor
            lock_file: Lock file shared by every process syncing the same
                entries (no cross-process lock if None)
        """
        self.codec = codec or ManifestCodec()
        self.validator = validator or PathValidator()
        self.executor = executor or SyncExecutor()

        self._lock = threading.Lock()
        self._file_lock: Optional[FileLock] = None
        if lock_file is not None:
            Path(lock_file).parent.mkdir(parents=True, exist_ok=True)
            self._file_lock = FileLock(str(lock_file))
        self._status = SyncStatus.IDLE
        self._last_result: Optional[SyncResult] = None
        self._last_error: Optional[SyncFailure] = None
        self._last_report: Optional[ValidationReport] = None

    @property
    def status(self) -> SyncStatus:
        with self._lock:
            return self._status

    @property
    def is_running(self) -> bool:
        return self.status == SyncStatus.RUNNING

    @property
    def last_result(self) -> Optional[SyncResult]:
        with self._lock:
            return self._last_result

    @property
    def last_error(self) -> Optional[SyncFailure]:
        with self._lock:
            return self._last_error

    def snapshot(self) -> SyncState:
        """Return status, last result and last error read under one lock."""
        with self._lock:
            return SyncState(
                status=self._status,
                last_result=self._last_result,
                last_error=self._last_error,
                last_report=self._last_report,
            )

    def _acquire(self):
        with self._lock:
            if self._status == SyncStatus.RUNNING:
                raise SyncAlreadyRunning()
            if self._file_lock is not None:
                try:
                    self._file_lock.acquire(timeout=0)
                except Timeout:
                    logger.warning(f"Sync lock {self._file_lock.lock_file} is held by another process")
                    raise SyncAlreadyRunning("a sync is already running in another process")
            self._status = SyncStatus.RUNNING
        logger.info("Sync status: running")

    def _release(self, result: Optional[SyncResult], error: Optional[BackupError],
                 report: Optional[ValidationReport]):
        with self._lock:
            if result is not None:
                self._last_result = result
                self._last_error = None
            elif error is not None:
                self._last_error = SyncFailure(reason=error.reason, message=error.message)
            if report is not None:
                self._last_report = report
            self._status = SyncStatus.IDLE
            if self._file_lock is not None:
                self._file_lock.release()
        logger.info("Sync status: idle")

    def trigger_sync(self, entries: Sequence[BackupEntry], destination: str) -> SyncResult:
        """Run one sync attempt.

        Args:
            entries: Snapshot of the entries to back up
            destination: Resolved destination directory

        Returns:
            SyncResult of the rsync run
        """
        self._acquire()

        result: Optional[SyncResult] = None
        failure: Optional[BackupError] = None
        report: Optional[ValidationReport] = None
        try:
            with TimedOperation(logger, f"sync of {len(entries)} entries to {destination}"):
                with self.codec.encode(entries) as manifest:
                    paths = self.codec.decode(manifest)
                    report = self.validator.pre_sync_check(paths, destination)
                    arguments = self.executor.build_arguments(str(manifest.path), destination)
                    result = self.executor.run(arguments)
        except BackupError as e:
            failure = e
            raise
        except Exception as e:
            failure = BackupError(f"unexpected sync failure: {e}")
            raise
        finally:
            self._release(result, failure, report)

        logger.info(
            f"✅ Sync finished: {result.files_transferred} files, "
            f"{result.dirs_transferred} directories, {result.bytes_transferred} bytes sent"
        )
        return result
