"""Rsync execution: argument building, process execution and output parsing."""

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..errors import SubprocessFailure, SyncTimeoutError
from ..models import SyncResult, utc_now

logger = logging.getLogger(__name__)

# Archive, verbose, explicit recursion, relative paths. --files-from turns off
# the recursion -a normally implies, so -r must stay in this set.
RSYNC_FLAGS = "-avrR"
FILES_FROM_OPTION = "--files-from"
SOURCE_ROOT = "/"

_SKIPPED_PREFIXES = ("sending", "sent ", "total ", "building ")
_SKIPPED_LINES = {".", "./"}
_SENT_BYTES = re.compile(r"^sent\s+(\d[\d,]*)\s+bytes")

EXIT_COMMAND_NOT_EXECUTABLE = 126
EXIT_COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class TransferCounts:
    """Counts parsed from rsync verbose output."""
    files: int = 0
    dirs: int = 0
    bytes: int = 0


def build_arguments(manifest_path: str, destination: str) -> List[str]:
    """Build the rsync argument vector (without the binary).

    Command: ``rsync -avrR --files-from=<manifest> / <destination>/``

    Args:
        manifest_path: Path of the manifest file
        destination: Destination directory

    Returns:
        Argument list
    """
    target = destination if destination.endswith('/') else f"{destination}/"
    return [
        RSYNC_FLAGS,
        f"{FILES_FROM_OPTION}={manifest_path}",
        SOURCE_ROOT,
        target,
    ]


def parse_transfer_counts(stdout: str) -> TransferCounts:
    """Count transferred files and directories in rsync ``-v`` output.

    Transferred items are listed one per line before the summary block.
    Directories end with ``/``, files do not.

    Args:
        stdout: Captured rsync standard output

    Returns:
        TransferCounts with files, dirs and bytes sent
    """
    files = 0
    dirs = 0
    sent_bytes = 0

    for line in stdout.splitlines():
        trimmed = line.strip()

        match = _SENT_BYTES.match(trimmed)
        if match:
            sent_bytes = int(match.group(1).replace(',', ''))
            continue

        if not trimmed or trimmed.startswith(_SKIPPED_PREFIXES) or trimmed in _SKIPPED_LINES:
            continue

        if trimmed.endswith('/'):
            dirs += 1
        else:
            files += 1

    return TransferCounts(files=files, dirs=dirs, bytes=sent_bytes)


class SyncExecutor:
    """Run rsync and turn its output into a SyncResult."""

    def __init__(self, rsync_binary: str = "rsync", timeout: Optional[float] = None):
        """Initialize executor.

        Args:
            rsync_binary: Name or path of the rsync executable
            timeout: Seconds before the child is killed (None waits forever)
        """
        self.rsync_binary = rsync_binary
        self.timeout = timeout

    def build_arguments(self, manifest_path: str, destination: str) -> List[str]:
        return build_arguments(manifest_path, destination)

    def parse_transfer_counts(self, stdout: str) -> TransferCounts:
        return parse_transfer_counts(stdout)

    def run(self, arguments: Sequence[str]) -> SyncResult:
        """Run rsync to completion and parse its output.

        Args:
            arguments: Argument vector from build_arguments

        Returns:
            SyncResult for a zero exit status
        """
        command = [self.rsync_binary, *arguments]
        logger.debug(f"Running: {' '.join(command)}")

        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            logger.error(f"❌ Sync tool not found: {self.rsync_binary}")
            raise SubprocessFailure(EXIT_COMMAND_NOT_FOUND, str(e)) from e
        except OSError as e:
            logger.error(f"❌ Could not start {self.rsync_binary}: {e}")
            raise SubprocessFailure(EXIT_COMMAND_NOT_EXECUTABLE, str(e)) from e
        except subprocess.TimeoutExpired as e:
            logger.error(f"❌ rsync timed out after {self.timeout}s")
            stderr = e.stderr or ""
            if isinstance(stderr, bytes):
                stderr = stderr.decode('utf-8', errors='replace')
            raise SyncTimeoutError(self.timeout, stderr) from e

        if completed.returncode != 0:
            logger.error(f"❌ rsync exited with code {completed.returncode}")
            if completed.stderr:
                logger.error(completed.stderr.strip())
            raise SubprocessFailure(completed.returncode, completed.stderr)

        counts = parse_transfer_counts(completed.stdout)
        return SyncResult(
            files_transferred=counts.files,
            dirs_transferred=counts.dirs,
            bytes_transferred=counts.bytes,
            stdout=completed.stdout,
            stderr=completed.stderr,
            exit_code=completed.returncode,
            synced_at=utc_now(),
        )

    def tool_version(self) -> Optional[str]:
        """Return the first line of ``rsync --version``, or None if unavailable."""
        try:
            completed = subprocess.run(
                [self.rsync_binary, "--version"],
                capture_output=True,
                text=True,
                timeout=10,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Could not run {self.rsync_binary} --version: {e}")
            return None

        if completed.returncode != 0:
            return None
        lines = completed.stdout.strip().splitlines()
        return lines[0] if lines else None
