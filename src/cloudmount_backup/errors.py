"""Error taxonomy for the backup pipeline and trigger service."""

from typing import Optional


class BackupError(Exception):
    """Base exception for backup errors.

    Every subclass carries a stable ``reason`` code so the CLI and the HTTP
    service can report a typed reason next to the human-readable message.
    """

    reason = "backup_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Structured form used in HTTP error bodies and status payloads."""
        return {'error': self.reason, 'message': self.message}


class ConfigurationError(BackupError):
    """Configuration file is missing or invalid."""

    reason = "configuration_error"


class ManifestError(BackupError):
    """The path manifest could not be written or read."""

    reason = "manifest_error"


class NoEntriesError(BackupError):
    """A sync was requested with an empty entry list."""

    reason = "no_entries"

    def __init__(self, message: str = "no entries to sync"):
        super().__init__(message)


class InvalidPathError(BackupError):
    """A path failed validation.

    Args:
        path: The offending path
        kind: Validation outcome (``not_found``, ``not_readable``, ``not_absolute``)
    """

    reason = "invalid_path"

    def __init__(self, path: str, kind: str, message: Optional[str] = None):
        super().__init__(message or f"path is {kind.replace('_', ' ')}: {path}")
        self.path = path
        self.kind = kind


class NoValidPathsError(InvalidPathError):
    """Every path in the batch failed validation."""

    def __init__(self, report):
        super().__init__(
            path="",
            kind="invalid",
            message=f"no valid paths to sync: {report.summary()}",
        )
        self.report = report


class DestinationError(BackupError):
    """The destination directory is unusable."""

    reason = "destination_error"

    def __init__(self, destination: str, message: Optional[str] = None):
        super().__init__(message or f"destination is not usable: {destination}")
        self.destination = destination


class DestinationNotDirectoryError(DestinationError):
    """The destination exists but is not a directory."""

    reason = "destination_not_directory"

    def __init__(self, destination: str):
        super().__init__(destination, f"destination is not a directory: {destination}")


class SubprocessFailure(BackupError):
    """The sync tool exited with a non-zero status."""

    reason = "subprocess_failure"

    def __init__(self, exit_code: int, stderr: str, message: Optional[str] = None):
        detail = stderr.strip() or "no error output"
        super().__init__(message or f"rsync error (exit code {exit_code}): {detail}")
        self.exit_code = exit_code
        self.stderr = stderr


class SyncTimeoutError(SubprocessFailure):
    """The sync tool did not finish within the configured timeout."""

    def __init__(self, timeout: float, stderr: str = ""):
        super().__init__(-1, stderr, f"rsync did not finish within {timeout:g} seconds")
        self.timeout = timeout


class SyncAlreadyRunning(BackupError):
    """Another sync is in flight."""

    reason = "sync_already_running"

    def __init__(self, message: str = "a sync is already running"):
        super().__init__(message)


class AuthFailure(BackupError):
    """Bearer token missing or incorrect."""

    reason = "unauthorized"

    def __init__(self, message: str = "unauthorized"):
        super().__init__(message)


class DuplicateEntryError(BackupError):
    """The path is already tracked."""

    reason = "duplicate_entry"

    def __init__(self, path: str):
        super().__init__(f"duplicate entry: {path}")
        self.path = path


class EntryNotFoundError(BackupError):
    """No entry with the given id."""

    reason = "entry_not_found"

    def __init__(self, entry_id: str):
        super().__init__(f"entry not found: {entry_id}")
        self.entry_id = entry_id
