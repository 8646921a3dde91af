"""Data models shared by the sync pipeline, the CLI and the trigger service."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ItemType(str, Enum):
    """Kind of a backup entry."""
    FILE = "file"
    DIRECTORY = "directory"


class SyncStatus(str, Enum):
    """Current status of the sync engine."""
    IDLE = "idle"
    RUNNING = "running"


class PathValidationKind(str, Enum):
    """Outcome of validating a single path."""
    VALID = "valid"
    NOT_FOUND = "not_found"
    NOT_READABLE = "not_readable"
    NOT_ABSOLUTE = "not_absolute"


@dataclass
class BackupEntry:
    """A single file or directory tracked for backup."""
    path: str
    item_type: ItemType
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    added_at: datetime = field(default_factory=utc_now)
    last_synced: Optional[datetime] = None

    def with_last_synced(self, synced_at: datetime) -> "BackupEntry":
        return replace(self, last_synced=synced_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'path': self.path,
            'item_type': self.item_type.value,
            'added_at': _format_time(self.added_at),
            'last_synced': _format_time(self.last_synced),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupEntry":
        return cls(
            id=data['id'],
            path=data['path'],
            item_type=ItemType(data['item_type']),
            added_at=_parse_time(data.get('added_at')) or utc_now(),
            last_synced=_parse_time(data.get('last_synced')),
        )


@dataclass(frozen=True)
class SyncResult:
    """Summary of a completed sync operation."""
    files_transferred: int
    dirs_transferred: int
    bytes_transferred: int
    stdout: str
    stderr: str
    exit_code: int
    synced_at: datetime = field(default_factory=utc_now)

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0

    @property
    def has_changes(self) -> bool:
        return self.files_transferred > 0 or self.dirs_transferred > 0

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape used by the trigger service."""
        return {
            'files_transferred': self.files_transferred,
            'dirs_transferred': self.dirs_transferred,
            'bytes_transferred': self.bytes_transferred,
            'stdout': self.stdout,
            'stderr': self.stderr,
            'exit_code': self.exit_code,
            'synced_at': _format_time(self.synced_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncResult":
        return cls(
            files_transferred=int(data.get('files_transferred', 0)),
            dirs_transferred=int(data.get('dirs_transferred', 0)),
            bytes_transferred=int(data.get('bytes_transferred', 0)),
            stdout=data.get('stdout', ''),
            stderr=data.get('stderr', ''),
            exit_code=int(data.get('exit_code', 0)),
            synced_at=_parse_time(data.get('synced_at')) or utc_now(),
        )


@dataclass(frozen=True)
class PathValidation:
    """Validation outcome for one path, carrying the path it refers to."""
    kind: PathValidationKind
    path: str

    @property
    def is_valid(self) -> bool:
        return self.kind == PathValidationKind.VALID

    def describe(self) -> str:
        if self.is_valid:
            return f"valid: {self.path}"
        return f"{self.kind.value.replace('_', ' ')}: {self.path}"


@dataclass
class ValidationReport:
    """Result of validating a batch of paths."""
    total: int
    valid_count: int
    failures: List[PathValidation] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        """True if all paths are valid and there are no duplicates."""
        return not self.failures and not self.duplicates

    @property
    def has_issues(self) -> bool:
        return not self.is_ok

    def count(self, kind: PathValidationKind) -> int:
        return len([f for f in self.failures if f.kind == kind])

    def summary(self) -> str:
        """Human-readable summary of validation issues."""
        if self.is_ok:
            return f"all {self.total} paths validated successfully"

        parts = []
        for kind in (PathValidationKind.NOT_FOUND,
                     PathValidationKind.NOT_READABLE,
                     PathValidationKind.NOT_ABSOLUTE):
            count = self.count(kind)
            if count:
                parts.append(f"{count} {kind.value.replace('_', ' ')}")
        if self.duplicates:
            parts.append(f"{len(self.duplicates)} duplicates")

        return f"{self.valid_count}/{self.total} paths valid; issues: {', '.join(parts)}"


@dataclass(frozen=True)
class SyncFailure:
    """Record of the last failed sync attempt."""
    reason: str
    message: str
    occurred_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'reason': self.reason,
            'message': self.message,
            'occurred_at': _format_time(self.occurred_at),
        }


@dataclass(frozen=True)
class SyncState:
    """Consistent snapshot of the orchestrator state."""
    status: SyncStatus
    last_result: Optional[SyncResult] = None
    last_error: Optional[SyncFailure] = None
    last_report: Optional[ValidationReport] = None
