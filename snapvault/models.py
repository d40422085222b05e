from dataclasses import dataclass, asdict, fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class BackupStatus:
    """Lifecycle states of a backup attempt."""
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    FAILED = 'failed'

    ALL = (PENDING, IN_PROGRESS, COMPLETED, FAILED)
    TERMINAL = (COMPLETED, FAILED)


class BackupType:
    """Intent labels. Every type performs a full capture."""
    FULL = 'full'
    INCREMENTAL = 'incremental'
    MANUAL = 'manual'

    ALL = (FULL, INCREMENTAL, MANUAL)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class BackupRecord:
    """Ledger entry for one backup attempt"""

    id: str
    type: str
    status: str
    started_at: datetime
    encrypted: bool
    owner_scope: Optional[str] = None  # None = system-wide backup
    completed_at: Optional[datetime] = None
    file_path: Optional[str] = None
    file_size: Optional[int] = None
    checksum: Optional[str] = None  # SHA-256 of the plaintext snapshot
    error: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = self.started_at

    def __repr__(self):
        return f'<BackupRecord {self.id} status={self.status} encrypted={self.encrypted}>'

    @property
    def is_terminal(self) -> bool:
        return self.status in BackupStatus.TERMINAL

    def mark_completed(self, file_path: str, file_size: int, checksum: str,
                       completed_at: Optional[datetime] = None) -> 'BackupRecord':
        """
        Move the record to the completed state.

        Raises:
            ValueError: If the record already reached a terminal state
        """
        self._ensure_open()
        self.status = BackupStatus.COMPLETED
        self.completed_at = completed_at or utcnow()
        self.file_path = file_path
        self.file_size = file_size
        self.checksum = checksum
        self.error = None
        return self

    def mark_failed(self, error: str, completed_at: Optional[datetime] = None) -> 'BackupRecord':
        """
        Move the record to the failed state.

        Raises:
            ValueError: If the record already reached a terminal state
        """
        self._ensure_open()
        self.status = BackupStatus.FAILED
        self.completed_at = completed_at or utcnow()
        self.error = error
        self.file_path = None
        self.file_size = None
        self.checksum = None
        return self

    def check_invariant(self) -> bool:
        """
        Check that terminal fields match the status.

        completed: file_path, file_size and checksum set, no error
        failed: error set, no artifact fields
        pending/in_progress: no terminal field set
        """
        artifact = (self.file_path, self.file_size, self.checksum)

        if self.status == BackupStatus.COMPLETED:
            return all(v is not None for v in artifact) and self.completed_at is not None and self.error is None
        if self.status == BackupStatus.FAILED:
            return bool(self.error) and self.completed_at is not None and all(v is None for v in artifact)
        if self.status in (BackupStatus.PENDING, BackupStatus.IN_PROGRESS):
            return self.completed_at is None and self.error is None and all(v is None for v in artifact)
        return False

    def _ensure_open(self):
        if self.is_terminal:
            raise ValueError(f"Backup {self.id} is already {self.status}")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ('started_at', 'completed_at', 'created_at'):
            data[key] = _format_dt(data[key])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BackupRecord':
        """
        Build a record from its stored form.

        Raises:
            ValueError: If id, type, status or started_at is missing or not a string
        """
        for key in ('id', 'type', 'status', 'started_at'):
            value = data.get(key)
            if not isinstance(value, str) or not value:
                raise ValueError(f"Backup record field '{key}' must be a non-empty string")

        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for key in ('started_at', 'completed_at', 'created_at'):
            values[key] = _parse_dt(values.get(key))
        return cls(**values)
