"""
Backup ledger - durable index of backup attempts.

The whole ledger is one JSON array of BackupRecord dicts. Every mutation is
a read-modify-write of the full collection, serialized through one lock per
ledger file and written with an atomic temp-file rename.

Nothing is cached between calls: each operation re-reads the file.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Any

from snapvault.models import BackupRecord, BackupStatus
from .storage import atomic_write_text


logger = logging.getLogger(__name__)

# One lock per ledger file, shared by every BackupLedger in the process
_ledger_locks: Dict[str, threading.RLock] = {}
_ledger_locks_guard = threading.Lock()


class LedgerCorruptionError(Exception):
    """Raised when the ledger file cannot be parsed."""
    pass


class DuplicateIdError(Exception):
    """Raised when appending a record whose id is already in the ledger."""
    pass


def _lock_for(path: Path) -> threading.RLock:
    key = str(path.resolve())
    with _ledger_locks_guard:
        if key not in _ledger_locks:
            _ledger_locks[key] = threading.RLock()
        return _ledger_locks[key]


class BackupLedger:
    """
    File-backed ledger of BackupRecord entries keyed by backup id.

    Thread-safety:
        - All operations, reads included, hold the ledger lock
        - Writes replace the file atomically, so a crash never leaves a
          truncated ledger behind
    """

    def __init__(self, path: str):
        """
        Args:
            path: Location of the ledger JSON file
        """
        self.path = Path(path)
        self._lock = _lock_for(self.path)

    def _read(self) -> List[BackupRecord]:
        """
        Parse the ledger file.

        Raises:
            LedgerCorruptionError: If the file is not a valid record list
        """
        if not self.path.exists():
            return []

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise LedgerCorruptionError(f"Cannot parse ledger: {e}")

        if not isinstance(raw, list):
            raise LedgerCorruptionError(f"Ledger root must be a list, got {type(raw).__name__}")

        try:
            return [BackupRecord.from_dict(item) for item in raw]
        except (TypeError, ValueError, AttributeError) as e:
            raise LedgerCorruptionError(f"Invalid ledger record: {e}")

    def _load(self) -> List[BackupRecord]:
        """Read all records, degrading to an empty ledger on corruption."""
        try:
            return self._read()
        except LedgerCorruptionError as e:
            quarantined = self._quarantine()
            logger.error(
                f"Backup ledger {self.path} is corrupt, treating it as empty "
                f"(previous history moved to {quarantined}): {e}"
            )
            return []

    def _quarantine(self) -> Optional[str]:
        """Move a corrupt ledger aside so the next write does not destroy it."""
        stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S%f')
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            os.replace(self.path, target)
            return str(target)
        except OSError as e:
            logger.error(f"Failed to move corrupt ledger aside: {e}")
            return None

    def _save(self, records: List[BackupRecord]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps([r.to_dict() for r in records], indent=2)
        atomic_write_text(self.path, text)

    def append(self, record: BackupRecord):
        """
        Add a new record.

        Raises:
            DuplicateIdError: If a record with the same id exists
        """
        with self._lock:
            records = self._load()
            if any(r.id == record.id for r in records):
                raise DuplicateIdError(f"Backup id already in ledger: {record.id}")
            records.append(record)
            self._save(records)

    def update(self, backup_id: str, mutator: Callable[[BackupRecord], BackupRecord]) -> bool:
        """
        Replace the record matching backup_id with mutator(record).

        Args:
            backup_id: Id of the record to update
            mutator: Receives the current record, returns its replacement

        Returns:
            True if the record was found and rewritten, False (no-op) if absent
        """
        with self._lock:
            records = self._load()
            for index, record in enumerate(records):
                if record.id == backup_id:
                    records[index] = mutator(record)
                    self._save(records)
                    return True
            return False

    def list_by_owner(self, owner_scope: Optional[str] = None) -> List[BackupRecord]:
        """
        List records for one owner scope, most recent first.

        Args:
            owner_scope: Tenant id, or None for system-wide backups

        Returns:
            Records whose owner_scope equals the argument exactly
        """
        with self._lock:
            records = self._load()

        matching = [r for r in records if r.owner_scope == owner_scope]
        return sorted(matching, key=lambda r: r.started_at, reverse=True)

    def all_records(self) -> List[BackupRecord]:
        with self._lock:
            records = self._load()
        return sorted(records, key=lambda r: r.started_at, reverse=True)

    def get_by_id(self, backup_id: str) -> Optional[BackupRecord]:
        with self._lock:
            records = self._load()
        return next((r for r in records if r.id == backup_id), None)

    def remove(self, backup_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was removed, False if it was absent
        """
        with self._lock:
            records = self._load()
            remaining = [r for r in records if r.id != backup_id]
            if len(remaining) == len(records):
                return False
            self._save(remaining)
            return True

    def stats(self) -> Dict[str, Any]:
        """
        Aggregate ledger statistics.

        Returns:
            {
                'total': int,
                'total_size': int,  # bytes, completed backups only
                'by_status': {status: count}
            }
        """
        with self._lock:
            records = self._load()

        by_status: Dict[str, int] = {}
        for record in records:
            by_status[record.status] = by_status.get(record.status, 0) + 1

        total_size = sum(
            r.file_size or 0 for r in records
            if r.status == BackupStatus.COMPLETED
        )

        return {
            'total': len(records),
            'total_size': total_size,
            'by_status': by_status
        }
