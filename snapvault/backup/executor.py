"""
Backup executor - orchestrates one backup attempt.

Workflow:
1. Append ledger record (status: in_progress) before any heavy work
2. Aggregate all data documents into a snapshot
3. Serialize the snapshot and compute its SHA-256 checksum
4. Encrypt into an envelope (if requested) and write the artifact
5. Stat the artifact size
6. Update ledger record (status: completed)
7. On any failure in 2-6: remove a written artifact, update ledger record
   (status: failed), re-raise
"""

import json
import logging
import uuid
from typing import Optional

from snapvault.models import BackupRecord, BackupStatus, BackupType, utcnow
from snapvault.utils.crypto import CryptoManager, CryptoError, calculate_checksum
from .aggregator import SnapshotAggregator
from .ledger import BackupLedger
from .storage import ArtifactStorage, StorageError


logger = logging.getLogger(__name__)


def build_envelope(ciphertext_hex: str, iv_hex: str, checksum: str) -> str:
    """On-disk format of an encrypted artifact."""
    return json.dumps({
        'encrypted': ciphertext_hex,
        'iv': iv_hex,
        'checksum': checksum
    })


class BackupExecutor:
    """
    Drives a backup attempt through its lifecycle.
    """

    def __init__(self, ledger: BackupLedger, aggregator: SnapshotAggregator,
                 storage: ArtifactStorage, crypto: CryptoManager):
        """
        Initialize backup executor.

        Args:
            ledger: Ledger receiving the attempt's record
            aggregator: Snapshot builder
            storage: Artifact storage
            crypto: Cipher engine used for encrypted backups
        """
        self.ledger = ledger
        self.aggregator = aggregator
        self.storage = storage
        self.crypto = crypto

    def execute(self, owner_scope: Optional[str] = None, backup_type: str = BackupType.MANUAL,
                encrypt: bool = True) -> BackupRecord:
        """
        Execute one backup attempt.

        Args:
            owner_scope: Tenant id (None = system-wide backup)
            backup_type: 'full', 'incremental' or 'manual' (label only)
            encrypt: Write an encrypted envelope instead of plaintext

        Returns:
            The completed BackupRecord

        Raises:
            ValueError: If backup_type is invalid (no record is created)
            CryptoError: If encryption is requested without a configured key
                (no record is created), or if encryption fails
            Exception: Any failure after the record was created, re-raised
                once the record is marked failed
        """
        if backup_type not in BackupType.ALL:
            raise ValueError(f"Invalid backup type: {backup_type}. Valid options: {list(BackupType.ALL)}")

        if encrypt and not self.crypto.is_initialized:
            raise CryptoError("Encrypted backups require BACKUP_ENCRYPTION_KEY to be configured")

        started_at = utcnow()
        record = BackupRecord(
            id=str(uuid.uuid4()),
            owner_scope=owner_scope,
            type=backup_type,
            status=BackupStatus.IN_PROGRESS,
            started_at=started_at,
            encrypted=encrypt
        )
        self.ledger.append(record)

        self._log(record, f"Starting {backup_type} backup (scope: {owner_scope or 'system'}, encrypted: {encrypt})")

        file_path = None
        try:
            file_path, file_size, checksum = self._execute_workflow(record)
            completed = self._finish(record, lambda r: r.mark_completed(file_path, file_size, checksum))
        except Exception as e:
            self._log(record, f"Backup failed: {e}", level=logging.ERROR)
            if file_path:
                self._discard_artifact(record, file_path)
            self._finish(record, lambda r: r.mark_failed(str(e) or e.__class__.__name__))
            raise

        self._log(record, f"Backup completed successfully ({file_size} bytes)")
        return completed

    def _execute_workflow(self, record: BackupRecord):
        """Run steps 2-5 and return (file_path, file_size, checksum)."""
        self._log(record, "Aggregating data documents")
        snapshot = self.aggregator.aggregate(record.owner_scope, record.type, timestamp=record.started_at)
        self._log(record, f"Captured {len(snapshot['files'])} data documents")

        snapshot_json = self.aggregator.serialize(snapshot)
        checksum = calculate_checksum(snapshot_json)

        if record.encrypted:
            self._log(record, "Encrypting snapshot")
            ciphertext, iv = self.crypto.encrypt(snapshot_json)
            content = build_envelope(ciphertext, iv, checksum)
        else:
            content = snapshot_json

        filename = self.storage.generate_filename(record.id)
        file_path = self.storage.write(filename, content)
        file_size = self.storage.get_size(file_path)
        self._log(record, f"Artifact written: {filename}")

        return file_path, file_size, checksum

    def _finish(self, record: BackupRecord, transition) -> BackupRecord:
        """Apply a terminal transition to the stored record and return it."""
        result = {}

        def mutator(current: BackupRecord) -> BackupRecord:
            result['record'] = transition(current)
            return result['record']

        if not self.ledger.update(record.id, mutator):
            # The record was appended by this attempt, so this means the
            # ledger was reset or the entry deleted mid-backup.
            logger.error(f"[{record.id}] Ledger record vanished before it reached a terminal state")
            return transition(record)

        return result['record']

    def _discard_artifact(self, record: BackupRecord, file_path: str):
        """Remove the artifact of an attempt that could not be completed."""
        try:
            self.storage.delete(file_path)
        except StorageError as e:
            self._log(record, f"Failed to remove artifact of failed backup: {e}", level=logging.WARNING)

    def _log(self, record: BackupRecord, message: str, level: int = logging.INFO):
        logger.log(level, f"[{record.id}] {message}")
