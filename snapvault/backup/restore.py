"""
Restore service - reproduces the plaintext snapshot of a backup.

Missing records, missing artifacts and corrupt envelopes are expected
operational states and resolve to None rather than raising.
"""

import json
import logging
from typing import Optional

from snapvault.utils.crypto import CryptoManager, CryptoError, IntegrityError, calculate_checksum
from .ledger import BackupLedger
from .storage import ArtifactStorage, StorageError


logger = logging.getLogger(__name__)


class RestoreService:
    """
    Loads backup artifacts through the ledger and decrypts them.
    """

    def __init__(self, ledger: BackupLedger, storage: ArtifactStorage,
                 crypto: CryptoManager, verify_checksum: bool = True):
        """
        Args:
            ledger: Ledger used to locate artifacts
            storage: Artifact storage
            crypto: Cipher engine holding the artifact key
            verify_checksum: Compare restored plaintext against the recorded
                SHA-256 before returning it
        """
        self.ledger = ledger
        self.storage = storage
        self.crypto = crypto
        self.verify_checksum = verify_checksum

    def restore_plaintext(self, backup_id: str) -> Optional[str]:
        """
        Get the plaintext snapshot JSON of a backup.

        Args:
            backup_id: Backup identifier

        Returns:
            Snapshot JSON text, or None if the backup, its artifact or its
            envelope is missing or unreadable

        Raises:
            IntegrityError: If checksum verification is enabled and the
                plaintext does not match the recorded checksum
        """
        record = self.ledger.get_by_id(backup_id)
        if not record or not record.file_path or not self.storage.exists(record.file_path):
            return None

        try:
            content = self.storage.read(record.file_path)
        except StorageError as e:
            logger.error(f"[{backup_id}] Error reading backup artifact: {e}")
            return None

        if record.encrypted:
            plaintext = self._open_envelope(backup_id, content)
            if plaintext is None:
                return None
        else:
            plaintext = content

        if self.verify_checksum and record.checksum:
            actual = calculate_checksum(plaintext)
            if actual != record.checksum:
                raise IntegrityError(
                    f"Checksum mismatch for backup {backup_id}: "
                    f"expected {record.checksum}, got {actual}"
                )

        return plaintext

    def _open_envelope(self, backup_id: str, content: str) -> Optional[str]:
        try:
            envelope = json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"[{backup_id}] Encrypted artifact is not a valid envelope")
            return None

        if not isinstance(envelope, dict) or not envelope.get('encrypted') or not envelope.get('iv'):
            logger.warning(f"[{backup_id}] Encrypted artifact is missing ciphertext or IV")
            return None

        try:
            return self.crypto.decrypt(envelope['encrypted'], envelope['iv'])
        except CryptoError as e:
            logger.error(f"[{backup_id}] Failed to decrypt backup: {e}")
            return None
