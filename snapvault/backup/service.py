"""
Backup service - the operations exposed to the HTTP layer.
"""

import os
from typing import Any, Dict, List, Mapping, Optional

from snapvault.models import BackupRecord, BackupType
from snapvault.utils.crypto import CryptoManager
from .aggregator import SnapshotAggregator
from .executor import BackupExecutor
from .ledger import BackupLedger
from .restore import RestoreService
from .retention import RetentionManager
from .sources import DataDirectorySource
from .storage import ArtifactStorage


class BackupService:
    """
    Facade wiring ledger, aggregator, storage and cipher engine together.

    Holds no backup state of its own; every call goes back to the ledger.
    """

    def __init__(self, ledger: BackupLedger, aggregator: SnapshotAggregator,
                 storage: ArtifactStorage, crypto: CryptoManager,
                 verify_checksum: bool = True):
        self.ledger = ledger
        self.crypto = crypto
        self.executor = BackupExecutor(ledger, aggregator, storage, crypto)
        self.restorer = RestoreService(ledger, storage, crypto, verify_checksum=verify_checksum)
        self.retention = RetentionManager(ledger, storage)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'BackupService':
        """
        Build a service from a Flask config mapping.

        Args:
            config: Mapping with DATA_DIR, BACKUP_DIR, LEDGER_FILE,
                BACKUP_ENCRYPTION_KEY, BACKUP_KEY_SALT and optionally
                SNAPSHOT_EXCLUDE_PATTERNS, BACKUP_VERIFY_CHECKSUM
        """
        exclude_patterns = list(config.get('SNAPSHOT_EXCLUDE_PATTERNS') or [])
        exclude_patterns.append(os.path.basename(config['LEDGER_FILE']))

        source = DataDirectorySource(config['DATA_DIR'], exclude_patterns=exclude_patterns)
        crypto = CryptoManager(
            config.get('BACKUP_ENCRYPTION_KEY'),
            salt=config['BACKUP_KEY_SALT']
        )

        return cls(
            ledger=BackupLedger(config['LEDGER_FILE']),
            aggregator=SnapshotAggregator(source),
            storage=ArtifactStorage(config['BACKUP_DIR']),
            crypto=crypto,
            verify_checksum=config.get('BACKUP_VERIFY_CHECKSUM', True)
        )

    def create_backup(self, owner_scope: Optional[str] = None, backup_type: str = BackupType.MANUAL,
                      encrypt: bool = True) -> BackupRecord:
        return self.executor.execute(owner_scope=owner_scope, backup_type=backup_type, encrypt=encrypt)

    def list_backups(self, owner_scope: Optional[str] = None) -> List[BackupRecord]:
        return self.ledger.list_by_owner(owner_scope)

    def get_backup(self, backup_id: str) -> Optional[BackupRecord]:
        return self.ledger.get_by_id(backup_id)

    def get_decrypted_content(self, backup_id: str) -> Optional[str]:
        return self.restorer.restore_plaintext(backup_id)

    def delete_backup(self, backup_id: str) -> bool:
        return self.retention.delete_backup(backup_id)

    def prune_backups(self, days: int, owner_scope: Optional[str] = None,
                      all_scopes: bool = False) -> Dict[str, Any]:
        return self.retention.prune_older_than(days, owner_scope=owner_scope, all_scopes=all_scopes)

    def stats(self) -> Dict[str, Any]:
        return self.ledger.stats()
