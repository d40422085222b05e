"""
Backup deletion and retention.

Deletion always goes through the ledger: the artifact recorded for a
backup is removed together with its ledger entry.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from snapvault.models import utcnow
from .ledger import BackupLedger
from .storage import ArtifactStorage, StorageError


logger = logging.getLogger(__name__)


class RetentionManager:
    """
    Removes backups (artifact + ledger entry) individually or by age.
    """

    def __init__(self, ledger: BackupLedger, storage: ArtifactStorage):
        self.ledger = ledger
        self.storage = storage

    def delete_backup(self, backup_id: str) -> bool:
        """
        Delete a backup's artifact and ledger entry.

        Artifact deletion failures are logged and ignored; the ledger entry
        is removed regardless.

        Args:
            backup_id: Backup identifier

        Returns:
            True if the backup existed, False otherwise
        """
        record = self.ledger.get_by_id(backup_id)
        if not record:
            return False

        if record.file_path and self.storage.exists(record.file_path):
            try:
                self.storage.delete(record.file_path)
                logger.info(f"[{backup_id}] Deleted backup artifact")
            except StorageError as e:
                logger.error(f"[{backup_id}] Error deleting backup artifact: {e}")

        self.ledger.remove(backup_id)
        logger.info(f"[{backup_id}] Removed backup from ledger")
        return True

    def prune_older_than(self, days: int, owner_scope: Optional[str] = None,
                         all_scopes: bool = False) -> Dict[str, Any]:
        """
        Delete terminal backups started more than `days` days ago.

        In-progress records are never pruned.

        Args:
            days: Age threshold in days (must be >= 1)
            owner_scope: Only prune this tenant's backups (None = system-wide)
            all_scopes: Ignore owner_scope and prune across every tenant

        Returns:
            Dict with summary:
            {
                'deleted': int,
                'deleted_ids': List[str],
                'errors': List[str]
            }

        Raises:
            ValueError: If days < 1
        """
        if days < 1:
            raise ValueError("Retention period must be at least 1 day")

        cutoff = utcnow() - timedelta(days=days)
        records = self.ledger.all_records() if all_scopes else self.ledger.list_by_owner(owner_scope)

        summary = {
            'deleted': 0,
            'deleted_ids': [],
            'errors': []
        }

        for record in records:
            if not record.is_terminal or record.started_at >= cutoff:
                continue

            try:
                if self.delete_backup(record.id):
                    summary['deleted'] += 1
                    summary['deleted_ids'].append(record.id)
            except Exception as e:
                error_msg = f"Failed to delete backup {record.id}: {e}"
                logger.error(error_msg)
                summary['errors'].append(error_msg)

        logger.info(
            f"Retention enforcement complete. "
            f"Deleted: {summary['deleted']}, "
            f"Errors: {len(summary['errors'])}"
        )

        return summary
