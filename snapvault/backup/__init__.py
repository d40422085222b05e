"""
Backup module for snapvault.

This module handles the core backup functionality including:
- Snapshot aggregation of the JSON data stores
- Ledger of backup attempts
- Artifact storage
- Execution orchestration
- Restore and deletion
"""

from .executor import BackupExecutor
from .sources import DataDirectorySource, AggregationReadError
from .aggregator import SnapshotAggregator
from .ledger import BackupLedger, LedgerCorruptionError, DuplicateIdError
from .storage import ArtifactStorage, StorageError, ArtifactWriteError
from .restore import RestoreService
from .retention import RetentionManager
from .service import BackupService

__all__ = [
    'BackupExecutor',
    'DataDirectorySource',
    'AggregationReadError',
    'SnapshotAggregator',
    'BackupLedger',
    'LedgerCorruptionError',
    'DuplicateIdError',
    'ArtifactStorage',
    'StorageError',
    'ArtifactWriteError',
    'RestoreService',
    'RetentionManager',
    'BackupService'
]
