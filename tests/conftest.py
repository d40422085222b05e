"""
Shared pytest fixtures for snapvault tests.

This module provides fixtures for:
- Flask app and test client
- Data directory with sample stores
- Ledger, storage and crypto fixtures
- Fully wired executor and service fixtures
"""

import json
from datetime import datetime, timezone

import pytest

from snapvault import create_app
from snapvault.backup.aggregator import SnapshotAggregator
from snapvault.backup.executor import BackupExecutor
from snapvault.backup.ledger import BackupLedger
from snapvault.backup.service import BackupService
from snapvault.backup.sources import DataDirectorySource
from snapvault.backup.storage import ArtifactStorage
from snapvault.models import BackupRecord, BackupStatus
from snapvault.utils.crypto import CryptoManager


TEST_PASSPHRASE = 'test_passphrase_123'


@pytest.fixture
def data_dir(tmp_path):
    """
    Create a data directory with two stores.

    appointments.json = {"a": 1}
    messages.json = {"b": 2}
    """
    stores = tmp_path / 'stores'
    stores.mkdir()
    (stores / 'appointments.json').write_text(json.dumps({'a': 1}))
    (stores / 'messages.json').write_text(json.dumps({'b': 2}))
    return stores


@pytest.fixture
def backup_dir(tmp_path):
    return tmp_path / 'backups'


@pytest.fixture
def ledger_path(data_dir):
    return data_dir / 'backup_records.json'


@pytest.fixture
def ledger(ledger_path):
    return BackupLedger(str(ledger_path))


@pytest.fixture
def storage(backup_dir):
    return ArtifactStorage(str(backup_dir))


@pytest.fixture
def source(data_dir):
    return DataDirectorySource(str(data_dir), exclude_patterns=['backup_records.json', '*.tmp'])


@pytest.fixture
def aggregator(source):
    return SnapshotAggregator(source)


@pytest.fixture(scope='session')
def crypto_manager_initialized():
    """
    CryptoManager with a derived key.

    Passphrase: test_passphrase_123
    """
    return CryptoManager(TEST_PASSPHRASE)


@pytest.fixture
def crypto_manager_uninitialized():
    return CryptoManager()


@pytest.fixture
def executor(ledger, aggregator, storage, crypto_manager_initialized):
    return BackupExecutor(ledger, aggregator, storage, crypto_manager_initialized)


@pytest.fixture
def backup_service(ledger, aggregator, storage, crypto_manager_initialized):
    return BackupService(ledger, aggregator, storage, crypto_manager_initialized)


@pytest.fixture
def make_record():
    """Factory for ledger records with sensible defaults."""

    def _make(backup_id, status=BackupStatus.COMPLETED, owner_scope=None,
              started_at=None, file_size=None, **kwargs):
        started_at = started_at or datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        record = BackupRecord(
            id=backup_id,
            owner_scope=owner_scope,
            type=kwargs.pop('type', 'manual'),
            status=status,
            started_at=started_at,
            encrypted=kwargs.pop('encrypted', False),
            **kwargs
        )
        if status == BackupStatus.COMPLETED:
            record.completed_at = started_at
            record.file_path = record.file_path or f'/nonexistent/{backup_id}.json'
            record.file_size = file_size if file_size is not None else 0
            record.checksum = record.checksum or '0' * 64
        elif status == BackupStatus.FAILED:
            record.completed_at = started_at
            record.error = record.error or 'disk full'
        return record

    return _make


@pytest.fixture
def app(tmp_path, data_dir, backup_dir, ledger_path):
    """
    Create Flask app with test configuration.

    All paths point into the per-test temporary directory.
    """
    app = create_app('testing', overrides={
        'DATA_DIR': str(data_dir),
        'BACKUP_DIR': str(backup_dir),
        'LEDGER_FILE': str(ledger_path),
        'LOG_DIR': str(tmp_path / 'logs'),
        'BACKUP_ENCRYPTION_KEY': TEST_PASSPHRASE,
    })

    yield app


@pytest.fixture
def client(app):
    """Flask test client for making HTTP requests."""
    return app.test_client()
