import os


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration"""

    # Data stores being captured (one JSON document per logical store)
    DATA_DIR = os.environ.get('DATA_DIR') or '/data/stores'

    # Artifact directory and ledger index
    BACKUP_DIR = os.environ.get('BACKUP_DIR') or '/data/backups'
    LEDGER_FILE = os.environ.get('LEDGER_FILE') or os.path.join(DATA_DIR, 'backup_records.json')

    LOG_DIR = os.environ.get('LOG_DIR') or '/data/logs'

    # Encryption
    # No fallback passphrase exists; see REQUIRE_ENCRYPTION_KEY
    BACKUP_ENCRYPTION_KEY = os.environ.get('BACKUP_ENCRYPTION_KEY')
    BACKUP_KEY_SALT = os.environ.get('BACKUP_KEY_SALT') or 'snapvault_backup_salt_v1'
    REQUIRE_ENCRYPTION_KEY = True

    # Restore
    BACKUP_VERIFY_CHECKSUM = _env_flag('BACKUP_VERIFY_CHECKSUM', True)

    # Files in DATA_DIR that are never captured (the ledger file is always excluded)
    SNAPSHOT_EXCLUDE_PATTERNS = ['*.tmp', '*.corrupt-*']


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    REQUIRE_ENCRYPTION_KEY = False

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    ROOT_DIR = os.path.join(BASE_DIR, 'data')
    DATA_DIR = os.path.join(ROOT_DIR, 'stores')
    BACKUP_DIR = os.path.join(ROOT_DIR, 'backups')
    LEDGER_FILE = os.path.join(DATA_DIR, 'backup_records.json')
    LOG_DIR = os.path.join(ROOT_DIR, 'logs')


class TestingConfig(DevelopmentConfig):
    """Testing configuration - paths are overridden per test"""
    TESTING = True
    DEBUG = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}
