import os
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask
from flask.logging import default_handler


CONSOLE_FORMAT = '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
FILE_FORMAT = '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'


def configure_logging(app):
    """
    Attach console and rotating file handlers to the snapvault logger.

    app.logger is the "snapvault" logger shared by every module in the
    package, so handlers installed by an earlier create_app call are closed
    and replaced rather than stacked.
    """
    log_dir = app.config['LOG_DIR']
    os.makedirs(log_dir, exist_ok=True)

    log_level = logging.DEBUG if app.config.get('DEBUG', False) else logging.INFO
    package_logger = app.logger

    package_logger.removeHandler(default_handler)
    for handler in list(package_logger.handlers):
        if getattr(handler, 'snapvault_owned', False):
            package_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    file_handler = RotatingFileHandler(
        os.path.join(log_dir, 'snapvault.log'),
        maxBytes=10485760,  # 10MB
        backupCount=10
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    for handler in (console_handler, file_handler):
        handler.setLevel(log_level)
        handler.snapvault_owned = True
        package_logger.addHandler(handler)

    package_logger.setLevel(log_level)
    package_logger.info(f"Logging configured (level: {logging.getLevelName(log_level)}, dir: {log_dir})")


def create_app(config_name=None, overrides=None):
    """
    Flask application factory

    Args:
        config_name: Key into snapvault.config.config (default: FLASK_ENV)
        overrides: Optional mapping applied on top of the config object

    Raises:
        RuntimeError: If BACKUP_ENCRYPTION_KEY is required but not configured
    """
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'production')

    from snapvault.config import config
    app.config.from_object(config[config_name])
    if overrides:
        app.config.update(overrides)

    # Configure logging
    configure_logging(app)

    # Ensure required directories exist
    os.makedirs(app.config['DATA_DIR'], exist_ok=True)
    os.makedirs(app.config['BACKUP_DIR'], exist_ok=True)
    os.makedirs(os.path.dirname(os.path.abspath(app.config['LEDGER_FILE'])), exist_ok=True)

    # Fail closed on a missing encryption secret
    if not app.config.get('BACKUP_ENCRYPTION_KEY'):
        if app.config.get('REQUIRE_ENCRYPTION_KEY', True):
            raise RuntimeError("BACKUP_ENCRYPTION_KEY not configured - refusing to start")
        app.logger.warning("BACKUP_ENCRYPTION_KEY not configured - encrypted backups and restores will be refused")

    # Backup service (state lives in the ledger file, not here)
    from snapvault.backup.service import BackupService
    app.extensions['snapvault'] = BackupService.from_config(app.config)

    # Register blueprints
    from snapvault.routes import backup_routes
    app.register_blueprint(backup_routes.bp)

    # Health check endpoint
    @app.route('/health')
    def health():
        return {'status': 'healthy'}, 200

    app.logger.info(f"snapvault started (data: {app.config['DATA_DIR']}, backups: {app.config['BACKUP_DIR']})")

    return app
