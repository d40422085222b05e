"""
Backup routes - create, list, download and delete backups.

Authentication and authorization happen upstream; the owner scope is taken
from the request as-is.
"""

import os

from flask import Blueprint, Response, current_app, jsonify, request

from snapvault.models import BackupType
from snapvault.utils.crypto import CryptoError, IntegrityError


bp = Blueprint('backups', __name__, url_prefix='/api/backups')


def _service():
    return current_app.extensions['snapvault']


def _json_body():
    """Request body as a dict, {} when absent, None when it is not a JSON object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def _body_error(data):
    if data is None:
        return jsonify({'error': 'Request body must be a JSON object'}), 400
    owner_scope = data.get('owner_scope')
    if owner_scope is not None and not isinstance(owner_scope, str):
        return jsonify({'error': 'owner_scope must be a string'}), 400
    return None


def _owner_scope(data=None):
    if data and data.get('owner_scope'):
        return data['owner_scope']
    return request.args.get('owner_scope') or None


@bp.route('/', methods=['POST'])
def create_backup():
    """
    Create a backup of all data stores.

    Request body:
        - owner_scope: Tenant id (optional, absent = system-wide)
        - type: 'full', 'incremental' or 'manual' (default: manual)
        - encrypt: Encrypt the artifact (default: true)

    Returns:
        JSON with the completed backup record
    """
    data = _json_body()
    error = _body_error(data)
    if error:
        return error

    backup_type = data.get('type') or BackupType.MANUAL
    if backup_type not in BackupType.ALL:
        return jsonify({'error': f'Invalid backup type. Valid options: {list(BackupType.ALL)}'}), 400

    encrypt = data.get('encrypt') is not False

    try:
        record = _service().create_backup(
            owner_scope=_owner_scope(data),
            backup_type=backup_type,
            encrypt=encrypt
        )
    except CryptoError as e:
        current_app.logger.error(f"Error creating backup: {e}")
        return jsonify({'error': 'Encryption is not available for backups'}), 500
    except Exception as e:
        current_app.logger.error(f"Error creating backup: {e}")
        return jsonify({'error': 'Failed to create backup'}), 500

    return jsonify(record.to_dict()), 201


@bp.route('/', methods=['GET'])
def list_backups():
    """
    List backups for an owner scope, newest first.

    Query params:
        - owner_scope: Tenant id (absent = system-wide backups)
    """
    records = _service().list_backups(_owner_scope())
    return jsonify([r.to_dict() for r in records])


@bp.route('/stats', methods=['GET'])
def get_stats():
    """
    Get ledger statistics.

    Returns:
        JSON with total, total_size and by_status
    """
    return jsonify(_service().stats())


@bp.route('/<backup_id>/download', methods=['GET'])
def download_backup(backup_id):
    """
    Download the decrypted snapshot of a backup.

    Returns:
        Snapshot JSON as an attachment
    """
    service = _service()

    backup = service.get_backup(backup_id)
    if not backup:
        return jsonify({'error': 'Backup not found'}), 404

    try:
        content = service.get_decrypted_content(backup_id)
    except IntegrityError as e:
        current_app.logger.error(f"Error downloading backup: {e}")
        return jsonify({'error': 'Backup failed integrity verification'}), 500

    if content is None:
        return jsonify({'error': 'Backup file not found or corrupted'}), 404

    original_name = os.path.basename(backup.file_path)
    download_name = original_name.replace('.json', '-decrypted.json') if backup.encrypted else original_name

    return Response(
        content,
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename="{download_name}"'}
    )


@bp.route('/<backup_id>', methods=['GET'])
def get_backup(backup_id):
    backup = _service().get_backup(backup_id)
    if not backup:
        return jsonify({'error': 'Backup not found'}), 404

    return jsonify(backup.to_dict())


@bp.route('/<backup_id>', methods=['DELETE'])
def delete_backup(backup_id):
    if not _service().delete_backup(backup_id):
        return jsonify({'error': 'Backup not found'}), 404

    return jsonify({'success': True})


@bp.route('/cleanup', methods=['POST'])
def cleanup_old_backups():
    """
    Delete completed and failed backups older than N days.

    Request body:
        - days: Delete backups started more than N days ago (required, >= 1)
        - owner_scope: Tenant id (optional, absent = system-wide)
        - all_scopes: Prune every tenant's backups (default: false)

    Returns:
        JSON with number of backups deleted
    """
    data = _json_body()
    error = _body_error(data)
    if error:
        return error

    days = data.get('days')
    if not isinstance(days, int) or isinstance(days, bool):
        return jsonify({'error': 'days parameter is required'}), 400

    if days < 1:
        return jsonify({'error': 'days must be at least 1'}), 400

    summary = _service().prune_backups(
        days,
        owner_scope=_owner_scope(data),
        all_scopes=bool(data.get('all_scopes'))
    )

    return jsonify({
        'message': f"Deleted {summary['deleted']} old backups",
        'deleted_count': summary['deleted'],
        'deleted_ids': summary['deleted_ids'],
        'errors': len(summary['errors'])
    })
