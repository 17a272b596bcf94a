"""Workspace backup endpoints (export / import of the whole presentation setup)."""
from datetime import datetime, timezone
from flask import Blueprint, jsonify, request, g
import json
import logging

from telao import db
from telao.lib import media
from telao.lib.auth import require_auth
from telao.lib.backup import export_workspace, import_workspace, BackupError
from telao.tasks import enqueue_thumbnail

logger = logging.getLogger(__name__)

backup_bp = Blueprint('backup', __name__, url_prefix='/api/backup')


@backup_bp.route('/export', methods=['GET'])
@require_auth
def export_backup():
    """Download the workspace as a version 2 JSON document."""
    document = export_workspace(g.current_user.id)
    db.session.commit()

    response = jsonify(document)
    stamp = datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')
    response.headers['Content-Disposition'] = f'attachment; filename="apresentacao-completa-{stamp}.json"'
    return response


@backup_bp.route('/import', methods=['POST'])
@require_auth
def import_backup():
    """Replace the workspace with an exported document.

    Accepts the document as the JSON body or as a multipart 'file' upload.

    Returns:
        JSON counts {galleryItems, playlistItems, themes, skipped}
    """
    upload = request.files.get('file')
    if upload is not None:
        try:
            data = json.loads(upload.read().decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return jsonify({'message': 'Arquivo de backup inválido'}), 400
    else:
        data = request.get_json(silent=True)

    try:
        counts = import_workspace(g.current_user.id, data)
        db.session.commit()
    except BackupError as e:
        db.session.rollback()
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Backup import failed for user {g.current_user.id}: {e}", exc_info=True)
        return jsonify({'message': 'Erro ao importar backup'}), 500

    media.discard_unreferenced(g.current_user.id, counts.pop('staleFiles'))
    for item_id in counts.pop('imageIds'):
        enqueue_thumbnail(item_id)

    return jsonify(counts)
