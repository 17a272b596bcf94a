"""Gallery endpoints.

The gallery is the operator's permanent media library: uploaded images,
videos and audio plus text slides. Playlist entries reference gallery items.
"""
from flask import Blueprint, jsonify, request, g, send_file
import json
import logging

from telao import db
from telao.lib import media
from telao.lib import playlist as playlist_ops
from telao.lib.auth import require_auth, require_file_auth
from telao.models import GalleryItem, MediaType
from telao.schemas import parse_body, TextSlideCreate, GalleryItemUpdate
from telao.tasks import enqueue_thumbnail

logger = logging.getLogger(__name__)

media_bp = Blueprint('media', __name__, url_prefix='/api')


def _item_or_404(item_id: int):
    item = db.session.get(GalleryItem, item_id)
    if item is None or item.user_id != g.current_user.id:
        return None, (jsonify({'message': 'Item não encontrado'}), 404)
    return item, None


def _parse_durations(raw):
    if not raw:
        return []
    try:
        durations = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Failed to parse durations JSON, ignoring")
        return []
    if not isinstance(durations, list):
        return []
    return [d if isinstance(d, (int, float)) and d >= 0 else None for d in durations]


@media_bp.route('/gallery', methods=['GET'])
@require_auth
def list_gallery():
    """Gallery items, newest first. Optional ?type=image|video|audio|text."""
    query = GalleryItem.query.filter_by(user_id=g.current_user.id)
    media_type = request.args.get('type')
    if media_type:
        try:
            query = query.filter(GalleryItem.type == MediaType(media_type))
        except ValueError:
            return jsonify({'message': 'Tipo inválido'}), 400
    items = query.order_by(GalleryItem.created_at.desc(), GalleryItem.id.desc()).all()
    return jsonify([item.to_dict() for item in items])


@media_bp.route('/gallery/upload', methods=['POST'])
@require_auth
def upload_files():
    """
    Handle browser file upload.

    Accepts multipart/form-data with 'files' field (multiple files) and an
    optional 'durations' JSON list (seconds, same order as files).

    Returns:
        JSON: {items: [...], rejected: [filenames]}, 201
    """
    if 'files' not in request.files:
        return jsonify({'message': 'Nenhum arquivo enviado'}), 400

    files = [f for f in request.files.getlist('files') if f.filename]
    durations = _parse_durations(request.form.get('durations'))

    valid = []
    rejected = []
    for index, upload in enumerate(files):
        if not media.allowed_file(upload.filename):
            rejected.append(upload.filename)
            continue
        duration = durations[index] if index < len(durations) else None
        valid.append((upload, duration))

    if not valid:
        message = 'Nenhum arquivo válido enviado'
        if rejected:
            message += f'. Arquivos inválidos: {", ".join(rejected)}'
        return jsonify({'message': message}), 400

    try:
        items = [media.save_upload(g.current_user.id, upload, duration) for upload, duration in valid]
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Upload failed for user {g.current_user.id}: {e}", exc_info=True)
        return jsonify({'message': 'Erro ao salvar arquivos'}), 500

    for item in items:
        if item.type == MediaType.IMAGE and item.thumbnail_name is None:
            enqueue_thumbnail(item.id)

    logger.info(f"User {g.current_user.id} uploaded {len(items)} file(s), rejected {len(rejected)}")
    return jsonify({
        'items': [item.to_dict() for item in items],
        'rejected': rejected,
    }), 201


@media_bp.route('/gallery/text', methods=['POST'])
@require_auth
def create_text_slide():
    """Create text slides; blank-line separated paragraphs become separate slides."""
    payload, error = parse_body(TextSlideCreate)
    if error:
        return error

    items = media.create_text_slides(g.current_user.id, payload)
    db.session.commit()
    return jsonify([item.to_dict() for item in items]), 201


@media_bp.route('/gallery/<int:item_id>', methods=['GET'])
@require_auth
def get_item(item_id):
    item, error = _item_or_404(item_id)
    if error:
        return error
    return jsonify(item.to_dict())


@media_bp.route('/gallery/<int:item_id>', methods=['PUT'])
@require_auth
def update_item(item_id):
    item, error = _item_or_404(item_id)
    if error:
        return error

    payload, error = parse_body(GalleryItemUpdate)
    if error:
        return error

    changes = payload.model_dump(exclude_unset=True)
    if item.type != MediaType.TEXT:
        changes = {k: v for k, v in changes.items() if not k.startswith('text_') and k != 'formatted_content'}
    for field, value in changes.items():
        if field in ('name', 'text_bold', 'text_italic', 'text_underline') and value is None:
            continue
        setattr(item, field, value)
    db.session.commit()
    return jsonify(item.to_dict())


@media_bp.route('/gallery/<int:item_id>', methods=['DELETE'])
@require_auth
def delete_item(item_id):
    """Delete permanently; the item also leaves the playlist."""
    item, error = _item_or_404(item_id)
    if error:
        return error

    files = media.stored_files(item)
    try:
        playlist_ops.remove_gallery_item(g.current_user.id, item)
        db.session.delete(item)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting gallery item {item_id}: {e}", exc_info=True)
        return jsonify({'message': 'Erro ao excluir item'}), 500

    media.discard_unreferenced(g.current_user.id, files)
    return jsonify({'message': 'Item removido da galeria'})


@media_bp.route('/gallery/<int:item_id>/file', methods=['GET'])
@require_file_auth
def serve_file(item_id):
    item, error = _item_or_404(item_id)
    if error:
        return error
    path = media.stored_file_path(item)
    if path is None or not path.exists():
        return jsonify({'message': 'Arquivo não encontrado'}), 404
    return send_file(path, mimetype=item.mime_type, conditional=True, download_name=item.name)


@media_bp.route('/gallery/<int:item_id>/thumbnail', methods=['GET'])
@require_file_auth
def serve_thumbnail(item_id):
    item, error = _item_or_404(item_id)
    if error:
        return error
    path = media.thumbnail_file_path(item)
    if path is None or not path.exists():
        return jsonify({'message': 'Miniatura não encontrada'}), 404
    return send_file(path, mimetype='image/jpeg')
