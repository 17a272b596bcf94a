"""Playlist and presentation endpoints.

Editing the playlist bumps its revision; the projector keeps showing the
presented snapshot until the operator presents again or updates it.
"""
from flask import Blueprint, jsonify, g
import logging

from telao import db
from telao.lib import playlist as playlist_ops
from telao.lib.auth import require_auth
from telao.lib.media import effective_duration
from telao.models import GalleryItem, PlaylistItem
from telao.schemas import parse_body, PlaylistAdd, PlaylistOrder, PlaylistSettingsUpdate, GotoRequest

logger = logging.getLogger(__name__)

playlist_bp = Blueprint('playlist', __name__, url_prefix='/api')


def _gallery_item_or_404(item_id: int):
    item = db.session.get(GalleryItem, item_id)
    if item is None or item.user_id != g.current_user.id:
        return None, (jsonify({'message': 'Item da galeria não encontrado'}), 404)
    return item, None


def presentation_payload(user_id: int) -> dict:
    """Playlist, snapshot and navigation state in one response."""
    state = playlist_ops.get_state(user_id)
    saved = playlist_ops.get_playlist(user_id)
    items = playlist_ops.playlist_items(user_id)
    active = playlist_ops.active_items(user_id, state)
    current = playlist_ops.current_item(user_id, state)

    current_dict = None
    if current is not None:
        current_dict = current.to_media_dict()
        current_dict['effectiveDuration'] = effective_duration(
            current.gallery_item, state.slide_duration, saved.auto_play_interval
        )

    return {
        'items': [item.to_media_dict() for item in items],
        'activeItems': [item.to_media_dict() for item in active],
        'currentIndex': state.current_index,
        'currentItem': current_dict,
        'presented': state.presented,
        'playlistRevision': state.playlist_revision,
        'presentedRevision': state.presented_revision,
        'presentationOutdated': state.presented and state.playlist_revision != state.presented_revision,
        'playlist': saved.to_dict(),
    }


def _commit_and_respond(status: int = 200):
    db.session.commit()
    return jsonify(presentation_payload(g.current_user.id)), status


@playlist_bp.route('/playlist', methods=['GET'])
@require_auth
def get_playlist():
    payload = presentation_payload(g.current_user.id)
    db.session.commit()
    return jsonify(payload)


@playlist_bp.route('/playlist/items', methods=['POST'])
@require_auth
def add_item():
    payload, error = parse_body(PlaylistAdd)
    if error:
        return error

    gallery_item, error = _gallery_item_or_404(payload.gallery_item_id)
    if error:
        return error

    playlist_ops.add_item(g.current_user.id, gallery_item)
    return _commit_and_respond(201)


@playlist_bp.route('/playlist/items/<int:entry_id>', methods=['DELETE'])
@require_auth
def remove_item(entry_id):
    entry = db.session.get(PlaylistItem, entry_id)
    if entry is None or entry.user_id != g.current_user.id:
        return jsonify({'message': 'Item da lista não encontrado'}), 404

    playlist_ops.remove_item(g.current_user.id, entry)
    return _commit_and_respond()


@playlist_bp.route('/playlist/order', methods=['PUT'])
@require_auth
def reorder():
    payload, error = parse_body(PlaylistOrder)
    if error:
        return error

    try:
        playlist_ops.reorder(g.current_user.id, payload.item_ids)
    except playlist_ops.PlaylistError as e:
        db.session.rollback()
        return jsonify({'message': str(e)}), 400
    return _commit_and_respond()


@playlist_bp.route('/playlist', methods=['DELETE'])
@require_auth
def clear_playlist():
    """Remove every entry (gallery preserved) and reset the presentation."""
    removed = playlist_ops.clear(g.current_user.id)
    logger.info(f"User {g.current_user.id} cleared playlist ({removed} item(s))")
    return _commit_and_respond()


@playlist_bp.route('/playlists/current', methods=['GET'])
@require_auth
def get_saved_playlist():
    saved = playlist_ops.get_playlist(g.current_user.id)
    db.session.commit()
    return jsonify(saved.to_dict())


@playlist_bp.route('/playlists/current', methods=['PUT'])
@require_auth
def update_saved_playlist():
    """Name, loop flag and legacy auto-play interval of the current playlist."""
    payload, error = parse_body(PlaylistSettingsUpdate)
    if error:
        return error

    saved = playlist_ops.get_playlist(g.current_user.id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get('name') is not None:
        saved.name = changes['name']
    if changes.get('loop') is not None:
        saved.loop = changes['loop']
    if 'auto_play_interval' in changes:
        saved.auto_play_interval = changes['auto_play_interval']
    db.session.commit()
    return jsonify(saved.to_dict())


# ============================================================================
# Presentation
# ============================================================================

@playlist_bp.route('/presentation/present', methods=['POST'])
@require_auth
def present():
    try:
        playlist_ops.present(g.current_user.id)
    except playlist_ops.EmptyPlaylistError as e:
        db.session.rollback()
        return jsonify({'message': str(e)}), 400
    return _commit_and_respond()


@playlist_bp.route('/presentation/update', methods=['POST'])
@require_auth
def update_presentation():
    try:
        playlist_ops.update_presentation(g.current_user.id)
    except playlist_ops.EmptyPlaylistError as e:
        db.session.rollback()
        return jsonify({'message': str(e)}), 400
    return _commit_and_respond()


@playlist_bp.route('/presentation/next', methods=['POST'])
@require_auth
def next_item():
    playlist_ops.next_item(g.current_user.id)
    return _commit_and_respond()


@playlist_bp.route('/presentation/previous', methods=['POST'])
@require_auth
def previous_item():
    playlist_ops.previous_item(g.current_user.id)
    return _commit_and_respond()


@playlist_bp.route('/presentation/goto', methods=['POST'])
@require_auth
def goto():
    """Send the item at {index} straight to the projector."""
    payload, error = parse_body(GotoRequest)
    if error:
        return error

    try:
        playlist_ops.goto(g.current_user.id, payload.index)
    except playlist_ops.PlaylistError as e:
        db.session.rollback()
        return jsonify({'message': str(e)}), 400
    return _commit_and_respond()


@playlist_bp.route('/presentation/send-gallery', methods=['POST'])
@require_auth
def send_gallery_item():
    """Show a gallery item now, adding it to the playlist if it isn't there."""
    payload, error = parse_body(PlaylistAdd)
    if error:
        return error

    gallery_item, error = _gallery_item_or_404(payload.gallery_item_id)
    if error:
        return error

    playlist_ops.send_gallery_item(g.current_user.id, gallery_item)
    return _commit_and_respond()
