"""Projector endpoints.

The console changes the projector state here; the projector window (and
the console's small live preview) poll /api/projector/frame and draw what
it describes.
"""
from flask import Blueprint, jsonify, request, g, send_file
import logging

from telao import db
from telao.lib import media
from telao.lib import playlist as playlist_ops
from telao.lib.auth import require_auth, require_file_auth
from telao.lib.projector import build_frame, frame_revision, DEFAULT_THEME
from telao.models import Theme, PlaylistItem
from telao.schemas import parse_body, ProjectorStateUpdate, OverlayUpdate, LiveToggle

logger = logging.getLogger(__name__)

projector_bp = Blueprint('projector', __name__, url_prefix='/api/projector')


def _state_response(state):
    db.session.commit()
    data = state.to_dict()
    data['hasLogo'] = state.logo_name is not None
    return jsonify(data)


def _truthy_arg(name: str) -> bool:
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')


@projector_bp.route('/state', methods=['GET'])
@require_auth
def get_state():
    return _state_response(playlist_ops.get_state(g.current_user.id))


@projector_bp.route('/state', methods=['PUT'])
@require_auth
def update_state():
    """Partial update of projector settings (camelCase keys)."""
    payload, error = parse_body(ProjectorStateUpdate)
    if error:
        return error

    state = playlist_ops.get_state(g.current_user.id)
    changes = payload.model_dump(exclude_unset=True)

    if 'theme_id' in changes:
        theme_id = changes.pop('theme_id')
        if theme_id in (None, 'default'):
            state.theme_id = None
        else:
            theme = db.session.get(Theme, theme_id)
            if theme is None or theme.user_id != g.current_user.id:
                db.session.rollback()
                return jsonify({'message': 'Tema não encontrado'}), 404
            state.theme_id = theme.id

    playlist_ops.apply_settings(state, {k: v for k, v in changes.items() if v is not None})
    return _state_response(state)


@projector_bp.route('/overlay', methods=['PUT'])
@require_auth
def update_overlay():
    payload, error = parse_body(OverlayUpdate)
    if error:
        return error

    state = playlist_ops.get_state(g.current_user.id)
    if payload.title is not None:
        state.overlay_title = payload.title
    if payload.subtitle is not None:
        state.overlay_subtitle = payload.subtitle
    if payload.content is not None:
        state.overlay_content = payload.content
    if payload.position is not None:
        state.overlay_x = payload.position.x
        state.overlay_y = payload.position.y
    if payload.visible is not None:
        state.overlay_visible = payload.visible
    return _state_response(state)


@projector_bp.route('/black-screen', methods=['POST'])
@require_auth
def toggle_black_screen():
    state = playlist_ops.get_state(g.current_user.id)
    state.black_screen = not state.black_screen
    return _state_response(state)


@projector_bp.route('/dark-screen', methods=['POST'])
@require_auth
def toggle_dark_screen():
    state = playlist_ops.get_state(g.current_user.id)
    state.dark_screen = not state.dark_screen
    return _state_response(state)


@projector_bp.route('/toggle-projector', methods=['POST'])
@require_auth
def toggle_projector():
    state = playlist_ops.get_state(g.current_user.id)
    state.show_projector = not state.show_projector
    return _state_response(state)


@projector_bp.route('/pause', methods=['POST'])
@require_auth
def toggle_pause():
    """Freeze the projector on the current item while the console keeps navigating."""
    state = playlist_ops.get_state(g.current_user.id)
    state.transmission_paused = not state.transmission_paused
    if state.transmission_paused:
        current = playlist_ops.current_item(g.current_user.id, state)
        state.paused_item_id = current.id if current is not None else None
    else:
        state.paused_item_id = None
    return _state_response(state)


@projector_bp.route('/live', methods=['POST'])
@require_auth
def set_live():
    """Start ({"isLive": true}) or end the transmission. Ending resets every flag."""
    payload, error = parse_body(LiveToggle)
    if error:
        return error

    state = playlist_ops.get_state(g.current_user.id)
    if payload.is_live:
        # media stays held back until the operator authorizes it
        state.is_live = True
        state.show_projector = True
        state.dark_screen = False
        state.content_authorized = False
        logger.info(f"User {g.current_user.id} went live")
    else:
        playlist_ops.end_presentation(state)
        logger.info(f"User {g.current_user.id} ended the presentation")
    return _state_response(state)


@projector_bp.route('/authorize', methods=['POST'])
@require_auth
def authorize_content():
    """Release media to the audience screen after going live."""
    state = playlist_ops.get_state(g.current_user.id)
    state.content_authorized = True
    logger.info(f"User {g.current_user.id} authorized content")
    return _state_response(state)


@projector_bp.route('/frame', methods=['GET'])
@require_file_auth
def frame():
    """What the projector should draw now.

    Query args:
        preview: 1 for the console's small preview (scaled fonts, closed screen)

    Returns:
        JSON frame description plus 'revision', a digest that changes
        whenever anything drawn changes
    """
    user_id = g.current_user.id
    state = playlist_ops.get_state(user_id)
    preview = _truthy_arg('preview')

    entry = None
    if state.transmission_paused and state.paused_item_id is not None:
        entry = db.session.get(PlaylistItem, state.paused_item_id)
    if entry is None:
        entry = playlist_ops.current_item(user_id, state)
    item = entry.to_media_dict() if entry is not None else None

    theme = state.theme.to_dict() if state.theme is not None else dict(DEFAULT_THEME)
    logo_url = media.LOGO_URL if state.logo_name else (state.logo_url or None)

    data = build_frame(state.to_dict(), item, theme, logo_url=logo_url, preview=preview)
    data['revision'] = frame_revision(data)
    db.session.commit()
    return jsonify(data)


# ============================================================================
# Logo
# ============================================================================

@projector_bp.route('/logo', methods=['POST'])
@require_auth
def upload_logo():
    """Replace the church logo (multipart 'file')."""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return jsonify({'message': 'Nenhum arquivo enviado'}), 400

    ext = media.file_extension(upload.filename)
    if ext not in media.LOGO_EXTENSIONS:
        return jsonify({'message': 'Formato de imagem não suportado'}), 400

    state = playlist_ops.get_state(g.current_user.id)
    media.store_logo(state, upload.read(), ext)
    state.logo_url = media.LOGO_URL
    return _state_response(state)


@projector_bp.route('/logo', methods=['DELETE'])
@require_auth
def delete_logo():
    state = playlist_ops.get_state(g.current_user.id)
    media.remove_logo(state)
    state.logo_url = ''
    state.show_logo = False
    return _state_response(state)


@projector_bp.route('/logo', methods=['GET'])
@require_file_auth
def serve_logo():
    state = playlist_ops.get_state(g.current_user.id)
    path = media.logo_path(state)
    db.session.commit()
    if path is None or not path.exists():
        return jsonify({'message': 'Logotipo não encontrado'}), 404
    return send_file(path)
