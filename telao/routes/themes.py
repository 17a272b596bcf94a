"""Overlay theme endpoints. The built-in default theme is always listed first."""
from flask import Blueprint, jsonify, g
import logging

from telao import db
from telao.lib import playlist as playlist_ops
from telao.lib.auth import require_auth
from telao.lib.projector import DEFAULT_THEME
from telao.models import Theme, TextAlign
from telao.schemas import parse_body, ThemePayload, ThemeUpdate

logger = logging.getLogger(__name__)

themes_bp = Blueprint('themes', __name__, url_prefix='/api')


def _theme_or_404(theme_id: int):
    theme = db.session.get(Theme, theme_id)
    if theme is None or theme.user_id != g.current_user.id:
        return None, (jsonify({'message': 'Tema não encontrado'}), 404)
    return theme, None


@themes_bp.route('/themes', methods=['GET'])
@require_auth
def list_themes():
    themes = Theme.query.filter_by(user_id=g.current_user.id).order_by(Theme.id).all()
    return jsonify([dict(DEFAULT_THEME)] + [theme.to_dict() for theme in themes])


@themes_bp.route('/themes', methods=['POST'])
@require_auth
def create_theme():
    payload, error = parse_body(ThemePayload)
    if error:
        return error

    theme = Theme(
        user_id=g.current_user.id,
        name=payload.name,
        font_family=payload.font_family,
        font_size=payload.font_size,
        font_weight=payload.font_weight,
        color=payload.color,
        text_align=TextAlign(payload.text_align),
        text_shadow=payload.text_shadow,
        background_color=payload.background_color,
        padding=payload.padding,
    )
    db.session.add(theme)
    db.session.commit()
    return jsonify(theme.to_dict()), 201


@themes_bp.route('/themes/<int:theme_id>', methods=['PUT'])
@require_auth
def update_theme(theme_id):
    theme, error = _theme_or_404(theme_id)
    if error:
        return error

    payload, error = parse_body(ThemeUpdate)
    if error:
        return error

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if field == 'text_align':
            value = TextAlign(value)
        setattr(theme, field, value)
    db.session.commit()
    return jsonify(theme.to_dict())


@themes_bp.route('/themes/<int:theme_id>', methods=['DELETE'])
@require_auth
def delete_theme(theme_id):
    """Delete a theme; the projector falls back to no theme if it was current."""
    theme, error = _theme_or_404(theme_id)
    if error:
        return error

    state = playlist_ops.get_state(g.current_user.id)
    if state.theme_id == theme.id:
        state.theme_id = None
    db.session.delete(theme)
    db.session.commit()
    return jsonify({'message': 'Tema excluído'})
