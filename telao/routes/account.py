"""Signed-in user's own settings and password."""
from flask import Blueprint, jsonify, g
import logging

from telao import db
from telao.lib import accounts
from telao.lib.auth import require_auth
from telao.models import UserSettings
from telao.schemas import parse_body, UserSettingsUpdate, ChangePasswordRequest

logger = logging.getLogger(__name__)

account_bp = Blueprint('account', __name__, url_prefix='/api/user')


@account_bp.route('/settings', methods=['GET'])
@require_auth
def get_settings():
    settings = UserSettings.query.filter_by(user_id=g.current_user.id).first()
    if settings is None:
        return jsonify({'userId': g.current_user.id, 'churchName': None})
    return jsonify(settings.to_dict())


@account_bp.route('/settings', methods=['PUT'])
@require_auth
def update_settings():
    """Create or update the user's settings.

    Request JSON:
        {"churchName": "Igreja Central"}
    """
    payload, error = parse_body(UserSettingsUpdate)
    if error:
        return error

    settings = UserSettings.query.filter_by(user_id=g.current_user.id).first()
    if settings is None:
        settings = UserSettings(user_id=g.current_user.id)
        db.session.add(settings)
    settings.church_name = payload.church_name
    db.session.commit()
    return jsonify(settings.to_dict())


@account_bp.route('/password', methods=['PUT'])
@require_auth
def change_password():
    payload, error = parse_body(ChangePasswordRequest)
    if error:
        return error

    user = g.current_user
    if not accounts.verify_password(payload.current_password, user.password_hash):
        return jsonify({'message': 'Senha atual incorreta'}), 401

    accounts.update_password(user, payload.new_password)
    logger.info(f"User {user.username} changed password")
    return jsonify({'message': 'Senha alterada com sucesso'})
