"""Administration endpoints.

User management (edit, block, unblock, password reset, delete), login
audit, announcements, support tickets and global system settings. Every
route requires an admin token.
"""
from datetime import datetime, timezone
from flask import Blueprint, jsonify, request, g
import logging

from telao import db
from telao.lib import accounts
from telao.lib.auth import require_admin
from telao.lib.media import remove_user_files
from telao.models import (
    User, UserRole, Announcement, AnnouncementType, GalleryItem,
    SupportTicket, SupportTicketStatus, SystemSettings,
)
from telao.schemas import (
    parse_body, UserUpdate, AdminPasswordReset, NewAccountRequest,
    AnnouncementCreate, AnnouncementUpdate, SupportTicketUpdate, SystemSettingsUpdate,
)

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _limit_arg(default: int = 50) -> int:
    limit = request.args.get('limit', default, type=int)
    return max(1, min(limit, 500))


def _user_or_404(user_id: int):
    user = db.session.get(User, user_id)
    if user is None:
        return None, (jsonify({'message': 'Usuário não encontrado'}), 404)
    return user, None


def get_system_settings() -> SystemSettings:
    """The single system settings row, created with defaults if missing."""
    settings = SystemSettings.query.order_by(SystemSettings.id).first()
    if settings is None:
        settings = SystemSettings()
        db.session.add(settings)
        db.session.commit()
    return settings


# ============================================================================
# Users
# ============================================================================

@admin_bp.route('/users', methods=['GET'])
@require_admin
def list_users():
    return jsonify([user.to_admin_dict() for user in accounts.get_all_users()])


@admin_bp.route('/users/<int:user_id>', methods=['GET'])
@require_admin
def get_user(user_id):
    user, error = _user_or_404(user_id)
    if error:
        return error
    return jsonify(user.to_admin_dict())


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@require_admin
def update_user(user_id):
    """Edit email, username, phone or role."""
    user, error = _user_or_404(user_id)
    if error:
        return error

    payload, error = parse_body(UserUpdate)
    if error:
        return error

    try:
        accounts.ensure_available(email=payload.email, username=payload.username, exclude_id=user.id)
    except accounts.AccountExistsError as e:
        message = 'Email já cadastrado' if e.field == 'email' else 'Nome de usuário já existe'
        return jsonify({'message': message}), 409

    if payload.email is not None:
        user.email = payload.email
    if payload.username is not None:
        user.username = payload.username
    if payload.phone is not None:
        user.phone = payload.phone
    if payload.role is not None:
        user.role = UserRole(payload.role)
    db.session.commit()

    logger.info(f"Admin {g.current_user.username} updated user {user.id}")
    return jsonify(user.to_admin_dict())


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@require_admin
def delete_user(user_id):
    user, error = _user_or_404(user_id)
    if error:
        return error
    if user.id == g.current_user.id:
        return jsonify({'message': 'Você não pode excluir sua própria conta'}), 400

    thumbnails = [
        name for (name,) in db.session.query(GalleryItem.thumbnail_name).filter(
            GalleryItem.user_id == user_id, GalleryItem.thumbnail_name.isnot(None)
        ).distinct()
    ]
    try:
        db.session.delete(user)
        db.session.commit()
        remove_user_files(user_id, thumbnails)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting user {user_id}: {e}", exc_info=True)
        return jsonify({'message': 'Erro ao excluir usuário'}), 500

    logger.warning(f"Admin {g.current_user.username} deleted user {user_id}")
    return jsonify({'message': 'Usuário excluído com sucesso'})


@admin_bp.route('/users/<int:user_id>/block', methods=['POST'])
@require_admin
def block_user(user_id):
    user, error = _user_or_404(user_id)
    if error:
        return error
    if user.id == g.current_user.id:
        return jsonify({'message': 'Você não pode bloquear sua própria conta'}), 400

    accounts.block_user(user)
    return jsonify(user.to_admin_dict())


@admin_bp.route('/users/<int:user_id>/unblock', methods=['POST'])
@require_admin
def unblock_user(user_id):
    user, error = _user_or_404(user_id)
    if error:
        return error

    accounts.unblock_user(user)
    return jsonify(user.to_admin_dict())


@admin_bp.route('/users/<int:user_id>/reset-password', methods=['POST'])
@require_admin
def reset_user_password(user_id):
    user, error = _user_or_404(user_id)
    if error:
        return error

    payload, error = parse_body(AdminPasswordReset)
    if error:
        return error

    accounts.update_password(user, payload.new_password)
    accounts.reset_failed_attempts(user)
    logger.info(f"Admin {g.current_user.username} reset password of user {user.id}")
    return jsonify({'message': 'Senha redefinida com sucesso'})


@admin_bp.route('/users/<int:user_id>/login-attempts', methods=['GET'])
@require_admin
def user_login_attempts(user_id):
    user, error = _user_or_404(user_id)
    if error:
        return error
    attempts = accounts.get_login_attempts(user_id=user.id, limit=_limit_arg())
    return jsonify([attempt.to_dict() for attempt in attempts])


@admin_bp.route('/login-attempts', methods=['GET'])
@require_admin
def login_attempts():
    attempts = accounts.get_login_attempts(limit=_limit_arg())
    return jsonify([attempt.to_dict() for attempt in attempts])


@admin_bp.route('/create-admin', methods=['POST'])
@require_admin
def create_admin():
    """Create another administrator account."""
    payload, error = parse_body(NewAccountRequest)
    if error:
        return error

    try:
        user = accounts.add_user(
            payload.email, payload.username, payload.phone, payload.password,
            UserRole.ADMIN, payload.questions()
        )
    except accounts.AccountExistsError as e:
        db.session.rollback()
        message = 'Email já cadastrado' if e.field == 'email' else 'Nome de usuário já existe'
        return jsonify({'message': message}), 409

    logger.info(f"Admin {g.current_user.username} created admin {user.username}")
    return jsonify(user.to_admin_dict()), 201


# ============================================================================
# Announcements
# ============================================================================

@admin_bp.route('/announcements', methods=['GET'])
@require_admin
def list_announcements():
    announcements = Announcement.query.order_by(
        Announcement.created_at.desc(), Announcement.id.desc()
    ).all()
    return jsonify([a.to_dict() for a in announcements])


@admin_bp.route('/announcements', methods=['POST'])
@require_admin
def create_announcement():
    payload, error = parse_body(AnnouncementCreate)
    if error:
        return error

    announcement = Announcement(
        type=AnnouncementType(payload.type),
        title=payload.title,
        content=payload.content,
        image_url=payload.image_url,
        video_url=payload.video_url,
        active=payload.active,
    )
    db.session.add(announcement)
    db.session.commit()
    return jsonify(announcement.to_dict()), 201


@admin_bp.route('/announcements/<int:announcement_id>', methods=['PUT'])
@require_admin
def update_announcement(announcement_id):
    announcement = db.session.get(Announcement, announcement_id)
    if announcement is None:
        return jsonify({'message': 'Anúncio não encontrado'}), 404

    payload, error = parse_body(AnnouncementUpdate)
    if error:
        return error

    for field, value in payload.model_dump(exclude_unset=True).items():
        if field == 'type' and value is not None:
            value = AnnouncementType(value)
        if value is None and field in ('type', 'title', 'content', 'active'):
            continue
        setattr(announcement, field, value)
    db.session.commit()
    return jsonify(announcement.to_dict())


@admin_bp.route('/announcements/<int:announcement_id>', methods=['DELETE'])
@require_admin
def delete_announcement(announcement_id):
    announcement = db.session.get(Announcement, announcement_id)
    if announcement is None:
        return jsonify({'message': 'Anúncio não encontrado'}), 404
    db.session.delete(announcement)
    db.session.commit()
    return jsonify({'message': 'Anúncio excluído'})


# ============================================================================
# Support
# ============================================================================

@admin_bp.route('/support', methods=['GET'])
@require_admin
def list_tickets():
    status = request.args.get('status')
    query = SupportTicket.query
    if status:
        try:
            query = query.filter(SupportTicket.status == SupportTicketStatus(status))
        except ValueError:
            return jsonify({'message': 'Status inválido'}), 400
    tickets = query.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc()).all()
    return jsonify([t.to_dict() for t in tickets])


@admin_bp.route('/support/<int:ticket_id>', methods=['PUT'])
@require_admin
def update_ticket(ticket_id):
    """Change status and/or answer a ticket; answering stamps responded_at."""
    ticket = db.session.get(SupportTicket, ticket_id)
    if ticket is None:
        return jsonify({'message': 'Ticket não encontrado'}), 404

    payload, error = parse_body(SupportTicketUpdate)
    if error:
        return error

    if payload.status is not None:
        ticket.status = SupportTicketStatus(payload.status)
    if payload.admin_response is not None:
        ticket.admin_response = payload.admin_response
        ticket.responded_at = datetime.now(timezone.utc)
    db.session.commit()
    return jsonify(ticket.to_dict())


@admin_bp.route('/support/<int:ticket_id>', methods=['DELETE'])
@require_admin
def delete_ticket(ticket_id):
    ticket = db.session.get(SupportTicket, ticket_id)
    if ticket is None:
        return jsonify({'message': 'Ticket não encontrado'}), 404
    db.session.delete(ticket)
    db.session.commit()
    return jsonify({'message': 'Ticket excluído'})


# ============================================================================
# System settings
# ============================================================================

@admin_bp.route('/system-settings', methods=['PUT'])
@require_admin
def update_system_settings():
    payload, error = parse_body(SystemSettingsUpdate)
    if error:
        return error

    settings = get_system_settings()
    settings.slideshow_interval = payload.slideshow_interval
    db.session.commit()
    logger.info(f"Slideshow interval set to {settings.slideshow_interval}ms by {g.current_user.username}")
    return jsonify(settings.to_dict())
