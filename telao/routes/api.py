"""Public API endpoints (no authentication).

Health check, the announcements slideshow feed, the slideshow interval and
the support contact form.
"""
from datetime import datetime, timezone
from flask import Blueprint, jsonify, current_app
import logging

from telao import db
from telao.models import Announcement, SupportTicket
from telao.routes.admin import get_system_settings
from telao.schemas import parse_body, SupportTicketCreate

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')


@api_bp.route('/health', methods=['GET'])
def health():
    return jsonify({
        'status': 'ok',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'timezone': current_app.config['TIMEZONE'],
    })


@api_bp.route('/announcements', methods=['GET'])
def active_announcements():
    """Active announcements, newest first."""
    announcements = Announcement.query.filter_by(active=True).order_by(
        Announcement.created_at.desc(), Announcement.id.desc()
    ).all()
    return jsonify([a.to_dict() for a in announcements])


@api_bp.route('/system-settings', methods=['GET'])
def system_settings():
    settings = get_system_settings()
    return jsonify({
        'slideshowInterval': settings.slideshow_interval,
        'updatedAt': settings.to_dict()['updatedAt'],
    })


@api_bp.route('/support', methods=['POST'])
def create_support_ticket():
    """Support form submission.

    Request JSON:
        {"username", "email", "phone", "subject", "message"}

    Returns:
        JSON ticket, 201
    """
    payload, error = parse_body(SupportTicketCreate)
    if error:
        return error

    try:
        ticket = SupportTicket(
            username=payload.username,
            email=payload.email,
            phone=payload.phone,
            subject=payload.subject,
            message=payload.message,
        )
        db.session.add(ticket)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating support ticket: {e}", exc_info=True)
        return jsonify({'message': 'Erro ao enviar mensagem'}), 500

    logger.info(f"Support ticket {ticket.id} opened by {ticket.email}")
    return jsonify(ticket.to_dict()), 201
