"""Authentication endpoints.

Login with rate limiting and temporary lockout, self registration, token
refresh and password recovery through the three security questions.
"""
from flask import Blueprint, jsonify, request, current_app, g
import logging

from telao import db
from telao.lib import accounts
from telao.lib.auth import issue_tokens, generate_token, generate_refresh_token, verify_refresh_token, require_auth
from telao.models import User, UserRole
from telao.schemas import (
    parse_body, LoginRequest, RegisterRequest, RefreshRequest,
    IdentifierRequest, ResetPasswordRequest,
)

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def client_ip() -> str:
    # ProxyFix rewrites remote_addr when PROXY_FIX_X_FOR hops are configured
    return request.remote_addr or 'unknown'


@auth_bp.route('/login', methods=['POST'])
def login():
    """Authenticate with email or username.

    Request JSON:
        {"identifier": "admin@demo.com", "password": "..."}

    Returns:
        JSON {token, accessToken, refreshToken, user}; 401/403/429 with
        {message, code} when refused
    """
    payload, error = parse_body(LoginRequest)
    if error:
        return error

    config = current_app.config
    identifier = payload.identifier
    ip_address = client_ip()
    user_agent = request.headers.get('User-Agent', 'unknown')
    window = config['RATE_LIMIT_WINDOW']

    try:
        if accounts.count_recent_failed_attempts(identifier, window) >= config['MAX_ATTEMPTS_PER_WINDOW']:
            logger.warning(f"Login rate limited for identifier {identifier}")
            return jsonify({
                'message': f"Muitas tentativas de login. Aguarde {window} minutos.",
                'code': 'RATE_LIMITED'
            }), 429

        if accounts.count_recent_failed_attempts_by_ip(ip_address, window) >= config['MAX_ATTEMPTS_PER_IP']:
            logger.warning(f"Login rate limited for IP {ip_address}")
            return jsonify({
                'message': f"Muitas tentativas deste endereço IP. Aguarde {window} minutos.",
                'code': 'IP_RATE_LIMITED'
            }), 429

        user = accounts.get_user_by_identifier(identifier)

        if user is None:
            accounts.log_login_attempt(None, identifier, ip_address, False, user_agent)
            return jsonify({'message': 'Credenciais inválidas'}), 401

        if user.is_blocked:
            accounts.log_login_attempt(user.id, identifier, ip_address, False, user_agent)
            return jsonify({
                'message': 'Conta bloqueada. Entre em contato com o administrador.',
                'code': 'ACCOUNT_BLOCKED'
            }), 403

        max_failed = config['MAX_FAILED_ATTEMPTS']
        if user.failed_attempts >= max_failed:
            remaining = accounts.lockout_remaining_minutes(user, config['LOCKOUT_MINUTES'])
            if remaining > 0:
                return jsonify({
                    'message': f"Conta temporariamente bloqueada. Tente novamente em {remaining} minutos.",
                    'code': 'TEMP_LOCKED'
                }), 403
            accounts.reset_failed_attempts(user)

        if not accounts.verify_password(payload.password, user.password_hash):
            accounts.increment_failed_attempts(user)
            accounts.log_login_attempt(user.id, identifier, ip_address, False, user_agent)

            attempts_left = max_failed - user.failed_attempts
            logger.info(f"Failed login for {user.username} from {ip_address} ({attempts_left} left)")
            if attempts_left > 0:
                return jsonify({
                    'message': f"Credenciais inválidas. {attempts_left} tentativas restantes."
                }), 401
            logger.warning(f"User {user.username} temporarily locked out")
            return jsonify({
                'message': 'Credenciais inválidas. Conta temporariamente bloqueada.',
                'code': 'TEMP_LOCKED'
            }), 401

        accounts.reset_failed_attempts(user)
        accounts.log_login_attempt(user.id, identifier, ip_address, True, user_agent)
        logger.info(f"User {user.username} logged in from {ip_address}")

        return jsonify(issue_tokens(user))

    except Exception as e:
        db.session.rollback()
        logger.error(f"Login error: {e}", exc_info=True)
        return jsonify({'message': 'Erro ao fazer login'}), 500


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create an operator account and log it in."""
    payload, error = parse_body(RegisterRequest)
    if error:
        return error

    try:
        user = accounts.add_user(
            payload.email, payload.username, payload.phone, payload.password,
            UserRole.USER, payload.questions()
        )
    except accounts.AccountExistsError as e:
        db.session.rollback()
        message = 'Email já cadastrado' if e.field == 'email' else 'Nome de usuário já existe'
        return jsonify({'message': message}), 409
    except Exception as e:
        db.session.rollback()
        logger.error(f"Registration error: {e}", exc_info=True)
        return jsonify({'message': 'Erro ao criar conta'}), 500

    return jsonify(issue_tokens(user)), 201


@auth_bp.route('/refresh', methods=['POST'])
def refresh():
    """Exchange a refresh token for a new token pair."""
    payload, error = parse_body(RefreshRequest)
    if error:
        return error
    if not payload.refresh_token:
        return jsonify({'message': 'Refresh token não fornecido'}), 401

    data = verify_refresh_token(payload.refresh_token)
    if not data:
        return jsonify({'message': 'Refresh token inválido ou expirado'}), 401

    user = db.session.get(User, data.get('id'))
    if user is None or user.is_blocked:
        return jsonify({'message': 'Refresh token inválido ou expirado'}), 401

    token = generate_token(user)
    return jsonify({
        'token': token,
        'accessToken': token,
        'refreshToken': generate_refresh_token(user),
    })


@auth_bp.route('/logout', methods=['POST'])
@require_auth
def logout():
    # Tokens are stateless; the client discards them
    logger.info(f"User {g.current_user.username} logged out")
    return jsonify({'message': 'Logout realizado com sucesso'})


@auth_bp.route('/me', methods=['GET'])
@require_auth
def me():
    return jsonify(g.current_user.to_public_dict())


@auth_bp.route('/security-questions', methods=['POST'])
def security_questions():
    """Security questions of an account, first step of password recovery."""
    payload, error = parse_body(IdentifierRequest)
    if error:
        return error

    questions = accounts.get_security_questions(payload.identifier)
    if questions is None:
        return jsonify({'message': 'Usuário não encontrado'}), 404
    return jsonify({'questions': questions})


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    """Set a new password after answering all three security questions."""
    payload, error = parse_body(ResetPasswordRequest)
    if error:
        return error

    user = accounts.get_user_by_identifier(payload.identifier)
    if user is None:
        return jsonify({'message': 'Usuário não encontrado'}), 404

    if not accounts.verify_security_answers(user, payload.answer1, payload.answer2, payload.answer3):
        logger.warning(f"Wrong security answers for {user.username} from {client_ip()}")
        return jsonify({'message': 'Respostas incorretas'}), 401

    try:
        accounts.update_password(user, payload.new_password)
        accounts.reset_failed_attempts(user)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Password reset error for user {user.id}: {e}", exc_info=True)
        return jsonify({'message': 'Erro ao redefinir senha'}), 500

    logger.info(f"Password reset via security questions for {user.username}")
    return jsonify({'message': 'Senha redefinida com sucesso'})
