"""Token issuing and route guards.

Access and refresh tokens are itsdangerous timed signatures over a small
JSON payload. Access tokens carry the user's identity and role; refresh
tokens only carry the id and a 'refresh' type marker and are signed with a
separate secret.
"""
from functools import wraps
from typing import Optional
import logging

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from telao import db
from telao.models import User, UserRole

logger = logging.getLogger(__name__)

ACCESS_SALT = 'access'
REFRESH_SALT = 'refresh'


def _serializer(secret_key: str, salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=salt)


def generate_token(user: User) -> str:
    payload = {
        'id': user.id,
        'email': user.email,
        'username': user.username,
        'role': user.role.value,
    }
    return _serializer(current_app.config['JWT_SECRET'], ACCESS_SALT).dumps(payload)


def generate_refresh_token(user: User) -> str:
    payload = {
        'id': user.id,
        'type': 'refresh',
    }
    return _serializer(current_app.config['REFRESH_SECRET'], REFRESH_SALT).dumps(payload)


def verify_token(token: str) -> Optional[dict]:
    """Return the access token payload, or None if invalid or expired."""
    try:
        return _serializer(current_app.config['JWT_SECRET'], ACCESS_SALT).loads(
            token, max_age=current_app.config['ACCESS_TOKEN_MAX_AGE']
        )
    except (SignatureExpired, BadSignature):
        return None


def verify_refresh_token(token: str) -> Optional[dict]:
    """Return the refresh token payload, or None if invalid, expired or not a refresh token."""
    try:
        payload = _serializer(current_app.config['REFRESH_SECRET'], REFRESH_SALT).loads(
            token, max_age=current_app.config['REFRESH_TOKEN_MAX_AGE']
        )
    except (SignatureExpired, BadSignature):
        return None
    if not isinstance(payload, dict) or payload.get('type') != 'refresh':
        return None
    return payload


def extract_token(auth_header: Optional[str]) -> Optional[str]:
    """Pull the token out of an 'Authorization: Bearer <token>' header."""
    if not auth_header:
        return None
    parts = auth_header.split(' ')
    if len(parts) == 2 and parts[0] == 'Bearer':
        return parts[1]
    return None


def issue_tokens(user: User) -> dict:
    """Login/registration response body."""
    token = generate_token(user)
    return {
        'token': token,
        'accessToken': token,
        'refreshToken': generate_refresh_token(user),
        'user': user.to_public_dict(),
    }


def _authenticate(allow_query_token=False):
    """Resolve the request's user, or return an error response tuple."""
    token = extract_token(request.headers.get('Authorization'))
    if not token and allow_query_token:
        token = request.args.get('token')
    if not token:
        return None, (jsonify({'message': 'Token não fornecido'}), 401)

    payload = verify_token(token)
    if not payload:
        return None, (jsonify({'message': 'Token inválido ou expirado'}), 401)

    user = db.session.get(User, payload.get('id'))
    if user is None:
        return None, (jsonify({'message': 'Token inválido ou expirado'}), 401)
    if user.is_blocked:
        return None, (jsonify({
            'message': 'Conta bloqueada. Entre em contato com o administrador.',
            'code': 'ACCOUNT_BLOCKED'
        }), 403)
    return user, None


def require_auth(view):
    """Reject requests without a valid access token; sets g.current_user."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        user, error = _authenticate()
        if error:
            return error
        g.current_user = user
        return view(*args, **kwargs)
    return wrapper


def require_admin(view):
    """Like require_auth, but the user must also have the admin role."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        user, error = _authenticate()
        if error:
            return error
        if user.role != UserRole.ADMIN:
            logger.warning(f"User {user.username} attempted admin access on {request.path}")
            return jsonify({'message': 'Acesso negado - permissão de administrador necessária'}), 403
        g.current_user = user
        return view(*args, **kwargs)
    return wrapper


def require_file_auth(view):
    """require_auth for file downloads; also accepts ?token= since <img>/<video> can't send headers."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        user, error = _authenticate(allow_query_token=True)
        if error:
            return error
        g.current_user = user
        return view(*args, **kwargs)
    return wrapper
