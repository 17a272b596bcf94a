"""Account storage and login protection helpers.

Wraps the User and LoginAttempt models with the operations the auth and
admin routes need: lookups by email or username, password and security
answer hashing, failed-attempt counters, blocking, and the login audit log.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, List
import logging
import math

from sqlalchemy import func, or_
from werkzeug.security import generate_password_hash, check_password_hash

from telao import db
from telao.models import User, UserRole, LoginAttempt

logger = logging.getLogger(__name__)

DEFAULT_QUESTION = "Pergunta padrão"
DEFAULT_ANSWER = "resposta"


class AccountExistsError(Exception):
    """Raised when an email or username is already taken."""

    def __init__(self, field: str):
        super().__init__(f"{field} already in use")
        self.field = field


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_answer(answer: str) -> str:
    return answer.lower().strip()


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


# ============================================================================
# Users
# ============================================================================

def ensure_available(email: Optional[str] = None, username: Optional[str] = None,
                     exclude_id: Optional[int] = None) -> None:
    """Raise AccountExistsError if email/username belongs to another user."""
    for field, value in (('email', email), ('username', username)):
        if value is None:
            continue
        query = User.query.filter(getattr(User, field) == value)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first() is not None:
            raise AccountExistsError(field)


def add_user(email: str, username: str, phone: str, password: str,
             role: UserRole, questions: dict) -> User:
    """Create a user with hashed password and hashed security answers.

    Args:
        questions: dict with question1..3 and answer1..3 keys

    Raises:
        AccountExistsError: email or username already registered
    """
    ensure_available(email=email, username=username)

    user = User(
        email=email,
        username=username,
        phone=phone or '',
        password_hash=hash_password(password),
        role=UserRole(role),
        security_question1=questions['question1'],
        security_answer1=hash_password(normalize_answer(questions['answer1'])),
        security_question2=questions['question2'],
        security_answer2=hash_password(normalize_answer(questions['answer2'])),
        security_question3=questions['question3'],
        security_answer3=hash_password(normalize_answer(questions['answer3'])),
    )
    db.session.add(user)
    db.session.commit()
    logger.info(f"Created {user.role.value} account {user.username} (id={user.id})")
    return user


def get_user_by_identifier(identifier: str) -> Optional[User]:
    """Find a user by email or username."""
    return User.query.filter(
        or_(User.email == identifier, User.username == identifier)
    ).first()


def get_all_users() -> List[User]:
    return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


def verify_security_answers(user: User, answer1: str, answer2: str, answer3: str) -> bool:
    """All three answers must match (case and surrounding whitespace ignored)."""
    checks = (
        (answer1, user.security_answer1),
        (answer2, user.security_answer2),
        (answer3, user.security_answer3),
    )
    return all(check_password_hash(stored, normalize_answer(given)) for given, stored in checks)


def get_security_questions(identifier: str) -> Optional[List[str]]:
    user = get_user_by_identifier(identifier)
    if user is None:
        return None
    return [user.security_question1, user.security_question2, user.security_question3]


def update_password(user: User, new_password: str) -> None:
    user.password_hash = hash_password(new_password)
    db.session.commit()


# ============================================================================
# Login protection
# ============================================================================

def increment_failed_attempts(user: User) -> None:
    user.failed_attempts = (user.failed_attempts or 0) + 1
    user.last_failed_attempt = datetime.now(timezone.utc)
    db.session.commit()


def reset_failed_attempts(user: User) -> None:
    user.failed_attempts = 0
    user.last_failed_attempt = None
    db.session.commit()


def block_user(user: User) -> None:
    user.is_blocked = True
    db.session.commit()
    logger.warning(f"User {user.username} (id={user.id}) blocked")


def unblock_user(user: User) -> None:
    user.is_blocked = False
    user.failed_attempts = 0
    db.session.commit()
    logger.info(f"User {user.username} (id={user.id}) unblocked")


def lockout_remaining_minutes(user: User, lockout_minutes: int,
                              now: Optional[datetime] = None) -> int:
    """Minutes left on a temporary lockout, 0 when it has expired.

    A missing last_failed_attempt means the lockout ends now.
    """
    now = now or datetime.now(timezone.utc)
    last_failed = _as_utc(user.last_failed_attempt)
    if last_failed is None:
        return 0
    lockout_end = last_failed + timedelta(minutes=lockout_minutes)
    if now >= lockout_end:
        return 0
    return math.ceil((lockout_end - now).total_seconds() / 60)


def log_login_attempt(user_id: Optional[int], email: str, ip_address: Optional[str],
                      success: bool, user_agent: Optional[str]) -> LoginAttempt:
    attempt = LoginAttempt(
        user_id=user_id,
        email=email,
        ip_address=ip_address,
        success=success,
        user_agent=(user_agent or '')[:500] or None,
    )
    db.session.add(attempt)
    db.session.commit()
    return attempt


def get_login_attempts(user_id: Optional[int] = None, limit: int = 50) -> List[LoginAttempt]:
    query = LoginAttempt.query
    if user_id is not None:
        query = query.filter(LoginAttempt.user_id == user_id)
    return query.order_by(LoginAttempt.created_at.desc(), LoginAttempt.id.desc()).limit(limit).all()


def _recent_failed(column, value, minutes: int) -> int:
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)
    return db.session.execute(
        db.select(func.count(LoginAttempt.id))
        .where(column == value)
        .where(LoginAttempt.success.is_(False))
        .where(LoginAttempt.created_at >= cutoff)
    ).scalar() or 0


def count_recent_failed_attempts(identifier: str, minutes: int) -> int:
    return _recent_failed(LoginAttempt.email, identifier, minutes)


def count_recent_failed_attempts_by_ip(ip_address: str, minutes: int) -> int:
    return _recent_failed(LoginAttempt.ip_address, ip_address, minutes)


def purge_login_attempts(before: datetime) -> int:
    """Delete audit records older than `before`. Returns the number removed."""
    result = db.session.execute(
        db.delete(LoginAttempt).where(LoginAttempt.created_at < before)
    )
    db.session.commit()
    return result.rowcount or 0


# ============================================================================
# Seeding
# ============================================================================

def initial_users(config) -> List[dict]:
    """Accounts created on first start.

    The demo operator account only exists while no explicit admin email is
    configured.
    """
    users = [{
        'email': config.get('ADMIN_EMAIL') or 'admin@demo.com',
        'username': config.get('ADMIN_USERNAME') or 'admin',
        'password': config.get('ADMIN_PASSWORD') or 'demo123456',
        'role': UserRole.ADMIN,
    }]
    if not config.get('ADMIN_EMAIL'):
        users.append({
            'email': 'user@demo.com',
            'username': 'user',
            'password': 'demo123456',
            'role': UserRole.USER,
        })
    return users


def seed_initial_users(config) -> int:
    """Create the configured initial accounts that don't exist yet."""
    default_questions = {
        'question1': DEFAULT_QUESTION, 'answer1': DEFAULT_ANSWER,
        'question2': DEFAULT_QUESTION, 'answer2': DEFAULT_ANSWER,
        'question3': DEFAULT_QUESTION, 'answer3': DEFAULT_ANSWER,
    }
    created = 0
    for seed in initial_users(config):
        if User.query.filter_by(email=seed['email']).first() is not None:
            continue
        if User.query.filter_by(username=seed['username']).first() is not None:
            logger.warning(f"Skipping seed account {seed['email']}: username {seed['username']} taken")
            continue
        add_user(seed['email'], seed['username'], '', seed['password'], seed['role'], default_questions)
        created += 1
    logger.info(f"Admin configured: {initial_users(config)[0]['email']}")
    return created
