"""Application configuration module.

Provides configuration classes for different environments with pathlib-based
paths and timezone handling. The database URL is resolved from the
environment, mounted secret files or libpq-style PG* variables, falling back
to a local SQLite file when nothing is provisioned.
"""
import os
from pathlib import Path
from zoneinfo import ZoneInfo


# Base directories using pathlib
BASE_DIR = Path(__file__).parent.absolute()
INSTANCE_DIR = BASE_DIR / 'instance'
STORAGE_DIR = BASE_DIR / 'storage'

SECRET_PATHS = (
    Path('/run/secrets/DATABASE_URL'),
    Path('/etc/secrets/DATABASE_URL'),
)


def resolve_database_url(environ=None, secret_paths=SECRET_PATHS):
    """Resolve the SQLAlchemy database URL.

    Order: DATABASE_URL, secret files, PG* variables, local SQLite.

    Args:
        environ: Mapping to read variables from (defaults to os.environ)
        secret_paths: Files that may contain the URL (first non-empty wins)

    Returns:
        Database URL string usable by SQLAlchemy
    """
    environ = os.environ if environ is None else environ

    url = (environ.get('DATABASE_URL') or '').strip()

    if not url:
        for path in secret_paths:
            try:
                secret = Path(path).read_text(encoding='utf-8').strip()
            except OSError:
                continue
            if secret:
                url = secret
                break

    if not url:
        host = environ.get('PGHOST')
        user = environ.get('PGUSER')
        password = environ.get('PGPASSWORD')
        database = environ.get('PGDATABASE')
        if host and user and password and database:
            port = environ.get('PGPORT') or '5432'
            url = f"postgresql://{user}:{password}@{host}:{port}/{database}?sslmode=require"

    if not url:
        return f"sqlite:///{INSTANCE_DIR / 'telao.db'}"

    # SQLAlchemy 2.x no longer accepts the Heroku-style scheme
    if url.startswith('postgres://'):
        url = 'postgresql://' + url[len('postgres://'):]
    return url


def _engine_options(url):
    if url.startswith('sqlite'):
        return {
            'connect_args': {
                'check_same_thread': False,
                'timeout': 5.0
            }
        }
    return {'pool_pre_ping': True}


def _split_origins(value):
    return [origin.strip() for origin in value.split(',') if origin.strip()]


class Config:
    """Base configuration with common settings."""

    # Flask secret key
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Token signing (access and refresh tokens use different secrets)
    JWT_SECRET = os.environ.get('JWT_SECRET') or 'your-super-secret-key-change-in-production'
    REFRESH_SECRET = os.environ.get('REFRESH_SECRET') or 'refresh-secret-key-change-in-production'
    ACCESS_TOKEN_MAX_AGE = int(os.environ.get('ACCESS_TOKEN_MAX_AGE', 60 * 60))  # 1h
    REFRESH_TOKEN_MAX_AGE = int(os.environ.get('REFRESH_TOKEN_MAX_AGE', 7 * 24 * 60 * 60))  # 7d

    # Database configuration
    SQLALCHEMY_DATABASE_URI = resolve_database_url()
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Storage directories (using pathlib.Path)
    UPLOAD_FOLDER = Path(os.environ['UPLOAD_DIR']) if os.environ.get('UPLOAD_DIR') else STORAGE_DIR / 'uploads'
    THUMBNAILS_FOLDER = STORAGE_DIR / 'thumbnails'
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 1024 * 1024 * 512))  # 512MB

    # Timezone used for operator-facing clocks (church services run on Brasília time)
    TIMEZONE = os.environ.get('TIMEZONE', 'America/Sao_Paulo')

    # CORS for the browser console / projector served from another origin
    CORS_ORIGINS = _split_origins(os.environ.get('CORS_ORIGINS', '*'))

    # Initial accounts
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD') or 'demo123456'
    ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME') or 'admin'
    SEED_USERS = True

    # Login protection
    MAX_FAILED_ATTEMPTS = 5
    LOCKOUT_MINUTES = 15
    RATE_LIMIT_WINDOW = 15  # minutes
    MAX_ATTEMPTS_PER_WINDOW = 10
    MAX_ATTEMPTS_PER_IP = 20
    LOGIN_ATTEMPT_RETENTION_DAYS = int(os.environ.get('LOGIN_ATTEMPT_RETENTION_DAYS', 30))

    # Reverse proxies in front of the app; X-Forwarded-For is trusted for this many hops
    PROXY_FIX_X_FOR = int(os.environ.get('PROXY_FIX_X_FOR', 0))

    @classmethod
    def validate_timezone(cls):
        """Validate timezone configuration using zoneinfo."""
        try:
            ZoneInfo(cls.TIMEZONE)
            return True
        except Exception as e:
            raise ValueError(f"Invalid TIMEZONE '{cls.TIMEZONE}': {e}")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_ECHO = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False


class TestingConfig(Config):
    """Testing configuration: in-memory database, no seeded accounts."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options('sqlite://')
    SEED_USERS = False


# Configuration dictionary for easy lookup
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
