"""Flask application factory module.

Provides create_app() factory function for the projection backend.
Creates and configures the application with database, storage, CORS and
the API blueprints.
"""
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
from werkzeug.middleware.proxy_fix import ProxyFix

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


# Initialize SQLAlchemy with custom base
db = SQLAlchemy(model_class=Base)


def ensure_directories(app):
    """Create storage directories if they don't exist.

    Args:
        app: Flask application instance with config loaded
    """
    for folder_key in ['UPLOAD_FOLDER', 'THUMBNAILS_FOLDER']:
        path = app.config[folder_key]
        path.mkdir(parents=True, exist_ok=True)

    # Also ensure instance directory exists
    instance_path = app.config.get('INSTANCE_DIR')
    if instance_path:
        instance_path.mkdir(parents=True, exist_ok=True)


def register_error_handlers(app):
    """Return JSON bodies for HTTP errors raised under /api."""

    def _json_error(status, message):
        def handler(error):
            if request.path.startswith('/api'):
                return jsonify({'message': message}), status
            return error
        return handler

    app.register_error_handler(404, _json_error(404, 'Recurso não encontrado'))
    app.register_error_handler(405, _json_error(405, 'Método não permitido'))
    app.register_error_handler(413, _json_error(413, 'Arquivo muito grande'))


def create_app(config_name='development', overrides=None):
    """Application factory function.

    Args:
        config_name: Configuration environment ('development', 'production', 'testing')
        overrides: Optional dict applied on top of the config class (tests, scripts)

    Returns:
        Configured Flask application instance
    """
    from pathlib import Path

    # Create Flask application
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    from config import config as config_dict, INSTANCE_DIR
    config_class = config_dict.get(config_name, config_dict['default'])
    app.config.from_object(config_class)
    app.config['INSTANCE_DIR'] = INSTANCE_DIR
    if overrides:
        app.config.update(overrides)
    for folder_key in ['UPLOAD_FOLDER', 'THUMBNAILS_FOLDER']:
        app.config[folder_key] = Path(app.config[folder_key])

    # Validate timezone configuration
    config_class.validate_timezone()

    if app.config.get('PROXY_FIX_X_FOR'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=app.config['PROXY_FIX_X_FOR'])

    CORS(
        app,
        resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}},
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        max_age=86400,
    )

    # Initialize database
    db.init_app(app)

    # Ensure storage directories exist and setup database
    with app.app_context():
        ensure_directories(app)

        # Import models to register them with SQLAlchemy
        from telao import models  # noqa: F401 - registers models

        # Enable SQLite WAL mode for better concurrency
        uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
        if uri.startswith('sqlite:///'):
            with db.engine.connect() as conn:
                conn.execute(text('PRAGMA journal_mode=WAL'))
                conn.execute(text('PRAGMA busy_timeout=5000'))
                conn.commit()

        # Create all tables
        db.create_all()

        if app.config.get('SEED_USERS'):
            from telao.lib.accounts import seed_initial_users
            seed_initial_users(app.config)

    from telao.routes import (
        api_bp, auth_bp, account_bp, admin_bp, media_bp,
        playlist_bp, themes_bp, projector_bp, backup_bp,
    )
    for blueprint in (api_bp, auth_bp, account_bp, admin_bp, media_bp,
                      playlist_bp, themes_bp, projector_bp, backup_bp):
        app.register_blueprint(blueprint)

    register_error_handlers(app)

    logger.info(f"Application created with '{config_name}' config")
    return app
