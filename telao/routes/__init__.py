"""Flask routes package."""
from telao.routes.api import api_bp
from telao.routes.auth import auth_bp
from telao.routes.account import account_bp
from telao.routes.admin import admin_bp
from telao.routes.media import media_bp
from telao.routes.playlist import playlist_bp
from telao.routes.themes import themes_bp
from telao.routes.projector import projector_bp
from telao.routes.backup import backup_bp

__all__ = [
    'api_bp', 'auth_bp', 'account_bp', 'admin_bp', 'media_bp',
    'playlist_bp', 'themes_bp', 'projector_bp', 'backup_bp',
]
