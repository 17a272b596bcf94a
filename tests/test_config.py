"""
Tests for configuration resolution.

Run with: python -m pytest tests/test_config.py -v
"""
import pytest

from config import resolve_database_url, INSTANCE_DIR, Config, TestingConfig


class TestDatabaseUrl:
    """Database URL resolution order."""

    def test_database_url_wins(self, tmp_path):
        """DATABASE_URL takes precedence over secret files and PG* variables."""
        secret = tmp_path / 'DATABASE_URL'
        secret.write_text('postgresql://secret/db')
        environ = {
            'DATABASE_URL': 'postgresql://env/db',
            'PGHOST': 'h', 'PGUSER': 'u', 'PGPASSWORD': 'p', 'PGDATABASE': 'd',
        }

        assert resolve_database_url(environ, [secret]) == 'postgresql://env/db'

    def test_secret_file_used_when_env_missing(self, tmp_path):
        missing = tmp_path / 'missing'
        empty = tmp_path / 'empty'
        empty.write_text('  \n')
        secret = tmp_path / 'DATABASE_URL'
        secret.write_text('postgresql://secret/db\n')

        assert resolve_database_url({}, [missing, empty, secret]) == 'postgresql://secret/db'

    def test_pg_variables(self):
        environ = {'PGHOST': 'db.local', 'PGUSER': 'telao', 'PGPASSWORD': 'pw', 'PGDATABASE': 'culto'}

        url = resolve_database_url(environ, [])

        assert url == 'postgresql://telao:pw@db.local:5432/culto?sslmode=require'

    def test_incomplete_pg_variables_fall_back_to_sqlite(self):
        url = resolve_database_url({'PGHOST': 'db.local', 'PGUSER': 'telao'}, [])

        assert url == f"sqlite:///{INSTANCE_DIR / 'telao.db'}"

    def test_heroku_scheme_normalized(self):
        url = resolve_database_url({'DATABASE_URL': 'postgres://u:p@h/d'}, [])

        assert url == 'postgresql://u:p@h/d'


class TestConfigClasses:

    def test_testing_config_does_not_seed(self):
        assert TestingConfig.TESTING is True
        assert TestingConfig.SEED_USERS is False

    def test_login_protection_defaults(self):
        assert Config.MAX_FAILED_ATTEMPTS == 5
        assert Config.LOCKOUT_MINUTES == 15
        assert Config.MAX_ATTEMPTS_PER_WINDOW == 10
        assert Config.MAX_ATTEMPTS_PER_IP == 20

    def test_invalid_timezone_rejected(self, monkeypatch):
        monkeypatch.setattr(Config, 'TIMEZONE', 'Mars/Olympus')

        with pytest.raises(ValueError, match='Invalid TIMEZONE'):
            Config.validate_timezone()

    def test_proxy_headers_untrusted_by_default(self, app):
        from werkzeug.middleware.proxy_fix import ProxyFix

        assert Config.PROXY_FIX_X_FOR == 0
        assert not isinstance(app.wsgi_app, ProxyFix)
        assert 'DEBUG_MODE' not in app.config


class TestAppFactory:

    def test_overrides_applied(self, app, tmp_path):
        assert app.config['TESTING'] is True
        assert app.config['UPLOAD_FOLDER'] == tmp_path / 'uploads'
        assert (tmp_path / 'uploads').is_dir()
        assert (tmp_path / 'thumbnails').is_dir()

    def test_seeding_creates_demo_accounts(self, tmp_path):
        from telao import create_app, db
        from telao.models import User, UserRole

        app = create_app('testing', overrides={
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'seed.db'}",
            'UPLOAD_FOLDER': tmp_path / 'u',
            'THUMBNAILS_FOLDER': tmp_path / 't',
            'SEED_USERS': True,
            'ADMIN_EMAIL': None,
        })
        with app.app_context():
            users = {u.username: u for u in User.query.all()}
            assert users['admin'].role == UserRole.ADMIN
            assert users['user'].role == UserRole.USER
            db.session.remove()
            db.drop_all()

    def test_unknown_api_route_returns_json(self, client):
        response = client.get('/api/does-not-exist')

        assert response.status_code == 404
        assert 'message' in response.get_json()
