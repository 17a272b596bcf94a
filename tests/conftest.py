"""
Shared fixtures.

Every test gets a fresh application on a temporary SQLite database with its
own upload and thumbnail folders. Huey runs tasks inline.

Run with: python -m pytest tests/ -v
"""
import io
import os

import pytest

# Set testing environment before imports
os.environ['HUEY_IMMEDIATE'] = '1'
os.environ['FLASK_ENV'] = 'testing'

QUESTIONS = {
    'question1': 'Nome do seu primeiro animal?', 'answer1': 'Rex',
    'question2': 'Cidade natal?', 'answer2': 'Campinas',
    'question3': 'Comida favorita?', 'answer3': 'Feijoada',
}


@pytest.fixture
def app(tmp_path):
    """Create application for testing."""
    from telao import create_app, db

    app = create_app('testing', overrides={
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
        'UPLOAD_FOLDER': tmp_path / 'uploads',
        'THUMBNAILS_FOLDER': tmp_path / 'thumbnails',
    })

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture
def create_user(app):
    """Factory creating accounts with known security answers."""
    from telao.lib import accounts
    from telao.models import UserRole

    def _create(username='operador', email=None, password='senha123', role=UserRole.USER):
        return accounts.add_user(
            email or f'{username}@igreja.org', username, '11999990000',
            password, role, QUESTIONS
        )
    return _create


@pytest.fixture
def user(create_user):
    return create_user()


@pytest.fixture
def admin(create_user):
    from telao.models import UserRole
    return create_user('pastor', role=UserRole.ADMIN)


def bearer(user):
    from telao.lib.auth import generate_token
    return {'Authorization': f'Bearer {generate_token(user)}'}


@pytest.fixture
def auth_headers(user):
    return bearer(user)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


def png_bytes(color='red', size=(64, 36)):
    from PIL import Image

    buffer = io.BytesIO()
    Image.new('RGB', size, color).save(buffer, 'PNG')
    return buffer.getvalue()


def upload(client, headers, files, **form):
    """POST files [(bytes, filename), ...] to the gallery."""
    data = {'files': [(io.BytesIO(content), name) for content, name in files]}
    data.update(form)
    return client.post('/api/gallery/upload', data=data, headers=headers,
                       content_type='multipart/form-data')


def text_slide(client, headers, title='Louvor', content='Santo, santo, santo', **extra):
    body = {'title': title, 'content': content}
    body.update(extra)
    return client.post('/api/gallery/text', json=body, headers=headers)
