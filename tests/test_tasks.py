"""
Tests for Huey background tasks.

Tasks are called with call_local() so they run synchronously inside the
test's application context.

Run with: python -m pytest tests/test_tasks.py -v
"""
from datetime import datetime, timedelta, timezone

from conftest import png_bytes, text_slide, upload
from telao import db
from telao.lib import accounts
from telao.models import GalleryItem, LoginAttempt
from telao.tasks import (
    generate_gallery_thumbnail, health_check, purge_login_attempts_older_than, purge_old_login_attempts,
)


class TestThumbnailTask:

    def test_generates_for_image(self, client, app, auth_headers):
        item_id = upload(client, auth_headers, [(png_bytes(size=(1280, 720)), 'foto.png')]).get_json()['items'][0]['id']
        item = db.session.get(GalleryItem, item_id)
        item.thumbnail_name = None
        db.session.commit()

        result = generate_gallery_thumbnail.call_local(item_id)

        assert result == {'item_id': item_id, 'status': 'completed'}
        assert db.session.get(GalleryItem, item_id).thumbnail_name == f'{item_id}_thumb.jpg'

    def test_thumbnail_is_16_9_medium(self, client, app, auth_headers):
        from PIL import Image

        item_id = upload(client, auth_headers, [(png_bytes(size=(1280, 720)), 'foto.png')]).get_json()['items'][0]['id']

        with Image.open(app.config['THUMBNAILS_FOLDER'] / f'{item_id}_thumb.jpg') as thumb:
            assert thumb.size == (320, 180)

    def test_square_image_is_cropped_to_card(self, client, app, auth_headers):
        from PIL import Image

        item_id = upload(client, auth_headers, [(png_bytes(size=(500, 500)), 'quadrada.png')]).get_json()['items'][0]['id']

        with Image.open(app.config['THUMBNAILS_FOLDER'] / f'{item_id}_thumb.jpg') as thumb:
            assert thumb.size == (320, 180)

    def test_skips_text_slides(self, client, auth_headers):
        item_id = text_slide(client, auth_headers).get_json()[0]['id']

        assert generate_gallery_thumbnail.call_local(item_id)['status'] == 'skipped'

    def test_skips_missing_item(self, app):
        assert generate_gallery_thumbnail.call_local(999)['status'] == 'skipped'

    def test_fails_when_file_missing(self, client, app, user, auth_headers):
        item_id = upload(client, auth_headers, [(png_bytes(), 'foto.png')]).get_json()['items'][0]['id']
        item = db.session.get(GalleryItem, item_id)
        (app.config['UPLOAD_FOLDER'] / f'user_{user.id}' / item.stored_name).unlink()

        assert generate_gallery_thumbnail.call_local(item_id)['status'] == 'failed'


class TestMaintenanceTasks:

    def test_purge_older_than(self, user):
        old = accounts.log_login_attempt(user.id, 'operador', '10.0.0.1', False, None)
        old.created_at = datetime.now(timezone.utc) - timedelta(days=10)
        db.session.commit()
        accounts.log_login_attempt(user.id, 'operador', '10.0.0.1', True, None)

        assert purge_login_attempts_older_than(7) == 1
        assert LoginAttempt.query.count() == 1

    def test_periodic_purge_uses_retention_setting(self, app, user):
        app.config['LOGIN_ATTEMPT_RETENTION_DAYS'] = 1
        old = accounts.log_login_attempt(user.id, 'operador', '10.0.0.1', False, None)
        old.created_at = datetime.now(timezone.utc) - timedelta(days=2)
        db.session.commit()

        assert purge_old_login_attempts.call_local() == 1

    def test_health_check(self):
        assert health_check.call_local()['status'] == 'ok'
