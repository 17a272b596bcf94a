"""
Tests for administration and public feed endpoints.

Run with: python -m pytest tests/test_admin.py -v
"""
from telao import db
from telao.lib import accounts
from telao.models import SupportTicket, User

from conftest import bearer, png_bytes, upload


NEW_ADMIN = {
    'email': 'diacono@igreja.org',
    'username': 'diacono',
    'phone': '11977776666',
    'password': 'senha123',
    'securityQuestion1': 'Q1', 'securityAnswer1': 'a',
    'securityQuestion2': 'Q2', 'securityAnswer2': 'b',
    'securityQuestion3': 'Q3', 'securityAnswer3': 'c',
}

TICKET = {
    'username': 'operador',
    'email': 'operador@igreja.org',
    'phone': '11999990000',
    'subject': 'Projetor',
    'message': 'O vídeo não aparece no telão',
}


class TestUserManagement:

    def test_list_users(self, client, admin_headers, user):
        data = client.get('/api/admin/users', headers=admin_headers).get_json()

        assert {u['username'] for u in data} == {'pastor', 'operador'}
        assert 'failedAttempts' in data[0]

    def test_get_missing_user(self, client, admin_headers):
        response = client.get('/api/admin/users/999', headers=admin_headers)

        assert response.status_code == 404
        assert response.get_json()['message'] == 'Usuário não encontrado'

    def test_update_user(self, client, admin_headers, user):
        response = client.put(f'/api/admin/users/{user.id}', headers=admin_headers,
                              json={'phone': '11900000000', 'role': 'admin'})

        assert response.status_code == 200
        assert response.get_json()['role'] == 'admin'
        assert response.get_json()['phone'] == '11900000000'

    def test_update_user_duplicate_username(self, client, admin_headers, admin, user):
        response = client.put(f'/api/admin/users/{user.id}', headers=admin_headers,
                              json={'username': admin.username})

        assert response.status_code == 409

    def test_block_and_unblock(self, client, admin_headers, user):
        user.failed_attempts = 3
        db.session.commit()

        blocked = client.post(f'/api/admin/users/{user.id}/block', headers=admin_headers)
        assert blocked.get_json()['isBlocked'] is True

        unblocked = client.post(f'/api/admin/users/{user.id}/unblock', headers=admin_headers)
        assert unblocked.get_json()['isBlocked'] is False
        assert unblocked.get_json()['failedAttempts'] == 0

    def test_cannot_block_self(self, client, admin_headers, admin):
        response = client.post(f'/api/admin/users/{admin.id}/block', headers=admin_headers)

        assert response.status_code == 400

    def test_cannot_delete_self(self, client, admin_headers, admin):
        response = client.delete(f'/api/admin/users/{admin.id}', headers=admin_headers)

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Você não pode excluir sua própria conta'

    def test_delete_user_removes_uploads(self, client, app, admin_headers, user):
        user_id = user.id
        upload_dir = app.config['UPLOAD_FOLDER'] / f'user_{user_id}'
        upload_dir.mkdir(parents=True)
        (upload_dir / 'abc.png').write_bytes(b'png')

        response = client.delete(f'/api/admin/users/{user_id}', headers=admin_headers)

        assert response.status_code == 200
        assert not upload_dir.exists()
        db.session.expire_all()
        assert db.session.get(User, user_id) is None

    def test_delete_user_removes_thumbnails(self, client, app, admin_headers, user):
        user_id = user.id
        item = upload(client, bearer(user), [(png_bytes('yellow'), 'culto.png')]).get_json()['items'][0]
        thumb = app.config['THUMBNAILS_FOLDER'] / f"{item['id']}_thumb.jpg"
        assert thumb.exists()

        response = client.delete(f'/api/admin/users/{user_id}', headers=admin_headers)

        assert response.status_code == 200
        assert not thumb.exists()
        assert not (app.config['UPLOAD_FOLDER'] / f'user_{user_id}').exists()

    def test_reset_password(self, client, admin_headers, user):
        response = client.post(f'/api/admin/users/{user.id}/reset-password',
                               headers=admin_headers, json={'newPassword': 'trocada1'})

        assert response.status_code == 200
        db.session.expire_all()
        assert accounts.verify_password('trocada1', db.session.get(User, user.id).password_hash)

    def test_create_admin(self, client, admin_headers):
        response = client.post('/api/admin/create-admin', headers=admin_headers, json=NEW_ADMIN)

        assert response.status_code == 201
        assert response.get_json()['role'] == 'admin'

    def test_create_admin_duplicate(self, client, admin_headers, admin):
        body = dict(NEW_ADMIN, email=admin.email)

        response = client.post('/api/admin/create-admin', headers=admin_headers, json=body)

        assert response.status_code == 409


class TestLoginAudit:

    def test_login_attempts(self, client, admin_headers, user):
        accounts.log_login_attempt(user.id, 'operador', '10.0.0.1', False, 'pytest')
        accounts.log_login_attempt(None, 'ninguem', '10.0.0.2', False, 'pytest')

        all_attempts = client.get('/api/admin/login-attempts', headers=admin_headers).get_json()
        user_attempts = client.get(f'/api/admin/users/{user.id}/login-attempts',
                                   headers=admin_headers).get_json()

        assert len(all_attempts) == 2
        assert [a['email'] for a in user_attempts] == ['operador']

    def test_limit_is_clamped(self, client, admin_headers, user):
        for _ in range(3):
            accounts.log_login_attempt(user.id, 'operador', '10.0.0.1', False, None)

        data = client.get('/api/admin/login-attempts?limit=0', headers=admin_headers).get_json()

        assert len(data) == 1


class TestAnnouncements:

    def test_crud_and_public_feed(self, client, admin_headers):
        created = client.post('/api/admin/announcements', headers=admin_headers, json={
            'type': 'text', 'title': 'Culto de domingo', 'content': 'Às 19h',
        })
        assert created.status_code == 201
        announcement_id = created.get_json()['id']

        hidden = client.post('/api/admin/announcements', headers=admin_headers, json={
            'type': 'image', 'title': 'Rascunho', 'imageUrl': 'https://example.org/a.png', 'active': False,
        })
        assert hidden.status_code == 201

        public = client.get('/api/announcements').get_json()
        assert [a['title'] for a in public] == ['Culto de domingo']

        updated = client.put(f'/api/admin/announcements/{announcement_id}', headers=admin_headers,
                             json={'title': 'Culto de domingo (19h)', 'active': False})
        assert updated.get_json()['title'] == 'Culto de domingo (19h)'
        assert client.get('/api/announcements').get_json() == []

        assert len(client.get('/api/admin/announcements', headers=admin_headers).get_json()) == 2

        deleted = client.delete(f'/api/admin/announcements/{announcement_id}', headers=admin_headers)
        assert deleted.status_code == 200
        missing = client.delete(f'/api/admin/announcements/{announcement_id}', headers=admin_headers)
        assert missing.status_code == 404

    def test_invalid_type_rejected(self, client, admin_headers):
        response = client.post('/api/admin/announcements', headers=admin_headers,
                               json={'type': 'audio', 'title': 'X'})

        assert response.status_code == 400


class TestSupport:

    def test_public_ticket(self, client):
        response = client.post('/api/support', json=TICKET)

        assert response.status_code == 201
        assert response.get_json()['status'] == 'pending'

    def test_ticket_requires_all_fields(self, client):
        response = client.post('/api/support', json=dict(TICKET, subject=' '))

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Preencha todos os campos'

    def test_answer_stamps_response_time(self, client, admin_headers):
        ticket_id = client.post('/api/support', json=TICKET).get_json()['id']

        status_only = client.put(f'/api/admin/support/{ticket_id}', headers=admin_headers,
                                 json={'status': 'in_progress'})
        assert status_only.get_json()['respondedAt'] is None

        answered = client.put(f'/api/admin/support/{ticket_id}', headers=admin_headers,
                              json={'status': 'resolved', 'adminResponse': 'Troque o cabo HDMI'})
        data = answered.get_json()
        assert data['status'] == 'resolved'
        assert data['respondedAt'] is not None

    def test_filter_by_status(self, client, admin_headers):
        first = client.post('/api/support', json=TICKET).get_json()['id']
        client.post('/api/support', json=TICKET)
        client.put(f'/api/admin/support/{first}', headers=admin_headers, json={'status': 'closed'})

        closed = client.get('/api/admin/support?status=closed', headers=admin_headers).get_json()
        invalid = client.get('/api/admin/support?status=lost', headers=admin_headers)

        assert [t['id'] for t in closed] == [first]
        assert invalid.status_code == 400

    def test_delete_ticket(self, client, admin_headers):
        ticket_id = client.post('/api/support', json=TICKET).get_json()['id']

        client.delete(f'/api/admin/support/{ticket_id}', headers=admin_headers)

        assert SupportTicket.query.count() == 0


class TestSystemSettings:

    def test_default_interval(self, client):
        assert client.get('/api/system-settings').get_json()['slideshowInterval'] == 5000

    def test_update_interval(self, client, admin_headers):
        response = client.put('/api/admin/system-settings', headers=admin_headers,
                              json={'slideshowInterval': 8000})

        assert response.status_code == 200
        assert client.get('/api/system-settings').get_json()['slideshowInterval'] == 8000

    def test_interval_range(self, client, admin_headers):
        response = client.put('/api/admin/system-settings', headers=admin_headers,
                              json={'slideshowInterval': 10})

        assert response.status_code == 400

    def test_health(self, client):
        data = client.get('/api/health').get_json()

        assert data['status'] == 'ok'
        assert data['timezone'] == 'America/Sao_Paulo'
