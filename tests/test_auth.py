"""
Tests for tokens, login protection and account recovery endpoints.

Run with: python -m pytest tests/test_auth.py -v
"""
from datetime import datetime, timedelta, timezone

from conftest import bearer
from telao import db
from telao.lib.auth import (
    extract_token, generate_refresh_token, generate_token, verify_refresh_token, verify_token,
)
from telao.models import LoginAttempt, User


def login(client, identifier='operador', password='senha123', **headers):
    return client.post('/api/auth/login', json={'identifier': identifier, 'password': password},
                       headers=headers)


REGISTRATION = {
    'email': 'novo@igreja.org',
    'username': 'novo',
    'phone': '11988887777',
    'password': 'senha123',
    'confirmPassword': 'senha123',
    'securityQuestion1': 'Q1', 'securityAnswer1': 'a',
    'securityQuestion2': 'Q2', 'securityAnswer2': 'b',
    'securityQuestion3': 'Q3', 'securityAnswer3': 'c',
}


class TestTokens:

    def test_access_token_round_trip(self, user):
        payload = verify_token(generate_token(user))

        assert payload['id'] == user.id
        assert payload['role'] == 'user'

    def test_tampered_token_rejected(self, user):
        assert verify_token(generate_token(user) + 'x') is None

    def test_refresh_token_not_valid_as_access_token(self, user):
        assert verify_token(generate_refresh_token(user)) is None

    def test_access_token_not_valid_as_refresh_token(self, user):
        assert verify_refresh_token(generate_token(user)) is None
        assert verify_refresh_token(generate_refresh_token(user))['type'] == 'refresh'

    def test_expired_token_rejected(self, app, user):
        token = generate_token(user)
        app.config['ACCESS_TOKEN_MAX_AGE'] = -1

        assert verify_token(token) is None

    def test_extract_token(self):
        assert extract_token('Bearer abc') == 'abc'
        assert extract_token('Token abc') is None
        assert extract_token('Bearer') is None
        assert extract_token('Bearer a b') is None
        assert extract_token(None) is None


class TestRouteGuards:

    def test_missing_token(self, client):
        response = client.get('/api/auth/me')

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Token não fornecido'

    def test_invalid_token(self, client):
        response = client.get('/api/auth/me', headers={'Authorization': 'Bearer nope'})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Token inválido ou expirado'

    def test_deleted_user_token(self, client, user):
        headers = bearer(user)
        db.session.delete(user)
        db.session.commit()

        assert client.get('/api/auth/me', headers=headers).status_code == 401

    def test_blocked_user_refused(self, client, user, auth_headers):
        user.is_blocked = True
        db.session.commit()

        response = client.get('/api/auth/me', headers=auth_headers)

        assert response.status_code == 403
        assert response.get_json()['code'] == 'ACCOUNT_BLOCKED'

    def test_me(self, client, user, auth_headers):
        data = client.get('/api/auth/me', headers=auth_headers).get_json()

        assert data['username'] == 'operador'
        assert 'passwordHash' not in data

    def test_admin_route_requires_admin(self, client, auth_headers):
        response = client.get('/api/admin/users', headers=auth_headers)

        assert response.status_code == 403


class TestLogin:

    def test_login_with_username_and_email(self, client, user):
        for identifier in ('operador', 'operador@igreja.org'):
            response = login(client, identifier)
            data = response.get_json()

            assert response.status_code == 200
            assert data['token'] == data['accessToken']
            assert data['refreshToken']
            assert data['user']['id'] == user.id

    def test_success_is_logged(self, client, user):
        login(client)

        attempt = LoginAttempt.query.one()
        assert attempt.success is True
        assert attempt.user_id == user.id

    def test_forwarded_header_ignored_without_proxy(self, client, user):
        login(client, password='errada1', **{'X-Forwarded-For': '203.0.113.9, 10.0.0.1'})

        assert LoginAttempt.query.one().ip_address == '127.0.0.1'

    def test_forwarded_ip_from_trusted_proxy(self, tmp_path):
        from telao import create_app

        app = create_app('testing', overrides={
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'proxy.db'}",
            'UPLOAD_FOLDER': tmp_path / 'u',
            'THUMBNAILS_FOLDER': tmp_path / 't',
            'PROXY_FIX_X_FOR': 1,
        })
        with app.app_context():
            login(app.test_client(), 'ninguem', **{'X-Forwarded-For': '203.0.113.9, 10.0.0.1'})

            # one trusted hop: the address the proxy appended
            assert LoginAttempt.query.one().ip_address == '10.0.0.1'
            db.session.remove()
            db.drop_all()

    def test_unknown_account(self, client):
        response = login(client, 'ninguem')

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Credenciais inválidas'
        assert LoginAttempt.query.one().user_id is None

    def test_short_password_rejected_before_lookup(self, client, user):
        response = login(client, password='123')

        assert response.status_code == 400
        assert LoginAttempt.query.count() == 0

    def test_empty_body_rejected(self, client):
        response = client.post('/api/auth/login', json={})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Email ou nome de usuário obrigatório'
        assert LoginAttempt.query.count() == 0

    def test_wrong_password_counts_down(self, client, user):
        response = login(client, password='errada1')

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Credenciais inválidas. 4 tentativas restantes.'

    def test_fifth_failure_locks_account(self, client, user):
        for _ in range(4):
            login(client, password='errada1')

        response = login(client, password='errada1')

        assert response.status_code == 401
        assert response.get_json()['code'] == 'TEMP_LOCKED'

        # correct password is refused while locked
        response = login(client)
        assert response.status_code == 403
        assert response.get_json()['code'] == 'TEMP_LOCKED'
        assert 'Tente novamente em 15 minutos' in response.get_json()['message']

    def test_expired_lockout_resets_counter(self, client, user):
        user.failed_attempts = 5
        user.last_failed_attempt = datetime.now(timezone.utc) - timedelta(minutes=20)
        db.session.commit()

        response = login(client)

        assert response.status_code == 200
        db.session.expire_all()
        assert db.session.get(User, user.id).failed_attempts == 0

    def test_blocked_account(self, client, user):
        user.is_blocked = True
        db.session.commit()

        response = login(client)

        assert response.status_code == 403
        assert response.get_json()['code'] == 'ACCOUNT_BLOCKED'

    def test_identifier_rate_limit(self, client):
        for _ in range(10):
            assert login(client, 'fantasma').status_code == 401

        response = login(client, 'fantasma')

        assert response.status_code == 429
        assert response.get_json()['code'] == 'RATE_LIMITED'

    def test_ip_rate_limit(self, client):
        for n in range(20):
            login(client, f'fantasma{n}')

        response = login(client, 'outro')

        assert response.status_code == 429
        assert response.get_json()['code'] == 'IP_RATE_LIMITED'

    def test_ip_rate_limit_ignores_spoofed_forwarded_header(self, client):
        for n in range(20):
            login(client, f'fantasma{n}', **{'X-Forwarded-For': f'198.51.100.{n}'})

        response = login(client, 'outro', **{'X-Forwarded-For': '198.51.100.99'})

        assert response.status_code == 429
        assert response.get_json()['code'] == 'IP_RATE_LIMITED'


class TestRegistration:

    def test_register(self, client):
        response = client.post('/api/auth/register', json=REGISTRATION)

        assert response.status_code == 201
        data = response.get_json()
        assert data['user']['role'] == 'user'
        assert data['refreshToken']

    def test_passwords_must_match(self, client):
        body = dict(REGISTRATION, confirmPassword='outra123')

        response = client.post('/api/auth/register', json=body)

        assert response.status_code == 400
        assert response.get_json()['message'] == 'As senhas não coincidem'

    def test_empty_body_reports_email_first(self, client):
        response = client.post('/api/auth/register', json={})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Email inválido'

    def test_account_fields_checked_before_questions(self, client):
        body = dict(REGISTRATION, username='ab', securityQuestion1='')

        response = client.post('/api/auth/register', json=body)

        assert response.get_json()['message'] == 'Usuário deve ter pelo menos 3 caracteres'

    def test_confirmation_checked_before_questions(self, client):
        body = dict(REGISTRATION, confirmPassword='', securityAnswer1='')

        response = client.post('/api/auth/register', json=body)

        assert response.get_json()['message'] == 'Confirmação de senha obrigatória'

    def test_short_phone_rejected(self, client):
        response = client.post('/api/auth/register', json=dict(REGISTRATION, phone='1199'))

        assert response.status_code == 400

    def test_duplicate_email(self, client, user):
        body = dict(REGISTRATION, email=user.email)

        response = client.post('/api/auth/register', json=body)

        assert response.status_code == 409
        assert response.get_json()['message'] == 'Email já cadastrado'

    def test_duplicate_username(self, client, user):
        body = dict(REGISTRATION, username=user.username)

        response = client.post('/api/auth/register', json=body)

        assert response.status_code == 409
        assert response.get_json()['message'] == 'Nome de usuário já existe'


class TestRefreshAndLogout:

    def test_refresh(self, client, user):
        refresh_token = generate_refresh_token(user)

        response = client.post('/api/auth/refresh', json={'refreshToken': refresh_token})
        data = response.get_json()

        assert response.status_code == 200
        assert verify_token(data['accessToken'])['id'] == user.id
        assert verify_refresh_token(data['refreshToken'])['id'] == user.id

    def test_refresh_missing(self, client):
        response = client.post('/api/auth/refresh', json={})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Refresh token não fornecido'

    def test_refresh_with_access_token(self, client, user):
        response = client.post('/api/auth/refresh', json={'refreshToken': generate_token(user)})

        assert response.status_code == 401

    def test_logout(self, client, auth_headers):
        response = client.post('/api/auth/logout', headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['message'] == 'Logout realizado com sucesso'


class TestPasswordRecovery:

    def test_security_questions(self, client, user):
        response = client.post('/api/auth/security-questions', json={'identifier': 'operador'})

        assert response.get_json()['questions'][1] == 'Cidade natal?'

    def test_unknown_user(self, client):
        response = client.post('/api/auth/security-questions', json={'identifier': 'ninguem'})

        assert response.status_code == 404

    def test_reset_password(self, client, user):
        response = client.post('/api/auth/reset-password', json={
            'identifier': 'operador@igreja.org',
            'answer1': 'rex', 'answer2': 'CAMPINAS', 'answer3': 'feijoada',
            'newPassword': 'nova1234', 'confirmNewPassword': 'nova1234',
        })

        assert response.status_code == 200
        assert login(client, password='nova1234').status_code == 200

    def test_wrong_answers(self, client, user):
        response = client.post('/api/auth/reset-password', json={
            'identifier': 'operador',
            'answer1': 'rex', 'answer2': 'campinas', 'answer3': 'pizza',
            'newPassword': 'nova1234',
        })

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Respostas incorretas'
        assert login(client).status_code == 200


class TestAccountSettings:

    def test_settings_default(self, client, user, auth_headers):
        data = client.get('/api/user/settings', headers=auth_headers).get_json()

        assert data == {'userId': user.id, 'churchName': None}

    def test_settings_upsert(self, client, auth_headers):
        client.put('/api/user/settings', json={'churchName': 'Igreja Central'}, headers=auth_headers)
        response = client.put('/api/user/settings', json={'churchName': 'Igreja Nova'}, headers=auth_headers)

        assert response.get_json()['churchName'] == 'Igreja Nova'
        assert client.get('/api/user/settings', headers=auth_headers).get_json()['churchName'] == 'Igreja Nova'

    def test_change_password(self, client, auth_headers):
        wrong = client.put('/api/user/password', headers=auth_headers,
                           json={'currentPassword': 'errada', 'newPassword': 'nova1234'})
        assert wrong.status_code == 401

        response = client.put('/api/user/password', headers=auth_headers,
                              json={'currentPassword': 'senha123', 'newPassword': 'nova1234'})
        assert response.status_code == 200
        assert login(client, password='nova1234').status_code == 200
