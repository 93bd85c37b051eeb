"""
Tests for the User model and the auth endpoints: password hashing,
registration, login and the current-user view.
"""

from flask import g

from extensions import db
from models.households import Household
from models.users import User

from conftest import PASSWORD, login


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_correct_password_accepted(self, app, user):
        assert user.check_password(PASSWORD) is True

    def test_wrong_password_rejected(self, app, user):
        assert user.check_password('WrongPass99!') is False

    def test_password_is_hashed(self, app, user):
        assert user.password_hash != PASSWORD, \
            "password_hash must store a hash, not the plain-text password"


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestRegister:
    def _payload(self, **overrides):
        payload = {
            'name': 'Carol',
            'email': 'Carol@Example.com',
            'password': 'GoodPass123',
            'confirm_password': 'GoodPass123',
        }
        payload.update(overrides)
        return payload

    def test_register_creates_and_signs_in(self, app, client):
        response = client.post('/auth/register', json=self._payload())

        assert response.status_code == 201
        assert response.get_json()['user']['email'] == 'carol@example.com'
        me = client.get('/auth/me')
        assert me.status_code == 200
        assert me.get_json()['households'] == []

    def test_register_with_household_makes_user_admin(self, app, client):
        response = client.post('/auth/register', json=self._payload(household_name='Carol Home'))

        household = response.get_json()['household']
        assert household['name'] == 'Carol Home'
        me = client.get('/auth/me').get_json()
        assert me['households'][0]['role'] == 'admin'
        assert Household.query.count() == 1

    def test_weak_password_rejected(self, app, client):
        response = client.post('/auth/register', json=self._payload(password='weak', confirm_password='weak'))

        assert response.status_code == 400
        assert 'password' in response.get_json()['errors']
        assert User.query.count() == 0

    def test_mismatched_confirmation_rejected(self, app, client):
        response = client.post('/auth/register', json=self._payload(confirm_password='GoodPass124'))

        assert response.status_code == 400
        assert 'confirm_password' in response.get_json()['errors']

    def test_duplicate_email_rejected(self, app, client, user):
        response = client.post('/auth/register', json=self._payload(email=user.email))

        assert response.status_code == 400
        assert response.get_json()['code'] == 'email_taken'


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

class TestLogin:
    def test_login_success_records_last_login(self, app, client, user):
        response = login(client, user.email)

        assert response.status_code == 200
        assert user.last_login is not None

    def test_wrong_password(self, app, client, user):
        response = login(client, user.email, 'WrongPass99!')

        assert response.status_code == 401
        assert response.get_json()['code'] == 'invalid_credentials'

    def test_unknown_email_same_message(self, app, client, user):
        unknown = login(client, 'nobody@example.com')
        wrong = login(client, user.email, 'WrongPass99!')

        assert unknown.get_json()['error'] == wrong.get_json()['error']

    def test_inactive_account(self, app, client, user):
        user.is_active = False
        db.session.commit()

        response = login(client, user.email)

        assert response.status_code == 403

    def test_missing_fields(self, app, client):
        response = client.post('/auth/login', json={'email': 'alice@example.com'})

        assert response.status_code == 400
        assert 'password' in response.get_json()['errors']

    def test_logout(self, app, auth_client):
        assert auth_client.post('/auth/logout').status_code == 200

        g.pop('_login_user', None)
        assert auth_client.get('/auth/me').status_code == 401

    def test_api_requires_login(self, app, client):
        response = client.get('/transactions')

        assert response.status_code == 401
        assert response.get_json()['code'] == 'unauthorized'

    def test_csrf_token_endpoint(self, app, client):
        response = client.get('/auth/csrf-token')

        assert response.status_code == 200
        assert response.get_json()['csrf_token']
