"""
Tests for signup, login and bearer tokens.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from rindwa import policy
from rindwa.authentication import (
    JWT_ALGORITHM,
    authenticate_credentials,
    create_access_token,
    decode_access_token,
    verify_password,
)
from rindwa.exceptions import Unauthenticated
from rindwa.models import User

pytestmark = pytest.mark.django_db

SIGNUP_URL = '/api/auth/signup/'
LOGIN_URL = '/api/auth/login/'
ME_URL = '/api/auth/me/'


# =============================================================
# SIGNUP
# =============================================================

class TestSignUp:

    def test_signup_creates_citizen_and_returns_token(self, api_client):
        response = api_client.post(SIGNUP_URL, {
            'email': 'New.Person@Example.com',
            'password': 'long-enough-password',
            'full_name': 'New Person',
        }, format='json')

        assert response.status_code == 201
        body = response.json()
        assert body['user']['role'] == policy.CITIZEN
        assert body['user']['email'] == 'new.person@example.com'
        assert body['token_type'] == 'Bearer'
        assert body['access_token']

        user = User.objects.get(email='new.person@example.com')
        assert user.password_hash != 'long-enough-password'
        assert verify_password('long-enough-password', user.password_hash)

    def test_role_in_request_is_ignored(self, api_client):
        response = api_client.post(SIGNUP_URL, {
            'email': 'sneaky@example.com',
            'password': 'long-enough-password',
            'full_name': 'Sneaky',
            'role': policy.SUPER_ADMIN,
        }, format='json')
        assert response.status_code == 201
        assert User.objects.get(email='sneaky@example.com').role == policy.CITIZEN

    def test_duplicate_email_rejected(self, api_client, make_user):
        make_user(email='taken@example.com')
        response = api_client.post(SIGNUP_URL, {
            'email': 'TAKEN@example.com', 'password': 'long-enough-password', 'full_name': 'X',
        }, format='json')
        assert response.status_code == 400
        assert response.json()['error'] == 'validation_error'

    def test_short_password_rejected(self, api_client):
        response = api_client.post(SIGNUP_URL, {
            'email': 'short@example.com', 'password': 'short', 'full_name': 'X',
        }, format='json')
        assert response.status_code == 400


# =============================================================
# LOGIN
# =============================================================

class TestLogin:

    def test_login_returns_usable_token(self, api_client, make_user):
        user = make_user(policy.MODERATOR, email='mod@example.com', password='moderator-pass')
        response = api_client.post(LOGIN_URL, {'email': 'mod@example.com', 'password': 'moderator-pass'}, format='json')
        assert response.status_code == 200
        assert response.json()['user']['role'] == policy.MODERATOR

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.json()['access_token']}")
        me = api_client.get(ME_URL)
        assert me.status_code == 200
        assert me.json()['user_id'] == str(user.pk)

    def test_wrong_password(self, api_client, make_user):
        make_user(email='someone@example.com', password='right-password')
        response = api_client.post(LOGIN_URL, {'email': 'someone@example.com', 'password': 'wrong'}, format='json')
        assert response.status_code == 401
        assert response.json()['error'] == 'unauthenticated'

    def test_unknown_email_same_message_as_wrong_password(self, make_user):
        make_user(email='someone@example.com', password='right-password')
        with pytest.raises(Unauthenticated) as unknown:
            authenticate_credentials('nobody@example.com', 'right-password')
        with pytest.raises(Unauthenticated) as wrong:
            authenticate_credentials('someone@example.com', 'wrong-password')
        assert str(unknown.value.detail) == str(wrong.value.detail)

    def test_email_lookup_is_case_insensitive(self, make_user):
        user = make_user(email='case@example.com', password='right-password')
        assert authenticate_credentials('  CASE@example.com ', 'right-password') == user

    def test_inactive_account_cannot_login(self, make_user):
        make_user(email='gone@example.com', password='right-password', is_active=False)
        with pytest.raises(Unauthenticated):
            authenticate_credentials('gone@example.com', 'right-password')


# =============================================================
# TOKENS
# =============================================================

class TestTokens:

    def test_claims(self, make_user, fire_org):
        user = make_user(policy.FIRE_DEPT, organization=fire_org)
        claims = decode_access_token(create_access_token(user))
        assert claims['sub'] == str(user.pk)
        assert claims['role'] == policy.FIRE_DEPT
        assert claims['org'] == str(fire_org.pk)

    def test_expired_token_rejected(self, api_client, citizen, settings):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {'sub': str(citizen.pk), 'iat': past, 'exp': past + timedelta(minutes=5)},
            settings.RINDWA_JWT_SECRET, algorithm=JWT_ALGORITHM,
        )
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = api_client.get(ME_URL)
        assert response.status_code == 401
        assert response.json()['error'] == 'unauthenticated'

    def test_token_signed_with_other_key_rejected(self, api_client, citizen):
        token = jwt.encode(
            {'sub': str(citizen.pk), 'exp': datetime.now(timezone.utc) + timedelta(minutes=5)},
            'a-completely-different-signing-key-for-tests', algorithm=JWT_ALGORITHM,
        )
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        assert api_client.get(ME_URL).status_code == 401

    def test_garbage_token_rejected(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not.a.jwt')
        assert api_client.get(ME_URL).status_code == 401

    def test_malformed_header_rejected(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer')
        assert api_client.get(ME_URL).status_code == 401

    def test_no_token_is_401_not_403(self, api_client):
        response = api_client.get(ME_URL)
        assert response.status_code == 401
        assert response['WWW-Authenticate'].startswith('Bearer')

    def test_role_is_read_from_database_each_request(self, client_for, make_user):
        officer = make_user(policy.POLICE)
        client = client_for(officer)
        assert client.get('/api/incidents/', {'scope': 'organization'}).status_code == 200

        # Demoted after the token was issued
        User.objects.filter(pk=officer.pk).update(role=policy.CITIZEN)
        response = client.get('/api/incidents/', {'scope': 'organization'})
        assert response.status_code == 403

    def test_deactivated_user_token_stops_working(self, client_for, citizen):
        client = client_for(citizen)
        assert client.get(ME_URL).status_code == 200
        User.objects.filter(pk=citizen.pk).update(is_active=False)
        assert client.get(ME_URL).status_code == 401

    def test_token_for_deleted_user_rejected(self, client_for, make_user):
        user = make_user()
        client = client_for(user)
        user.delete()
        assert client.get(ME_URL).status_code == 401
