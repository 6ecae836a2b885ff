import itertools

import pytest
from rest_framework.test import APIClient

from rindwa import policy, services
from rindwa.authentication import create_access_token, hash_password
from rindwa.models import Incident, Organization, User

_emails = itertools.count(1)


# =============================================================
# ENVIRONMENT
# =============================================================

@pytest.fixture(autouse=True)
def _test_settings(settings):
    # Fast hashing, default threshold, no outbound calls
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    settings.RINDWA_VERIFICATION_THRESHOLD = 3
    settings.RINDWA_JWT_SECRET = 'test-signing-key-with-enough-length-for-hs256'
    settings.GOOGLE_MAPS_API_KEY = None
    settings.PUSH_GATEWAY_URL = None
    settings.PUSH_GATEWAY_TOKEN = None
    settings.SUPABASE_URL = 'https://project.supabase.co'
    settings.SUPABASE_SERVICE_ROLE_KEY = 'service-role-key'
    settings.SUPABASE_MEDIA_BUCKET = 'incident-media'
    services._supabase = None
    yield
    services._supabase = None


# =============================================================
# FACTORIES
# =============================================================

@pytest.fixture
def make_org(db):
    def _make(name='Kigali Station', types=None):
        return Organization.objects.create(name=name, types=list(types or [policy.ORG_POLICE]))
    return _make


@pytest.fixture
def make_user(db):
    def _make(role=policy.CITIZEN, organization=None, email=None, password='correct-horse', **extra):
        return User.objects.create(
            email=email or f'user{next(_emails)}@example.com',
            password_hash=hash_password(password),
            full_name=extra.pop('full_name', f'{role.title()} User'),
            role=role,
            organization=organization,
            **extra,
        )
    return _make


@pytest.fixture
def make_incident(db, make_user):
    def _make(reporter=None, category=policy.FIRE, status=Incident.PENDING, title='Fire on Oak St', **extra):
        if reporter is None:
            reporter = make_user()
        return Incident.objects.create(
            title=title,
            description=extra.pop('description', 'Smoke coming from a house'),
            category=category,
            status=status,
            reporter=reporter,
            **extra,
        )
    return _make


# =============================================================
# CLIENTS
# =============================================================

@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    # Real signed token, so requests go through BearerTokenAuthentication
    def _client(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {create_access_token(user)}')
        return client
    return _client


# =============================================================
# COMMON ACTORS
# =============================================================

@pytest.fixture
def citizen(make_user):
    return make_user(policy.CITIZEN, full_name='Alice Reporter')


@pytest.fixture
def fire_org(make_org):
    return make_org('Kigali Fire Brigade', [policy.ORG_FIRE])


@pytest.fixture
def police_org(make_org):
    return make_org('Remera Police Station', [policy.ORG_POLICE])


@pytest.fixture
def firefighter(make_user, fire_org):
    return make_user(policy.FIRE_DEPT, organization=fire_org, full_name='Eric Firefighter')


@pytest.fixture
def police_officer(make_user, police_org):
    return make_user(policy.POLICE, organization=police_org)


@pytest.fixture
def super_admin(make_user):
    return make_user(policy.SUPER_ADMIN)
