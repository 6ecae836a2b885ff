"""
Bearer token authentication.

Access tokens are signed JWTs (PyJWT, HS256) carrying the user id, the role
at issue time, and the organization. They expire after
RINDWA_ACCESS_TOKEN_LIFETIME_MINUTES.

On every request the token only tells us *who* is calling; the role used for
authorization is always re-read from the database, so a demotion or a
deactivation takes effect on the next request, not at token expiry.

Delivery: `Authorization: Bearer <token>` header.
"""

import logging
from datetime import datetime, timedelta, timezone

import jwt  # PyJWT
from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from .exceptions import Unauthenticated
from .models import User

logger = logging.getLogger(__name__)

JWT_ALGORITHM = 'HS256'
AUTH_SCHEME = 'Bearer'


# =============================================================================
# PASSWORDS
# =============================================================================

def hash_password(raw_password):
    return make_password(raw_password)


def verify_password(raw_password, password_hash):
    if not password_hash:
        return False
    return check_password(raw_password, password_hash)


def authenticate_credentials(email, password):
    """Return the active user for these credentials, or raise Unauthenticated."""
    try:
        user = User.objects.select_related('organization').get(email=(email or '').strip().lower())
    except User.DoesNotExist:
        # Same message either way, so the response doesn't reveal which emails exist
        raise Unauthenticated("Invalid credentials.")

    if not verify_password(password, user.password_hash):
        raise Unauthenticated("Invalid credentials.")
    if not user.is_active:
        raise Unauthenticated("This account has been deactivated.")
    return user


# =============================================================================
# TOKEN CREATION
# =============================================================================

def access_token_lifetime():
    return timedelta(minutes=settings.RINDWA_ACCESS_TOKEN_LIFETIME_MINUTES)


def create_access_token(user):
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user.user_id),
        'role': user.role,
        'org': str(user.organization_id) if user.organization_id else None,
        'iat': now,
        'exp': now + access_token_lifetime(),
    }
    return jwt.encode(payload, settings.RINDWA_JWT_SECRET, algorithm=JWT_ALGORITHM)


def token_response(user):
    return {
        'access_token': create_access_token(user),
        'token_type': AUTH_SCHEME,
        'expires_in': int(access_token_lifetime().total_seconds()),
    }


# =============================================================================
# TOKEN VALIDATION
# =============================================================================

def decode_access_token(token):
    """Check signature and expiry. Returns the claims or raises Unauthenticated."""
    try:
        return jwt.decode(
            token,
            settings.RINDWA_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={'require': ['sub', 'exp']},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired.")
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid JWT: %s", e)
        raise Unauthenticated("Invalid token.")


def resolve_token(token):
    """Token -> current, active user (with up-to-date role and organization)."""
    claims = decode_access_token(token)
    try:
        user = User.objects.select_related('organization').get(user_id=claims['sub'])
    except (User.DoesNotExist, ValueError, DjangoValidationError):
        raise Unauthenticated("Token refers to an unknown account.")
    if not user.is_active:
        raise Unauthenticated("This account has been deactivated.")
    return user, claims


class BearerTokenAuthentication(BaseAuthentication):
    # Plugged into DRF via REST_FRAMEWORK['DEFAULT_AUTHENTICATION_CLASSES']

    def authenticate(self, request):
        header = get_authorization_header(request).split()
        if not header or header[0].lower() != AUTH_SCHEME.lower().encode():
            # No bearer token: anonymous; permission classes decide what that means
            return None

        if len(header) != 2:
            raise Unauthenticated("Invalid Authorization header. Expected 'Bearer <token>'.")

        try:
            token = header[1].decode()
        except UnicodeError:
            raise Unauthenticated("Invalid token encoding.")

        return resolve_token(token)

    def authenticate_header(self, request):
        # Makes DRF answer 401 (not 403) when credentials are missing
        return f'{AUTH_SCHEME} realm="api"'
