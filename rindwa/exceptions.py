# ============================================================================
# ERRORS: Every failure a client can see has a kind ("tag") plus a message.
# The tag lets the app tell "you may not do this" apart from "this does not
# exist" or "this incident is not in the right state", without parsing text.
# Response body shape: {"error": "<kind>", "detail": ...}
# ============================================================================

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


UNAUTHENTICATED = 'unauthenticated'
FORBIDDEN = 'forbidden'
NOT_FOUND = 'not_found'
INVALID_TRANSITION = 'invalid_transition'
DUPLICATE_ACTION = 'duplicate_action'
VALIDATION_ERROR = 'validation_error'
SERVER_ERROR = 'server_error'


class Unauthenticated(exceptions.AuthenticationFailed):
    # No credential, or a credential we cannot trust (bad signature, expired)
    error_kind = UNAUTHENTICATED
    default_detail = 'Authentication credentials were not provided or are invalid.'
    default_code = UNAUTHENTICATED


class Forbidden(exceptions.PermissionDenied):
    # Valid credential, but the policy says no
    error_kind = FORBIDDEN
    default_code = FORBIDDEN


class NotFound(exceptions.NotFound):
    error_kind = NOT_FOUND
    default_code = NOT_FOUND


class InvalidTransition(exceptions.APIException):
    # Incident is not in the state the requested transition starts from
    status_code = status.HTTP_409_CONFLICT
    error_kind = INVALID_TRANSITION
    default_detail = 'Invalid incident status transition.'
    default_code = INVALID_TRANSITION


class DuplicateAction(exceptions.APIException):
    # Actor already verified this incident, or tried to verify their own report
    status_code = status.HTTP_409_CONFLICT
    error_kind = DUPLICATE_ACTION
    default_detail = 'This action was already performed.'
    default_code = DUPLICATE_ACTION


class ValidationError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    error_kind = VALIDATION_ERROR
    default_detail = 'Invalid input.'
    default_code = VALIDATION_ERROR


def error_kind_for(exc):
    """Map our errors and the framework's built-in ones onto one set of tags."""
    kind = getattr(exc, 'error_kind', None)
    if kind:
        return kind
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return UNAUTHENTICATED
    if isinstance(exc, (exceptions.PermissionDenied, DjangoPermissionDenied)):
        return FORBIDDEN
    if isinstance(exc, (exceptions.NotFound, Http404)):
        return NOT_FOUND
    if isinstance(exc, (exceptions.ValidationError, exceptions.ParseError)):
        return VALIDATION_ERROR
    if isinstance(exc, exceptions.APIException):
        return exc.default_code
    return SERVER_ERROR


def rindwa_exception_handler(exc, context):
    # rest_framework.views pulls in the authentication classes, which import this module
    from rest_framework.views import exception_handler as drf_exception_handler

    # Let DRF build the response first (sets status codes, auth headers)
    response = drf_exception_handler(exc, context)

    if response is None:
        # Anything DRF doesn't know is a bug or an outage (e.g. database down).
        # Log the traceback and fail the request; never pretend it worked.
        view = context.get('view')
        logger.exception("Unhandled error in %s", view.__class__.__name__ if view else 'unknown view')
        return Response(
            {"error": SERVER_ERROR, "detail": "Internal server error."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    data = response.data
    # Unwrap {"detail": "..."} so the message sits next to the tag
    if isinstance(data, dict) and set(data) == {'detail'}:
        data = data['detail']

    response.data = {"error": error_kind_for(exc), "detail": data}
    return response
