# ============================================================================
# REPOSITORY: Database operations the incident lifecycle is built on.
# Each function is a single, small write the lifecycle composes inside a
# transaction. There is no function that deletes an incident.
# ============================================================================

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import NotFound
from .models import ActivityLog, Incident, Verification

logger = logging.getLogger(__name__)


def insert_incident(reporter, **fields):
    # New incidents always start life as "pending" with nobody vouching yet
    fields.pop('status', None)
    fields.pop('verification_count', None)
    return Incident.objects.create(
        reporter=reporter,
        status=Incident.PENDING,
        verification_count=0,
        **fields,
    )


def get_incident(incident_id, for_update=False):
    queryset = Incident.objects.select_related('reporter', 'verified_by', 'resolved_by')
    if for_update:
        # Row lock: concurrent verifiers of the same incident queue up here.
        # No joins; Postgres refuses FOR UPDATE on the nullable side of an outer join.
        queryset = Incident.objects.select_for_update()
    try:
        return queryset.get(incident_id=incident_id)
    except (Incident.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(detail="Incident not found.")


def insert_verification_if_absent(incident, actor, kind):
    """
    Record that `actor` verified `incident`.

    Returns the new Verification, or None if the actor had already verified
    it. The (incident, actor) unique constraint decides; the savepoint keeps
    the surrounding transaction usable after a collision.
    """
    try:
        with transaction.atomic():
            return Verification.objects.create(incident=incident, actor=actor, kind=kind)
    except IntegrityError:
        logger.info("Duplicate verification of incident %s by %s", incident.pk, actor.pk)
        return None


def increment_verification_count(incident_id):
    # F() makes the database do the +1, so two writers can't both read 2 and write 3
    Incident.objects.filter(incident_id=incident_id).update(
        verification_count=F('verification_count') + 1,
        updated_at=timezone.now(),
    )
    return Incident.objects.values_list('verification_count', flat=True).get(incident_id=incident_id)


def conditional_update_status(incident_id, expected_status, new_status, **changes):
    """
    Compare-and-swap on incident status.

    Only applies when the current status equals `expected_status`.
    Returns True when this call made the change, False when someone else
    already moved the incident on.
    """
    updated = Incident.objects.filter(
        incident_id=incident_id,
        status=expected_status,
    ).update(status=new_status, updated_at=timezone.now(), **changes)
    return updated == 1


def record_activity(actor, action, resource_type, resource_id=None, details=None):
    return ActivityLog.objects.create(
        actor=actor,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details or {},
    )
