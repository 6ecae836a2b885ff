"""
Incident lifecycle.

    pending ──► verified ──► resolved

- pending → verified: when the number of distinct verifications reaches
  the threshold, or immediately when an authority verifies directly.
- verified → resolved: only by an explicit resolve from an actor
  responsible for the incident's category.
- No other edges. Nothing goes back to pending; resolved is final.

Every check that can fail raises a typed error from rindwa.exceptions.
Status changes go through repository.conditional_update_status so that
only one of several racing requests performs a given transition.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from . import policy, repository
from .exceptions import DuplicateAction, InvalidTransition
from .models import Incident, Verification
from .notifications import IncidentNotifier

logger = logging.getLogger(__name__)

DEFAULT_VERIFICATION_THRESHOLD = 3

VALID_TRANSITIONS = {
    Incident.PENDING: {Incident.VERIFIED},
    Incident.VERIFIED: {Incident.RESOLVED},
    Incident.RESOLVED: set(),
}


def can_transition(from_status, to_status):
    return to_status in VALID_TRANSITIONS.get(from_status, set())


class IncidentLifecycle:

    def __init__(self, threshold=None, notifier=None):
        if threshold is None:
            threshold = getattr(settings, 'RINDWA_VERIFICATION_THRESHOLD', DEFAULT_VERIFICATION_THRESHOLD)
        if threshold < 1:
            raise ValueError("Verification threshold must be at least 1.")
        self.threshold = threshold
        self.notifier = notifier if notifier is not None else IncidentNotifier()

    # ------------------------------------------------------------------
    # CREATE
    # ------------------------------------------------------------------

    def create(self, actor, **fields):
        policy.authorize(actor.role, actor.organization_types, policy.CREATE_INCIDENT)

        with transaction.atomic():
            incident = repository.insert_incident(reporter=actor, **fields)
            repository.record_activity(
                actor, 'incident_created', 'incident', incident.pk,
                {'category': incident.category},
            )

        logger.info("Incident %s (%s) reported by %s", incident.pk, incident.category, actor.pk)
        self.notify('incident_created', incident, actor)
        return incident

    # ------------------------------------------------------------------
    # VERIFY
    # ------------------------------------------------------------------

    def verify(self, actor, incident_id):
        """
        Add `actor`'s verification to the incident.

        Citizens add a community verification that counts toward the
        threshold. Authorities responsible for the category verify directly.
        Returns the refreshed incident.
        """
        transitioned = False

        with transaction.atomic():
            incident = repository.get_incident(incident_id, for_update=True)

            if incident.reporter_id is not None and incident.reporter_id == actor.pk:
                raise DuplicateAction("You cannot verify an incident you reported.")

            policy.authorize(actor.role, actor.organization_types, policy.VERIFY_INCIDENT, incident.category)

            if incident.status == Incident.RESOLVED:
                raise InvalidTransition("Incident is already resolved.")

            direct = policy.is_direct_verifier(actor.role, actor.organization_types, incident.category)
            kind = Verification.DIRECT if direct else Verification.COMMUNITY

            if repository.insert_verification_if_absent(incident, actor, kind) is None:
                raise DuplicateAction("You have already verified this incident.")

            count = repository.increment_verification_count(incident.pk)

            if incident.status == Incident.PENDING:
                if direct:
                    transitioned = repository.conditional_update_status(
                        incident.pk, Incident.PENDING, Incident.VERIFIED,
                        verified_by=actor, verified_at=timezone.now(),
                    )
                elif count >= self.threshold:
                    transitioned = repository.conditional_update_status(
                        incident.pk, Incident.PENDING, Incident.VERIFIED,
                        verified_at=timezone.now(),
                    )

            repository.record_activity(
                actor, 'incident_verified', 'incident', incident.pk,
                {'kind': kind, 'verification_count': count, 'status_changed': transitioned},
            )

        incident = repository.get_incident(incident_id)
        if transitioned:
            logger.info(
                "Incident %s verified (%s, count=%d, threshold=%d)",
                incident.pk, kind, incident.verification_count, self.threshold,
            )
            self.notify('incident_verified', incident, actor)
        return incident

    # ------------------------------------------------------------------
    # RESOLVE
    # ------------------------------------------------------------------

    def resolve(self, actor, incident_id):
        incident = repository.get_incident(incident_id)

        # Authorization first: a fire crew gets "forbidden" on a security
        # incident no matter what state it is in
        policy.authorize(actor.role, actor.organization_types, policy.RESOLVE_INCIDENT, incident.category)

        if not can_transition(incident.status, Incident.RESOLVED):
            raise InvalidTransition(f"Only verified incidents can be resolved (current status: {incident.status}).")

        with transaction.atomic():
            resolved = repository.conditional_update_status(
                incident.pk, Incident.VERIFIED, Incident.RESOLVED,
                resolved_by=actor, resolved_at=timezone.now(),
            )
            if not resolved:
                # Someone else resolved it between our read and our write
                raise InvalidTransition("Incident is no longer in the verified state.")
            repository.record_activity(actor, 'incident_resolved', 'incident', incident.pk)

        incident = repository.get_incident(incident_id)
        logger.info("Incident %s resolved by %s", incident.pk, actor.pk)
        self.notify('incident_resolved', incident, actor)
        return incident

    # ------------------------------------------------------------------
    # NOTIFY
    # ------------------------------------------------------------------

    def notify(self, event, incident, actor):
        # Runs after the incident change has committed; a failure here is
        # logged and the caller still gets the stored incident
        try:
            getattr(self.notifier, event)(incident, actor)
        except Exception:
            logger.warning("Sending %s notifications for incident %s failed", event, incident.pk, exc_info=True)
