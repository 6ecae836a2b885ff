# ============================================================================
# NOTIFICATIONS: Tell people when an incident is reported, verified, resolved.
# Two channels:
#   1. In-app inbox  -> rows in tbl_notifications (always written)
#   2. Push gateway  -> HTTP POST to PUSH_GATEWAY_URL (only if configured),
#                       which fans out to phones (Firebase) on its side
# Called by the lifecycle AFTER the incident change has been committed.
# ============================================================================

import logging

import requests
from django.conf import settings
from django.db import transaction
from django.db.models import Q

from . import policy
from .models import Notification, NotificationPreference, Organization, User, Verification

logger = logging.getLogger(__name__)

PUSH_TIMEOUT_SECONDS = 5


def build_message(incident, category):
    # Same wording the mobile app shows in its notification banner
    if category == Notification.INCIDENT_CREATED:
        title = f"New {incident.category} incident reported"
        body = f"{incident.title} - {incident.location_address or 'Location not specified'}"
    elif category == Notification.INCIDENT_VERIFIED:
        title = "Incident Verified"
        body = f"{incident.title} has been verified"
    elif category == Notification.INCIDENT_RESOLVED:
        title = "Incident Resolved"
        body = f"{incident.title} has been marked as resolved"
    else:
        raise ValueError(f"Unknown notification category: {category}")
    return title, body


def responsible_organization_ids(incident_category):
    org_type = policy.CATEGORY_ORGANIZATION_TYPE.get(incident_category)
    # types is a JSON list; filtered here so it works on every database backend
    return [
        org_id for org_id, types in Organization.objects.values_list('organization_id', 'types')
        if org_type in (types or [])
    ]


def recipients_for(incident, category, exclude_user=None):
    """
    People involved in this incident whose preferences allow this kind of
    notification: the reporter, everyone who verified it, staff and
    moderators of the agencies responsible for its category, and super admins.
    """
    staff_roles = policy.STAFF_ROLES | {policy.MODERATOR}
    unattached_roles = [
        role for role, org_type in policy.ROLE_ORGANIZATION_TYPE.items()
        if org_type == policy.CATEGORY_ORGANIZATION_TYPE.get(incident.category)
    ]

    involved = (
        Q(user_id=incident.reporter_id)
        | Q(user_id__in=Verification.objects.filter(incident=incident).values('actor_id'))
        | Q(role__in=staff_roles, organization_id__in=responsible_organization_ids(incident.category))
        | Q(role__in=unattached_roles, organization__isnull=True)
        | Q(role=policy.SUPER_ADMIN)
    )
    users = User.objects.filter(involved, is_active=True)
    if exclude_user is not None:
        users = users.exclude(user_id=exclude_user.user_id)

    # Users who switched this category off; no preference row means "send everything"
    opted_out = NotificationPreference.objects.filter(**{category: False}).values('user_id')
    return users.exclude(user_id__in=opted_out).order_by('created_at')


class IncidentNotifier:

    def __init__(self, push_url=None, push_token=None):
        self.push_url = push_url if push_url is not None else getattr(settings, 'PUSH_GATEWAY_URL', None)
        self.push_token = push_token if push_token is not None else getattr(settings, 'PUSH_GATEWAY_TOKEN', None)

    def incident_created(self, incident, actor=None):
        return self.dispatch(incident, Notification.INCIDENT_CREATED, actor)

    def incident_verified(self, incident, actor=None):
        return self.dispatch(incident, Notification.INCIDENT_VERIFIED, actor)

    def incident_resolved(self, incident, actor=None):
        return self.dispatch(incident, Notification.INCIDENT_RESOLVED, actor)

    def dispatch(self, incident, category, actor=None):
        title, body = build_message(incident, category)

        # The person who caused the event doesn't need to be told about it
        recipients = list(recipients_for(incident, category, exclude_user=actor))
        with transaction.atomic():
            Notification.objects.bulk_create([
                Notification(
                    recipient=user,
                    incident=incident,
                    title=title,
                    message=body,
                    category=category,
                )
                for user in recipients
            ])
        logger.info("Queued %d '%s' notifications for incident %s", len(recipients), category, incident.pk)

        if recipients:
            self.push(incident, category, title, body, recipients)
        return len(recipients)

    def push(self, incident, category, title, body, recipients):
        if not self.push_url:
            return False

        headers = {'Content-Type': 'application/json'}
        if self.push_token:
            headers['Authorization'] = f"Bearer {self.push_token}"

        payload = {
            'title': title,
            'body': body,
            'incidentId': str(incident.pk),
            'category': category,
            'userIds': [str(user.user_id) for user in recipients],
        }

        try:
            response = requests.post(self.push_url, json=payload, headers=headers, timeout=PUSH_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as e:
            # In-app notifications are already stored; a push outage only loses the banner
            logger.warning("Push gateway delivery failed for incident %s: %s", incident.pk, e)
            return False
        return True
