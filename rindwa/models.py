from django.db import models
from django.db.models import ProtectedError, Q
import uuid

from . import policy

# ============================================================================
# MODELS: Each class is a TABLE in the database, each field a COLUMN.
# Saving an instance writes a ROW into the matching table.
# ============================================================================

# ORGANIZATION MODEL - Responder agencies (police station, fire brigade, hospital)
# Who: Created and maintained by super admins
# Data: Name, contact details, and which kinds of incidents the agency handles
class Organization(models.Model):
    organization_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)

    # types = list of agency types, e.g. ["police"] or ["fire", "medical"]
    # The incident categories its staff may act on are derived from these
    # (see policy.CATEGORY_ORGANIZATION_TYPE)
    types = models.JSONField(default=list)

    description = models.TextField(blank=True, null=True)
    address = models.CharField(max_length=255, blank=True, null=True)
    contact_email = models.CharField(max_length=100, blank=True, null=True)
    contact_phone = models.CharField(max_length=20, blank=True, null=True)

    # Inactive organizations are kept for history but hidden from pickers
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tbl_organizations'
        verbose_name = 'Responder Organization'

    def __str__(self):
        return self.name


# USER MODEL - Everyone who signs in: citizens, responders, moderators, admins
# Who: Citizens sign up themselves (always as "citizen"); staff roles are
# handed out by a moderator or super admin
# Data: Login info, personal details, role, and optional organization
class User(models.Model):
    user_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # One email = one account
    email = models.CharField(unique=True, max_length=100)

    # password_hash = hashed with Django's password hasher (never plain text!)
    password_hash = models.CharField(max_length=255)

    full_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True, null=True)

    # Exactly one role at a time
    role = models.CharField(max_length=20, choices=policy.ROLE_CHOICES, default=policy.CITIZEN)

    # on_delete=SET_NULL = removing an organization leaves its staff unattached
    organization = models.ForeignKey(
        Organization,
        on_delete=models.SET_NULL,
        db_column='organization_id',
        related_name='members',
        blank=True,
        null=True,
    )

    # Deactivated accounts can no longer sign in or use existing tokens
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tbl_users'
        verbose_name = 'User Account'

    def __str__(self):
        return self.email

    # DRF's IsAuthenticated checks this on request.user
    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def organization_types(self):
        if self.organization_id is None or self.organization is None:
            return ()
        return tuple(self.organization.types or ())


class IncidentQuerySet(models.QuerySet):
    def delete(self):
        raise ProtectedError("Incidents are kept as an audit record and cannot be deleted.", set(self))


# INCIDENT MODEL - A problem reported by someone in the community
# Who: Created by any signed-in user; verified by the community or an
# authority; resolved by the responsible agency
# Data: What happened, where, who reported it, and its progress
class Incident(models.Model):
    PENDING = 'pending'
    VERIFIED = 'verified'
    RESOLVED = 'resolved'

    # Status only moves forward: pending → verified → resolved
    STATUS_CHOICES = [
        (PENDING, 'Pending'),     # Just reported, waiting for confirmation
        (VERIFIED, 'Verified'),   # Confirmed by enough people or by an authority
        (RESOLVED, 'Resolved'),   # Handled by the responsible agency (final)
    ]

    incident_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=150)
    description = models.TextField()
    category = models.CharField(max_length=20, choices=policy.CATEGORY_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)

    # If the reporter deletes their account, keep the incident but drop the link
    reporter = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        db_column='reporter_id',
        related_name='reported_incidents',
        blank=True,
        null=True,
    )

    # Where it happened: a human-readable address and/or GPS coordinates
    location_address = models.CharField(max_length=255, blank=True, null=True)
    latitude = models.DecimalField(max_digits=10, decimal_places=7, blank=True, null=True)
    longitude = models.DecimalField(max_digits=10, decimal_places=7, blank=True, null=True)

    # Number of distinct people who have verified this incident
    verification_count = models.PositiveIntegerField(default=0)

    # Set only when an authority verified it directly (not by community count)
    verified_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        db_column='verified_by',
        related_name='+',
        blank=True,
        null=True,
    )
    verified_at = models.DateTimeField(blank=True, null=True)

    resolved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        db_column='resolved_by',
        related_name='+',
        blank=True,
        null=True,
    )
    resolved_at = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = IncidentQuerySet.as_manager()

    class Meta:
        db_table = 'tbl_incidents'
        verbose_name = 'Incident Report'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.status})"

    def delete(self, *args, **kwargs):
        # Resolved incidents remain as the audit record of what happened
        raise ProtectedError("Incidents are kept as an audit record and cannot be deleted.", {self})


# VERIFICATION MODEL - "I can confirm this happened"
# One row per (incident, person); the unique constraint is what stops a
# person from being counted twice, even when two requests race
class Verification(models.Model):
    COMMUNITY = 'community'
    DIRECT = 'direct'

    KIND_CHOICES = [
        (COMMUNITY, 'Community'),   # Counts toward the automatic threshold
        (DIRECT, 'Direct'),         # Authority sign-off, verifies immediately
    ]

    verification_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    incident = models.ForeignKey(
        Incident,
        on_delete=models.PROTECT,
        db_column='incident_id',
        related_name='verifications',
    )
    actor = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        db_column='actor_id',
        related_name='verifications',
    )
    kind = models.CharField(max_length=10, choices=KIND_CHOICES, default=COMMUNITY)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tbl_verifications'
        verbose_name = 'Incident Verification'
        constraints = [
            models.UniqueConstraint(fields=['incident', 'actor'], name='one_verification_per_actor'),
        ]


# MEDIA MODEL - Photos/videos attached to an incident as evidence
# The file itself lives in Supabase Storage; we only keep its public URL
class IncidentMedia(models.Model):
    FILE_TYPE_CHOICES = [
        ('image', 'Image'),
        ('video', 'Video'),
    ]

    media_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    incident = models.ForeignKey(
        Incident,
        on_delete=models.PROTECT,
        db_column='incident_id',
        related_name='media',
    )
    file_url = models.CharField(max_length=255)
    file_type = models.CharField(max_length=10, choices=FILE_TYPE_CHOICES)
    uploaded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        db_column='uploaded_by',
        related_name='+',
        blank=True,
        null=True,
    )
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tbl_incident_media'
        verbose_name = 'Incident Media'


# EMERGENCY CONTACT MODEL - People to call when the user is in trouble
# Who: Each citizen manages their own list
# Rule: at most one contact per user is marked primary
class EmergencyContact(models.Model):
    contact_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        db_column='owner_id',
        related_name='emergency_contacts',
    )
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20)
    relationship = models.CharField(max_length=50)
    is_primary = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tbl_emergency_contacts'
        verbose_name = 'Emergency Contact'
        constraints = [
            models.UniqueConstraint(
                fields=['owner'],
                condition=Q(is_primary=True),
                name='one_primary_contact_per_owner',
            ),
        ]


# NOTIFICATION MODEL - In-app inbox entries about incident progress
class Notification(models.Model):
    INCIDENT_CREATED = 'incident_created'
    INCIDENT_VERIFIED = 'incident_verified'
    INCIDENT_RESOLVED = 'incident_resolved'

    CATEGORY_CHOICES = [
        (INCIDENT_CREATED, 'Incident Created'),
        (INCIDENT_VERIFIED, 'Incident Verified'),
        (INCIDENT_RESOLVED, 'Incident Resolved'),
    ]

    notification_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recipient = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        db_column='recipient_id',
        related_name='notifications',
    )
    incident = models.ForeignKey(
        Incident,
        on_delete=models.PROTECT,
        db_column='incident_id',
        related_name='+',
        blank=True,
        null=True,
    )
    title = models.CharField(max_length=150)
    message = models.TextField()
    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tbl_notifications'
        verbose_name = 'Notification'
        ordering = ['-created_at']


# NOTIFICATION PREFERENCE MODEL - Which incident events a user wants to hear about
# A user without a row gets every notification (all flags default to True)
class NotificationPreference(models.Model):
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        primary_key=True,
        db_column='user_id',
        related_name='notification_preference',
    )
    incident_created = models.BooleanField(default=True)
    incident_verified = models.BooleanField(default=True)
    incident_resolved = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tbl_notification_preferences'
        verbose_name = 'Notification Preference'


# ACTIVITY LOG MODEL - Append-only trail of who did what
# Written for incident transitions and administrative changes
class ActivityLog(models.Model):
    log_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        db_column='actor_id',
        related_name='+',
        blank=True,
        null=True,
    )
    action = models.CharField(max_length=50)
    resource_type = models.CharField(max_length=30)
    resource_id = models.CharField(max_length=64, blank=True, null=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tbl_activity_logs'
        verbose_name = 'Activity Log'
        ordering = ['-created_at']


# INVITATION MODEL - Onboarding of staff into an organization
# Who: Super admins invite into any organization, moderators into their own
# Flow: pending -> accepted (by the invited email's account) or revoked
class Invitation(models.Model):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REVOKED = 'revoked'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (ACCEPTED, 'Accepted'),
        (REVOKED, 'Revoked'),
    ]

    invitation_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(max_length=254)
    full_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True, null=True)
    role = models.CharField(max_length=20, choices=policy.ROLE_CHOICES)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        db_column='organization_id',
        related_name='invitations',
    )
    invited_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        db_column='invited_by',
        related_name='sent_invitations',
        blank=True,
        null=True,
    )

    # Shared with the invitee out of band; presented back when accepting
    token = models.CharField(max_length=64, unique=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    expires_at = models.DateTimeField()
    accepted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        db_column='accepted_by',
        related_name='+',
        blank=True,
        null=True,
    )
    accepted_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tbl_invitations'
        verbose_name = 'Invitation'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.email} -> {self.role}"
