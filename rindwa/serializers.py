# rindwa/serializers.py
from django.db import transaction
from rest_framework import serializers

from . import policy
from .authentication import hash_password
from .models import (
    ActivityLog,
    EmergencyContact,
    Incident,
    IncidentMedia,
    Invitation,
    Notification,
    NotificationPreference,
    Organization,
    User,
    Verification,
)


# ============================================================================
# AUTH
# ============================================================================

# Serializer for signup: anyone can create an account, always as a citizen
class SignUpSerializer(serializers.ModelSerializer):
    # Define 'password' field for input only
    password = serializers.CharField(write_only=True, min_length=8, max_length=256)

    class Meta:
        model = User
        fields = ('email', 'password', 'full_name', 'phone')

    def validate_email(self, value):
        email = value.strip().lower()
        if User.objects.filter(email=email).exists():
            raise serializers.ValidationError("An account with this email already exists.")
        return email

    # Hash the password; the role is not client-controlled
    def create(self, validated_data):
        password = validated_data.pop('password')
        validated_data['password_hash'] = hash_password(password)
        validated_data['role'] = policy.CITIZEN
        return User.objects.create(**validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField(write_only=True)


# Serializer for the signed-in user's own view of their account (no password_hash)
class UserSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = (
            'user_id', 'email', 'full_name', 'phone', 'role',
            'organization', 'organization_name', 'is_active', 'created_at',
        )
        read_only_fields = fields


# Profile = the user's own account plus some activity numbers
class ProfileSerializer(serializers.ModelSerializer):
    reports_submitted = serializers.SerializerMethodField(read_only=True)
    verifications_given = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = (
            'user_id', 'email', 'full_name', 'phone', 'role', 'organization',
            'reports_submitted', 'verifications_given', 'created_at',
        )
        # Only name and phone are self-service; role changes are administrative
        read_only_fields = ('user_id', 'email', 'role', 'organization', 'created_at')

    def get_reports_submitted(self, obj):
        return obj.reported_incidents.count()

    def get_verifications_given(self, obj):
        return obj.verifications.count()


# ============================================================================
# INCIDENTS
# ============================================================================

# Serializer for receiving new incidents (input from mobile/web app)
class IncidentCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Incident
        fields = (
            'title',
            'description',
            'category',
            'location_address',
            'latitude',
            'longitude',
        )
        extra_kwargs = {
            'location_address': {'required': False},
            'latitude': {'required': False},
            'longitude': {'required': False},
        }

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title cannot be blank.")
        return value

    def validate(self, attrs):
        # Coordinates only make sense as a pair
        has_lat = attrs.get('latitude') is not None
        has_lng = attrs.get('longitude') is not None
        if has_lat != has_lng:
            raise serializers.ValidationError("Latitude and longitude must be provided together.")
        if has_lat and not (-90 <= attrs['latitude'] <= 90 and -180 <= attrs['longitude'] <= 180):
            raise serializers.ValidationError("Coordinates are out of range.")
        return attrs


# Serializer for reading incidents (output to feeds and dashboards)
class IncidentSerializer(serializers.ModelSerializer):
    # Display names instead of bare UUIDs
    reporter_name = serializers.SerializerMethodField(read_only=True)
    verified_by_name = serializers.CharField(source='verified_by.full_name', read_only=True, default=None)
    resolved_by_name = serializers.CharField(source='resolved_by.full_name', read_only=True, default=None)

    class Meta:
        model = Incident
        fields = (
            'incident_id',
            'title',
            'description',
            'category',
            'status',
            'reporter',
            'reporter_name',
            'location_address',
            'latitude',
            'longitude',
            'verification_count',
            'verified_by',
            'verified_by_name',
            'verified_at',
            'resolved_by',
            'resolved_by_name',
            'resolved_at',
            'created_at',
            'updated_at',
        )
        read_only_fields = fields

    def get_reporter_name(self, obj):
        if obj.reporter:
            return obj.reporter.full_name
        return "N/A"  # Reporter deleted their account


class VerificationSerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source='actor.full_name', read_only=True)

    class Meta:
        model = Verification
        fields = ('verification_id', 'incident', 'actor', 'actor_name', 'kind', 'created_at')
        read_only_fields = fields


# Serializer for evidence uploads attached to an incident
class IncidentMediaSerializer(serializers.ModelSerializer):
    # This field handles the incoming file data from the app
    uploaded_file = serializers.FileField(write_only=True)

    class Meta:
        model = IncidentMedia
        # 'uploaded_file' is used for input, 'file_url' for output
        fields = ('media_id', 'incident', 'file_url', 'file_type', 'uploaded_by', 'uploaded_at', 'uploaded_file')
        read_only_fields = ('media_id', 'incident', 'file_url', 'uploaded_by', 'uploaded_at')


# ============================================================================
# EMERGENCY CONTACTS
# ============================================================================

class EmergencyContactSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmergencyContact
        fields = ('contact_id', 'name', 'phone', 'relationship', 'is_primary', 'created_at')
        read_only_fields = ('contact_id', 'created_at')

    def _demote_other_primaries(self, owner, keep=None):
        others = EmergencyContact.objects.filter(owner=owner, is_primary=True)
        if keep is not None:
            others = others.exclude(contact_id=keep.contact_id)
        others.update(is_primary=False)

    # A new primary replaces the old one in the same transaction
    def create(self, validated_data):
        owner = validated_data['owner']
        with transaction.atomic():
            if validated_data.get('is_primary'):
                self._demote_other_primaries(owner)
            return super().create(validated_data)

    def update(self, instance, validated_data):
        with transaction.atomic():
            if validated_data.get('is_primary'):
                self._demote_other_primaries(instance.owner, keep=instance)
            return super().update(instance, validated_data)


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ('notification_id', 'incident', 'title', 'message', 'category', 'read', 'created_at')
        read_only_fields = fields


class NotificationPreferenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationPreference
        fields = ('incident_created', 'incident_verified', 'incident_resolved', 'updated_at')
        read_only_fields = ('updated_at',)


# ============================================================================
# ADMINISTRATION
# ============================================================================

class OrganizationSerializer(serializers.ModelSerializer):
    # Handy for admin screens: which incident categories this agency covers
    incident_categories = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Organization
        fields = (
            'organization_id', 'name', 'types', 'incident_categories', 'description',
            'address', 'contact_email', 'contact_phone', 'is_active', 'created_at', 'updated_at',
        )
        read_only_fields = ('organization_id', 'created_at', 'updated_at')

    def validate_types(self, value):
        if not isinstance(value, list) or not value:
            raise serializers.ValidationError("Provide at least one organization type.")
        unknown = [t for t in value if t not in policy.ORGANIZATION_TYPES]
        if unknown:
            raise serializers.ValidationError(f"Unknown organization type(s): {', '.join(map(str, unknown))}.")
        # Keep order stable, drop repeats
        return list(dict.fromkeys(value))

    def get_incident_categories(self, obj):
        return sorted(policy.categories_for_organization_types(obj.types))


# Serializer used by admins/moderators to change a user's role, organization or status
class UserAdminSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = (
            'user_id', 'email', 'full_name', 'phone', 'role',
            'organization', 'organization_name', 'is_active', 'created_at',
        )
        read_only_fields = ('user_id', 'email', 'full_name', 'phone', 'created_at')


# Staff invitation; organization may be left out by a moderator (defaults to their own)
class InvitationSerializer(serializers.ModelSerializer):
    organization = serializers.PrimaryKeyRelatedField(queryset=Organization.objects.all(), required=False)
    organization_name = serializers.CharField(source='organization.name', read_only=True, default=None)

    class Meta:
        model = Invitation
        fields = (
            'invitation_id', 'email', 'full_name', 'phone', 'role',
            'organization', 'organization_name', 'invited_by', 'token',
            'status', 'expires_at', 'accepted_at', 'created_at',
        )
        read_only_fields = ('invitation_id', 'invited_by', 'token', 'status', 'expires_at', 'accepted_at', 'created_at')

    def validate_email(self, value):
        return value.strip().lower()


class InvitationAcceptSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=64)


class ActivityLogSerializer(serializers.ModelSerializer):
    actor_email = serializers.CharField(source='actor.email', read_only=True, default=None)

    class Meta:
        model = ActivityLog
        fields = ('log_id', 'actor', 'actor_email', 'action', 'resource_type', 'resource_id', 'details', 'created_at')
        read_only_fields = fields
