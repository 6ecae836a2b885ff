# ============================================================================
# ADMIN VIEWS: Organization and user management for super admins and
# moderators, plus the activity log.
# Super admins see and manage everything; moderators only their own
# organization (and can never promote anyone to moderator or super admin).
# New staff join an organization by accepting an invitation.
# ============================================================================

import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from .. import policy, repository
from ..authentication import token_response
from ..exceptions import DuplicateAction, Forbidden, InvalidTransition, NotFound, ValidationError
from ..models import ActivityLog, Invitation, Organization, User
from ..permissions import PolicyPermission
from ..serializers import (
    ActivityLogSerializer,
    InvitationAcceptSerializer,
    InvitationSerializer,
    OrganizationSerializer,
    UserAdminSerializer,
    UserSerializer,
)
from . import UUID_REGEX

logger = logging.getLogger(__name__)


# ============================================================================
# ORGANIZATION ADMIN CRUD VIEW
# ============================================================================

class OrganizationViewSet(viewsets.ModelViewSet):
    # ENDPOINTS: GET, POST, PUT, PATCH, DELETE for responder organizations
    # Used when: Super admin sets up agencies (police, fire, medical...)
    # Moderators may read their own organization only
    serializer_class = OrganizationSerializer
    lookup_value_regex = UUID_REGEX
    permission_classes = [PolicyPermission]
    policy_actions = {
        'list': policy.VIEW_ORGANIZATIONS,
        'retrieve': policy.VIEW_ORGANIZATIONS,
        '*': policy.MANAGE_ORGANIZATIONS,
    }

    def get_queryset(self):
        queryset = Organization.objects.all().order_by('name')
        user = self.request.user
        if user.role != policy.SUPER_ADMIN:
            if user.organization_id is None:
                return queryset.none()
            queryset = queryset.filter(organization_id=user.organization_id)
        return queryset

    def perform_create(self, serializer):
        organization = serializer.save()
        repository.record_activity(
            self.request.user, 'organization_created', 'organization', organization.pk,
            {'types': organization.types},
        )

    def perform_update(self, serializer):
        organization = serializer.save()
        repository.record_activity(
            self.request.user, 'organization_updated', 'organization', organization.pk,
            {'fields': sorted(serializer.validated_data)},
        )

    def perform_destroy(self, instance):
        repository.record_activity(self.request.user, 'organization_deleted', 'organization', instance.pk, {'name': instance.name})
        instance.delete()


# ============================================================================
# USER MANAGEMENT VIEW
# ============================================================================

class UserAdminViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       mixins.UpdateModelMixin,
                       viewsets.GenericViewSet):
    # ENDPOINTS: GET (list/retrieve), PUT/PATCH for user accounts
    # Used when: Assigning roles, moving staff between organizations,
    # deactivating accounts
    # Input: role, organization, is_active
    serializer_class = UserAdminSerializer
    lookup_value_regex = UUID_REGEX
    permission_classes = [PolicyPermission]
    policy_action = policy.MANAGE_USERS

    def get_queryset(self):
        queryset = User.objects.all().select_related('organization').order_by('email')
        user = self.request.user
        if user.role != policy.SUPER_ADMIN:
            if user.organization_id is None:
                return queryset.none()
            queryset = queryset.filter(organization_id=user.organization_id)

        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)
        return queryset

    def get_object(self):
        try:
            target = User.objects.select_related('organization').get(user_id=self.kwargs['pk'])
        except User.DoesNotExist:
            raise NotFound(detail="User not found.")

        actor = self.request.user
        if actor.role != policy.SUPER_ADMIN and (actor.organization_id is None or target.organization_id != actor.organization_id):
            raise Forbidden("You can only manage users in your own organization.")
        return target

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        target = self.get_object()
        actor = request.user

        serializer = self.get_serializer(target, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        changes = serializer.validated_data

        new_role = changes.get('role')
        if not policy.can_manage_user(
            actor.pk, actor.role, actor.organization_id,
            target.pk, target.role, target.organization_id,
            new_role=new_role,
        ):
            raise Forbidden("You are not allowed to make this change to this user.")

        # Moving people between organizations is a super admin decision
        if 'organization' in changes and actor.role != policy.SUPER_ADMIN:
            new_org = changes['organization']
            if (new_org.pk if new_org else None) != target.organization_id:
                raise Forbidden("Only a super admin can change a user's organization.")

        before = {'role': target.role, 'organization': str(target.organization_id) if target.organization_id else None,
                  'is_active': target.is_active}
        with transaction.atomic():
            user = serializer.save()
            after = {'role': user.role, 'organization': str(user.organization_id) if user.organization_id else None,
                     'is_active': user.is_active}
            repository.record_activity(actor, 'user_updated', 'user', user.pk, {'before': before, 'after': after})

        if before['role'] != after['role']:
            logger.info("Role of user %s changed from %s to %s by %s", user.pk, before['role'], after['role'], actor.pk)
        return Response(self.get_serializer(user).data, status=status.HTTP_200_OK)


# ============================================================================
# INVITATIONS
# ============================================================================

class InvitationViewSet(mixins.ListModelMixin,
                        mixins.RetrieveModelMixin,
                        mixins.CreateModelMixin,
                        viewsets.GenericViewSet):
    # ENDPOINTS: GET (list/retrieve), POST for staff invitations,
    # POST /admin/invitations/{id}/revoke/
    # Used when: A moderator adds a responder to their organization, or a
    # super admin invites an organization's first administrator
    # Input: email, full_name, phone, role, organization (moderators: optional)
    # Output: The invitation, including the token the invitee accepts with
    serializer_class = InvitationSerializer
    lookup_value_regex = UUID_REGEX
    permission_classes = [PolicyPermission]
    policy_action = policy.MANAGE_USERS

    def get_queryset(self):
        queryset = Invitation.objects.all().select_related('organization')
        user = self.request.user
        if user.role != policy.SUPER_ADMIN:
            if user.organization_id is None:
                return queryset.none()
            queryset = queryset.filter(organization_id=user.organization_id)

        invitation_status = self.request.query_params.get('status')
        if invitation_status:
            queryset = queryset.filter(status=invitation_status)
        return queryset.order_by('-created_at')

    def perform_create(self, serializer):
        actor = self.request.user
        data = serializer.validated_data

        organization = data.get('organization') or actor.organization
        if organization is None:
            raise ValidationError({'organization': ['This field is required.']})

        if not policy.can_invite(actor.role, actor.organization_id, organization.pk, data['role']):
            raise Forbidden(f"You may not invite a '{data['role']}' into this organization.")

        if Invitation.objects.filter(email=data['email'], organization=organization, status=Invitation.PENDING).exists():
            raise DuplicateAction("There is already a pending invitation for this email.")

        lifetime = timedelta(days=settings.RINDWA_INVITATION_LIFETIME_DAYS)
        with transaction.atomic():
            invitation = serializer.save(
                organization=organization,
                invited_by=actor,
                token=secrets.token_urlsafe(32),
                expires_at=timezone.now() + lifetime,
            )
            repository.record_activity(
                actor, 'invitation_created', 'invitation', invitation.pk,
                {'email': invitation.email, 'role': invitation.role, 'organization': str(organization.pk)},
            )
        logger.info("Invitation %s (%s) created by %s", invitation.pk, invitation.role, actor.pk)

    # Custom action: POST /admin/invitations/{id}/revoke/
    @action(detail=True, methods=['post'])
    def revoke(self, request, pk=None):
        invitation = self.get_object()
        with transaction.atomic():
            revoked = Invitation.objects.filter(
                invitation_id=invitation.pk, status=Invitation.PENDING,
            ).update(status=Invitation.REVOKED)
            if not revoked:
                raise InvalidTransition(f"Only pending invitations can be revoked (current status: {invitation.status}).")
            repository.record_activity(request.user, 'invitation_revoked', 'invitation', invitation.pk)

        invitation.refresh_from_db()
        return Response(self.get_serializer(invitation).data, status=status.HTTP_200_OK)


class InvitationAcceptAPIView(APIView):
    # ENDPOINT: POST /auth/invitations/accept/
    # Used when: The invited person, signed in with the invited email,
    # redeems their invitation
    # Input: token
    # Output: The updated account and a fresh access token carrying the new role
    permission_classes = [PolicyPermission]
    policy_action = policy.MANAGE_OWN_PROFILE

    def post(self, request):
        serializer = InvitationAcceptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = request.user

        with transaction.atomic():
            try:
                invitation = Invitation.objects.select_for_update().get(token=serializer.validated_data['token'])
            except Invitation.DoesNotExist:
                raise NotFound(detail="Invitation not found.")

            if invitation.email != user.email.lower():
                raise Forbidden("This invitation was sent to a different email address.")
            if invitation.status != Invitation.PENDING:
                raise InvalidTransition(f"Invitation is already {invitation.status}.")
            if invitation.expires_at <= timezone.now():
                raise InvalidTransition("Invitation has expired.")

            before = {'role': user.role, 'organization': str(user.organization_id) if user.organization_id else None}
            user.role = invitation.role
            user.organization_id = invitation.organization_id
            user.save(update_fields=['role', 'organization', 'updated_at'])

            invitation.status = Invitation.ACCEPTED
            invitation.accepted_by = user
            invitation.accepted_at = timezone.now()
            invitation.save(update_fields=['status', 'accepted_by', 'accepted_at'])

            repository.record_activity(
                user, 'invitation_accepted', 'invitation', invitation.pk,
                {'before': before, 'after': {'role': user.role, 'organization': str(user.organization_id)}},
            )

        logger.info("User %s joined organization %s as %s", user.pk, user.organization_id, user.role)
        user = User.objects.select_related('organization').get(pk=user.pk)
        return Response({
            "user": UserSerializer(user).data,
            **token_response(user),
        }, status=status.HTTP_200_OK)


# ============================================================================
# ACTIVITY LOG VIEW
# ============================================================================

class ActivityLogViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    # ENDPOINT: GET /admin/activity/
    # Optional filters: ?action=incident_resolved&resource_id=<uuid>
    # Moderators see what members of their organization did
    serializer_class = ActivityLogSerializer
    permission_classes = [PolicyPermission]
    policy_action = policy.VIEW_ACTIVITY_LOG

    def get_queryset(self):
        queryset = ActivityLog.objects.all().select_related('actor')
        user = self.request.user
        if user.role != policy.SUPER_ADMIN:
            if user.organization_id is None:
                return queryset.none()
            queryset = queryset.filter(actor__organization_id=user.organization_id)

        params = self.request.query_params
        if params.get('action'):
            queryset = queryset.filter(action=params['action'])
        if params.get('resource_id'):
            queryset = queryset.filter(resource_id=params['resource_id'])
        return queryset.order_by('-created_at')
