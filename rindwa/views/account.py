# ============================================================================
# ACCOUNT VIEWS: Things a user owns and manages for themself
# (emergency contacts, profile, notification inbox and preferences).
# Nobody else, including admins, reads or edits these through these routes.
# ============================================================================

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from .. import policy
from ..exceptions import Forbidden, NotFound
from ..models import EmergencyContact, Notification, NotificationPreference
from ..permissions import PolicyPermission
from ..serializers import (
    EmergencyContactSerializer,
    NotificationPreferenceSerializer,
    NotificationSerializer,
    ProfileSerializer,
)
from . import UUID_REGEX


# ============================================================================
# EMERGENCY CONTACT CRUD VIEW
# ============================================================================

class EmergencyContactViewSet(viewsets.ModelViewSet):
    # ENDPOINTS: GET, POST, PUT, PATCH, DELETE for the caller's own contacts
    # Used when: A citizen keeps the list of people to call in an emergency
    # Rule: marking one contact primary demotes the previous primary
    serializer_class = EmergencyContactSerializer
    lookup_value_regex = UUID_REGEX
    permission_classes = [PolicyPermission]
    policy_action = policy.MANAGE_OWN_CONTACTS

    def get_queryset(self):
        return EmergencyContact.objects.filter(owner=self.request.user).order_by('-is_primary', 'name')

    # Look the contact up across all owners so we can tell
    # "someone else's contact" (403) apart from "no such contact" (404)
    def get_object(self):
        try:
            contact = EmergencyContact.objects.get(contact_id=self.kwargs['pk'])
        except EmergencyContact.DoesNotExist:
            raise NotFound(detail="Contact not found.")
        if contact.owner_id != self.request.user.pk:
            raise Forbidden("You can only manage your own emergency contacts.")
        return contact

    def perform_create(self, serializer):
        serializer.save(owner=self.request.user)


# ============================================================================
# PROFILE VIEW
# ============================================================================

class ProfileAPIView(APIView):
    # ENDPOINTS: GET /profile/, PATCH /profile/
    # Output: Own account plus how many reports and verifications they made
    # Note: role and organization are read-only here
    permission_classes = [PolicyPermission]
    policy_action = policy.MANAGE_OWN_PROFILE

    def get(self, request):
        return Response(ProfileSerializer(request.user).data, status=status.HTTP_200_OK)

    def patch(self, request):
        serializer = ProfileSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_200_OK)


class NotificationPreferenceAPIView(APIView):
    # ENDPOINTS: GET, PATCH /profile/notification-preferences/
    # Row is created on first access with everything switched on
    permission_classes = [PolicyPermission]
    policy_action = policy.MANAGE_OWN_PROFILE

    def get_preference(self, request):
        preference, _ = NotificationPreference.objects.get_or_create(user=request.user)
        return preference

    def get(self, request):
        return Response(NotificationPreferenceSerializer(self.get_preference(request)).data, status=status.HTTP_200_OK)

    def patch(self, request):
        serializer = NotificationPreferenceSerializer(self.get_preference(request), data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=status.HTTP_200_OK)


# ============================================================================
# NOTIFICATION INBOX
# ============================================================================

class NotificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    # ENDPOINTS: GET /notifications/, POST /notifications/{id}/read/
    # Optional filter: ?unread=true
    serializer_class = NotificationSerializer
    lookup_value_regex = UUID_REGEX
    permission_classes = [PolicyPermission]
    policy_action = policy.MANAGE_OWN_PROFILE

    def get_queryset(self):
        queryset = Notification.objects.filter(recipient=self.request.user)
        if self.request.query_params.get('unread') in ('true', '1'):
            queryset = queryset.filter(read=False)
        return queryset.order_by('-created_at')

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        try:
            notification = Notification.objects.get(notification_id=pk)
        except Notification.DoesNotExist:
            raise NotFound(detail="Notification not found.")
        if notification.recipient_id != request.user.pk:
            raise Forbidden("You can only manage your own notifications.")

        notification.read = True
        notification.save(update_fields=['read'])
        return Response(NotificationSerializer(notification).data, status=status.HTTP_200_OK)
