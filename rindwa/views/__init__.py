# ============================================================================
# VIEWS: Request handlers. Each receives an HTTP request from the app, checks
# it against the authorization policy, runs the matching lifecycle/service
# operation, and sends back a JSON response.
# ============================================================================

import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from .. import policy, repository
from ..authentication import AUTH_SCHEME, authenticate_credentials, token_response
from ..exceptions import ValidationError
from ..lifecycle import IncidentLifecycle
from ..models import Incident, IncidentMedia, Verification
from ..permissions import PolicyPermission
from ..serializers import (
    IncidentCreateSerializer,
    IncidentMediaSerializer,
    IncidentSerializer,
    LoginSerializer,
    SignUpSerializer,
    UserSerializer,
    VerificationSerializer,
)
from ..services import reverse_geocode, upload_incident_media

logger = logging.getLogger(__name__)

UUID_REGEX = r'[0-9a-fA-F-]{36}'


# ============================================================================
# AUTHENTICATION VIEWS
# ============================================================================

class SignUpAPIView(APIView):
    # ENDPOINT: POST /auth/signup/
    # Used when: Someone creates a new account from the app
    # Input: email, password, full_name, optional phone
    # Output: The new account (always a citizen) and an access token
    authentication_classes = []
    permission_classes = [PolicyPermission]
    policy_action = policy.SIGN_UP

    def post(self, request):
        serializer = SignUpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("New citizen account %s", user.pk)
        return Response({
            "user": UserSerializer(user).data,
            **token_response(user),
        }, status=status.HTTP_201_CREATED)


class LoginAPIView(APIView):
    # ENDPOINT: POST /auth/login/
    # Used when: Any user (citizen, responder, moderator, admin) signs in
    # Input: email and password
    # Output: User data with role, and a signed access token
    authentication_classes = []
    permission_classes = [PolicyPermission]
    policy_action = policy.SIGN_IN

    # No authenticator on this view; keep bad credentials a 401, not a 403
    def get_authenticate_header(self, request):
        return f'{AUTH_SCHEME} realm="api"'

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # Raises Unauthenticated (401) on bad email/password or inactive account
        user = authenticate_credentials(
            serializer.validated_data['email'],
            serializer.validated_data['password'],
        )
        return Response({
            "user": UserSerializer(user).data,
            **token_response(user),
        }, status=status.HTTP_200_OK)


class MeAPIView(APIView):
    # ENDPOINT: GET /auth/me/
    # Used when: The app restores a session and needs the current role
    permission_classes = [PolicyPermission]
    policy_action = policy.MANAGE_OWN_PROFILE

    def get(self, request):
        return Response(UserSerializer(request.user).data, status=status.HTTP_200_OK)


# ============================================================================
# INCIDENT VIEW
# ============================================================================

class IncidentViewSet(mixins.CreateModelMixin,
                      mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      viewsets.GenericViewSet):
    # ENDPOINTS: GET (list/retrieve), POST (create), POST verify, POST resolve
    # Used when: Citizens report and vouch for incidents, responders resolve them
    # Note: no update or delete routes; incidents are only changed through
    # verify/resolve and are never removed

    queryset = Incident.objects.all().select_related('reporter', 'verified_by', 'resolved_by')
    lookup_value_regex = UUID_REGEX
    permission_classes = [PolicyPermission]
    policy_actions = {
        'list': policy.VIEW_INCIDENT,
        'retrieve': policy.VIEW_INCIDENT,
        'create': policy.CREATE_INCIDENT,
        # Category-specific authority is checked by the lifecycle once the
        # incident is loaded; here we only need a signed-in viewer
        'verify': policy.VIEW_INCIDENT,
        'resolve': policy.VIEW_INCIDENT,
        # OPTIONS
        'metadata': policy.VIEW_INCIDENT,
    }

    def get_serializer_class(self):
        if self.action == 'create':
            return IncidentCreateSerializer
        return IncidentSerializer

    def get_lifecycle(self):
        return IncidentLifecycle()

    # Filters: ?status=pending&category=fire&scope=mine|organization
    def get_queryset(self):
        queryset = self.queryset.all()
        if self.action != 'list':
            return queryset

        params = self.request.query_params

        status_filter = params.get('status')
        if status_filter:
            if status_filter not in dict(Incident.STATUS_CHOICES):
                raise ValidationError({"status": f"Unknown status '{status_filter}'."})
            queryset = queryset.filter(status=status_filter)

        category = params.get('category')
        if category:
            if category not in policy.CATEGORIES:
                raise ValidationError({"category": f"Unknown category '{category}'."})
            queryset = queryset.filter(category=category)

        scope = params.get('scope')
        user = self.request.user
        if scope == 'mine':
            queryset = queryset.filter(reporter=user)
        elif scope == 'organization':
            # The organization queue is filtered here on the server, not in the UI:
            # a fire crew only ever receives fire incidents
            policy.authorize(user.role, user.organization_types, policy.VIEW_ORGANIZATION_INCIDENTS)
            allowed = policy.incident_categories(user.role, user.organization_types)
            if allowed is not None:
                queryset = queryset.filter(category__in=allowed)
        elif scope:
            raise ValidationError({"scope": f"Unknown scope '{scope}'."})

        return queryset.order_by('-created_at')

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        # Fill in a readable address from GPS if the app didn't send one
        if not data.get('location_address') and data.get('latitude') is not None:
            data['location_address'] = reverse_geocode(data['latitude'], data['longitude'])

        incident = self.get_lifecycle().create(request.user, **data)
        return Response(IncidentSerializer(incident).data, status=status.HTTP_201_CREATED)

    # Custom action: POST /incidents/{id}/verify/
    @action(detail=True, methods=['post'])
    def verify(self, request, pk=None):
        incident = self.get_lifecycle().verify(request.user, pk)
        return Response(IncidentSerializer(incident).data, status=status.HTTP_200_OK)

    # Custom action: POST /incidents/{id}/resolve/
    @action(detail=True, methods=['post'])
    def resolve(self, request, pk=None):
        incident = self.get_lifecycle().resolve(request.user, pk)
        return Response(IncidentSerializer(incident).data, status=status.HTTP_200_OK)


# ============================================================================
# VERIFICATION LIST (Nested under Incidents)
# ============================================================================

class VerificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    # ENDPOINT: GET /incidents/{incident_pk}/verifications/
    # Used when: Incident details page shows who vouched for the report
    serializer_class = VerificationSerializer
    permission_classes = [PolicyPermission]
    policy_action = policy.VIEW_INCIDENT

    def get_queryset(self):
        incident = repository.get_incident(self.kwargs.get('incident_pk'))
        return Verification.objects.filter(incident=incident).select_related('actor').order_by('created_at')


# ============================================================================
# MEDIA UPLOAD/VIEW (Nested under Incidents)
# ============================================================================

class IncidentMediaViewSet(mixins.CreateModelMixin,
                           mixins.ListModelMixin,
                           viewsets.GenericViewSet):
    # ENDPOINTS: GET (list), POST (upload) for /incidents/{incident_pk}/media/
    # Used when: Reporter or responsible responders attach photos/videos
    # Key feature: Files upload to Supabase Storage, not local disk
    serializer_class = IncidentMediaSerializer
    permission_classes = [PolicyPermission]
    policy_actions = {
        'list': policy.VIEW_INCIDENT,
        # Ownership/category rule applied in perform_create
        'create': policy.VIEW_INCIDENT,
        'metadata': policy.VIEW_INCIDENT,
    }

    def get_incident(self):
        return repository.get_incident(self.kwargs.get('incident_pk'))

    def get_queryset(self):
        return IncidentMedia.objects.filter(incident=self.get_incident()).order_by('-uploaded_at')

    def perform_create(self, serializer):
        incident = self.get_incident()
        user = self.request.user

        # The reporter can always add evidence to their own report;
        # otherwise only authorities for this category can
        if incident.reporter_id != user.pk:
            policy.authorize(user.role, user.organization_types, policy.ATTACH_MEDIA, incident.category)

        uploaded_file = serializer.validated_data.pop('uploaded_file')
        file_url = upload_incident_media(incident, uploaded_file)
        serializer.save(incident=incident, uploaded_by=user, file_url=file_url)
        repository.record_activity(user, 'media_attached', 'incident', incident.pk, {'file_type': serializer.instance.file_type})


# ============================================================================
# HEALTH CHECK
# ============================================================================

class HealthAPIView(APIView):
    # ENDPOINT: GET /health/
    authentication_classes = []
    permission_classes = []

    def get(self, request):
        return Response({"status": "ok"}, status=status.HTTP_200_OK)
