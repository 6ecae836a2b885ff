# ============================================================================
# URLS: Route mapping - connects HTTP requests to view handlers.
# Example: POST /api/incidents/{id}/verify/ => IncidentViewSet.verify()
# ============================================================================

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_nested import routers

from .views import (
    HealthAPIView,
    IncidentMediaViewSet,
    IncidentViewSet,
    LoginAPIView,
    MeAPIView,
    SignUpAPIView,
    VerificationViewSet,
)
from .views.account import (
    EmergencyContactViewSet,
    NotificationPreferenceAPIView,
    NotificationViewSet,
    ProfileAPIView,
)
from .views.admin import (
    ActivityLogViewSet,
    InvitationAcceptAPIView,
    InvitationViewSet,
    OrganizationViewSet,
    UserAdminViewSet,
)
from .views.analytics import AnalyticsSummaryAPIView


# ============================================================================
# ROUTER SETUP: Auto-generate URL patterns for viewsets
# ============================================================================

router = DefaultRouter()

# GET/POST /incidents/, GET /incidents/{id}/, POST /incidents/{id}/verify|resolve/
router.register(r'incidents', IncidentViewSet, basename='incident')

# CRUD on the caller's own emergency contacts
router.register(r'contacts', EmergencyContactViewSet, basename='contact')

# GET /notifications/, POST /notifications/{id}/read/
router.register(r'notifications', NotificationViewSet, basename='notification')

# Administration
router.register(r'admin/organizations', OrganizationViewSet, basename='organization')
router.register(r'admin/users', UserAdminViewSet, basename='admin-user')
router.register(r'admin/invitations', InvitationViewSet, basename='invitation')
router.register(r'admin/activity', ActivityLogViewSet, basename='activity-log')

# ============================================================================
# NESTED ROUTER: Sub-resources of an incident
#   GET  /incidents/{incident_pk}/verifications/
#   GET  /incidents/{incident_pk}/media/
#   POST /incidents/{incident_pk}/media/
# ============================================================================

incidents_router = routers.NestedSimpleRouter(router, r'incidents', lookup='incident')
incidents_router.register(r'verifications', VerificationViewSet, basename='incident-verifications')
incidents_router.register(r'media', IncidentMediaViewSet, basename='incident-media')


urlpatterns = [
    # =====================================================
    # AUTHENTICATION
    # =====================================================
    path('auth/signup/', SignUpAPIView.as_view(), name='signup'),
    path('auth/login/', LoginAPIView.as_view(), name='login'),
    path('auth/me/', MeAPIView.as_view(), name='me'),
    path('auth/invitations/accept/', InvitationAcceptAPIView.as_view(), name='invitation-accept'),

    # =====================================================
    # OWN ACCOUNT
    # =====================================================
    path('profile/', ProfileAPIView.as_view(), name='profile'),
    path('profile/notification-preferences/', NotificationPreferenceAPIView.as_view(), name='notification-preferences'),

    # =====================================================
    # ANALYTICS
    # =====================================================
    path('analytics/summary/', AnalyticsSummaryAPIView.as_view(), name='analytics-summary'),

    path('health/', HealthAPIView.as_view(), name='health'),

    # =====================================================
    # AUTO-GENERATED ROUTER URLS (ViewSet Endpoints)
    # =====================================================
    path('', include(router.urls)),
    path('', include(incidents_router.urls)),
]
