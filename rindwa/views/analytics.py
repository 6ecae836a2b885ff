# ============================================================================
# ANALYTICS VIEWS: Dashboard numbers for admins and responders
# Staff and moderators only ever see numbers for the incident categories
# their organization handles; super admins see everything.
# ============================================================================

from rest_framework.response import Response
from rest_framework.views import APIView

from .. import policy
from ..permissions import PolicyPermission
from ..services import build_summary, parse_filters


# ============================================================================
# ANALYTICS SUMMARY VIEW
# ============================================================================

class AnalyticsSummaryAPIView(APIView):
    # ENDPOINT: GET /analytics/summary/
    # Used when: Admin dashboard loads the overview cards
    # Input: Filter query params (days, category)
    # Output: Total incidents, counts per status and per category,
    #         average time from report to resolution
    # Example: "Last 30 days: 42 incidents, 30 resolved, avg resolve time 1d 02:15:00"
    permission_classes = [PolicyPermission]
    policy_action = policy.VIEW_ANALYTICS

    def get(self, request):
        # Parse filter parameters: days, category
        f = parse_filters(request)

        # Restrict to the caller's categories (None = everything)
        user = request.user
        allowed = policy.incident_categories(user.role, user.organization_types)

        summary = build_summary(f, allowed)
        summary['categories_in_scope'] = sorted(allowed) if allowed is not None else sorted(policy.CATEGORIES)
        return Response(summary, status=200)
