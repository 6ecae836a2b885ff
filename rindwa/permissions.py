# ============================================================================
# PERMISSIONS: DRF glue between a request and the authorization policy.
# Views declare which policy action each of their actions needs, e.g.
#     policy_actions = {'list': policy.VIEW_INCIDENT, 'create': policy.CREATE_INCIDENT}
# Category-dependent checks (verify/resolve) happen in the lifecycle once the
# incident is loaded, because the category isn't known from the URL alone.
# ============================================================================

from rest_framework.permissions import BasePermission

from . import policy
from .exceptions import Forbidden, Unauthenticated


def actor_role(request):
    user = getattr(request, 'user', None)
    if user is None or not getattr(user, 'is_authenticated', False):
        return None, ()
    return user.role, user.organization_types


class PolicyPermission(BasePermission):

    def has_permission(self, request, view):
        action = self.action_for(view)

        # No route for this method (e.g. DELETE on an incident): let DRF answer 405
        if action is None and not hasattr(view, request.method.lower()):
            return True

        role, organization_types = actor_role(request)

        if policy.is_allowed(role, organization_types, action):
            return True

        # Anonymous callers get 401 so the client knows to sign in,
        # signed-in callers get 403
        if role is None:
            raise Unauthenticated()
        # Handler exists but no policy action is declared for it: deny
        if action is None:
            raise Forbidden(f"Role '{role}' may not perform this request.")
        raise Forbidden(f"Role '{role}' may not {action.replace('_', ' ')}.")

    def action_for(self, view):
        actions = getattr(view, 'policy_actions', {})
        view_action = getattr(view, 'action', None) or request_method_key(view)
        if view_action in actions:
            return actions[view_action]
        return actions.get('*', getattr(view, 'policy_action', None))


def request_method_key(view):
    # Plain APIViews have no .action; fall back to the HTTP method
    request = getattr(view, 'request', None)
    return request.method.lower() if request is not None else None
