# ============================================================================
# AUTHORIZATION POLICY: The one place that decides "who may do what".
# Every view and the incident lifecycle ask this module before changing data.
# Inputs are plain values (role, organization types, action, category) so the
# rules can be checked without touching the database.
# ============================================================================

from .exceptions import Forbidden


# ----------------------------------------------------------------------------
# ROLES
# ----------------------------------------------------------------------------

SUPER_ADMIN = 'super_admin'
MODERATOR = 'moderator'
POLICE = 'police'
FIRE_DEPT = 'fire_dept'
MEDICAL_STAFF = 'medical_staff'
CITIZEN = 'citizen'

ROLE_CHOICES = [
    (SUPER_ADMIN, 'Super Admin'),
    (MODERATOR, 'Moderator'),
    (POLICE, 'Police'),
    (FIRE_DEPT, 'Fire Department'),
    (MEDICAL_STAFF, 'Medical Staff'),
    (CITIZEN, 'Citizen'),
]

# Responders whose reach is limited to the categories of their agency
STAFF_ROLES = frozenset({POLICE, FIRE_DEPT, MEDICAL_STAFF})

# Roles that can act on incidents as an authority (direct verify, resolve)
PRIVILEGED_ROLES = frozenset({SUPER_ADMIN, MODERATOR}) | STAFF_ROLES


# ----------------------------------------------------------------------------
# INCIDENT CATEGORIES AND ORGANIZATION TYPES
# ----------------------------------------------------------------------------

FIRE = 'fire'
MEDICAL = 'medical'
ACCIDENT = 'accident'
SECURITY = 'security'

CATEGORY_CHOICES = [
    (FIRE, 'Fire'),
    (MEDICAL, 'Medical'),
    (ACCIDENT, 'Accident'),
    (SECURITY, 'Security'),
]
CATEGORIES = frozenset(value for value, _ in CATEGORY_CHOICES)

ORG_POLICE = 'police'
ORG_FIRE = 'fire'
ORG_MEDICAL = 'medical'
ORG_OTHER = 'other'

ORGANIZATION_TYPES = frozenset({ORG_POLICE, ORG_FIRE, ORG_MEDICAL, ORG_OTHER})

# Which agency type handles which kind of incident.
# e.g. a car crash ("accident") is police work, a house fire is fire work.
CATEGORY_ORGANIZATION_TYPE = {
    FIRE: ORG_FIRE,
    MEDICAL: ORG_MEDICAL,
    ACCIDENT: ORG_POLICE,
    SECURITY: ORG_POLICE,
}

# Staff without an organization fall back to the agency type their role implies
ROLE_ORGANIZATION_TYPE = {
    POLICE: ORG_POLICE,
    FIRE_DEPT: ORG_FIRE,
    MEDICAL_STAFF: ORG_MEDICAL,
}


# ----------------------------------------------------------------------------
# ACTIONS
# ----------------------------------------------------------------------------

SIGN_UP = 'sign_up'
SIGN_IN = 'sign_in'
CREATE_INCIDENT = 'create_incident'
VIEW_INCIDENT = 'view_incident'
VIEW_ORGANIZATION_INCIDENTS = 'view_organization_incidents'
VERIFY_INCIDENT = 'verify_incident'
RESOLVE_INCIDENT = 'resolve_incident'
ATTACH_MEDIA = 'attach_media'
MANAGE_OWN_PROFILE = 'manage_own_profile'
MANAGE_OWN_CONTACTS = 'manage_own_contacts'
MANAGE_USERS = 'manage_users'
MANAGE_ORGANIZATIONS = 'manage_organizations'
VIEW_ORGANIZATIONS = 'view_organizations'
VIEW_ANALYTICS = 'view_analytics'
VIEW_ACTIVITY_LOG = 'view_activity_log'

# Actions whose answer depends on the incident category
CATEGORY_SCOPED_ACTIONS = frozenset({VERIFY_INCIDENT, RESOLVE_INCIDENT, ATTACH_MEDIA})

PUBLIC_ACTIONS = frozenset({SIGN_UP, SIGN_IN})

# Things every signed-in actor may do, regardless of role
AUTHENTICATED_ACTIONS = frozenset({
    CREATE_INCIDENT,
    VIEW_INCIDENT,
    MANAGE_OWN_PROFILE,
    MANAGE_OWN_CONTACTS,
})

# Role-wide grants that are not tied to an incident category
ROLE_GRANTS = {
    MODERATOR: frozenset({
        VIEW_ORGANIZATION_INCIDENTS,
        MANAGE_USERS,
        VIEW_ORGANIZATIONS,
        VIEW_ANALYTICS,
        VIEW_ACTIVITY_LOG,
    }),
    POLICE: frozenset({VIEW_ORGANIZATION_INCIDENTS, VIEW_ANALYTICS}),
    FIRE_DEPT: frozenset({VIEW_ORGANIZATION_INCIDENTS, VIEW_ANALYTICS}),
    MEDICAL_STAFF: frozenset({VIEW_ORGANIZATION_INCIDENTS, VIEW_ANALYTICS}),
    CITIZEN: frozenset(),
}

# Roles a moderator is allowed to hand out inside their organization
MODERATOR_ASSIGNABLE_ROLES = frozenset({CITIZEN}) | STAFF_ROLES


# ============================================================================
# CATEGORY SCOPE
# ============================================================================

def categories_for_organization_types(organization_types):
    """Categories an agency with the given types is responsible for."""
    types = set(organization_types or ())
    return frozenset(
        category for category, org_type in CATEGORY_ORGANIZATION_TYPE.items()
        if org_type in types
    )


def incident_categories(role, organization_types=None):
    """
    Category set a role may act on as an authority.

    Returns None when the role is not category-restricted (super_admin),
    an empty set when it has no authority over any category (citizen).
    """
    if role == SUPER_ADMIN:
        return None
    if role == MODERATOR:
        return categories_for_organization_types(organization_types)
    if role in STAFF_ROLES:
        types = organization_types or (ROLE_ORGANIZATION_TYPE[role],)
        return categories_for_organization_types(types)
    return frozenset()


# ============================================================================
# DECISION
# ============================================================================

def is_allowed(role, organization_types, action, category=None):
    # Anonymous callers can only create an account or sign in
    if role is None:
        return action in PUBLIC_ACTIONS

    if role == SUPER_ADMIN:
        return True

    if action in PUBLIC_ACTIONS or action in AUTHENTICATED_ACTIONS:
        return True

    if action in CATEGORY_SCOPED_ACTIONS:
        # Community verification: any citizen may vouch for any report
        if role == CITIZEN:
            return action == VERIFY_INCIDENT
        if category is None:
            return False
        return category in incident_categories(role, organization_types)

    return action in ROLE_GRANTS.get(role, frozenset())


def authorize(role, organization_types, action, category=None):
    """Raise Forbidden unless the policy allows the action."""
    if not is_allowed(role, organization_types, action, category):
        if category:
            raise Forbidden(f"Role '{role}' may not {action.replace('_', ' ')} for '{category}' incidents.")
        raise Forbidden(f"Role '{role}' may not {action.replace('_', ' ')}.")


def is_direct_verifier(role, organization_types, category):
    """Whether a verification by this actor is an authority sign-off rather than a community vote."""
    return role in PRIVILEGED_ROLES and is_allowed(role, organization_types, VERIFY_INCIDENT, category)


# ============================================================================
# USER MANAGEMENT SCOPE
# ============================================================================

def can_manage_user(actor_id, actor_role, actor_org_id, target_id, target_role, target_org_id, new_role=None):
    # Nobody changes their own role or status through the admin path
    if actor_id == target_id:
        return False

    if actor_role == SUPER_ADMIN:
        return True

    if actor_role != MODERATOR or actor_org_id is None:
        return False

    # Moderators stay inside their own organization
    if target_org_id != actor_org_id:
        return False

    if target_role in (SUPER_ADMIN, MODERATOR):
        return False

    if new_role is not None and new_role not in MODERATOR_ASSIGNABLE_ROLES:
        return False

    return True


def can_invite(actor_role, actor_org_id, organization_id, role):
    """Whether the actor may invite someone into `organization_id` with `role`."""
    if organization_id is None:
        return False

    if actor_role == SUPER_ADMIN:
        return True

    if actor_role != MODERATOR or actor_org_id is None:
        return False

    # Moderators onboard responders into their own organization only
    return organization_id == actor_org_id and role in STAFF_ROLES
