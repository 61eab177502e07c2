"""Capability catalog, role profiles and the authorization guard.

Defines:
- Capability / WILDCARD: capability values (``category:action``) and the all-grant
- Permissions: the capability catalog
- Role: owner / admin / member
- ROLE_PROFILES: role → default capability set
- has_* / require_*: runtime authorization checks
- check_*: team management policy (role change, invite, removal)
"""

from .access import (
    can_change_self_role,
    can_invite_role,
    can_modify_member_role,
    has_all_permissions,
    has_any_permission,
    has_brand_access,
    has_permission,
    require_all_permissions,
    require_any_permission,
    require_brand_access,
    require_can_change_self_role,
    require_can_invite_role,
    require_can_modify_member_role,
    require_permission,
)
from .constants import WILDCARD, AllCapabilities, Capability, Grant, Permissions, Role
from .membership import (
    check_access_change,
    check_invitation,
    check_member_removal,
    check_role_change,
    count_owners,
)
from .roles import (
    ROLE_PROFILES,
    effective_permissions,
    permissions_for_role,
    role_description,
    role_display_name,
    role_has_permission,
)

__all__ = [
    "ROLE_PROFILES",
    "WILDCARD",
    "AllCapabilities",
    "Capability",
    "Grant",
    "Permissions",
    "Role",
    "can_change_self_role",
    "can_invite_role",
    "can_modify_member_role",
    "check_access_change",
    "check_invitation",
    "check_member_removal",
    "check_role_change",
    "count_owners",
    "effective_permissions",
    "has_all_permissions",
    "has_any_permission",
    "has_brand_access",
    "has_permission",
    "permissions_for_role",
    "require_all_permissions",
    "require_any_permission",
    "require_brand_access",
    "require_can_change_self_role",
    "require_can_invite_role",
    "require_can_modify_member_role",
    "require_permission",
    "role_description",
    "role_display_name",
    "role_has_permission",
]
