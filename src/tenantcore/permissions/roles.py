"""Role → capability profiles.

Provides:
- ``ROLE_PROFILES``: role → default capability set.
- ``permissions_for_role()`` / ``role_has_permission()``.
- ``effective_permissions()``: resolve what a member can actually do.
- ``role_display_name()`` / ``role_description()``: user-facing labels.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .constants import WILDCARD, Capability, Grant, Permissions, Role

if TYPE_CHECKING:
    from ..models import OrganizationMember

# ── Role Profiles ───────────────────────────────────────

# Full control; the wildcard keeps owners in step with new capabilities.
OWNER_PERMISSIONS: frozenset[Grant] = frozenset({WILDCARD})

# Team, brands and events. No billing, transfer or organisation deletion.
ADMIN_PERMISSIONS: frozenset[Grant] = frozenset(
    {
        Permissions.ORG_UPDATE,
        *Permissions.USER_MANAGEMENT,
        *Permissions.BRAND_MANAGEMENT,
        *Permissions.EVENT_MANAGEMENT,
        *Permissions.ANALYTICS,
    }
)

# Limited to brands listed in the member's brand access.
MEMBER_PERMISSIONS: frozenset[Grant] = frozenset(
    {
        Permissions.USERS_VIEW,
        Permissions.BRANDS_VIEW,
        Permissions.BRANDS_UPDATE,
        *Permissions.EVENT_MANAGEMENT,
        Permissions.ANALYTICS_VIEW_BRAND,
        Permissions.ANALYTICS_VIEW_EVENT,
        Permissions.ANALYTICS_EXPORT,
    }
)

ROLE_PROFILES: dict[Role, frozenset[Grant]] = {
    Role.OWNER: OWNER_PERMISSIONS,
    Role.ADMIN: ADMIN_PERMISSIONS,
    Role.MEMBER: MEMBER_PERMISSIONS,
}

_DISPLAY_NAMES: dict[Role, str] = {
    Role.OWNER: "Owner",
    Role.ADMIN: "Admin",
    Role.MEMBER: "Member",
}

_DESCRIPTIONS: dict[Role, str] = {
    Role.OWNER: "Full control over organisation, billing, and all resources",
    Role.ADMIN: "Manage team members and all brands/events",
    Role.MEMBER: "Access to assigned brands only",
}


def permissions_for_role(role: Role | str) -> frozenset[Grant]:
    """Default capability set for a role.

    Example::

        >>> permissions_for_role("owner")
        frozenset({WILDCARD})
    """
    return ROLE_PROFILES[Role(role)]


def role_has_permission(role: Role | str, permission: Capability) -> bool:
    """Check whether a role grants a capability by default."""
    return grants(permissions_for_role(role), permission)


def grants(permissions: frozenset[Grant] | tuple[Grant, ...], permission: Capability) -> bool:
    """Check a grant set for a capability.

    The wildcard matches everything; otherwise only an exact tag does.
    """
    perm_set = set(permissions)
    return WILDCARD in perm_set or permission in perm_set


def effective_permissions(member: OrganizationMember) -> frozenset[Grant]:
    """Resolve a member's capabilities.

    A custom override list is returned verbatim; otherwise the role's
    default profile applies.
    """
    if member.permissions is not None:
        return frozenset(member.permissions)
    return permissions_for_role(member.role)


def role_display_name(role: Role | str) -> str:
    return _DISPLAY_NAMES[Role(role)]


def role_description(role: Role | str) -> str:
    return _DESCRIPTIONS[Role(role)]


__all__ = [
    "ADMIN_PERMISSIONS",
    "MEMBER_PERMISSIONS",
    "OWNER_PERMISSIONS",
    "ROLE_PROFILES",
    "effective_permissions",
    "grants",
    "permissions_for_role",
    "role_description",
    "role_display_name",
    "role_has_permission",
]
