"""Authorization guard: capability, brand-scope and role-hierarchy checks.

Every predicate is pure and has an enforcing ``require_*`` counterpart
that raises a structured error instead of returning ``False``:

- ``has_permission`` / ``has_any_permission`` / ``has_all_permissions``
  → :class:`~tenantcore.exceptions.PermissionDenied`
- ``has_brand_access`` → :class:`~tenantcore.exceptions.AccessDenied`
- ``can_modify_member_role`` / ``can_invite_role``
  → :class:`~tenantcore.exceptions.PermissionDenied`
- ``can_change_self_role``
  → :class:`~tenantcore.exceptions.LastOwnerLockout`
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from ..exceptions import AccessDenied, LastOwnerLockout, PermissionDenied
from .constants import Capability, Role
from .roles import effective_permissions, grants

if TYPE_CHECKING:
    from ..models import OrganizationMember

logger = logging.getLogger(__name__)


# ── Capability checks ──────────────────────────────────


def has_permission(member: OrganizationMember, permission: Capability) -> bool:
    """Check if a member holds a capability.

    True if the member's effective permissions contain the wildcard or
    the exact capability.

    Example::

        has_permission(owner, Permissions.ORG_DELETE)   # True (wildcard)
        has_permission(admin, Permissions.ORG_DELETE)   # False
        has_permission(admin, Permissions.BRANDS_CREATE)  # True
    """
    return grants(effective_permissions(member), permission)


def has_any_permission(member: OrganizationMember, permissions: Iterable[Capability]) -> bool:
    """Check if a member holds at least one of the capabilities."""
    return any(has_permission(member, p) for p in permissions)


def has_all_permissions(member: OrganizationMember, permissions: Iterable[Capability]) -> bool:
    """Check if a member holds every one of the capabilities."""
    return all(has_permission(member, p) for p in permissions)


def require_permission(member: OrganizationMember, permission: Capability) -> None:
    """Raise PermissionDenied unless the member holds the capability."""
    if not has_permission(member, permission):
        logger.info(
            "Permission denied: role=%s missing=%s user=%s",
            member.role.value,
            permission,
            member.user_id,
        )
        raise PermissionDenied(member.role.value, missing=[permission])


def require_any_permission(member: OrganizationMember, permissions: Iterable[Capability]) -> None:
    """Raise PermissionDenied unless the member holds one of the capabilities."""
    needed = list(permissions)
    if not has_any_permission(member, needed):
        raise PermissionDenied(
            member.role.value,
            missing=needed,
            message=(
                f"Permission denied: {member.role.value} role lacks required permissions "
                f"(needs one of: {', '.join(str(p) for p in needed)})"
            ),
        )


def require_all_permissions(member: OrganizationMember, permissions: Iterable[Capability]) -> None:
    """Raise PermissionDenied listing every capability the member lacks."""
    missing = [p for p in permissions if not has_permission(member, p)]
    if missing:
        raise PermissionDenied(member.role.value, missing=missing)


# ── Brand scope ────────────────────────────────────────


def has_brand_access(member: OrganizationMember, brand_id: str) -> bool:
    """Check if a member can reach a brand.

    Owners and admins reach every brand. A ``member`` needs the brand in
    ``brand_access``; an empty list means no brand at all.
    """
    if member.role in (Role.OWNER, Role.ADMIN):
        return True
    return brand_id in member.brand_access


def require_brand_access(member: OrganizationMember, brand_id: str) -> None:
    if not has_brand_access(member, brand_id):
        raise AccessDenied(member.role.value, brand_id)


# ── Role hierarchy ─────────────────────────────────────


def can_modify_member_role(actor: OrganizationMember, target: OrganizationMember) -> bool:
    """Check if ``actor`` may change ``target``'s role.

    Rules:
    - members modify no one;
    - admins modify members only;
    - owners modify anyone except owners (peer owners are protected).
    """
    if actor.role is Role.OWNER:
        return target.role is not Role.OWNER
    if actor.role is Role.ADMIN:
        return target.role is Role.MEMBER
    return False


def require_can_modify_member_role(actor: OrganizationMember, target: OrganizationMember) -> None:
    if not can_modify_member_role(actor, target):
        raise PermissionDenied(actor.role.value, action=f"modify {target.role.value} role")


def can_invite_role(actor: OrganizationMember, target_role: Role | str) -> bool:
    """Check if ``actor`` may invite someone at ``target_role``.

    Rules:
    - owners invite any role;
    - admins invite admins or members, never owners;
    - members invite no one.
    """
    target_role = Role(target_role)
    if actor.role is Role.OWNER:
        return True
    if actor.role is Role.ADMIN:
        return target_role is not Role.OWNER
    return False


def require_can_invite_role(actor: OrganizationMember, target_role: Role | str) -> None:
    if not can_invite_role(actor, target_role):
        raise PermissionDenied(actor.role.value, action=f"invite {Role(target_role).value} role")


def can_change_self_role(actor: OrganizationMember, current_owner_count: int) -> bool:
    """Check if an owner may change their own role.

    Only owners can; and only while at least one other owner remains
    (``current_owner_count >= 2``), so the organisation never ends up
    without an owner.
    """
    if actor.role is not Role.OWNER:
        return False
    return current_owner_count >= 2


def require_can_change_self_role(actor: OrganizationMember, current_owner_count: int) -> None:
    """Raise unless the actor may change their own role.

    Raises:
        PermissionDenied: The actor is not an owner.
        LastOwnerLockout: The actor is the only owner.
    """
    if actor.role is not Role.OWNER:
        raise PermissionDenied(actor.role.value, action="change own role")
    if not can_change_self_role(actor, current_owner_count):
        logger.info(
            "Blocked self role change by last owner: organization=%s user=%s",
            actor.organization_id,
            actor.user_id,
        )
        raise LastOwnerLockout(actor.role.value, owner_count=current_owner_count)


__all__ = [
    "can_change_self_role",
    "can_invite_role",
    "can_modify_member_role",
    "has_all_permissions",
    "has_any_permission",
    "has_brand_access",
    "has_permission",
    "require_all_permissions",
    "require_any_permission",
    "require_brand_access",
    "require_can_change_self_role",
    "require_can_invite_role",
    "require_can_modify_member_role",
    "require_permission",
]
