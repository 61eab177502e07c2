"""Team management policy: role changes, invitations, removals.

Combines the capability checks with the role hierarchy the way the member
management endpoints apply them. Each check raises on refusal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from ..exceptions import PermissionDenied
from .access import (
    require_can_change_self_role,
    require_can_invite_role,
    require_can_modify_member_role,
    require_permission,
)
from .constants import Permissions, Role

if TYPE_CHECKING:
    from ..models import OrganizationMember


def count_owners(members: Iterable[OrganizationMember]) -> int:
    return sum(1 for m in members if m.role is Role.OWNER)


def _same_member(a: OrganizationMember, b: OrganizationMember) -> bool:
    return a.organization_id == b.organization_id and a.user_id == b.user_id


def check_role_change(
    actor: OrganizationMember,
    target: OrganizationMember,
    new_role: Role | str,
    owner_count: int,
) -> OrganizationMember:
    """Validate a role change and return the updated member.

    Args:
        actor: Member performing the change.
        target: Member whose role changes (may be the actor).
        new_role: Role to assign.
        owner_count: Owners currently in the organisation.

    Returns:
        A new ``OrganizationMember`` with ``new_role``.

    Raises:
        PermissionDenied: Missing ``users:update_role``, hierarchy violation,
            or granting a role the actor could not invite.
        LastOwnerLockout: The only owner tried to demote themselves.
    """
    new_role = Role(new_role)
    require_permission(actor, Permissions.USERS_UPDATE_ROLE)

    if _same_member(actor, target):
        require_can_change_self_role(actor, owner_count)
    else:
        require_can_modify_member_role(actor, target)
        require_can_invite_role(actor, new_role)

    return target.model_copy(update={"role": new_role})


def check_access_change(actor: OrganizationMember, target: OrganizationMember) -> None:
    """Validate a change to ``target``'s brand access."""
    require_permission(actor, Permissions.USERS_UPDATE_ACCESS)
    if not _same_member(actor, target):
        require_can_modify_member_role(actor, target)


def check_member_removal(actor: OrganizationMember, target: OrganizationMember) -> None:
    """Validate removing ``target`` from the organisation.

    Self-removal is refused: ownership must be transferred first, or the
    organisation deleted.
    """
    if _same_member(actor, target):
        raise PermissionDenied(
            actor.role.value,
            action="remove themselves",
            message=(
                "You cannot remove yourself. Transfer ownership first or delete the organisation."
            ),
        )
    require_permission(actor, Permissions.USERS_REMOVE)
    require_can_modify_member_role(actor, target)


def check_invitation(actor: OrganizationMember, target_role: Role | str) -> None:
    """Validate inviting someone at ``target_role``."""
    require_permission(actor, Permissions.USERS_INVITE)
    require_can_invite_role(actor, target_role)


__all__ = [
    "check_access_change",
    "check_invitation",
    "check_member_removal",
    "check_role_change",
    "count_owners",
]
