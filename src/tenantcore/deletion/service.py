"""Deletion service: authorization, state machine, storage and email.

Each operation runs the same pipeline::

    guard (require_*) → load → pure transition → compare-and-swap → notify

Conditional writes use the request's ``(status, version)``. When another
writer wins, the transition is re-run against the fresh record, so the
loser either fails with the error the new state implies or, for
``complete``, becomes a no-op. After ``max_conflict_retries`` lost races
the operation raises ``ConcurrentModificationError``.

Emails are fire-and-forget: a delivery failure is logged and never rolls
back a committed transition.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, NamedTuple, Optional

from ..config import DeletionPolicy, SharedConfig
from ..exceptions import (
    ConcurrentModificationError,
    DeletionAlreadyPending,
    NotFoundError,
    PermissionDenied,
)
from ..logging import get_tenant_logger
from ..models import DeletedOrganizationAudit, DeletionRequest, OrganizationMember, utcnow
from ..permissions import Permissions, has_permission, require_permission
from . import machine
from .notifications import (
    AlertNotification,
    CompleteNotification,
    ConfirmNotification,
    EmailNotifier,
    Notification,
    build_confirmation_link,
    build_undo_link,
)
from .store import DeletionStore, MemberDirectory

logger = get_tenant_logger(__name__)


class PurgeResult(NamedTuple):
    """What the purge hook removed."""

    member_count: int
    brand_count: int
    invitation_count: int = 0


Clock = Callable[[], datetime]
PurgeHook = Callable[[str], PurgeResult]
Transition = Callable[[DeletionRequest, datetime], Optional[DeletionRequest]]


def names_match(entered: str, organization_name: str) -> bool:
    """Typed confirmation check: trimmed, case-insensitive."""
    return entered.strip().lower() == organization_name.strip().lower()


class DeletionService:
    """Organisation deletion workflow.

    Args:
        store: Deletion request persistence.
        directory: Membership and user profile lookups.
        notifier: Email delivery; ``None`` disables emails.
        config: Shared configuration (deletion timings, ``app_url``).
        clock: Returns the current UTC time; read once per operation.
        purge: Removes an organisation's data and reports counts. Must be
            idempotent. Defaults to counting members without removing
            anything.

    Example::

        service = DeletionService(store, directory, notifier, config)
        request = service.request_deletion("org-1", "Acme", owner, "acme")
        service.confirm_deletion(request.request_id, token_from_link)
    """

    def __init__(
        self,
        store: DeletionStore,
        directory: MemberDirectory,
        notifier: Optional[EmailNotifier] = None,
        config: Optional[SharedConfig] = None,
        clock: Clock = utcnow,
        purge: Optional[PurgeHook] = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.notifier = notifier
        self.config = config or SharedConfig()
        self.clock = clock
        self.purge = purge

    @property
    def policy(self) -> DeletionPolicy:
        return self.config.deletion

    # ── Operations ─────────────────────────────────────

    def request_deletion(
        self,
        organization_id: str,
        organization_name: str,
        requester: OrganizationMember,
        confirmation_name: str,
    ) -> DeletionRequest:
        """Start deletion and email the confirmation link to the requester.

        Raises:
            PermissionDenied: Requester lacks ``org:delete`` or belongs to
                another organisation.
            ValueError: ``confirmation_name`` does not match the name.
            DeletionAlreadyPending: An active request exists.
        """
        if requester.organization_id != organization_id:
            raise PermissionDenied(requester.role.value, action="delete another organisation")
        require_permission(requester, Permissions.ORG_DELETE)
        if not names_match(confirmation_name, organization_name):
            raise ValueError("Organisation name does not match")

        now = self.clock()
        existing = self.store.get_for_organization(organization_id)
        if existing is not None and existing.is_active(now):
            raise DeletionAlreadyPending(organization_id=organization_id, request_id=existing.request_id)

        request = machine.start_deletion(
            organization_id=organization_id,
            organization_name=organization_name,
            requested_by=requester.user_id,
            now=now,
            policy=self.policy,
        )
        self.store.create(request)
        logger.info(
            "Deletion requested by %s, confirmation expires %s",
            requester.user_id,
            request.token_expires_at.isoformat(),
            organization_id=organization_id,
            request_id=request.request_id,
        )

        profile = self.directory.get_user(requester.user_id)
        if profile is None:
            logger.warning(
                "No profile for requester %s, confirmation email not sent",
                requester.user_id,
                organization_id=organization_id,
                request_id=request.request_id,
            )
        else:
            self._notify(
                ConfirmNotification(
                    recipient=profile.email,
                    organization_id=organization_id,
                    organization_name=organization_name,
                    requested_by=profile.name,
                    requested_by_user_id=requester.user_id,
                    confirmation_link=build_confirmation_link(
                        self.config.app_url, request.confirmation_token, request.request_id
                    ),
                    expires_at=request.token_expires_at,
                )
            )
        return request

    def confirm_deletion(self, request_id: str, token: str) -> DeletionRequest:
        """Confirm from the emailed link and alert the other org:delete holders."""
        confirmed = self._apply(
            request_id,
            "confirm deletion",
            lambda current, now: machine.confirm_deletion(current, token, now=now, policy=self.policy),
        )
        logger.info(
            "Deletion confirmed, scheduled for %s",
            confirmed.scheduled_deletion_at.isoformat(),
            organization_id=confirmed.organization_id,
            request_id=request_id,
        )
        self._send_alerts(confirmed)
        return confirmed

    def undo_deletion(self, request_id: str, token: str, actor: OrganizationMember) -> DeletionRequest:
        """Cancel a confirmed deletion.

        The actor's membership is re-read from the directory; it must belong
        to the organisation and hold ``org:delete``.
        """
        request = self._load(request_id)
        member = self.directory.get_member(request.organization_id, actor.user_id)
        if member is None:
            raise PermissionDenied(actor.role.value, action="undo deletion of another organisation")
        require_permission(member, Permissions.ORG_DELETE)

        cancelled = self._apply(
            request_id,
            "undo deletion",
            lambda current, now: machine.undo_deletion(current, token, actor_id=member.user_id, now=now),
        )
        logger.info(
            "Deletion undone by %s",
            member.user_id,
            organization_id=cancelled.organization_id,
            request_id=request_id,
        )
        return cancelled

    def complete(self, request_id: str) -> Optional[DeletionRequest]:
        """Permanently delete an organisation whose grace period has elapsed.

        Safe to call repeatedly or early: returns ``None`` without side
        effects unless the request is confirmed and due.

        The ``completed`` state is written before the purge hook runs, so
        only the caller that wins the swap purges. If the hook raises, the
        request stays ``completed``, nothing is archived and the error
        propagates.
        """
        now = self.clock()
        request = self._load(request_id)
        if not machine.is_due_for_completion(request, now):
            logger.info(
                "Completion skipped: status=%s scheduled=%s",
                request.status.value,
                request.scheduled_deletion_at.isoformat() if request.scheduled_deletion_at else None,
                organization_id=request.organization_id,
                request_id=request_id,
            )
            return None

        organization_id = request.organization_id
        members = self.directory.list_members(organization_id)
        recipients = [p.email for p in (self.directory.get_user(m.user_id) for m in members) if p is not None]

        # Purge only after the completed state is committed; a concurrent
        # undo either lands first (we no-op) or loses the swap.
        completed = self._apply(
            request_id,
            "complete deletion",
            lambda current, _now: machine.complete_deletion(
                current,
                now=now,
                metadata={"memberCount": len(members)},
            ),
            now=now,
        )
        if completed is None:
            logger.info(
                "Completion skipped: request changed by another writer",
                organization_id=organization_id,
                request_id=request_id,
            )
            return None

        if self.purge is not None:
            result = self.purge(organization_id)
        else:
            result = PurgeResult(member_count=len(members), brand_count=0)

        self.store.archive(
            DeletedOrganizationAudit(
                organization_id=organization_id,
                organization_name=completed.organization_name,
                deletion_request_id=completed.request_id,
                requested_by=completed.requested_by,
                requested_at=completed.requested_at,
                confirmed_at=completed.confirmed_at,
                completed_at=completed.completed_at,
                member_count=result.member_count,
                brand_count=result.brand_count,
                audit_log=completed.audit_log,
            )
        )
        logger.info(
            "Organisation permanently deleted: %d members, %d brands, %d invitations removed",
            result.member_count,
            result.brand_count,
            result.invitation_count,
            organization_id=organization_id,
            request_id=request_id,
        )

        for email in recipients:
            self._notify(
                CompleteNotification(
                    recipient=email,
                    organization_id=organization_id,
                    organization_name=completed.organization_name,
                    deletion_date=now,
                )
            )
        return completed

    def run_due_completions(self) -> list[DeletionRequest]:
        """Scheduled sweep: complete every request whose grace period is over.

        A failure on one organisation is logged and does not stop the sweep.
        """
        now = self.clock()
        due = self.store.due_for_completion(now)
        logger.info("Found %d organisation(s) due for permanent deletion", len(due))

        completed = []
        for request in due:
            try:
                result = self.complete(request.request_id)
            except Exception:
                logger.exception(
                    "Permanent deletion failed",
                    organization_id=request.organization_id,
                    request_id=request.request_id,
                )
                continue
            if result is not None:
                completed.append(result)
        return completed

    # ── Internals ──────────────────────────────────────

    def _load(self, request_id: str) -> DeletionRequest:
        request = self.store.get(request_id)
        if request is None:
            raise NotFoundError(f"Deletion request not found: {request_id}", request_id=request_id)
        return request

    def _apply(
        self,
        request_id: str,
        operation: str,
        transition: Transition,
        now: Optional[datetime] = None,
    ) -> Optional[DeletionRequest]:
        """Run ``transition`` under compare-and-swap with bounded retries."""
        if now is None:
            now = self.clock()
        attempts = self.policy.max_conflict_retries
        for attempt in range(1, attempts + 1):
            current = self._load(request_id)
            updated = transition(current, now)
            if updated is None:
                return None
            if self.store.compare_and_swap(current, updated):
                return updated
            logger.info(
                "Concurrent modification during %s (attempt %d/%d)",
                operation,
                attempt,
                attempts,
                request_id=request_id,
            )
        raise ConcurrentModificationError(request_id=request_id, operation=operation, attempts=attempts)

    def _send_alerts(self, request: DeletionRequest) -> None:
        requester = self.directory.get_user(request.requested_by)
        confirmed_by = requester.name if requester is not None else "A team member"
        undo_link = build_undo_link(self.config.app_url, request.undo_token, request.request_id)

        for member in self.directory.list_members(request.organization_id):
            if member.user_id == request.requested_by or not has_permission(member, Permissions.ORG_DELETE):
                continue
            profile = self.directory.get_user(member.user_id)
            if profile is None:
                continue
            self._notify(
                AlertNotification(
                    recipient=profile.email,
                    organization_id=request.organization_id,
                    organization_name=request.organization_name,
                    confirmed_by=confirmed_by,
                    undo_link=undo_link,
                    undo_expires_at=request.undo_expires_at,
                    scheduled_date=request.scheduled_deletion_at,
                )
            )

    def _notify(self, notification: Notification) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send(notification)
        except Exception as e:
            logger.error(
                "Failed to send %s email to %s: %s",
                notification.template_alias,
                notification.recipient,
                e,
                organization_id=notification.organization_id,
            )


__all__ = ["DeletionService", "PurgeResult", "names_match"]
