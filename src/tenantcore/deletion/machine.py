"""Organisation deletion state machine.

States::

    pending-email ──confirm──▶ confirmed-deletion ──undo──────▶ cancelled
                                                   └─complete──▶ completed

Every transition is a pure function ``(request, now, ...) -> request``.
``now`` is read once by the caller and passed in, so all comparisons in
an operation see the same instant, and the storage layer can re-run a
transition against a fresher record after a write conflict.

Failures raise the tagged errors from :mod:`tenantcore.exceptions`.
``complete_deletion`` never raises for state reasons: scheduled triggers
may fire more than once, so an inapplicable completion returns ``None``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from ..audit import ACTION_COMPLETED, ACTION_CONFIRMED, ACTION_REQUESTED, ACTION_UNDONE, append_entry
from ..config import DeletionPolicy
from ..exceptions import InvalidToken, InvalidTransition, TokenExpired, UndoExpired
from ..models import DeletionActionType, DeletionRequest, DeletionStatus, new_document_id
from .tokens import generate_deletion_token, tokens_match

DEFAULT_POLICY = DeletionPolicy()


# ── Timing ─────────────────────────────────────────────


def calculate_token_expiry(now: datetime, policy: DeletionPolicy = DEFAULT_POLICY) -> datetime:
    """Confirmation link deadline (24h by default)."""
    return now + policy.confirmation_ttl


def calculate_scheduled_deletion(confirmed_at: datetime, policy: DeletionPolicy = DEFAULT_POLICY) -> datetime:
    """Permanent purge time (28 days after confirmation by default)."""
    return confirmed_at + policy.grace_period


def calculate_undo_expiry(confirmed_at: datetime, policy: DeletionPolicy = DEFAULT_POLICY) -> datetime:
    """Undo link deadline (24h after confirmation by default)."""
    return confirmed_at + policy.undo_window


def is_confirmation_token_expired(request: DeletionRequest, now: datetime) -> bool:
    return now > request.token_expires_at


def is_undo_expired(request: DeletionRequest, now: datetime) -> bool:
    """A request without an undo deadline counts as expired."""
    if request.undo_expires_at is None:
        return True
    return now > request.undo_expires_at


def is_scheduled_for_deletion(request: DeletionRequest) -> bool:
    return request.status is DeletionStatus.CONFIRMED_DELETION and request.scheduled_deletion_at is not None


def is_due_for_completion(request: DeletionRequest, now: datetime) -> bool:
    return is_scheduled_for_deletion(request) and now >= request.scheduled_deletion_at


def _evolve(request: DeletionRequest, **changes: Any) -> DeletionRequest:
    """Build the successor state; validation re-checks every invariant."""
    data = dict(request)
    data.update(changes)
    data["version"] = request.version + 1
    return DeletionRequest(**data)


# ── Transitions ────────────────────────────────────────


def start_deletion(
    *,
    organization_id: str,
    organization_name: str,
    requested_by: str,
    now: datetime,
    policy: DeletionPolicy = DEFAULT_POLICY,
    confirmation_token: Optional[str] = None,
    request_id: Optional[str] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> DeletionRequest:
    """Create a ``pending-email`` request with a fresh confirmation token.

    The audit log starts with ``"Deletion requested"`` attributed to the
    requester.
    """
    entry_log = append_entry(
        (),
        ACTION_REQUESTED,
        requested_by,
        {"organizationName": organization_name, **(metadata or {})},
        now=now,
    )
    return DeletionRequest(
        request_id=request_id or new_document_id(),
        organization_id=organization_id,
        organization_name=organization_name,
        requested_by=requested_by,
        requested_at=now,
        confirmation_token=confirmation_token or generate_deletion_token(),
        token_expires_at=calculate_token_expiry(now, policy),
        confirmation_email_sent_at=now,
        status=DeletionStatus.PENDING_EMAIL,
        audit_log=entry_log,
    )


def confirm_deletion(
    request: DeletionRequest,
    token: str,
    *,
    now: datetime,
    via: DeletionActionType = DeletionActionType.EMAIL_LINK,
    policy: DeletionPolicy = DEFAULT_POLICY,
    undo_token: Optional[str] = None,
) -> DeletionRequest:
    """Confirm a pending request from the emailed link.

    Raises:
        ValueError: ``via`` is ``manual-undo`` (reserved for the undo path).
        InvalidToken: ``token`` does not match the confirmation token.
        InvalidTransition: The request is not ``pending-email``.
        TokenExpired: ``now`` is past ``token_expires_at``. The request is
            left unchanged.
    """
    via = DeletionActionType(via)
    if via is DeletionActionType.MANUAL_UNDO:
        raise ValueError("manual-undo is not a valid confirmation method")
    if not tokens_match(request.confirmation_token, token):
        raise InvalidToken("Invalid confirmation token")
    if request.status is not DeletionStatus.PENDING_EMAIL:
        raise InvalidTransition(request.status.value, DeletionStatus.PENDING_EMAIL.value, "confirm deletion")
    if is_confirmation_token_expired(request, now):
        raise TokenExpired()

    scheduled = calculate_scheduled_deletion(now, policy)
    undo_expires_at = calculate_undo_expiry(now, policy)
    return _evolve(
        request,
        status=DeletionStatus.CONFIRMED_DELETION,
        confirmed_at=now,
        confirmed_via=via,
        scheduled_deletion_at=scheduled,
        undo_token=undo_token or generate_deletion_token(),
        undo_expires_at=undo_expires_at,
        audit_log=append_entry(
            request,
            ACTION_CONFIRMED,
            request.requested_by,
            {
                "scheduledDeletionAt": scheduled.isoformat(),
                "undoExpiresAt": undo_expires_at.isoformat(),
                "confirmedVia": via.value,
            },
            now=now,
        ),
    )


def undo_deletion(
    request: DeletionRequest,
    token: str,
    *,
    actor_id: str,
    now: datetime,
) -> DeletionRequest:
    """Cancel a confirmed deletion inside the undo window.

    Raises:
        InvalidTransition: The request is not ``confirmed-deletion``.
        UndoExpired: No undo token exists, or ``now`` is past
            ``undo_expires_at``.
        InvalidToken: ``token`` does not match the undo token.
    """
    if request.status is not DeletionStatus.CONFIRMED_DELETION:
        raise InvalidTransition(request.status.value, DeletionStatus.CONFIRMED_DELETION.value, "undo deletion")
    if request.undo_token is None:
        raise UndoExpired()
    if not tokens_match(request.undo_token, token):
        raise InvalidToken("Invalid undo token")
    if is_undo_expired(request, now):
        raise UndoExpired()

    return _evolve(
        request,
        status=DeletionStatus.CANCELLED,
        scheduled_deletion_at=None,
        undo_token=None,
        undo_expires_at=None,
        audit_log=append_entry(
            request,
            ACTION_UNDONE,
            actor_id,
            {"undoneByUserId": actor_id, "undoneAt": now.isoformat()},
            now=now,
        ),
    )


def complete_deletion(
    request: DeletionRequest,
    *,
    now: datetime,
    metadata: Optional[Mapping[str, Any]] = None,
) -> Optional[DeletionRequest]:
    """Mark a confirmed request as permanently deleted.

    Returns ``None`` (no-op) unless the request is still
    ``confirmed-deletion`` and its schedule has elapsed. This makes
    duplicate or early trigger firings harmless.
    """
    if not is_due_for_completion(request, now):
        return None

    return _evolve(
        request,
        status=DeletionStatus.COMPLETED,
        completed_at=now,
        scheduled_deletion_at=None,
        undo_token=None,
        undo_expires_at=None,
        audit_log=append_entry(
            request,
            ACTION_COMPLETED,
            None,
            {"scheduledDeletionAt": request.scheduled_deletion_at.isoformat(), **(metadata or {})},
            now=now,
        ),
    )


__all__ = [
    "DEFAULT_POLICY",
    "calculate_scheduled_deletion",
    "calculate_token_expiry",
    "calculate_undo_expiry",
    "complete_deletion",
    "confirm_deletion",
    "is_confirmation_token_expired",
    "is_due_for_completion",
    "is_scheduled_for_deletion",
    "is_undo_expired",
    "start_deletion",
    "undo_deletion",
]
