"""Tests for the deletion lifecycle state machine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tenantcore import DeletionPolicy
from tenantcore.deletion import (
    calculate_scheduled_deletion,
    calculate_token_expiry,
    calculate_undo_expiry,
    complete_deletion,
    confirm_deletion,
    is_confirmation_token_expired,
    is_scheduled_for_deletion,
    is_undo_expired,
    start_deletion,
    undo_deletion,
)
from tenantcore.exceptions import InvalidToken, InvalidTransition, TokenExpired, UndoExpired
from tenantcore.models import DeletionActionType, DeletionStatus

from .factories import ORG_ID, ORG_NAME, REQUESTED_AT

CONFIRM_TOKEN = "confirm-token"
UNDO_TOKEN = "undo-token"
CONFIRMED_AT = REQUESTED_AT + timedelta(hours=2)


def pending():
    return start_deletion(
        organization_id=ORG_ID,
        organization_name=ORG_NAME,
        requested_by="owner-1",
        now=REQUESTED_AT,
        confirmation_token=CONFIRM_TOKEN,
    )


def confirmed():
    return confirm_deletion(pending(), CONFIRM_TOKEN, now=CONFIRMED_AT, undo_token=UNDO_TOKEN)


class TestTiming:
    """Tests for the timing helpers."""

    def test_token_expiry_is_24h(self) -> None:
        assert calculate_token_expiry(REQUESTED_AT) == datetime(2026, 2, 2, 10, 0, tzinfo=timezone.utc)

    def test_schedule_is_28_days(self) -> None:
        assert calculate_scheduled_deletion(REQUESTED_AT) == datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_undo_expiry_is_24h(self) -> None:
        assert calculate_undo_expiry(REQUESTED_AT) == REQUESTED_AT + timedelta(hours=24)

    def test_policy_overrides(self) -> None:
        policy = DeletionPolicy(confirmation_ttl_hours=1, grace_period_days=7, undo_window_hours=2)
        assert calculate_token_expiry(REQUESTED_AT, policy) == REQUESTED_AT + timedelta(hours=1)
        assert calculate_scheduled_deletion(REQUESTED_AT, policy) == REQUESTED_AT + timedelta(days=7)
        assert calculate_undo_expiry(REQUESTED_AT, policy) == REQUESTED_AT + timedelta(hours=2)

    def test_token_expiry_boundary_is_strict(self) -> None:
        """The link is still valid at the exact expiry instant."""
        request = pending()
        assert not is_confirmation_token_expired(request, request.token_expires_at)
        assert is_confirmation_token_expired(request, request.token_expires_at + timedelta(microseconds=1))

    def test_missing_undo_expiry_counts_as_expired(self) -> None:
        assert is_undo_expired(pending(), REQUESTED_AT)


class TestStart:
    """Tests for start_deletion."""

    def test_pending_with_24h_token(self) -> None:
        """Request at 2026-02-01T10:00Z expires 2026-02-02T10:00Z."""
        request = pending()
        assert request.status is DeletionStatus.PENDING_EMAIL
        assert request.token_expires_at == datetime(2026, 2, 2, 10, 0, tzinfo=timezone.utc)
        assert request.confirmation_token == CONFIRM_TOKEN
        assert request.confirmation_email_sent_at == REQUESTED_AT
        assert not is_scheduled_for_deletion(request)

    def test_audit_starts_with_request_entry(self) -> None:
        entry = pending().audit_log[0]
        assert entry.action == "Deletion requested"
        assert entry.user_id == "owner-1"
        assert entry.timestamp == REQUESTED_AT

    def test_generates_unique_tokens(self) -> None:
        a = start_deletion(organization_id=ORG_ID, organization_name=ORG_NAME, requested_by="u", now=REQUESTED_AT)
        b = start_deletion(organization_id=ORG_ID, organization_name=ORG_NAME, requested_by="u", now=REQUESTED_AT)
        assert a.confirmation_token != b.confirmation_token
        assert a.request_id != b.request_id
        assert len(a.confirmation_token) >= 32


class TestConfirm:
    """Tests for confirm_deletion."""

    def test_confirm_before_expiry(self) -> None:
        """Schedule is +28d and undo window +24h from confirmation."""
        request = confirmed()
        assert request.status is DeletionStatus.CONFIRMED_DELETION
        assert request.confirmed_at == CONFIRMED_AT
        assert request.confirmed_via is DeletionActionType.EMAIL_LINK
        assert request.scheduled_deletion_at == CONFIRMED_AT + timedelta(days=28)
        assert request.undo_expires_at == CONFIRMED_AT + timedelta(hours=24)
        assert request.undo_token == UNDO_TOKEN
        assert request.version == 1
        assert is_scheduled_for_deletion(request)

    def test_confirm_audit_entry(self) -> None:
        entry = confirmed().audit_log[-1]
        assert entry.action == "Deletion confirmed via email link"
        assert entry.user_id == "owner-1"
        assert entry.metadata["scheduledDeletionAt"] == (CONFIRMED_AT + timedelta(days=28)).isoformat()

    def test_confirm_after_expiry(self) -> None:
        """TokenExpired leaves the request untouched in pending-email."""
        request = pending()
        with pytest.raises(TokenExpired):
            confirm_deletion(request, CONFIRM_TOKEN, now=request.token_expires_at + timedelta(seconds=1))
        assert request.status is DeletionStatus.PENDING_EMAIL
        assert len(request.audit_log) == 1

    def test_confirm_at_exact_expiry(self) -> None:
        request = pending()
        assert confirm_deletion(request, CONFIRM_TOKEN, now=request.token_expires_at).status is (
            DeletionStatus.CONFIRMED_DELETION
        )

    def test_wrong_token(self) -> None:
        with pytest.raises(InvalidToken):
            confirm_deletion(pending(), "guess", now=CONFIRMED_AT)

    def test_confirm_twice(self) -> None:
        with pytest.raises(InvalidTransition) as exc_info:
            confirm_deletion(confirmed(), CONFIRM_TOKEN, now=CONFIRMED_AT)
        assert exc_info.value.status == "confirmed-deletion"
        assert exc_info.value.expected == "pending-email"

    def test_manual_undo_is_not_a_confirmation_method(self) -> None:
        with pytest.raises(ValueError, match="manual-undo"):
            confirm_deletion(pending(), CONFIRM_TOKEN, now=CONFIRMED_AT, via=DeletionActionType.MANUAL_UNDO)

    def test_confirm_via_system(self) -> None:
        request = confirm_deletion(pending(), CONFIRM_TOKEN, now=CONFIRMED_AT, via="system-cleanup")
        assert request.confirmed_via is DeletionActionType.SYSTEM_CLEANUP


class TestUndo:
    """Tests for undo_deletion."""

    def test_undo_within_window(self) -> None:
        """Cancelled; schedule and undo credentials cleared."""
        request = confirmed()
        undone = undo_deletion(request, UNDO_TOKEN, actor_id="owner-2", now=CONFIRMED_AT + timedelta(hours=23))
        assert undone.status is DeletionStatus.CANCELLED
        assert undone.scheduled_deletion_at is None
        assert undone.undo_token is None
        assert undone.undo_expires_at is None
        assert undone.audit_log[-1].action == "Deletion undone"
        assert undone.audit_log[-1].user_id == "owner-2"
        assert request.status is DeletionStatus.CONFIRMED_DELETION

    def test_undo_after_window(self) -> None:
        request = confirmed()
        with pytest.raises(UndoExpired):
            undo_deletion(request, UNDO_TOKEN, actor_id="owner-2", now=request.undo_expires_at + timedelta(seconds=1))

    def test_undo_wrong_token(self) -> None:
        with pytest.raises(InvalidToken):
            undo_deletion(confirmed(), CONFIRM_TOKEN, actor_id="owner-2", now=CONFIRMED_AT)

    def test_undo_pending_request(self) -> None:
        with pytest.raises(InvalidTransition):
            undo_deletion(pending(), UNDO_TOKEN, actor_id="owner-2", now=CONFIRMED_AT)

    def test_undo_twice(self) -> None:
        undone = undo_deletion(confirmed(), UNDO_TOKEN, actor_id="owner-2", now=CONFIRMED_AT)
        with pytest.raises(InvalidTransition):
            undo_deletion(undone, UNDO_TOKEN, actor_id="owner-2", now=CONFIRMED_AT)


class TestComplete:
    """Tests for complete_deletion."""

    def test_complete_when_due(self) -> None:
        request = confirmed()
        due = request.scheduled_deletion_at
        done = complete_deletion(request, now=due, metadata={"memberCount": 3})
        assert done is not None
        assert done.status is DeletionStatus.COMPLETED
        assert done.completed_at == due
        assert done.scheduled_deletion_at is None
        entry = done.audit_log[-1]
        assert entry.user_id is None
        assert entry.metadata["memberCount"] == 3

    def test_complete_early_is_noop(self) -> None:
        request = confirmed()
        assert complete_deletion(request, now=request.scheduled_deletion_at - timedelta(seconds=1)) is None

    def test_complete_cancelled_is_noop(self) -> None:
        undone = undo_deletion(confirmed(), UNDO_TOKEN, actor_id="owner-2", now=CONFIRMED_AT)
        assert complete_deletion(undone, now=CONFIRMED_AT + timedelta(days=60)) is None
        assert undone.status is DeletionStatus.CANCELLED

    def test_complete_twice_is_noop(self) -> None:
        request = confirmed()
        done = complete_deletion(request, now=request.scheduled_deletion_at)
        assert complete_deletion(done, now=request.scheduled_deletion_at + timedelta(days=1)) is None

    def test_complete_pending_is_noop(self) -> None:
        assert complete_deletion(pending(), now=REQUESTED_AT + timedelta(days=60)) is None


class TestAuditAccounting:
    """Audit length equals creation entries plus applied transitions."""

    def test_full_lifecycle(self) -> None:
        request = pending()
        assert len(request.audit_log) == 1
        request = confirm_deletion(request, CONFIRM_TOKEN, now=CONFIRMED_AT, undo_token=UNDO_TOKEN)
        assert len(request.audit_log) == 2
        request = complete_deletion(request, now=request.scheduled_deletion_at)
        assert len(request.audit_log) == 3
        assert request.version == 2
        timestamps = [e.timestamp for e in request.audit_log]
        assert timestamps == sorted(timestamps)

    def test_failed_transition_adds_nothing(self) -> None:
        request = pending()
        with pytest.raises(InvalidToken):
            confirm_deletion(request, "bad", now=CONFIRMED_AT)
        assert len(request.audit_log) == 1
        assert request.version == 0
