"""Tests for the append-only audit trail."""

from __future__ import annotations

from datetime import timedelta

from tenantcore.audit import ACTION_UNDONE, append_entry, last_entry
from tenantcore.deletion import start_deletion

from .factories import ORG_ID, ORG_NAME, REQUESTED_AT


def new_request():
    return start_deletion(
        organization_id=ORG_ID,
        organization_name=ORG_NAME,
        requested_by="owner-1",
        now=REQUESTED_AT,
    )


class TestAppendEntry:
    """Tests for append_entry."""

    def test_input_log_is_not_mutated(self) -> None:
        """The source log keeps its length; the result has one more entry."""
        request = new_request()
        before = request.audit_log
        log = append_entry(request, ACTION_UNDONE, "owner-2", now=REQUESTED_AT)
        assert len(request.audit_log) == len(before) == 1
        assert len(log) == len(before) + 1
        assert log[:-1] == before

    def test_entry_fields(self) -> None:
        when = REQUESTED_AT + timedelta(minutes=5)
        log = append_entry((), "Custom action", "user-1", {"reason": "test"}, now=when)
        entry = log[0]
        assert entry.timestamp == when
        assert entry.action == "Custom action"
        assert entry.user_id == "user-1"
        assert entry.metadata == {"reason": "test"}

    def test_system_entry_has_null_actor(self) -> None:
        log = append_entry((), "System sweep", None, now=REQUESTED_AT)
        assert log[0].user_id is None
        assert log[0].metadata is None

    def test_metadata_is_copied(self) -> None:
        """Later changes to the caller's dict do not leak into the log."""
        metadata = {"count": 1}
        log = append_entry((), "Action", None, metadata, now=REQUESTED_AT)
        metadata["count"] = 2
        assert log[0].metadata == {"count": 1}

    def test_accepts_plain_log(self) -> None:
        first = append_entry((), "One", None, now=REQUESTED_AT)
        second = append_entry(first, "Two", None, now=REQUESTED_AT)
        assert [e.action for e in second] == ["One", "Two"]
        assert len(first) == 1

    def test_last_entry(self) -> None:
        request = new_request()
        assert last_entry(request).action == "Deletion requested"
        assert last_entry(()) is None
