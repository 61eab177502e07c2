"""Append-only audit trail for deletion requests.

``append_entry`` never mutates its input: concurrent readers holding the
previous log keep a valid history, and a transition that fails to commit
leaves nothing behind.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Union

from .models import DeletionAuditEntry, DeletionRequest

AuditLog = tuple[DeletionAuditEntry, ...]

# Action descriptions written by the deletion lifecycle.
ACTION_REQUESTED = "Deletion requested"
ACTION_CONFIRMED = "Deletion confirmed via email link"
ACTION_UNDONE = "Deletion undone"
ACTION_COMPLETED = "Permanent deletion executed by scheduled function"


def append_entry(
    source: Union[DeletionRequest, AuditLog],
    action: str,
    actor_id: Optional[str],
    metadata: Optional[Mapping[str, Any]] = None,
    *,
    now: datetime,
) -> AuditLog:
    """Return a new audit log with one more entry.

    Args:
        source: A deletion request (its ``audit_log`` is used) or a log.
        action: Free-text action description.
        actor_id: Acting user; ``None`` marks a system-triggered action.
        metadata: Optional structured context, copied.
        now: Timestamp of the entry (the operation's single read of "now").

    Example::

        log = append_entry(request, ACTION_UNDONE, "user-7", now=now)
        assert len(log) == len(request.audit_log) + 1
    """
    log = source.audit_log if isinstance(source, DeletionRequest) else tuple(source)
    entry = DeletionAuditEntry(
        timestamp=now,
        action=action,
        user_id=actor_id,
        metadata=dict(metadata) if metadata is not None else None,
    )
    return (*log, entry)


def last_entry(source: Union[DeletionRequest, AuditLog]) -> Optional[DeletionAuditEntry]:
    log = source.audit_log if isinstance(source, DeletionRequest) else source
    return log[-1] if log else None


__all__ = [
    "ACTION_COMPLETED",
    "ACTION_CONFIRMED",
    "ACTION_REQUESTED",
    "ACTION_UNDONE",
    "AuditLog",
    "append_entry",
    "last_entry",
]
