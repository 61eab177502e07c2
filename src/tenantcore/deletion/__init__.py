"""Organisation deletion lifecycle.

Defines:
- machine: pure transitions (start / confirm / undo / complete) and timing helpers
- DeletionService: guard → transition → compare-and-swap → email pipeline
- DeletionStore / MemberDirectory: storage collaborators (in-memory, Redis)
- Confirm / Alert / Complete notifications and the EmailNotifier protocol
"""

from .machine import (
    calculate_scheduled_deletion,
    calculate_token_expiry,
    calculate_undo_expiry,
    complete_deletion,
    confirm_deletion,
    is_confirmation_token_expired,
    is_due_for_completion,
    is_scheduled_for_deletion,
    is_undo_expired,
    start_deletion,
    undo_deletion,
)
from .notifications import (
    AlertNotification,
    CompleteNotification,
    ConfirmNotification,
    EmailNotifier,
    RecordingNotifier,
    build_confirmation_link,
    build_undo_link,
)
from .service import DeletionService, PurgeResult
from .store import (
    DeletionStore,
    InMemoryDeletionStore,
    InMemoryMemberDirectory,
    MemberDirectory,
    RedisDeletionStore,
)
from .tokens import generate_deletion_token, tokens_match

__all__ = [
    "AlertNotification",
    "CompleteNotification",
    "ConfirmNotification",
    "DeletionService",
    "DeletionStore",
    "EmailNotifier",
    "InMemoryDeletionStore",
    "InMemoryMemberDirectory",
    "MemberDirectory",
    "PurgeResult",
    "RecordingNotifier",
    "RedisDeletionStore",
    "build_confirmation_link",
    "build_undo_link",
    "calculate_scheduled_deletion",
    "calculate_token_expiry",
    "calculate_undo_expiry",
    "complete_deletion",
    "confirm_deletion",
    "generate_deletion_token",
    "is_confirmation_token_expired",
    "is_due_for_completion",
    "is_scheduled_for_deletion",
    "is_undo_expired",
    "start_deletion",
    "tokens_match",
    "undo_deletion",
]
