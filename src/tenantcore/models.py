"""Core data models for tenantcore.

Pydantic models for organisation membership and the deletion lifecycle.
Invariants are checked once, at construction, so a constructed value is
always valid; transitions build new instances instead of mutating.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, Field, field_serializer, field_validator, model_validator

from .permissions.constants import Capability, Grant, Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_document_id() -> str:
    return str(uuid4())


# ── Membership ──────────────────────────────────────────


class OrganizationMember(BaseModel):
    """A user's membership in one organisation.

    Two onboarding flows:
    - self-created organisation: ``invited_at``/``invited_by`` are null;
    - invitation: both are set.

    ``permissions`` is an optional custom override; when null the member's
    capabilities derive from ``role``. ``brand_access`` only restricts the
    ``member`` role; owners and admins reach every brand.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    organization_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    role: Role
    permissions: Optional[tuple[Grant, ...]] = None
    brand_access: tuple[str, ...] = ()
    invited_at: Optional[AwareDatetime] = None
    invited_by: Optional[str] = None
    joined_at: AwareDatetime = Field(default_factory=utcnow)

    @field_validator("permissions", mode="before")
    @classmethod
    def parse_permissions(cls, v: Any) -> Any:
        if v is None:
            return None
        return tuple(Capability.parse(p) for p in v)

    @field_serializer("permissions")
    def serialize_permissions(self, v: Optional[tuple[Grant, ...]]) -> Optional[list[str]]:
        if v is None:
            return None
        return [str(p) for p in v]

    @model_validator(mode="after")
    def check_provenance(self) -> OrganizationMember:
        if (self.invited_at is None) != (self.invited_by is None):
            raise ValueError("invited_at and invited_by must both be set or both be null")
        if self.joined_at > utcnow():
            raise ValueError("joined_at cannot be in the future")
        return self


class UserProfile(BaseModel):
    """Contact details used to address notification emails."""

    user_id: str = Field(min_length=1)
    email: str = Field(min_length=3)
    display_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.email


# ── Deletion lifecycle ──────────────────────────────────


class DeletionStatus(str, Enum):
    """Deletion request lifecycle states.

    - pending-email: waiting for the confirmation link to be followed
    - confirmed-deletion: soft-deleted, undo available, purge scheduled
    - cancelled: undone inside the undo window (terminal)
    - completed: permanently deleted after the grace period (terminal)
    """

    PENDING_EMAIL = "pending-email"
    CONFIRMED_DELETION = "confirmed-deletion"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeletionStatus.CANCELLED, DeletionStatus.COMPLETED)


class DeletionActionType(str, Enum):
    """How a deletion request was acted upon."""

    EMAIL_LINK = "email-link"
    MANUAL_UNDO = "manual-undo"
    SYSTEM_CLEANUP = "system-cleanup"


class DeletionAuditEntry(BaseModel):
    """One immutable audit record. ``user_id`` is null for system actions."""

    model_config = {"frozen": True}

    timestamp: AwareDatetime
    action: str = Field(min_length=1)
    user_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class DeletionRequest(BaseModel):
    """Organisation deletion request (one per organisation).

    Attributes:
        organization_name: Denormalised for emails and the permanent audit.
        token_expires_at: Confirmation deadline (24h after ``requested_at``).
        scheduled_deletion_at: Permanent purge time; set only while
            ``confirmed-deletion``.
        undo_token / undo_expires_at: Undo link credentials; set only while
            ``confirmed-deletion``.
        audit_log: Append-only, chronological.
        version: Incremented by every applied transition; storage uses it
            together with ``status`` for conditional writes.
    """

    model_config = {"frozen": True}

    request_id: str = Field(default_factory=new_document_id, min_length=1)
    organization_id: str = Field(min_length=1)
    organization_name: str = Field(min_length=1)
    requested_by: str = Field(min_length=1)
    requested_at: AwareDatetime
    confirmation_token: str = Field(min_length=1)
    token_expires_at: AwareDatetime
    confirmation_email_sent_at: Optional[AwareDatetime] = None
    confirmed_at: Optional[AwareDatetime] = None
    confirmed_via: Optional[DeletionActionType] = None
    status: DeletionStatus = DeletionStatus.PENDING_EMAIL
    scheduled_deletion_at: Optional[AwareDatetime] = None
    undo_token: Optional[str] = None
    undo_expires_at: Optional[AwareDatetime] = None
    completed_at: Optional[AwareDatetime] = None
    audit_log: tuple[DeletionAuditEntry, ...] = ()
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_lifecycle(self) -> DeletionRequest:
        confirmed = self.status is DeletionStatus.CONFIRMED_DELETION

        if self.token_expires_at <= self.requested_at:
            raise ValueError("token_expires_at must be after requested_at")
        if (self.scheduled_deletion_at is not None) != confirmed:
            raise ValueError("scheduled_deletion_at is set if and only if status is confirmed-deletion")
        if not confirmed and (self.undo_token is not None or self.undo_expires_at is not None):
            raise ValueError("undo_token and undo_expires_at are only valid while confirmed-deletion")
        if (self.confirmed_at is None) != (self.confirmed_via is None):
            raise ValueError("confirmed_at and confirmed_via must both be set or both be null")
        if self.status is DeletionStatus.PENDING_EMAIL and self.confirmed_at is not None:
            raise ValueError("a pending-email request cannot carry a confirmation")
        if self.status in (DeletionStatus.CONFIRMED_DELETION, DeletionStatus.COMPLETED) and self.confirmed_at is None:
            raise ValueError(f"a {self.status.value} request requires confirmed_at")
        if (self.completed_at is not None) != (self.status is DeletionStatus.COMPLETED):
            raise ValueError("completed_at is set if and only if status is completed")
        return self

    def is_active(self, now: datetime) -> bool:
        """True while the request blocks a new one for the same organisation."""
        if self.status is DeletionStatus.CONFIRMED_DELETION:
            return True
        return self.status is DeletionStatus.PENDING_EMAIL and now <= self.token_expires_at


class DeletedOrganizationAudit(BaseModel):
    """Permanent audit record that survives organisation deletion."""

    model_config = {"frozen": True}

    audit_id: str = Field(default_factory=new_document_id)
    organization_id: str
    organization_name: str
    deletion_request_id: str
    requested_by: str
    requested_at: AwareDatetime
    confirmed_at: AwareDatetime
    completed_at: AwareDatetime
    member_count: int = Field(ge=0)
    brand_count: int = Field(ge=0)
    audit_log: tuple[DeletionAuditEntry, ...]


__all__ = [
    "DeletedOrganizationAudit",
    "DeletionActionType",
    "DeletionAuditEntry",
    "DeletionRequest",
    "DeletionStatus",
    "OrganizationMember",
    "UserProfile",
    "new_document_id",
    "utcnow",
]
