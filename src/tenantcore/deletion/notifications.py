"""Deletion lifecycle emails.

Provides:
- ConfirmNotification: sent to the requester, link valid for 24h
- AlertNotification: sent to every other org:delete holder once confirmed,
  carrying the undo link
- CompleteNotification: sent to former members after the permanent purge
- EmailNotifier protocol and RecordingNotifier (in-process sink)
- Confirmation / undo link builders

Notifications carry template aliases and pre-formatted (en-GB) template
data; rendering and delivery belong to the email provider adapter.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, ClassVar, Protocol, Union, runtime_checkable
from urllib.parse import urlencode

from pydantic import AwareDatetime, BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

EMAIL_TYPE = "organization-deletion"


def format_datetime_en_gb(value: datetime) -> str:
    """``2 February 2026, 10:00``"""
    return f"{format_date_en_gb(value)}, {value:%H:%M}"


def format_date_en_gb(value: datetime) -> str:
    """``2 February 2026``"""
    return f"{value.day} {value:%B %Y}"


def build_confirmation_link(app_url: str, token: str, request_id: str) -> str:
    query = urlencode({"token": token, "requestId": request_id})
    return f"{app_url.rstrip('/')}/delete-organization/confirm?{query}"


def build_undo_link(app_url: str, token: str, request_id: str) -> str:
    query = urlencode({"token": token, "requestId": request_id})
    return f"{app_url.rstrip('/')}/delete-organization/undo?{query}"


# ── Notification shapes ────────────────────────────────


class _DeletionNotification(BaseModel):
    model_config = {"frozen": True}

    template_alias: ClassVar[str]

    recipient: str = Field(min_length=3)
    organization_id: str
    organization_name: str

    @field_validator("recipient")
    @classmethod
    def normalize_recipient(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def email_type(self) -> str:
        return EMAIL_TYPE

    def template_data(self) -> dict[str, str]:
        raise NotImplementedError


class ConfirmNotification(_DeletionNotification):
    """Asks the requester to confirm deletion within the link lifetime."""

    template_alias: ClassVar[str] = "organization-deletion-confirm"

    requested_by: str
    requested_by_user_id: str
    confirmation_link: str
    expires_at: AwareDatetime

    def template_data(self) -> dict[str, str]:
        return {
            "organizationName": self.organization_name,
            "requestedBy": self.requested_by,
            "confirmationLink": self.confirmation_link,
            "expiresAt": format_datetime_en_gb(self.expires_at),
        }


class AlertNotification(_DeletionNotification):
    """Tells an org:delete holder that deletion was confirmed and can be undone."""

    template_alias: ClassVar[str] = "organization-deletion-alert"

    confirmed_by: str
    undo_link: str
    undo_expires_at: AwareDatetime
    scheduled_date: AwareDatetime

    def template_data(self) -> dict[str, str]:
        return {
            "organizationName": self.organization_name,
            "confirmedBy": self.confirmed_by,
            "undoLink": self.undo_link,
            "undoExpiresAt": format_datetime_en_gb(self.undo_expires_at),
            "scheduledDate": format_date_en_gb(self.scheduled_date),
        }


class CompleteNotification(_DeletionNotification):
    """Final notice after the permanent purge."""

    template_alias: ClassVar[str] = "organization-deletion-complete"

    deletion_date: AwareDatetime

    def template_data(self) -> dict[str, str]:
        return {
            "organizationName": self.organization_name,
            "deletionDate": format_date_en_gb(self.deletion_date),
        }


Notification = Union[ConfirmNotification, AlertNotification, CompleteNotification]


# ── Delivery ───────────────────────────────────────────


@runtime_checkable
class EmailNotifier(Protocol):
    """Email delivery adapter. ``send`` may raise; callers log and move on."""

    def send(self, notification: Notification) -> Any: ...


class RecordingNotifier:
    """Keeps sent notifications in memory instead of delivering them.

    Used in development and tests. Set ``fail_with`` to simulate a provider
    outage.
    """

    def __init__(self) -> None:
        self.sent: list[Notification] = []
        self.fail_with: BaseException | None = None
        self._lock = threading.Lock()

    def send(self, notification: Notification) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.sent.append(notification)
        logger.debug(
            "Recorded %s email to %s",
            notification.template_alias,
            notification.recipient,
        )

    def sent_to(self, recipient: str) -> list[Notification]:
        recipient = recipient.strip().lower()
        return [n for n in self.sent if n.recipient == recipient]

    def of_type(self, cls: type) -> list[Notification]:
        return [n for n in self.sent if isinstance(n, cls)]

    def clear(self) -> None:
        with self._lock:
            self.sent.clear()


__all__ = [
    "EMAIL_TYPE",
    "AlertNotification",
    "CompleteNotification",
    "ConfirmNotification",
    "EmailNotifier",
    "Notification",
    "RecordingNotifier",
    "build_confirmation_link",
    "build_undo_link",
    "format_date_en_gb",
    "format_datetime_en_gb",
]
