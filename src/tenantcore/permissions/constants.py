"""Capability catalog and roles for tenantcore.

Provides:
- ``Capability``: an immutable ``category:action`` tag.
- ``AllCapabilities`` / ``WILDCARD``: the grant meaning "every capability".
- ``Permissions``: the canonical capability catalog.
- ``Role``: organisation roles (owner, admin, member).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

CATEGORIES = frozenset({"org", "users", "brands", "events", "analytics"})

ACTIONS = frozenset(
    {
        "view",
        "create",
        "update",
        "delete",
        "invite",
        "remove",
        "publish",
        "manage_billing",
        "view_billing",
        "view_settings",
        "transfer",
        "update_role",
        "update_access",
        "manage_team",
        "manage_modules",
        "moderate",
        "view_org",
        "view_brand",
        "view_event",
        "export",
    }
)

WILDCARD_TAG = "*"


@dataclass(frozen=True, order=True)
class Capability:
    """A single atomic capability in ``{category}:{action}`` format.

    Example::

        Capability("brands", "delete")       # brands:delete
        Capability.parse("org:delete")       # Capability("org", "delete")
    """

    category: str
    action: str

    def __post_init__(self) -> None:
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown capability category: {self.category!r}")
        if self.action not in ACTIONS:
            raise ValueError(f"Unknown capability action: {self.action!r}")

    @property
    def tag(self) -> str:
        return f"{self.category}:{self.action}"

    def __str__(self) -> str:
        return self.tag

    @staticmethod
    def parse(value: str | Grant) -> Grant:
        """Parse a capability tag (or ``"*"``) into a grant.

        Already-parsed grants are returned unchanged.

        Raises:
            ValueError: If the tag is malformed or not in the catalog.
        """
        if isinstance(value, (Capability, AllCapabilities)):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Capability must be a string, got {type(value).__name__}")
        value = value.strip()
        if value == WILDCARD_TAG:
            return WILDCARD
        category, sep, action = value.partition(":")
        if not sep or not category or not action:
            raise ValueError(f"Capability must use category:action format, got {value!r}")
        return Capability(category, action)


class AllCapabilities:
    """The wildcard grant. Grants every capability; reserved for owners.

    A distinct type rather than a sentinel string, so no catalog tag can
    ever be mistaken for it.
    """

    _instance: AllCapabilities | None = None

    def __new__(cls) -> AllCapabilities:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def tag(self) -> str:
        return WILDCARD_TAG

    def __str__(self) -> str:
        return WILDCARD_TAG

    def __repr__(self) -> str:
        return "WILDCARD"

    def __reduce__(self):
        return (AllCapabilities, ())


WILDCARD = AllCapabilities()

Grant = Union[Capability, AllCapabilities]


class Permissions:
    """Canonical capability catalog.

    Format: ``{category}:{action}``
    """

    # ── Organisation ────────────────────────────────────
    ORG_UPDATE = Capability("org", "update")
    ORG_DELETE = Capability("org", "delete")
    ORG_TRANSFER = Capability("org", "transfer")
    ORG_VIEW_BILLING = Capability("org", "view_billing")
    ORG_MANAGE_BILLING = Capability("org", "manage_billing")
    ORG_VIEW_SETTINGS = Capability("org", "view_settings")

    # ── Users & team ────────────────────────────────────
    USERS_INVITE = Capability("users", "invite")
    USERS_VIEW = Capability("users", "view")
    USERS_UPDATE_ROLE = Capability("users", "update_role")
    USERS_UPDATE_ACCESS = Capability("users", "update_access")
    USERS_REMOVE = Capability("users", "remove")

    # ── Brands ──────────────────────────────────────────
    BRANDS_CREATE = Capability("brands", "create")
    BRANDS_VIEW = Capability("brands", "view")
    BRANDS_UPDATE = Capability("brands", "update")
    BRANDS_DELETE = Capability("brands", "delete")
    BRANDS_MANAGE_TEAM = Capability("brands", "manage_team")

    # ── Events ──────────────────────────────────────────
    EVENTS_CREATE = Capability("events", "create")
    EVENTS_VIEW = Capability("events", "view")
    EVENTS_UPDATE = Capability("events", "update")
    EVENTS_PUBLISH = Capability("events", "publish")
    EVENTS_DELETE = Capability("events", "delete")
    EVENTS_MANAGE_MODULES = Capability("events", "manage_modules")
    EVENTS_MODERATE = Capability("events", "moderate")

    # ── Analytics ───────────────────────────────────────
    ANALYTICS_VIEW_ORG = Capability("analytics", "view_org")
    ANALYTICS_VIEW_BRAND = Capability("analytics", "view_brand")
    ANALYTICS_VIEW_EVENT = Capability("analytics", "view_event")
    ANALYTICS_EXPORT = Capability("analytics", "export")

    # ── Groups ──────────────────────────────────────────
    ORGANIZATION = (
        ORG_UPDATE,
        ORG_DELETE,
        ORG_TRANSFER,
        ORG_VIEW_BILLING,
        ORG_MANAGE_BILLING,
        ORG_VIEW_SETTINGS,
    )
    USER_MANAGEMENT = (
        USERS_INVITE,
        USERS_VIEW,
        USERS_UPDATE_ROLE,
        USERS_UPDATE_ACCESS,
        USERS_REMOVE,
    )
    BRAND_MANAGEMENT = (
        BRANDS_CREATE,
        BRANDS_VIEW,
        BRANDS_UPDATE,
        BRANDS_DELETE,
        BRANDS_MANAGE_TEAM,
    )
    EVENT_MANAGEMENT = (
        EVENTS_CREATE,
        EVENTS_VIEW,
        EVENTS_UPDATE,
        EVENTS_PUBLISH,
        EVENTS_DELETE,
        EVENTS_MANAGE_MODULES,
        EVENTS_MODERATE,
    )
    ANALYTICS = (
        ANALYTICS_VIEW_ORG,
        ANALYTICS_VIEW_BRAND,
        ANALYTICS_VIEW_EVENT,
        ANALYTICS_EXPORT,
    )

    ALL = ORGANIZATION + USER_MANAGEMENT + BRAND_MANAGEMENT + EVENT_MANAGEMENT + ANALYTICS


class Role(str, Enum):
    """Role within an organisation. Exactly one per (organisation, user)."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


__all__ = [
    "ACTIONS",
    "CATEGORIES",
    "WILDCARD",
    "WILDCARD_TAG",
    "AllCapabilities",
    "Capability",
    "Grant",
    "Permissions",
    "Role",
]
