"""Shared fixtures for tenantcore tests."""

from __future__ import annotations

import pytest

from tenantcore import OrganizationMember, Role, SharedConfig, UserProfile
from tenantcore.deletion import (
    DeletionService,
    InMemoryDeletionStore,
    InMemoryMemberDirectory,
    RecordingNotifier,
)

from .factories import REQUESTED_AT, FakeClock, make_member


@pytest.fixture
def owner() -> OrganizationMember:
    return make_member(Role.OWNER, "owner-1")


@pytest.fixture
def co_owner() -> OrganizationMember:
    return make_member(Role.OWNER, "owner-2")


@pytest.fixture
def admin() -> OrganizationMember:
    return make_member(Role.ADMIN, "admin-1")


@pytest.fixture
def member() -> OrganizationMember:
    return make_member(Role.MEMBER, "member-1", brand_access=("brand-a",))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(REQUESTED_AT)


@pytest.fixture
def store() -> InMemoryDeletionStore:
    return InMemoryDeletionStore()


@pytest.fixture
def directory(owner, co_owner, admin, member) -> InMemoryMemberDirectory:
    return InMemoryMemberDirectory(
        members=[owner, co_owner, admin, member],
        users=[
            UserProfile(user_id="owner-1", email="Owner@Acme.test", display_name="Olivia Owner"),
            UserProfile(user_id="owner-2", email="second.owner@acme.test", display_name="Sam Second"),
            UserProfile(user_id="admin-1", email="admin@acme.test"),
            UserProfile(user_id="member-1", email="member@acme.test"),
        ],
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def config() -> SharedConfig:
    return SharedConfig(app_url="https://app.acme.test/")


@pytest.fixture
def service(store, directory, notifier, config, clock) -> DeletionService:
    return DeletionService(store, directory, notifier, config=config, clock=clock)
