"""Storage and directory collaborators for the deletion lifecycle.

Provides:
- DeletionStore protocol: conditional writes keyed on (status, version)
- MemberDirectory protocol: membership and user contact lookups
- InMemoryDeletionStore / InMemoryMemberDirectory: thread-safe reference
  implementations
- RedisDeletionStore: redis-py backed store, compare-and-swap via
  WATCH/MULTI

Redis layout (``<prefix>`` from ``SharedConfig.redis_key_prefix``)::

    <prefix>:deletion:request:<request_id>   JSON DeletionRequest (expires once replaced)
    <prefix>:deletion:org:<organization_id>  request_id of the latest request
    <prefix>:deletion:scheduled              ZSET request_id -> purge timestamp
    <prefix>:deletion:archive:<org_id>       JSON DeletedOrganizationAudit
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol, runtime_checkable

import redis
from redis.exceptions import RedisError, WatchError

from ..exceptions import ConfigurationError, DeletionAlreadyPending, StorageError
from ..models import (
    DeletedOrganizationAudit,
    DeletionRequest,
    DeletionStatus,
    OrganizationMember,
    UserProfile,
)

logger = logging.getLogger(__name__)


# ── Protocols ──────────────────────────────────────────


@runtime_checkable
class DeletionStore(Protocol):
    """Persistence for deletion requests.

    ``create`` refuses (``DeletionAlreadyPending``) while the organisation
    has an active request, and otherwise replaces a superseded one.
    ``compare_and_swap`` writes ``new`` only if the stored record still has
    ``expected``'s status and version, and returns whether it did.
    """

    def get(self, request_id: str) -> Optional[DeletionRequest]: ...

    def get_for_organization(self, organization_id: str) -> Optional[DeletionRequest]: ...

    def create(self, request: DeletionRequest) -> None: ...

    def compare_and_swap(self, expected: DeletionRequest, new: DeletionRequest) -> bool: ...

    def due_for_completion(self, now: datetime) -> list[DeletionRequest]: ...

    def archive(self, record: DeletedOrganizationAudit) -> None: ...


@runtime_checkable
class MemberDirectory(Protocol):
    """Read access to organisation membership and user profiles."""

    def get_member(self, organization_id: str, user_id: str) -> Optional[OrganizationMember]: ...

    def list_members(self, organization_id: str) -> list[OrganizationMember]: ...

    def get_user(self, user_id: str) -> Optional[UserProfile]: ...


def _same_revision(stored: DeletionRequest, expected: DeletionRequest) -> bool:
    return stored.status is expected.status and stored.version == expected.version


def _is_due(request: DeletionRequest, now: datetime) -> bool:
    return (
        request.status is DeletionStatus.CONFIRMED_DELETION
        and request.scheduled_deletion_at is not None
        and request.scheduled_deletion_at <= now
    )


# ── In-memory ──────────────────────────────────────────


class InMemoryDeletionStore:
    """Dict-backed store; every operation holds one lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: dict[str, DeletionRequest] = {}
        self._by_org: dict[str, str] = {}
        self.archived: list[DeletedOrganizationAudit] = []

    def get(self, request_id: str) -> Optional[DeletionRequest]:
        with self._lock:
            return self._requests.get(request_id)

    def get_for_organization(self, organization_id: str) -> Optional[DeletionRequest]:
        with self._lock:
            request_id = self._by_org.get(organization_id)
            return self._requests.get(request_id) if request_id else None

    def create(self, request: DeletionRequest) -> None:
        with self._lock:
            current_id = self._by_org.get(request.organization_id)
            current = self._requests.get(current_id) if current_id else None
            if current is not None and current.is_active(request.requested_at):
                raise DeletionAlreadyPending(
                    organization_id=request.organization_id,
                    request_id=current.request_id,
                )
            self._requests[request.request_id] = request
            self._by_org[request.organization_id] = request.request_id

    def compare_and_swap(self, expected: DeletionRequest, new: DeletionRequest) -> bool:
        with self._lock:
            stored = self._requests.get(expected.request_id)
            if stored is None or not _same_revision(stored, expected):
                return False
            self._requests[new.request_id] = new
            return True

    def due_for_completion(self, now: datetime) -> list[DeletionRequest]:
        with self._lock:
            due = [r for r in self._requests.values() if _is_due(r, now)]
        return sorted(due, key=lambda r: r.scheduled_deletion_at)

    def archive(self, record: DeletedOrganizationAudit) -> None:
        with self._lock:
            self.archived.append(record)

    def put(self, request: DeletionRequest) -> None:
        """Store ``request`` unconditionally (fixtures and migrations)."""
        with self._lock:
            self._requests[request.request_id] = request
            self._by_org[request.organization_id] = request.request_id


class InMemoryMemberDirectory:
    """Membership and profiles held in dicts."""

    def __init__(
        self,
        members: Iterable[OrganizationMember] = (),
        users: Iterable[UserProfile] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._members: dict[tuple[str, str], OrganizationMember] = {}
        self._users: dict[str, UserProfile] = {}
        for member in members:
            self.add_member(member)
        for user in users:
            self.add_user(user)

    def add_member(self, member: OrganizationMember) -> None:
        with self._lock:
            self._members[(member.organization_id, member.user_id)] = member

    def add_user(self, user: UserProfile) -> None:
        with self._lock:
            self._users[user.user_id] = user

    def get_member(self, organization_id: str, user_id: str) -> Optional[OrganizationMember]:
        with self._lock:
            return self._members.get((organization_id, user_id))

    def list_members(self, organization_id: str) -> list[OrganizationMember]:
        with self._lock:
            return [m for (org, _), m in self._members.items() if org == organization_id]

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            return self._users.get(user_id)

    def remove_organization(self, organization_id: str) -> int:
        """Drop every membership of an organisation; returns how many."""
        with self._lock:
            keys = [k for k in self._members if k[0] == organization_id]
            for key in keys:
                del self._members[key]
        return len(keys)


# ── Redis ──────────────────────────────────────────────

REPLACED_REQUEST_TTL = timedelta(days=30)


class RedisDeletionStore:
    """Deletion requests in Redis.

    The client must be created with ``decode_responses=True``.

    A request replaced by a newer one for the same organisation keeps its
    key for ``replaced_request_ttl`` so links already emailed still resolve,
    then Redis drops it.

    Example::

        store = RedisDeletionStore.from_config(config)
        store.create(request)
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "tenantcore",
        replaced_request_ttl: timedelta = REPLACED_REQUEST_TTL,
    ) -> None:
        self._client = client
        self._prefix = key_prefix.rstrip(":")
        self._replaced_ttl = int(replaced_request_ttl.total_seconds())

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "tenantcore") -> RedisDeletionStore:
        return cls(redis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    @classmethod
    def from_config(cls, config) -> RedisDeletionStore:
        if not config.redis_url:
            raise ConfigurationError("REDIS_URL is required for RedisDeletionStore")
        return cls.from_url(config.redis_url, key_prefix=config.redis_key_prefix)

    # Keys

    def request_key(self, request_id: str) -> str:
        return f"{self._prefix}:deletion:request:{request_id}"

    def organization_key(self, organization_id: str) -> str:
        return f"{self._prefix}:deletion:org:{organization_id}"

    @property
    def schedule_key(self) -> str:
        return f"{self._prefix}:deletion:scheduled"

    def archive_key(self, organization_id: str) -> str:
        return f"{self._prefix}:deletion:archive:{organization_id}"

    # Reads

    def _load(self, raw: Optional[str]) -> Optional[DeletionRequest]:
        if raw is None:
            return None
        return DeletionRequest.model_validate_json(raw)

    def get(self, request_id: str) -> Optional[DeletionRequest]:
        try:
            return self._load(self._client.get(self.request_key(request_id)))
        except RedisError as e:
            raise StorageError(f"Failed to read deletion request: {e}", request_id=request_id) from e

    def get_for_organization(self, organization_id: str) -> Optional[DeletionRequest]:
        try:
            request_id = self._client.get(self.organization_key(organization_id))
            if request_id is None:
                return None
            return self._load(self._client.get(self.request_key(request_id)))
        except RedisError as e:
            raise StorageError(
                f"Failed to read deletion request: {e}", organization_id=organization_id
            ) from e

    # Writes

    def _queue_schedule(self, pipe, request: DeletionRequest) -> None:
        if request.scheduled_deletion_at is not None:
            pipe.zadd(self.schedule_key, {request.request_id: request.scheduled_deletion_at.timestamp()})
        else:
            pipe.zrem(self.schedule_key, request.request_id)

    def create(self, request: DeletionRequest) -> None:
        org_key = self.organization_key(request.organization_id)
        try:
            with self._client.pipeline() as pipe:
                while True:
                    try:
                        pipe.watch(org_key)
                        current_id = pipe.get(org_key)
                        current = None
                        if current_id is not None:
                            pipe.watch(self.request_key(current_id))
                            current = self._load(pipe.get(self.request_key(current_id)))
                        if current is not None and current.is_active(request.requested_at):
                            pipe.unwatch()
                            raise DeletionAlreadyPending(
                                organization_id=request.organization_id,
                                request_id=current.request_id,
                            )
                        pipe.multi()
                        if current_id is not None and current_id != request.request_id:
                            pipe.expire(self.request_key(current_id), self._replaced_ttl)
                            pipe.zrem(self.schedule_key, current_id)
                        pipe.set(self.request_key(request.request_id), request.model_dump_json())
                        pipe.set(org_key, request.request_id)
                        self._queue_schedule(pipe, request)
                        pipe.execute()
                        return
                    except WatchError:
                        logger.debug("Concurrent create for organization %s, retrying", request.organization_id)
                        continue
        except RedisError as e:
            raise StorageError(
                f"Failed to create deletion request: {e}", organization_id=request.organization_id
            ) from e

    def compare_and_swap(self, expected: DeletionRequest, new: DeletionRequest) -> bool:
        key = self.request_key(expected.request_id)
        try:
            with self._client.pipeline() as pipe:
                try:
                    pipe.watch(key)
                    stored = self._load(pipe.get(key))
                    if stored is None or not _same_revision(stored, expected):
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.set(key, new.model_dump_json())
                    self._queue_schedule(pipe, new)
                    pipe.execute()
                    return True
                except WatchError:
                    return False
        except RedisError as e:
            raise StorageError(
                f"Failed to write deletion request: {e}", request_id=expected.request_id
            ) from e

    def due_for_completion(self, now: datetime) -> list[DeletionRequest]:
        try:
            request_ids = self._client.zrangebyscore(self.schedule_key, "-inf", now.timestamp())
            due = []
            for request_id in request_ids:
                request = self._load(self._client.get(self.request_key(request_id)))
                if request is not None and _is_due(request, now):
                    due.append(request)
            return due
        except RedisError as e:
            raise StorageError(f"Failed to scan scheduled deletions: {e}") from e

    def archive(self, record: DeletedOrganizationAudit) -> None:
        try:
            self._client.set(self.archive_key(record.organization_id), record.model_dump_json())
        except RedisError as e:
            raise StorageError(
                f"Failed to archive deletion audit: {e}", organization_id=record.organization_id
            ) from e


__all__ = [
    "DeletionStore",
    "InMemoryDeletionStore",
    "InMemoryMemberDirectory",
    "MemberDirectory",
    "REPLACED_REQUEST_TTL",
    "RedisDeletionStore",
]
