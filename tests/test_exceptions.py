"""Tests for the error hierarchy and gRPC mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import grpc
import pytest

from tenantcore.exceptions import (
    AccessDenied,
    ConcurrentModificationError,
    DeletionAlreadyPending,
    InvalidToken,
    InvalidTransition,
    LastOwnerLockout,
    NotFoundError,
    PermissionDenied,
    StorageError,
    TenantCoreError,
    TokenExpired,
    UndoExpired,
    error_registry,
    get_grpc_status_code,
    grpc_error_handler,
    register_error,
)


class TestHierarchy:
    """Tests for error classes."""

    def test_default_message_and_code(self) -> None:
        error = TokenExpired()
        assert error.code == "TOKEN_EXPIRED"
        assert "expired" in str(error)
        assert isinstance(error, TenantCoreError)

    def test_details(self) -> None:
        error = DeletionAlreadyPending(organization_id="org-1")
        assert error.details == {"organization_id": "org-1"}

    def test_invalid_transition_context(self) -> None:
        error = InvalidTransition("cancelled", "pending-email", "confirm deletion")
        assert error.status == "cancelled"
        assert error.expected == "pending-email"
        assert str(error) == "Cannot confirm deletion: request status is cancelled (expected pending-email)"

    def test_permission_denied_multiple_missing(self) -> None:
        error = PermissionDenied("member", missing=["brands:create", "brands:delete"])
        assert "brands:create, brands:delete" in error.message

    def test_lockout_is_permission_denied(self) -> None:
        error = LastOwnerLockout()
        assert isinstance(error, PermissionDenied)
        assert error.details["owner_count"] == 1

    def test_concurrent_modification_is_storage_error(self) -> None:
        assert issubclass(ConcurrentModificationError, StorageError)


class TestRegistry:
    """Tests for the error registry."""

    def test_builtin_codes_registered(self) -> None:
        for cls in (PermissionDenied, AccessDenied, LastOwnerLockout, TokenExpired, UndoExpired, InvalidTransition):
            assert error_registry.get(cls.code) is cls

    def test_register_custom(self) -> None:
        @register_error("BILLING_LOCKED")
        class BillingLocked(TenantCoreError):
            code = "BILLING_LOCKED"

        assert error_registry.get("BILLING_LOCKED") is BillingLocked
        assert "BILLING_LOCKED" in error_registry.all()


class TestGrpcMapping:
    """Tests for error → gRPC status mapping."""

    @pytest.mark.parametrize(
        "error, status",
        [
            (PermissionDenied("admin", missing=["org:delete"]), grpc.StatusCode.PERMISSION_DENIED),
            (AccessDenied("member", "brand-1"), grpc.StatusCode.PERMISSION_DENIED),
            (LastOwnerLockout(), grpc.StatusCode.FAILED_PRECONDITION),
            (TokenExpired(), grpc.StatusCode.FAILED_PRECONDITION),
            (UndoExpired(), grpc.StatusCode.FAILED_PRECONDITION),
            (InvalidToken(), grpc.StatusCode.INVALID_ARGUMENT),
            (DeletionAlreadyPending(), grpc.StatusCode.ALREADY_EXISTS),
            (NotFoundError("gone"), grpc.StatusCode.NOT_FOUND),
            (ConcurrentModificationError(), grpc.StatusCode.ABORTED),
            (TenantCoreError(), grpc.StatusCode.INTERNAL),
        ],
    )
    def test_status_codes(self, error: TenantCoreError, status: grpc.StatusCode) -> None:
        assert get_grpc_status_code(error) == status


class FakeServicer:
    @grpc_error_handler
    async def ConfirmDeletion(self, request, context):
        raise TokenExpired()

    @grpc_error_handler
    async def UndoDeletion(self, request, context):
        raise RuntimeError("boom")

    @grpc_error_handler
    async def GetStatus(self, request, context):
        return "ok"


def make_context() -> MagicMock:
    context = MagicMock()
    context.abort = AsyncMock()
    return context


class TestGrpcErrorHandler:
    """Tests for grpc_error_handler."""

    @pytest.mark.asyncio
    async def test_tenant_error_aborts_with_mapped_status(self) -> None:
        context = make_context()
        await FakeServicer().ConfirmDeletion(None, context)
        context.set_trailing_metadata.assert_called_once_with([("error-code", "TOKEN_EXPIRED")])
        status, message = context.abort.await_args.args
        assert status == grpc.StatusCode.FAILED_PRECONDITION
        assert message.startswith("[TOKEN_EXPIRED]")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self) -> None:
        context = make_context()
        await FakeServicer().UndoDeletion(None, context)
        status, message = context.abort.await_args.args
        assert status == grpc.StatusCode.INTERNAL
        assert "RuntimeError" in message

    @pytest.mark.asyncio
    async def test_success_passes_through(self) -> None:
        context = make_context()
        assert await FakeServicer().GetStatus(None, context) == "ok"
        context.abort.assert_not_awaited()
