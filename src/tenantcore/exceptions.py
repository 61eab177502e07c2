"""Unified exception hierarchy for tenantcore.

All errors inherit from TenantCoreError. This module provides:
- Base exception hierarchy with stable error codes and structured details
- Authorization errors (PermissionDenied, AccessDenied, LastOwnerLockout)
- Deletion lifecycle errors (TokenExpired, UndoExpired, InvalidTransition, ...)
- ErrorRegistry for protocol mapping
- gRPC status mapping and a unary error handler decorator

Usage in services:
    from tenantcore.exceptions import (
        PermissionDenied,
        TokenExpired,
        grpc_error_handler,
    )

Callers match on the error class (or its ``code``), never on the message.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Iterable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "TenantCoreError",
    "ConfigurationError",
    "StorageError",
    "ConcurrentModificationError",
    "NotFoundError",
    # Authorization
    "PermissionDenied",
    "AccessDenied",
    "LastOwnerLockout",
    # Deletion lifecycle
    "DeletionError",
    "TokenExpired",
    "UndoExpired",
    "InvalidToken",
    "InvalidTransition",
    "DeletionAlreadyPending",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # gRPC helpers
    "get_grpc_status_code",
    "grpc_error_handler",
]

logger = logging.getLogger(__name__)


# ---- Exception Hierarchy ----------------------------------------------------


class TenantCoreError(Exception):
    """Base exception for tenantcore.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "PERMISSION_DENIED").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(TenantCoreError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class StorageError(TenantCoreError):
    """Storage collaborator failure. The transition was not applied."""

    code: str = "STORAGE_ERROR"


class ConcurrentModificationError(StorageError):
    """A conditional write kept losing to concurrent writers."""

    code: str = "CONCURRENT_MODIFICATION"
    message: str = "The record was modified concurrently; please retry"


class NotFoundError(TenantCoreError):
    """Requested record does not exist."""

    code: str = "NOT_FOUND"


# ---- Authorization ----------------------------------------------------------


def _tags(capabilities: Iterable[Any]) -> list[str]:
    return [str(c) for c in capabilities]


class PermissionDenied(TenantCoreError):
    """Capability or role-hierarchy check failed.

    Attributes:
        role: Role of the acting member.
        missing: Capability tags the actor lacked (empty for hierarchy checks).
        action: The attempted action, for hierarchy checks.
    """

    code: str = "PERMISSION_DENIED"

    def __init__(
        self,
        role: str,
        *,
        missing: Iterable[Any] = (),
        action: str | None = None,
        message: str | None = None,
    ) -> None:
        self.role = str(role)
        self.missing = _tags(missing)
        self.action = action
        if message is None:
            if action:
                message = f"Permission denied: {self.role} cannot {action}"
            elif len(self.missing) == 1:
                message = f'Permission denied: {self.role} role lacks required permission "{self.missing[0]}"'
            else:
                message = f"Permission denied: {self.role} role lacks required permissions: {', '.join(self.missing)}"
        super().__init__(message, role=self.role, missing=self.missing, action=action)


class AccessDenied(TenantCoreError):
    """Brand-scope check failed."""

    code: str = "ACCESS_DENIED"

    def __init__(self, role: str, brand_id: str) -> None:
        self.role = str(role)
        self.brand_id = brand_id
        super().__init__(
            f"Access denied: {self.role} does not have access to brand {brand_id}",
            role=self.role,
            brand_id=brand_id,
        )


class LastOwnerLockout(PermissionDenied):
    """The sole owner tried to change their own role."""

    code: str = "LAST_OWNER_LOCKOUT"

    def __init__(self, role: str = "owner", owner_count: int = 1) -> None:
        self.owner_count = owner_count
        super().__init__(
            role,
            action="change own role",
            message=(
                "Cannot change role. You are the only owner of this organisation. "
                "Invite or promote another owner first."
            ),
        )
        self.details["owner_count"] = owner_count


# ---- Deletion Lifecycle -----------------------------------------------------


class DeletionError(TenantCoreError):
    """Base for deletion lifecycle failures."""

    code: str = "DELETION_ERROR"


class TokenExpired(DeletionError):
    """Confirmation link used after its expiry."""

    code: str = "TOKEN_EXPIRED"
    message: str = "Confirmation link has expired. Please initiate a new deletion request."


class UndoExpired(DeletionError):
    """Undo attempted after the window closed, or no undo token exists."""

    code: str = "UNDO_EXPIRED"
    message: str = "The undo window has expired. The organisation is scheduled for deletion."


class InvalidToken(DeletionError):
    """Presented token does not match the request."""

    code: str = "INVALID_TOKEN"
    message: str = "Invalid token"


class InvalidTransition(DeletionError):
    """Operation attempted against a request in the wrong state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, status: str, expected: str, operation: str) -> None:
        self.status = str(status)
        self.expected = str(expected)
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: request status is {self.status} (expected {self.expected})",
            status=self.status,
            expected=self.expected,
            operation=operation,
        )


class DeletionAlreadyPending(DeletionError):
    """An active deletion request already exists for the organisation."""

    code: str = "DELETION_ALREADY_PENDING"
    message: str = "A deletion request is already pending for this organisation"


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[TenantCoreError])


class ErrorRegistry:
    """Registry for mapping internal errors to external protocol codes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[TenantCoreError]] = {}

    def register(self, code: str, error_cls: type[TenantCoreError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[TenantCoreError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[TenantCoreError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("BILLING_ERROR")
        class BillingError(TenantCoreError):
            code = "BILLING_ERROR"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


for _cls in (
    TenantCoreError,
    ConfigurationError,
    StorageError,
    ConcurrentModificationError,
    NotFoundError,
    PermissionDenied,
    AccessDenied,
    LastOwnerLockout,
    DeletionError,
    TokenExpired,
    UndoExpired,
    InvalidToken,
    InvalidTransition,
    DeletionAlreadyPending,
):
    error_registry.register(_cls.code, _cls)


# ---- gRPC Error Handling Utilities ------------------------------------------


def get_grpc_status_code(error: TenantCoreError) -> Any:
    """Map TenantCoreError to gRPC status code.

    Returns grpc.StatusCode value for the given error type.
    Import grpc locally to avoid hard dependency at module level.
    """
    import grpc

    error_to_status = {
        "PERMISSION_DENIED": grpc.StatusCode.PERMISSION_DENIED,
        "ACCESS_DENIED": grpc.StatusCode.PERMISSION_DENIED,
        "LAST_OWNER_LOCKOUT": grpc.StatusCode.FAILED_PRECONDITION,
        "TOKEN_EXPIRED": grpc.StatusCode.FAILED_PRECONDITION,
        "UNDO_EXPIRED": grpc.StatusCode.FAILED_PRECONDITION,
        "INVALID_TOKEN": grpc.StatusCode.INVALID_ARGUMENT,
        "INVALID_TRANSITION": grpc.StatusCode.FAILED_PRECONDITION,
        "DELETION_ALREADY_PENDING": grpc.StatusCode.ALREADY_EXISTS,
        "NOT_FOUND": grpc.StatusCode.NOT_FOUND,
        "CONFIGURATION_ERROR": grpc.StatusCode.FAILED_PRECONDITION,
        "STORAGE_ERROR": grpc.StatusCode.UNAVAILABLE,
        "CONCURRENT_MODIFICATION": grpc.StatusCode.ABORTED,
    }
    return error_to_status.get(error.code, grpc.StatusCode.INTERNAL)


def grpc_error_handler(method):
    """Decorator for unary gRPC service methods with proper error handling.

    Catches TenantCoreError and sets appropriate gRPC status codes.
    Logs errors and ensures consistent error response format.

    Usage:
        @grpc_error_handler
        async def ConfirmDeletion(self, request, context):
            ...
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            return await method(self, request, context)
        except TenantCoreError as e:
            status_code = get_grpc_status_code(e)
            error_message = f"[{e.code}] {e.message}"

            logger.error(
                "%s failed: %s",
                method.__name__,
                error_message,
                extra={
                    "error_code": e.code,
                    "error_details": e.details,
                },
            )

            context.set_trailing_metadata([("error-code", e.code)])
            await context.abort(status_code, error_message)
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(
                grpc.StatusCode.INTERNAL,
                f"Unexpected {type(e).__name__}: {e}",
            )
            return

    return wrapper
