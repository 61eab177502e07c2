from .config import DeletionPolicy, LogLevel, SharedConfig, load_shared_config_from_env
from .exceptions import (
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
)
from .logging import (
    TenantFormatter,
    TenantLoggerAdapter,
    get_tenant_logger,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)
from .models import (
    DeletedOrganizationAudit,
    DeletionActionType,
    DeletionAuditEntry,
    DeletionRequest,
    DeletionStatus,
    OrganizationMember,
    UserProfile,
)
from .permissions import WILDCARD, Capability, Permissions, Role

__all__ = [
    'SharedConfig',
    'DeletionPolicy',
    'LogLevel',
    'load_shared_config_from_env',
    'TenantCoreError',
    'PermissionDenied',
    'AccessDenied',
    'LastOwnerLockout',
    'TokenExpired',
    'UndoExpired',
    'InvalidToken',
    'InvalidTransition',
    'DeletionAlreadyPending',
    'NotFoundError',
    'StorageError',
    'ConcurrentModificationError',
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'TenantFormatter',
    'TenantLoggerAdapter',
    'setup_logging',
    'get_tenant_logger',
    'OrganizationMember',
    'UserProfile',
    'DeletionStatus',
    'DeletionActionType',
    'DeletionAuditEntry',
    'DeletionRequest',
    'DeletedOrganizationAudit',
    'Capability',
    'WILDCARD',
    'Permissions',
    'Role',
]
