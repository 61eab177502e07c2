"""Centralized logging utilities for tenantcore.

This module provides:
- Logging configuration from SharedConfig
- Safe preview utilities for sensitive data
- Secret redaction (confirmation and undo tokens included)
- Structured logging with organisation / deletion request context
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .config import LogLevel, SharedConfig

# Patterns for detecting secrets (common patterns to redact)
SECRET_PATTERNS = [
    r'(?i)(?:password|passwd|pwd|secret|token|key|api[_-]?key|auth[_-]?token)\s*[:=]\s*["\']?([^"\'\s&]+)',
    r'(?i)(?:bearer|basic)\s+([a-zA-Z0-9+/=._-]+)',
    r'[a-f0-9]{32,}',  # Long hex strings (could be hashes or keys)
]

_CONTEXT_FIELDS = ("organization_id", "request_id")

_RESERVED_RECORD_FIELDS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", *_CONTEXT_FIELDS,
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a safe, length-bounded preview of a value for logging.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A safe, truncated single-line string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, tuple)):
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


def redact_secrets(text: str, replacement: str = "[REDACTED]") -> str:
    """Redact secret patterns from text.

    Args:
        text: The text to redact
        replacement: String to replace secrets with (default: "[REDACTED]")

    Returns:
        Text with secrets redacted
    """
    if not isinstance(text, str):
        return text

    result = text
    for pattern in SECRET_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE | re.DOTALL)

    return result


def safe_log_value(value: Any, limit: int = 240, redact: bool = True) -> str:
    """Combine safe_preview() and redact_secrets() for one log value."""
    preview = safe_preview(value, limit=limit)
    if redact:
        preview = redact_secrets(preview)
    return preview


class TenantFormatter(logging.Formatter):
    """Formatter that includes tenant context and supports JSON output.

    This formatter:
    - Extracts organization_id / request_id from log records (if available)
    - Formats logs as JSON or plain text
    - Redacts secrets automatically
    """

    def __init__(
        self,
        include_context: bool = True,
        json_format: bool = True,
        redact_secrets: bool = True,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.include_context = include_context
        self.json_format = json_format
        self.redact_secrets = redact_secrets

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = {}
        if self.include_context:
            for key in _CONTEXT_FIELDS:
                value = getattr(record, key, None)
                if value:
                    context[key] = str(value)
            log_data.update(context)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_FIELDS:
                log_data[key] = safe_log_value(value, redact=self.redact_secrets)

        if self.redact_secrets:
            log_data["message"] = redact_secrets(log_data["message"])

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class TenantLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds organization_id and request_id to log records.

    Usage:
        logger = get_tenant_logger(__name__, organization_id="org-1")
        logger.info("Deletion confirmed", request_id=request.request_id)
    """

    def __init__(
        self,
        logger: logging.Logger,
        organization_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.organization_id = organization_id
        self.request_id = request_id

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        organization_id = kwargs.pop("organization_id", self.organization_id)
        request_id = kwargs.pop("request_id", self.request_id)

        extra = kwargs.get("extra", {})
        if organization_id:
            extra["organization_id"] = organization_id
        if request_id:
            extra["request_id"] = request_id
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[SharedConfig] = None,
    json_format: Optional[bool] = None,
    redact_secrets: bool = True,
    service_name: Optional[str] = None,
) -> None:
    """Configure root logging for a service embedding tenantcore.

    Args:
        config: SharedConfig instance (if None, loads from environment)
        json_format: Force JSON on/off (default: ``config.log_json``)
        redact_secrets: Whether to redact secrets (default: True)
        service_name: Optional service name for logger identification
    """
    if config is None:
        from .config import load_shared_config_from_env

        config = load_shared_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        TenantFormatter(
            include_context=True,
            json_format=config.log_json if json_format is None else json_format,
            redact_secrets=redact_secrets,
        )
    )
    root_logger.addHandler(console_handler)

    name = service_name or config.service_name
    if name:
        logging.getLogger(name).setLevel(log_level)


def get_tenant_logger(
    name: str,
    organization_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> TenantLoggerAdapter:
    """Get a logger adapter carrying tenant context.

    Example:
        logger = get_tenant_logger(__name__, organization_id=org_id)
        logger.info("Deletion requested", request_id=request.request_id)
    """
    return TenantLoggerAdapter(logging.getLogger(name), organization_id=organization_id, request_id=request_id)


__all__ = [
    "TenantFormatter",
    "TenantLoggerAdapter",
    "get_tenant_logger",
    "redact_secrets",
    "safe_log_value",
    "safe_preview",
    "setup_logging",
]
