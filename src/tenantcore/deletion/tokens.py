"""Confirmation and undo link tokens.

Tokens are opaque, URL-safe and unguessable. Comparison is constant-time.
"""

from __future__ import annotations

import hmac
import secrets
from typing import Optional

TOKEN_BYTES = 32


def generate_deletion_token() -> str:
    """Generate a token for a confirmation or undo link."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def tokens_match(expected: Optional[str], presented: Optional[str]) -> bool:
    """Constant-time comparison; a missing token never matches."""
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


__all__ = ["TOKEN_BYTES", "generate_deletion_token", "tokens_match"]
