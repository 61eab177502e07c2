"""Tests for confirmation and undo tokens."""

from __future__ import annotations

from tenantcore.deletion import generate_deletion_token, tokens_match


class TestDeletionTokens:
    """Tests for token generation and comparison."""

    def test_tokens_are_url_safe_and_unique(self) -> None:
        tokens = {generate_deletion_token() for _ in range(100)}
        assert len(tokens) == 100
        for token in tokens:
            assert len(token) >= 43
            assert all(c.isalnum() or c in "-_" for c in token)

    def test_match(self) -> None:
        token = generate_deletion_token()
        assert tokens_match(token, token)
        assert not tokens_match(token, token[:-1])

    def test_missing_never_matches(self) -> None:
        assert not tokens_match(None, None)
        assert not tokens_match("", "")
        assert not tokens_match("abc", None)
