"""Token estimation for context budgeting, with encoder caching and a heuristic fallback."""

from __future__ import annotations

import hashlib
from typing import Any

from perplexity_mcp.models.conversation import Turn

# Per-message overhead for role tags and separators
MESSAGE_OVERHEAD_TOKENS = 4


class TokenEstimator:
    """
    Approximate token counts for budgeting replayed chat history.

    Perplexity does not publish its tokenizer, so counts are estimates:
    ``tiktoken``'s ``cl100k_base`` when ``encoding`` is set and loadable,
    otherwise a conservative ``len // 4`` heuristic.

    Counts for turns are cached by content hash since turns are immutable.
    """

    def __init__(self, encoding: str | None = "cl100k_base") -> None:
        self._encoding = encoding
        self._encoder: Any | None = None
        self._count_cache: dict[str, int] = {}
        self._force_heuristic: bool = encoding is None
        """Set to True in tests to skip tiktoken."""

    def estimate(self, text: str) -> int:
        """
        Estimate the token count for a string.

        Returns:
            Estimated token count, always >= 1 for non-empty text.
        """
        if not text:
            return 0
        if not self._force_heuristic:
            try:
                return len(self._get_encoder().encode(text))
            except Exception:
                # Encoder files unavailable (e.g. offline); stop retrying
                self._force_heuristic = True
        return self._heuristic(text)

    def estimate_turn(self, turn: Turn) -> int:
        """Estimated tokens for one replayed turn, including message overhead."""
        key = self.content_hash(turn.content)
        if key not in self._count_cache:
            self._count_cache[key] = self.estimate(turn.content)
        return self._count_cache[key] + MESSAGE_OVERHEAD_TOKENS

    def _get_encoder(self) -> Any:
        if self._encoder is None:
            import tiktoken

            self._encoder = tiktoken.get_encoding(self._encoding or "cl100k_base")
        return self._encoder

    @staticmethod
    def _heuristic(text: str) -> int:
        """Conservative heuristic: 4 characters per token, minimum 1."""
        return max(1, len(text) // 4)

    @staticmethod
    def content_hash(text: str) -> str:
        """Return a stable SHA-256 hex digest for use as a cache key."""
        return hashlib.sha256(text.encode()).hexdigest()
