"""Context-assembly policies: which stored turns are replayed to the backend."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import structlog

from perplexity_mcp.models.config import ContextConfig
from perplexity_mcp.models.conversation import Turn
from perplexity_mcp.tokens.estimator import TokenEstimator

_logger = structlog.get_logger("perplexity_mcp.context")


class ContextPolicy(Protocol):
    """
    Selects the turns sent to the backend from a session's full history.

    Implementations receive turns in replay order and must return a suffix of
    that sequence: order is preserved and the newest turn is always included.
    A truncated suffix starts at a ``user`` turn, since the chat-completions
    API rejects a message list that opens with ``assistant``.
    """

    def select(self, turns: Sequence[Turn]) -> list[Turn]: ...


class FullHistoryPolicy:
    """Replay every stored turn. History grows without bound."""

    def select(self, turns: Sequence[Turn]) -> list[Turn]:
        return list(turns)

    def __repr__(self) -> str:
        return "FullHistoryPolicy()"


class SlidingWindowPolicy:
    """Replay at most the ``max_turns`` most recent turns, starting at a user turn."""

    def __init__(self, max_turns: int) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        self.max_turns = max_turns

    def select(self, turns: Sequence[Turn]) -> list[Turn]:
        if len(turns) <= self.max_turns:
            return list(turns)
        selected = _from_first_user_turn(turns[-self.max_turns :])
        _logger.debug(
            "context_window_applied",
            total_turns=len(turns),
            kept_turns=len(selected),
        )
        return selected

    def __repr__(self) -> str:
        return f"SlidingWindowPolicy(max_turns={self.max_turns})"


class TokenBudgetPolicy:
    """
    Replay the longest suffix of history whose estimated size fits ``max_tokens``.

    Walks newest to oldest. The newest turn is kept even when it alone exceeds
    the budget, so the current message always reaches the backend.
    """

    def __init__(self, max_tokens: int, estimator: TokenEstimator | None = None) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        self.max_tokens = max_tokens
        self._estimator = estimator or TokenEstimator()

    def select(self, turns: Sequence[Turn]) -> list[Turn]:
        included: list[Turn] = []
        used = 0
        for turn in reversed(turns):
            cost = self._estimator.estimate_turn(turn)
            if included and used + cost > self.max_tokens:
                break
            included.append(turn)
            used += cost
        if len(included) == len(turns):
            return list(turns)

        included.reverse()
        selected = _from_first_user_turn(included)
        _logger.debug(
            "context_budget_reached",
            total_turns=len(turns),
            kept_turns=len(selected),
            token_estimate=used,
        )
        return selected

    def __repr__(self) -> str:
        return f"TokenBudgetPolicy(max_tokens={self.max_tokens})"


def build_policy(config: ContextConfig, estimator: TokenEstimator | None = None) -> ContextPolicy:
    """Instantiate the policy named by ``config.strategy``."""
    if config.strategy == "window":
        return SlidingWindowPolicy(config.max_turns)
    if config.strategy == "token_budget":
        return TokenBudgetPolicy(config.max_tokens, estimator)
    return FullHistoryPolicy()


def _from_first_user_turn(turns: Sequence[Turn]) -> list[Turn]:
    """Drop leading assistant turns; the newest turn is kept regardless."""
    for i, turn in enumerate(turns):
        if turn.role == "user":
            return list(turns[i:])
    return list(turns[-1:])
