"""Per-URL attempt state and the strategy chain that shapes each attempt."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ...config import FetchConfig


@dataclass
class RequestDirective:
    """Options for one outgoing request, filled in by the strategies."""

    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    proxy: str | None = None
    delay: float | None = None


@dataclass
class AttemptState:
    """Attempt counter and pending backoff for a single URL.

    ``attempt`` is the number of the attempt about to run (1-based), so after
    the final failure it sits one past ``policy.max_attempts``.
    """

    policy: FetchConfig
    attempt: int = 1
    backoff: float = 0.0

    @property
    def attempts_made(self) -> int:
        return self.attempt - 1

    @property
    def exhausted(self) -> bool:
        return self.attempt > self.policy.max_attempts


class Strategy:
    """Base strategy; hooks default to no-ops."""

    def before_attempt(self, state: AttemptState, directive: RequestDirective) -> None:
        return

    def after_attempt(self, state: AttemptState, error: Exception | None) -> None:
        """Observe the outcome; ``error`` is None when the attempt succeeded."""


class StrategyChain:
    """Run every strategy around each attempt, in order."""

    def __init__(self, strategies: Sequence[Strategy] = ()) -> None:
        self.strategies = list(strategies)

    def prepare(self, state: AttemptState) -> RequestDirective:
        directive = RequestDirective(timeout=state.policy.timeout)
        for strategy in self.strategies:
            strategy.before_attempt(state, directive)
        return directive

    def record(self, state: AttemptState, error: Exception | None = None) -> None:
        for strategy in self.strategies:
            strategy.after_attempt(state, error)


__all__ = ["AttemptState", "RequestDirective", "Strategy", "StrategyChain"]
