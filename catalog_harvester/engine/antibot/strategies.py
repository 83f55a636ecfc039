"""Concrete per-attempt strategies: pacing, identity, proxy routing, retries."""

from __future__ import annotations

import random

from ...config import FetchConfig
from ...infra import ProxyPool, UserAgentPool
from .chain import AttemptState, RequestDirective, Strategy, StrategyChain

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class JitterStrategy(Strategy):
    """Sleep a uniform random duration before every attempt."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random

    def before_attempt(self, state: AttemptState, directive: RequestDirective) -> None:
        low, high = state.policy.jitter_range
        if high > 0:
            directive.delay = self.rng.uniform(low, high)


class UserAgentStrategy(Strategy):
    """Draw a fresh identity for every attempt and set browser-like headers."""

    def __init__(self, pool: UserAgentPool | None) -> None:
        self.pool = pool

    def before_attempt(self, state: AttemptState, directive: RequestDirective) -> None:
        directive.headers.setdefault("Accept", DEFAULT_ACCEPT)
        directive.headers.setdefault("Accept-Language", state.policy.accept_language)
        ua = self.pool.get() if self.pool else None
        if ua:
            directive.headers["User-Agent"] = ua


class ProxyStrategy(Strategy):
    """Route each attempt through the next proxy when a pool is configured."""

    def __init__(self, pool: ProxyPool | None) -> None:
        self.pool = pool

    def before_attempt(self, state: AttemptState, directive: RequestDirective) -> None:
        if self.pool and not self.pool.empty:
            directive.proxy = self.pool.get_proxy()


class BackoffStrategy(Strategy):
    """Advance the attempt counter and price the wait before the next attempt.

    The wait is ``min(cap, base * 2**attempt)`` plus up to ``backoff_jitter``
    seconds of noise.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random

    def after_attempt(self, state: AttemptState, error: Exception | None) -> None:
        if error is None:
            state.backoff = 0.0
            return
        policy = state.policy
        noise = self.rng.uniform(0, policy.backoff_jitter) if policy.backoff_jitter > 0 else 0.0
        state.backoff = policy.base_backoff(state.attempt) + noise
        state.attempt += 1


def build_chain(
    policy: FetchConfig,
    proxy_pool: ProxyPool | None,
    ua_pool: UserAgentPool | None,
    rng: random.Random | None = None,
) -> tuple[AttemptState, StrategyChain]:
    """Fresh attempt state plus the strategy chain for one URL."""

    chain = StrategyChain(
        [
            BackoffStrategy(rng),
            JitterStrategy(rng),
            UserAgentStrategy(ua_pool),
            ProxyStrategy(proxy_pool),
        ]
    )
    return AttemptState(policy=policy), chain


__all__ = [
    "BackoffStrategy",
    "DEFAULT_ACCEPT",
    "JitterStrategy",
    "ProxyStrategy",
    "UserAgentStrategy",
    "build_chain",
]
