"""HTTP fetching with anti-bot strategy integration."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Dict

import httpx
import structlog

from ..config import FetchConfig
from ..infra import ProxyPool, UserAgentPool
from .antibot import strategies
from .antibot.chain import AttemptState, StrategyChain

ClientFactory = Callable[[str | None], httpx.Client]


def default_client_factory(proxy: str | None) -> httpx.Client:
    return httpx.Client(follow_redirects=True, proxy=proxy)


class FetchError(RuntimeError):
    """Raised once every attempt for a URL has failed."""

    def __init__(self, url: str, attempts: int, cause: Exception | None) -> None:
        super().__init__(f"Fetch failed after {attempts} attempts: {url} ({cause})")
        self.url = url
        self.attempts = attempts
        self.cause = cause


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    content: bytes = field(repr=False)
    headers: Dict[str, str] = field(default_factory=dict)
    encoding: str | None = None

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


class Fetcher:
    """Coordinate request execution and the anti-bot strategy chain.

    One ``httpx.Client`` is kept per proxy route since httpx binds proxies at
    client construction. ``sleep`` and ``rng`` are injectable for tests.
    """

    def __init__(
        self,
        proxy_pool: ProxyPool | None,
        ua_pool: UserAgentPool | None,
        client_factory: ClientFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.proxy_pool = proxy_pool
        self.ua_pool = ua_pool
        self.client_factory = client_factory or default_client_factory
        self.rng = rng
        self.logger = logger or structlog.get_logger("catalog_harvester.fetcher")
        self._sleep = sleep
        self._clients: dict[str | None, httpx.Client] = {}
        self._clients_lock = Lock()

    def close(self) -> None:
        with self._clients_lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()

    def fetch(self, url: str, policy: FetchConfig) -> FetchResponse:
        state, chain = self._build_chain(policy)
        last_error: Exception | None = None
        while True:
            directive = chain.prepare(state)
            if directive.delay:
                self._sleep(directive.delay)

            try:
                response = self._client(directive.proxy).get(
                    url, headers=directive.headers, timeout=directive.timeout
                )
            except httpx.HTTPError as exc:
                self.logger.warning(
                    "fetch_error",
                    url=url,
                    attempt=state.attempt,
                    proxy=directive.proxy,
                    error=str(exc),
                )
                last_error = exc
            else:
                if response.is_success:
                    chain.record(state)
                    return FetchResponse(
                        url=str(response.url),
                        status_code=response.status_code,
                        content=response.content,
                        headers=dict(response.headers),
                        encoding=response.encoding,
                    )
                self.logger.warning(
                    "fetch_bad_status",
                    url=url,
                    attempt=state.attempt,
                    status=response.status_code,
                )
                last_error = RuntimeError(f"Unexpected status {response.status_code}")

            chain.record(state, last_error)
            if state.exhausted:
                break
            self._sleep(state.backoff)

        raise FetchError(url, state.attempts_made, last_error) from last_error

    # ------------------------------------------------------------------
    def _build_chain(self, policy: FetchConfig) -> tuple[AttemptState, StrategyChain]:
        return strategies.build_chain(policy, self.proxy_pool, self.ua_pool, self.rng)

    def _client(self, proxy: str | None) -> httpx.Client:
        with self._clients_lock:
            client = self._clients.get(proxy)
            if client is None:
                client = self.client_factory(proxy)
                self._clients[proxy] = client
            return client


__all__ = ["ClientFactory", "FetchError", "FetchResponse", "Fetcher", "default_client_factory"]
