"""Frontier discovery: scroll an infinite listing and enqueue item URLs."""

from __future__ import annotations

import random
import re
import time
from typing import Any, Callable, Protocol, Sequence

import structlog

from ..config import DiscoveryConfig
from ..domain import DiscoveryResult
from ..infra import QueueStore
from .dedup import DedupCache

SCROLL_TO_BOTTOM = "window.scrollTo(0, document.body.scrollHeight)"
PAGE_HEIGHT = "document.body.scrollHeight"


class RenderingSession(Protocol):
    """Script-capable page the discovery loop drives."""

    def navigate(self, url: str) -> None:
        ...

    def query_all(self, selector: str) -> Sequence[Any]:
        ...

    def execute_script(self, script: str) -> Any:
        ...

    def element_attribute(self, element: Any, name: str) -> str | None:
        ...

    def close(self) -> None:
        ...


class FrontierDiscovery:
    """Scroll the listing until it stops producing content.

    The loop ends after ``max_iterations`` rounds, after
    ``stagnation_threshold`` consecutive rounds without new items, or after
    ``no_new_content_threshold`` consecutive rounds with an unchanged page
    height. Item links are harvested every ``flush_every`` rounds and once more
    after the loop.
    """

    def __init__(
        self,
        session: RenderingSession,
        cache: DedupCache,
        store: QueueStore,
        config: DiscoveryConfig,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.session = session
        self.cache = cache
        self.store = store
        self.config = config
        self.logger = logger or structlog.get_logger("catalog_harvester.discovery")
        self._sleep = sleep
        self._rng = rng or random
        self._id_pattern = re.compile(config.id_pattern)

    def run(self, max_iterations: int | None = None) -> DiscoveryResult:
        config = self.config
        limit = config.max_iterations if max_iterations is None else max_iterations
        self.session.navigate(config.start_url)
        low, high = config.initial_wait_range
        if high > 0:
            self._sleep(self._rng.uniform(low, high))

        stagnant = 0
        same_height = 0
        previous_height = 0
        new_items = 0
        iterations = 0
        stop_reason = "max_iterations"

        for round_no in range(1, limit + 1):
            iterations = round_no
            before_height = 0
            try:
                before_count = len(self.session.query_all(config.item_selector))
                before_height = self._page_height()
                self.session.execute_script(SCROLL_TO_BOTTOM)
                grew = self._wait_for_growth(before_count)
                after_height = self._page_height()
                stagnant = 0 if grew else stagnant + 1
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("discovery_round_error", round=round_no, error=str(exc))
                stagnant += 1
                after_height = before_height

            if previous_height > 0 and before_height == previous_height and after_height == before_height:
                same_height += 1
            else:
                same_height = 0
            previous_height = after_height

            if round_no % config.flush_every == 0:
                try:
                    new_items += self.collect_and_enqueue()
                except Exception as exc:  # noqa: BLE001
                    self.logger.error("discovery_flush_error", round=round_no, error=str(exc))

            self.logger.debug(
                "discovery_round",
                round=round_no,
                stagnant=stagnant,
                same_height=same_height,
                height=after_height,
            )
            if stagnant >= config.stagnation_threshold:
                stop_reason = "stagnant"
                break
            if same_height >= config.no_new_content_threshold:
                stop_reason = "no_new_content"
                break

        new_items += self.collect_and_enqueue()
        self.logger.info(
            "discovery_finished",
            iterations=iterations,
            new_items=new_items,
            stop_reason=stop_reason,
            known=len(self.cache),
        )
        return DiscoveryResult(iterations=iterations, new_items=new_items, stop_reason=stop_reason)

    def collect_and_enqueue(self) -> int:
        """Harvest item links currently rendered and enqueue unseen ones."""

        config = self.config
        pending: list[str] = []
        enqueued = 0
        for element in self.session.query_all(config.link_selector):
            try:
                raw = self.session.element_attribute(element, config.link_attribute)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("discovery_bad_element", error=str(exc))
                continue
            match = self._id_pattern.search(raw or "")
            if match is None:
                continue
            url = f"{config.item_url_base}{match.group(1)}"
            if not self.cache.add(url):
                continue
            pending.append(url)
            if len(pending) >= config.enqueue_batch_size:
                enqueued += self._flush(pending)
                pending = []
        if pending:
            enqueued += self._flush(pending)
        return enqueued

    # ------------------------------------------------------------------
    def _flush(self, urls: list[str]) -> int:
        try:
            inserted = self.store.enqueue_many(urls)
        except Exception:
            # Unpersisted URLs must be discoverable again.
            for url in urls:
                self.cache.discard(url)
            raise
        self.logger.info("discovery_flush", submitted=len(urls), inserted=inserted)
        return inserted

    def _page_height(self) -> int:
        return int(self.session.execute_script(PAGE_HEIGHT) or 0)

    def _wait_for_growth(self, before_count: int) -> bool:
        config = self.config
        self._sleep(config.settle_delay)
        for _ in range(config.max_polls):
            if len(self.session.query_all(config.item_selector)) > before_count:
                return True
            self._sleep(config.poll_interval)
        return len(self.session.query_all(config.item_selector)) > before_count


__all__ = ["FrontierDiscovery", "PAGE_HEIGHT", "RenderingSession", "SCROLL_TO_BOTTOM"]
