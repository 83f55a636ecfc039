"""Pipeline orchestrator wiring discovery, fetching, extraction and assets together."""

from __future__ import annotations

from concurrent.futures import Future, as_completed
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterable

import structlog

from .config import ConfigRepository, DiscoveryConfig
from .domain import BatchSummary, DiscoveryResult, ExtractedRecord, ItemStatus, QueueItem
from .engine import (
    AssetDownloader,
    DedupCache,
    Fetcher,
    FrontierDiscovery,
    Parser,
    RenderingSession,
    ThreadPoolManager,
)
from .engine.browser import PlaywrightSession
from .infra import ContentStore, ProxyPool, QueueStore, SQLiteManager, UserAgentPool
from .logging_conf import configure_logging, stage_logger

MAX_DISCOVERY_ITERATIONS = 50000
MAX_BATCH_SIZE = 1000

SessionFactory = Callable[[DiscoveryConfig], RenderingSession]


@dataclass(slots=True)
class ItemOutcome:
    """Per-item result handed back from a stage worker."""

    item_id: int
    status: ItemStatus
    record: ExtractedRecord | None = None
    reason: str | None = None


def _check_range(name: str, value: int, upper: int) -> None:
    if not 1 <= value <= upper:
        raise ValueError(f"{name} must be between 1 and {upper}, got {value}")


class Orchestrator:
    """Own the shared components and expose one operation per pipeline stage."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        thread_pool: ThreadPoolManager,
        storage: SQLiteManager,
        proxy_pool: ProxyPool | None = None,
        ua_pool: UserAgentPool | None = None,
        fetcher: Fetcher | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.config_repository = config_repository
        self.config = config_repository.resolved_config()
        self.thread_pool = thread_pool
        self.storage = storage
        self.logger = configure_logging().bind(component="orchestrator")

        storage_config = self.config.storage
        self.store = QueueStore(storage, storage_config.database)
        self.cache = DedupCache(self.store)
        self.content_store = ContentStore(
            pages_dir=storage_config.pages_dir,
            assets_dir=storage_config.assets_dir,
            page_shard_size=storage_config.page_shard_size,
            asset_shard_size=self.config.assets.shard_size,
            page_key_param=storage_config.page_key_param,
        )
        self.fetcher = fetcher or Fetcher(proxy_pool, ua_pool, logger=stage_logger("fetch"))
        self.parser = Parser(config_repository.load_selectors())
        self.assets = AssetDownloader(
            self.fetcher, self.content_store, self.config.assets, logger=stage_logger("assets")
        )
        self.ua_pool = ua_pool
        self.session_factory: SessionFactory = session_factory or self._playwright_session

        self._discovery_lock = Lock()
        self._discovery_future: Future[DiscoveryResult] | None = None
        self._parse_lock = Lock()
        self._assets_lock = Lock()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def run_discovery(self, max_iterations: int | None = None) -> Future[DiscoveryResult] | None:
        """Start the scroll loop in the background; None if one is already running."""

        limit = self.config.discovery.max_iterations if max_iterations is None else max_iterations
        _check_range("max_iterations", limit, MAX_DISCOVERY_ITERATIONS)
        with self._discovery_lock:
            if self._discovery_future is not None and not self._discovery_future.done():
                self.logger.warning("discovery_already_running")
                return None
            executor = self.thread_pool.get("discovery", max_workers=1)
            self._discovery_future = executor.submit(self._discover, limit)
            return self._discovery_future

    def _playwright_session(self, config: DiscoveryConfig) -> PlaywrightSession:
        user_agent = self.ua_pool.get() if self.ua_pool else None
        return PlaywrightSession(config, user_agent=user_agent)

    def _discover(self, limit: int) -> DiscoveryResult:
        log = stage_logger("discovery")
        session = self.session_factory(self.config.discovery)
        try:
            discovery = FrontierDiscovery(
                session, self.cache, self.store, self.config.discovery, logger=log
            )
            return discovery.run(limit)
        except Exception as exc:
            log.error("discovery_failed", error=str(exc), exc_info=True)
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------
    def fetch_batch(self, size: int) -> BatchSummary:
        _check_range("size", size, MAX_BATCH_SIZE)
        log = stage_logger("fetch")
        items = self.store.claim(ItemStatus.NEW, ItemStatus.FETCHING, size)
        if not items:
            log.info("fetch_batch_empty")
            return BatchSummary()
        executor = self.thread_pool.get("fetch", max_workers=self.config.fetch.concurrency)
        futures = [executor.submit(self._fetch_item, item, log) for item in items]
        outcomes = [future.result() for future in as_completed(futures)]
        return self._commit("fetch", ItemStatus.FETCHING, outcomes, log)

    def _fetch_item(self, item: QueueItem, log: structlog.BoundLogger) -> ItemOutcome:
        try:
            response = self.fetcher.fetch(item.url, self.config.fetch)
            self.content_store.write_page(item.id, item.url, response.text)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "fetch_failed",
                item_id=item.id,
                url=item.url,
                attempts=getattr(exc, "attempts", None),
                error=str(exc),
            )
            return ItemOutcome(item.id, ItemStatus.FAILED, reason=str(exc))
        return ItemOutcome(item.id, ItemStatus.FETCHED)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    def parse_batch(self, size: int) -> BatchSummary:
        _check_range("size", size, MAX_BATCH_SIZE)
        log = stage_logger("parse")
        with self._parse_lock:
            items = self.store.select(ItemStatus.FETCHED, size)
            outcomes = [self._parse_item(item, log) for item in items]
            return self._commit("parse", ItemStatus.FETCHED, outcomes, log)

    def _parse_item(self, item: QueueItem, log: structlog.BoundLogger) -> ItemOutcome:
        try:
            html = self.content_store.read_page(item.id, item.url)
            record = self.parser.parse(html, item.id, base_url=item.url)
            self.store.upsert_record(record)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "parse_failed",
                item_id=item.id,
                url=item.url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ItemOutcome(item.id, ItemStatus.FAILED, reason=str(exc))
        return ItemOutcome(item.id, ItemStatus.PARSED)

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------
    def fetch_assets_batch(self, size: int) -> BatchSummary:
        _check_range("size", size, MAX_BATCH_SIZE)
        log = stage_logger("assets")
        with self._assets_lock:
            items = self.store.select(ItemStatus.PARSED, size)
            if not items:
                log.info("assets_batch_empty")
                return BatchSummary()
            executor = self.thread_pool.get("assets", max_workers=self.config.assets.concurrency)
            futures = [executor.submit(self._assets_item, item, log) for item in items]
            outcomes = [future.result() for future in as_completed(futures)]
            return self._commit("assets", ItemStatus.PARSED, outcomes, log)

    def _assets_item(self, item: QueueItem, log: structlog.BoundLogger) -> ItemOutcome:
        try:
            record = self.store.find_record(item.id)
            if record is None:
                raise LookupError(f"No extracted record for queue item {item.id}")
            updated, all_ok = self.assets.fetch_record_assets(record)
        except Exception as exc:  # noqa: BLE001
            log.error("assets_failed", item_id=item.id, url=item.url, error=str(exc))
            return ItemOutcome(item.id, ItemStatus.FAILED, reason=str(exc))
        status = ItemStatus.ASSETS_READY if all_ok else ItemStatus.FAILED
        return ItemOutcome(item.id, status, record=updated)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def status_counts(self) -> dict[str, int]:
        return self.store.count_by_status()

    def reset_all(self) -> int:
        """Drop every record, move every item back to NEW and forget seen URLs."""

        items, records = self.store.reset_all()
        self.cache.clear()
        self.logger.info("reset_all", items_reset=items, records_deleted=records)
        return items

    def close(self) -> None:
        self.thread_pool.shutdown(wait=False)
        self.fetcher.close()
        self.storage.close_all()

    # ------------------------------------------------------------------
    def _commit(
        self,
        stage: str,
        source: ItemStatus,
        outcomes: Iterable[ItemOutcome],
        log: structlog.BoundLogger,
    ) -> BatchSummary:
        outcomes = list(outcomes)
        statuses = {outcome.item_id: outcome.status for outcome in outcomes}
        records = [outcome.record for outcome in outcomes if outcome.record is not None]
        stale = set(self.store.apply(statuses, records, expected=source))
        if stale:
            log.warning(f"{stage}_stale_items", item_ids=sorted(stale))
        summary = BatchSummary()
        for outcome in outcomes:
            if outcome.item_id in stale:
                continue
            if outcome.status is ItemStatus.FAILED:
                summary.failed += 1
            else:
                summary.succeeded += 1
        log.info(f"{stage}_batch_finished", **summary.as_dict())
        return summary


__all__ = ["ItemOutcome", "MAX_BATCH_SIZE", "MAX_DISCOVERY_ITERATIONS", "Orchestrator", "SessionFactory"]
