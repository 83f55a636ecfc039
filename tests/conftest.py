"""Shared fixtures: isolated home directory, queue store, fake browser, mock HTTP."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Iterable, Sequence

import httpx
import pytest

from catalog_harvester.config import ConfigLocator, ConfigRepository, DiscoveryConfig
from catalog_harvester.engine.discovery import PAGE_HEIGHT, SCROLL_TO_BOTTOM
from catalog_harvester.infra import QueueStore, SQLiteManager

ITEM_URL_BASE = "https://shop.example.com/goods/viewGoods?goodsNo="


class FakeSession:
    """In-memory listing page that reveals one batch of item ids per scroll.

    ``batches[n]`` is the list of ids appended by the n-th scroll; scrolls past
    the end add nothing. ``height_step`` is added to the page height whenever
    a scroll reveals items.
    """

    def __init__(
        self,
        initial: Iterable[int] = (),
        batches: Sequence[Sequence[int]] = (),
        height: int = 1000,
        height_step: int = 500,
        failing_scrolls: Iterable[int] = (),
        bad_ids: Iterable[int] = (),
        gate: threading.Event | None = None,
    ) -> None:
        self.elements: list[dict[str, str]] = []
        self.batches = [list(batch) for batch in batches]
        self.height = height
        self.height_step = height_step
        self.failing_scrolls = set(failing_scrolls)
        self.bad_ids = set(bad_ids)
        self.gate = gate
        self.scrolls = 0
        self.visited: list[str] = []
        self.closed = False
        self._reveal(list(initial))

    def _reveal(self, ids: list[int]) -> None:
        for item_id in ids:
            element = {"onclick": f"fn_prvwCheck('{item_id}'); return false;"}
            if item_id in self.bad_ids:
                element["broken"] = "1"
            self.elements.append(element)

    def navigate(self, url: str) -> None:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        self.visited.append(url)

    def query_all(self, selector: str) -> list[dict[str, str]]:
        return list(self.elements)

    def execute_script(self, script: str):
        if script == PAGE_HEIGHT:
            return self.height
        if script == SCROLL_TO_BOTTOM:
            self.scrolls += 1
            if self.scrolls in self.failing_scrolls:
                raise RuntimeError(f"scroll {self.scrolls} failed")
            index = self.scrolls - 1
            if index < len(self.batches) and self.batches[index]:
                self._reveal(self.batches[index])
                self.height += self.height_step
            return None
        raise AssertionError(f"unexpected script {script!r}")

    def element_attribute(self, element: dict[str, str], name: str) -> str | None:
        if element.get("broken"):
            raise RuntimeError("element detached")
        return element.get(name)

    def close(self) -> None:
        self.closed = True


def item_page(
    brand: str = "Acme Leather",
    name: str = "Weekend Bag",
    external_id: str = "상품번호 G12345",
    price: str | None = "₩12,345",
    fallback_price: str | None = None,
    images: Sequence[str | None] = (),
) -> str:
    """Item page laid out the way the default selector table expects."""

    price_html = ""
    if price is not None:
        price_html = f'<span class="goods-group size-4xl"><span class="val">{price}</span></span>'
    elif fallback_price is not None:
        price_html = f'<span class="sale"><span class="val">{fallback_price}</span></span>'
    id_html = f'<div class="bar-group"><span>{external_id}</span><span>share</span></div>' if external_id else ""
    gallery = "".join(
        f'<div><img src="{src}"></div>' if src else "<div><p>video</p></div>" for src in images
    )
    return f"""
    <html><body>
      <div id="container"><div class="content-wrapper"><div class="prod-detail-header">
        <div>
          <div class="thumbs">thumbs</div>
          <div><div><div>
            <div>
              <div class="info-head"><div>{brand}</div></div>
              <h1>{name}</h1>
              {id_html}
              <div class="prod-price">{price_html}</div>
            </div>
          </div></div></div>
        </div>
      </div></div></div>
      <div id="gallery">{gallery}</div>
    </body></html>
    """


@pytest.fixture
def harvester_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CATALOG_HARVESTER_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def config_repository(harvester_home: Path) -> ConfigRepository:
    return ConfigRepository(ConfigLocator(project_root=harvester_home))


@pytest.fixture
def store(tmp_path: Path) -> Iterable[QueueStore]:
    manager = SQLiteManager()
    queue_store = QueueStore(manager, tmp_path / "queue.db")
    yield queue_store
    manager.close_all()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def record_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def fast_discovery_config() -> Callable[..., DiscoveryConfig]:
    def _builder(**overrides) -> DiscoveryConfig:
        base = {
            "start_url": "https://shop.example.com/list",
            "item_url_base": ITEM_URL_BASE,
            "max_iterations": 10,
            "stagnation_threshold": 5,
            "no_new_content_threshold": 100,
            "flush_every": 3,
            "enqueue_batch_size": 2,
            "settle_delay": 0.0,
            "poll_interval": 0.0,
            "max_polls": 2,
            "initial_wait_range": (0.0, 0.0),
        }
        base.update(overrides)
        return DiscoveryConfig(**base)

    return _builder


@pytest.fixture
def mock_client_factory() -> Callable[..., Callable[[str | None], httpx.Client]]:
    """Build a Fetcher client factory serving ``handler`` and recording proxy routes."""

    def _build(handler: Callable[[httpx.Request], httpx.Response], proxies: list | None = None):
        def _factory(proxy: str | None) -> httpx.Client:
            if proxies is not None:
                proxies.append(proxy)
            return httpx.Client(transport=httpx.MockTransport(handler))

        return _factory

    return _build


@pytest.fixture
def fake_session() -> type[FakeSession]:
    return FakeSession


@pytest.fixture
def item_page_html() -> Callable[..., str]:
    return item_page
