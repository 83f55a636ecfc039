from __future__ import annotations

import random
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from catalog_harvester.domain import ExtractedRecord, InvalidTransition, ItemStatus
from catalog_harvester.infra import ContentStore, ProxyPool, SQLiteManager, UserAgentPool
from catalog_harvester.infra.files import (
    extension_from_url,
    page_key,
    sanitize_brand,
    shard_bounds,
    shard_folder,
)


def test_sqlite_manager_initialises_schema(tmp_path: Path) -> None:
    manager = SQLiteManager()
    conn = manager.connect(tmp_path / "harvester.db")
    queue_columns = {row["name"] for row in conn.execute("PRAGMA table_info(queue_items)")}
    record_columns = {row["name"] for row in conn.execute("PRAGMA table_info(extracted_records)")}
    assert {"id", "url", "status", "created_at", "updated_at"} <= queue_columns
    assert {"queue_id", "external_id", "price", "asset_1", "asset_6"} <= record_columns
    assert manager.connect(tmp_path / "harvester.db") is conn
    manager.close_all()


# ----------------------------------------------------------------------
# Queue store
# ----------------------------------------------------------------------
def test_enqueue_ignores_known_urls(store) -> None:
    assert store.enqueue_many(["https://a", "https://b"]) == 2
    assert store.enqueue_many(["https://b", "https://c"]) == 1
    items = store.select(ItemStatus.NEW, 10)
    assert [item.url for item in items] == ["https://a", "https://b", "https://c"]
    assert [item.id for item in items] == sorted(item.id for item in items)
    assert items[0].created_at


def test_claim_is_bounded_and_exclusive(store) -> None:
    store.enqueue_many([f"https://shop/{n}" for n in range(25)])

    with ThreadPoolExecutor(max_workers=4) as executor:
        batches = list(
            executor.map(lambda _: store.claim(ItemStatus.NEW, ItemStatus.FETCHING, 10), range(4))
        )

    claimed = [item.id for batch in batches for item in batch]
    assert all(len(batch) <= 10 for batch in batches)
    assert len(claimed) == 25
    assert len(set(claimed)) == 25
    counts = store.count_by_status()
    assert counts["FETCHING"] == 25
    assert counts["NEW"] == 0


def test_claim_rejects_illegal_transition(store) -> None:
    with pytest.raises(ValueError):
        store.claim(ItemStatus.FETCHED, ItemStatus.NEW, 5)


def test_apply_enforces_status_monotonicity(store) -> None:
    store.enqueue_many(["https://a"])
    (item,) = store.claim(ItemStatus.NEW, ItemStatus.FETCHING, 1)

    store.apply({item.id: ItemStatus.FETCHED})
    with pytest.raises(InvalidTransition):
        store.apply({item.id: ItemStatus.NEW})
    with pytest.raises(InvalidTransition):
        store.apply({item.id: ItemStatus.ASSETS_READY})
    assert store.get(item.id).status is ItemStatus.FETCHED

    store.apply({item.id: ItemStatus.FAILED})
    with pytest.raises(InvalidTransition):
        store.apply({item.id: ItemStatus.PARSED})


def test_apply_rolls_back_whole_batch(store) -> None:
    store.enqueue_many(["https://a", "https://b"])
    first, second = store.claim(ItemStatus.NEW, ItemStatus.FETCHING, 2)
    with pytest.raises(InvalidTransition):
        store.apply({first.id: ItemStatus.FETCHED, second.id: ItemStatus.ASSETS_READY})
    assert store.get(first.id).status is ItemStatus.FETCHING


def test_apply_unknown_item(store) -> None:
    with pytest.raises(KeyError):
        store.apply({999: ItemStatus.FETCHED})


def test_apply_skips_items_reset_mid_batch(store) -> None:
    store.enqueue_many(["https://a", "https://b"])
    first, second = store.claim(ItemStatus.NEW, ItemStatus.FETCHING, 2)
    store.reset_all()
    (reclaimed,) = store.claim(ItemStatus.NEW, ItemStatus.FETCHING, 1)
    assert reclaimed.id == first.id
    store.upsert_record(ExtractedRecord(queue_id=second.id, external_id="R2"))

    stale = store.apply(
        {first.id: ItemStatus.FETCHED, second.id: ItemStatus.FETCHED},
        [ExtractedRecord(queue_id=second.id, external_id="R2")],
        expected=ItemStatus.FETCHING,
    )

    assert stale == [second.id]
    assert store.get(first.id).status is ItemStatus.FETCHED
    assert store.get(second.id).status is ItemStatus.NEW
    assert store.find_record(second.id) is None


def test_record_upsert_and_unique_external_id(store) -> None:
    store.enqueue_many(["https://a", "https://b"])
    a, b = store.select(ItemStatus.NEW, 2)

    saved = store.upsert_record(ExtractedRecord(queue_id=a.id, external_id="X1", price=10))
    again = store.upsert_record(ExtractedRecord(queue_id=a.id, external_id="X1", price=20, brand="B"))
    assert again.id == saved.id
    assert again.price == 20
    assert store.find_record(a.id).brand == "B"

    with pytest.raises(sqlite3.IntegrityError):
        store.upsert_record(ExtractedRecord(queue_id=b.id, external_id="X1"))


def test_reset_all_returns_everything_to_new(store) -> None:
    store.enqueue_many(["https://a", "https://b", "https://c"])
    (item,) = store.claim(ItemStatus.NEW, ItemStatus.FETCHING, 1)
    store.apply({item.id: ItemStatus.FETCHED}, [ExtractedRecord(queue_id=item.id, external_id="Z")])

    assert store.reset_all() == (3, 1)
    counts = store.count_by_status()
    assert counts["NEW"] == 3
    assert counts["TOTAL"] == 3
    assert store.find_record(item.id) is None


# ----------------------------------------------------------------------
# Sharded files
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    ("item_id", "size", "folder"),
    [
        (1, 300, "00001_00300"),
        (300, 300, "00001_00300"),
        (301, 300, "00301_00600"),
        (1800, 1800, "00001_01800"),
        (1801, 1800, "01801_03600"),
    ],
)
def test_shard_folder(item_id: int, size: int, folder: str) -> None:
    assert shard_folder(item_id, size) == folder


def test_shard_bounds_rejects_non_positive_ids() -> None:
    with pytest.raises(ValueError):
        shard_bounds(0, 300)


@pytest.mark.parametrize(
    ("brand", "expected"),
    [
        ("  acme  co ", "ACME_CO"),
        ("나이키 Korea!", "나이키_KOREA"),
        ("***", "UNKNOWN"),
        (None, "UNKNOWN"),
        ("x" * 80, "X" * 50),
    ],
)
def test_sanitize_brand(brand, expected) -> None:
    assert sanitize_brand(brand) == expected


def test_extension_and_page_key() -> None:
    assert extension_from_url("https://img/a/b.webp?x=1") == "webp"
    assert extension_from_url("https://img/a/b", default="png") == "png"
    assert page_key("https://shop/goods/viewGoods?goodsNo=123", 5, "goodsNo") == "123"
    assert page_key("https://shop/items/abc-1/", 5, "goodsNo") == "abc-1"
    assert page_key("https://shop/", 5) == "5"


def test_content_store_page_roundtrip(tmp_path: Path) -> None:
    content = ContentStore(tmp_path / "pages", tmp_path / "assets")
    url = "https://shop/goods/viewGoods?goodsNo=777"
    path = content.write_page(301, url, "<html/>")
    assert path == tmp_path / "pages" / "00301_00600" / "777.html"
    assert content.read_page(301, url) == "<html/>"
    with pytest.raises(FileNotFoundError):
        content.read_page(2, url)


# ----------------------------------------------------------------------
# Pools
# ----------------------------------------------------------------------
def test_proxy_pool_rotation_and_file(tmp_path: Path) -> None:
    proxy_file = tmp_path / "proxies.txt"
    proxy_file.write_text("10.0.0.3:3128\n\nsocks5://10.0.0.4:1080\n", encoding="utf-8")
    pool = ProxyPool(["10.0.0.1:8080"], file_path=proxy_file)
    cycle = [pool.get_proxy() for _ in range(4)]
    assert cycle == [
        "http://10.0.0.1:8080",
        "http://10.0.0.3:3128",
        "socks5://10.0.0.4:1080",
        "http://10.0.0.1:8080",
    ]
    assert ProxyPool().get_proxy() is None
    assert ProxyPool().empty


def test_user_agent_pool_dedupes_and_uses_rng(tmp_path: Path) -> None:
    ua_file = tmp_path / "ua.txt"
    ua_file.write_text("UA2\nUA3\n", encoding="utf-8")
    pool = UserAgentPool(["UA1", "UA2"], file_path=ua_file, rng=random.Random(7))
    assert list(pool.identities) == ["UA1", "UA2", "UA3"]
    assert {pool.get() for _ in range(50)} <= {"UA1", "UA2", "UA3"}
    assert UserAgentPool().get() is None
