"""Sharded on-disk storage for raw pages and downloaded assets."""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import parse_qs, urlparse

UNKNOWN_BRAND = "UNKNOWN"
_BRAND_DROP = re.compile(r"[^A-Z0-9가-힣\s]")
_WHITESPACE = re.compile(r"\s+")


def shard_bounds(item_id: int, shard_size: int) -> tuple[int, int]:
    """Inclusive id range of the shard holding ``item_id`` (ids start at 1)."""

    if item_id < 1:
        raise ValueError(f"item ids start at 1, got {item_id}")
    start = ((item_id - 1) // shard_size) * shard_size + 1
    return start, start + shard_size - 1


def shard_folder(item_id: int, shard_size: int) -> str:
    start, end = shard_bounds(item_id, shard_size)
    return f"{start:05d}_{end:05d}"


def sanitize_brand(brand: str | None) -> str:
    if brand is None or not brand.strip():
        return UNKNOWN_BRAND
    sanitized = _BRAND_DROP.sub("", brand.strip().upper())
    sanitized = _WHITESPACE.sub("_", sanitized)[:50]
    return sanitized or UNKNOWN_BRAND


def extension_from_url(url: str | None, default: str = "jpg") -> str:
    if not url:
        return default
    name = urlparse(url).path.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    if 0 < dot < len(name) - 1:
        return name[dot + 1:]
    return default


def page_key(url: str, item_id: int, param: str | None = None) -> str:
    """File stem for an item's raw page: a query parameter, the last path segment or the id."""

    parsed = urlparse(url)
    if param:
        values = parse_qs(parsed.query).get(param)
        if values and values[0].strip():
            return values[0].strip()
    segment = parsed.path.rstrip("/").rsplit("/", 1)[-1]
    segment = re.sub(r"[^0-9A-Za-z_.-]+", "_", segment).strip("._")
    return segment or str(item_id)


class ContentStore:
    """Write and read raw pages and assets under their sharded folders."""

    def __init__(
        self,
        pages_dir: Path,
        assets_dir: Path,
        page_shard_size: int = 300,
        asset_shard_size: int = 1800,
        page_key_param: str | None = "goodsNo",
    ) -> None:
        self.pages_dir = pages_dir
        self.assets_dir = assets_dir
        self.page_shard_size = page_shard_size
        self.asset_shard_size = asset_shard_size
        self.page_key_param = page_key_param

    def page_path(self, item_id: int, url: str) -> Path:
        key = page_key(url, item_id, self.page_key_param)
        return self.pages_dir / shard_folder(item_id, self.page_shard_size) / f"{key}.html"

    def write_page(self, item_id: int, url: str, content: str) -> Path:
        path = self.page_path(item_id, url)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def read_page(self, item_id: int, url: str) -> str:
        path = self.page_path(item_id, url)
        if not path.exists():
            raise FileNotFoundError(f"Raw page not found: {path}")
        return path.read_text(encoding="utf-8")

    def asset_path(self, brand: str | None, record_id: int, external_id: str, slot: int, extension: str) -> Path:
        folder = self.assets_dir / sanitize_brand(brand) / shard_folder(record_id, self.asset_shard_size)
        return folder / f"{external_id}_{slot}.{extension}"

    def write_asset(self, path: Path, payload: bytes) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        return path


__all__ = [
    "ContentStore",
    "UNKNOWN_BRAND",
    "extension_from_url",
    "page_key",
    "sanitize_brand",
    "shard_bounds",
    "shard_folder",
]
