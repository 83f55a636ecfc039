"""Pydantic models used across the harvester configuration flow."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..domain import ASSET_SLOTS

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
]

_DETAIL_ROOT = (
    "#container > div.content-wrapper > div.prod-detail-header > div > div:nth-child(2)"
    " > div > div > div:nth-child(1)"
)


def _coerce_range(value: Any, name: str) -> tuple[float, float]:
    if value in (None, ""):
        return (0.0, 0.0)
    if isinstance(value, (list, tuple)) and len(value) == 2:
        low, high = float(value[0]), float(value[1])
        if low < 0 or high < 0:
            raise ValueError(f"{name} values must be non-negative")
        if high < low:
            raise ValueError(f"{name} upper bound must be >= lower bound")
        return (low, high)
    raise ValueError(f"{name} expects a two-item list or tuple")


class FetchConfig(BaseModel):
    """Retrieval policy for item pages: pool size, retries, pacing, identities."""

    concurrency: int = Field(default=8, ge=1)
    timeout: float = Field(default=15.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    jitter_range: tuple[float, float] = (0.2, 1.2)
    backoff_base: float = Field(default=0.25, ge=0)
    backoff_cap: float = Field(default=5.0, ge=0)
    backoff_jitter: float = Field(default=0.25, ge=0)
    user_agents: list[str] = Field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    proxies: list[str] = Field(default_factory=list)
    # Optional newline-delimited files merged into the lists above.
    user_agent_file: Path | None = None
    proxy_file: Path | None = None
    accept_language: str = "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7"

    @field_validator("jitter_range", mode="before")
    @classmethod
    def _coerce_jitter(cls, value: Any) -> tuple[float, float]:
        return _coerce_range(value, "jitter_range")

    @field_validator("user_agents", mode="before")
    @classmethod
    def _split_user_agents(cls, value: Any) -> Any:
        # User agents contain commas, so flat strings are pipe separated.
        if isinstance(value, str):
            return [part.strip() for part in value.split("|") if part.strip()]
        return value

    @field_validator("proxies", mode="before")
    @classmethod
    def _split_proxies(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def base_backoff(self, attempt: int) -> float:
        """Deterministic part of the retry delay after ``attempt`` failed attempts."""

        return min(self.backoff_cap, self.backoff_base * (2**attempt))


class AssetConfig(FetchConfig):
    """Retrieval policy for linked assets."""

    concurrency: int = Field(default=4, ge=1)
    timeout: float = Field(default=10.0, gt=0)
    max_attempts: int = Field(default=1, ge=1)
    jitter_range: tuple[float, float] = (0.0, 0.0)
    shard_size: int = Field(default=1800, ge=1)
    default_extension: str = "jpg"


class DiscoveryConfig(BaseModel):
    """Listing page and termination heuristics for the scroll loop."""

    start_url: str = (
        "https://www.gugus.co.kr/goodsList/viewCategoryGoodsList"
        "?categoryNo=100&searchTerm=%EA%B0%80%EB%B0%A9"
    )
    item_selector: str = "#goods-ul > li"
    link_selector: str = "#goods-ul > li > a.btn-link"
    link_attribute: str = "onclick"
    id_pattern: str = r"fn_prvwCheck\('(\d+)'"
    item_url_base: str = "https://www.gugus.co.kr/goods/viewGoods?goodsNo="
    max_iterations: int = Field(default=5000, ge=1, le=50000)
    stagnation_threshold: int = Field(default=300, ge=1)
    no_new_content_threshold: int = Field(default=300, ge=1)
    flush_every: int = Field(default=3, ge=1)
    enqueue_batch_size: int = Field(default=100, ge=1)
    settle_delay: float = Field(default=0.03, ge=0)
    poll_interval: float = Field(default=0.02, ge=0)
    max_polls: int = Field(default=20, ge=0)
    initial_wait_range: tuple[float, float] = (0.5, 0.8)
    headless: bool = True
    navigation_timeout: int = 30000

    @field_validator("initial_wait_range", mode="before")
    @classmethod
    def _coerce_wait(cls, value: Any) -> tuple[float, float]:
        return _coerce_range(value, "initial_wait_range")

    @field_validator("id_pattern")
    @classmethod
    def _validate_pattern(cls, value: str) -> str:
        try:
            compiled = re.compile(value)
        except re.error as exc:
            raise ValueError(f"id_pattern does not compile: {exc}") from exc
        if compiled.groups < 1:
            raise ValueError("id_pattern must capture the item id in a group")
        return value


class StorageConfig(BaseModel):
    """Locations of the queue database and the sharded file stores."""

    database: Path = Field(default=Path("data/harvester.db"))
    pages_dir: Path = Field(default=Path("data/pages"))
    assets_dir: Path = Field(default=Path("data/assets"))
    page_shard_size: int = Field(default=300, ge=1)
    page_key_param: str = "goodsNo"

    @field_validator("database", "pages_dir", "assets_dir", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolve(self, base_dir: Path) -> "StorageConfig":
        """Return a copy whose relative paths are anchored at ``base_dir``."""

        def _anchor(path: Path) -> Path:
            return path if path.is_absolute() else (base_dir / path).resolve()

        return self.model_copy(
            update={
                "database": _anchor(self.database),
                "pages_dir": _anchor(self.pages_dir),
                "assets_dir": _anchor(self.assets_dir),
            }
        )


class FieldRule(BaseModel):
    """Ordered fallback selectors for one field.

    Selectors use ``css`` (text), ``css::attr:name`` or ``css::html``.
    ``remove`` lists literal fragments stripped from the extracted text.
    """

    selectors: list[str] = Field(default_factory=list)
    remove: list[str] = Field(default_factory=list)

    @field_validator("selectors", mode="before")
    @classmethod
    def _coerce_selectors(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


class SelectorTable(BaseModel):
    """Declarative field → selector mapping used by the extraction stage."""

    brand: FieldRule = Field(
        default_factory=lambda: FieldRule(selectors=[f"{_DETAIL_ROOT} > div.info-head > div"])
    )
    name: FieldRule = Field(default_factory=lambda: FieldRule(selectors=[f"{_DETAIL_ROOT} > h1"]))
    external_id: FieldRule = Field(
        default_factory=lambda: FieldRule(
            selectors=[f"{_DETAIL_ROOT} > div.bar-group > span:nth-child(1)"],
            remove=["상품번호"],
        )
    )
    price: FieldRule = Field(
        default_factory=lambda: FieldRule(
            selectors=[
                f"{_DETAIL_ROOT} > div.prod-price > span.goods-group.size-4xl > span.val",
                f"{_DETAIL_ROOT} > div.prod-price > span > span.val",
            ]
        )
    )
    assets: list[FieldRule] = Field(
        default_factory=lambda: [
            FieldRule(selectors=[f"#gallery > div:nth-child({slot}) > img::attr:src"])
            for slot in range(1, ASSET_SLOTS + 1)
        ]
    )

    @field_validator("assets")
    @classmethod
    def _limit_assets(cls, value: list[FieldRule]) -> list[FieldRule]:
        if len(value) > ASSET_SLOTS:
            raise ValueError(f"At most {ASSET_SLOTS} asset rules are supported")
        return value


class HarvesterConfig(BaseModel):
    """Top-level configuration shared by every stage."""

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    assets: AssetConfig = Field(default_factory=AssetConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @model_validator(mode="after")
    def _validate_backoff(self) -> "HarvesterConfig":
        for policy in (self.fetch, self.assets):
            if policy.backoff_cap < policy.backoff_base:
                raise ValueError("backoff_cap must be >= backoff_base")
        return self


__all__ = [
    "AssetConfig",
    "DEFAULT_USER_AGENTS",
    "DiscoveryConfig",
    "FetchConfig",
    "FieldRule",
    "HarvesterConfig",
    "SelectorTable",
    "StorageConfig",
]
