"""Domain types shared by the queue store and the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

ASSET_SLOTS = 6
FAILED_ASSET_PREFIX = "DOWNLOAD_FAILED: "


class ItemStatus(str, Enum):
    """Pipeline stage of a queue item."""

    NEW = "NEW"
    FETCHING = "FETCHING"
    FETCHED = "FETCHED"
    PARSED = "PARSED"
    ASSETS_READY = "ASSETS_READY"
    FAILED = "FAILED"

    def can_become(self, target: "ItemStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.NEW: frozenset({ItemStatus.FETCHING}),
    ItemStatus.FETCHING: frozenset({ItemStatus.FETCHED, ItemStatus.FAILED}),
    ItemStatus.FETCHED: frozenset({ItemStatus.PARSED, ItemStatus.FAILED}),
    ItemStatus.PARSED: frozenset({ItemStatus.ASSETS_READY, ItemStatus.FAILED}),
    ItemStatus.ASSETS_READY: frozenset(),
    ItemStatus.FAILED: frozenset(),
}


class InvalidTransition(ValueError):
    """Raised when a status change would move an item backwards or skip a stage."""

    def __init__(self, item_id: int, current: ItemStatus, target: ItemStatus) -> None:
        super().__init__(f"Item {item_id}: {current.value} -> {target.value} is not allowed")
        self.item_id = item_id
        self.current = current
        self.target = target


@dataclass(slots=True)
class QueueItem:
    """One discovered item URL and its pipeline status."""

    id: int
    url: str
    status: ItemStatus
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(slots=True)
class ExtractedRecord:
    """Structured fields parsed from an item page.

    ``assets`` always holds exactly :data:`ASSET_SLOTS` entries. Each entry is
    ``None``, a remote URL, a local path, or a failure sentinel produced by the
    asset stage.
    """

    queue_id: int
    external_id: str
    brand: str | None = None
    name: str | None = None
    price: int = 0
    assets: tuple[Optional[str], ...] = field(default=(None,) * ASSET_SLOTS)
    id: int | None = None

    def __post_init__(self) -> None:
        slots = tuple(self.assets)[:ASSET_SLOTS]
        self.assets = slots + (None,) * (ASSET_SLOTS - len(slots))


@dataclass(slots=True)
class BatchSummary:
    """Outcome counts of a stage batch."""

    succeeded: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def as_dict(self) -> dict[str, int]:
        return {"succeeded": self.succeeded, "failed": self.failed}


@dataclass(slots=True)
class DiscoveryResult:
    """Summary of one discovery run."""

    iterations: int
    new_items: int
    stop_reason: str


def is_remote(reference: str | None) -> bool:
    return bool(reference) and reference.startswith(("http://", "https://"))


def failed_asset(url: str) -> str:
    return f"{FAILED_ASSET_PREFIX}{url}"


def failed_asset_url(reference: str | None) -> str | None:
    """Return the original URL stored in a failure sentinel, if any."""

    if reference and reference.startswith(FAILED_ASSET_PREFIX):
        return reference[len(FAILED_ASSET_PREFIX):]
    return None


__all__ = [
    "ASSET_SLOTS",
    "BatchSummary",
    "DiscoveryResult",
    "ExtractedRecord",
    "FAILED_ASSET_PREFIX",
    "InvalidTransition",
    "ItemStatus",
    "QueueItem",
    "failed_asset",
    "failed_asset_url",
    "is_remote",
]
