"""In-memory URL deduplication backed by the queue table."""

from __future__ import annotations

from threading import Lock
from typing import Protocol


class UrlSource(Protocol):
    def all_urls(self) -> list[str]:
        """Every URL already known to the durable queue."""


class DedupCache:
    """Set of seen item URLs, loaded lazily from the queue on first use.

    ``add`` is an atomic check-and-insert, so concurrent callers never both
    see the same URL as new.
    """

    def __init__(self, source: UrlSource) -> None:
        self.source = source
        self._lock = Lock()
        self._urls: set[str] = set()
        self._loaded = False

    def contains(self, url: str) -> bool:
        with self._lock:
            self._ensure_loaded()
            return url in self._urls

    def add(self, url: str) -> bool:
        """Record ``url``; return True only if it was not seen before."""

        with self._lock:
            self._ensure_loaded()
            if url in self._urls:
                return False
            self._urls.add(url)
            return True

    def discard(self, url: str) -> None:
        with self._lock:
            self._urls.discard(url)

    def clear(self) -> None:
        with self._lock:
            self._urls.clear()
            self._loaded = False

    def __len__(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return len(self._urls)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._urls.update(self.source.all_urls())
            self._loaded = True


__all__ = ["DedupCache", "UrlSource"]
