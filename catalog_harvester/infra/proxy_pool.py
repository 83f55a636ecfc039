"""Round-robin proxy pool."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Iterable, List, Optional


def normalise_proxy(entry: str) -> str:
    """Turn ``host:port`` entries into proxy URLs; full URLs pass through."""

    entry = entry.strip()
    if not entry or "://" in entry:
        return entry
    return f"http://{entry}"


class ProxyPool:
    """Circular proxy provider with optional backing file.

    Rotation uses a single counter guarded by a lock, so concurrent workers
    each receive the next proxy in order.
    """

    def __init__(
        self,
        proxies: Iterable[str] | None = None,
        file_path: Path | None = None,
    ) -> None:
        self._lock = Lock()
        self._index = 0
        self._proxies: List[str] = []
        if proxies:
            self._proxies.extend(normalise_proxy(p) for p in proxies if p.strip())
        if file_path and file_path.exists():
            lines = file_path.read_text(encoding="utf-8").splitlines()
            self._proxies.extend(normalise_proxy(line) for line in lines if line.strip())

    @property
    def empty(self) -> bool:
        return not self._proxies

    def __len__(self) -> int:
        return len(self._proxies)

    def get_proxy(self) -> Optional[str]:
        with self._lock:
            if not self._proxies:
                return None
            proxy = self._proxies[self._index % len(self._proxies)]
            self._index += 1
            return proxy


__all__ = ["ProxyPool", "normalise_proxy"]
