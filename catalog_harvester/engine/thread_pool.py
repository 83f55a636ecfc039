"""Named worker pools, one per pipeline stage."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Dict


class ThreadPoolManager:
    """Create stage pools on first use and keep them for the process lifetime.

    The size passed on first ``get`` wins; later calls reuse the pool.
    """

    def __init__(self, default_workers: int = 4) -> None:
        self.default_workers = default_workers
        self._executors: Dict[str, ThreadPoolExecutor] = {}
        self._lock = Lock()

    def get(self, stage: str, max_workers: int | None = None) -> ThreadPoolExecutor:
        with self._lock:
            if stage not in self._executors:
                workers = max_workers or self.default_workers
                self._executors[stage] = ThreadPoolExecutor(
                    max_workers=workers, thread_name_prefix=f"harvester-{stage}"
                )
            return self._executors[stage]

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            for executor in self._executors.values():
                executor.shutdown(wait=wait)
            self._executors.clear()


__all__ = ["ThreadPoolManager"]
