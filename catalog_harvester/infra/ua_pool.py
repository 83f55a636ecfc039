"""Request identity (User-Agent) pool."""

from __future__ import annotations

import random
from pathlib import Path
from threading import Lock
from typing import Iterable, Optional, Sequence


class UserAgentPool:
    """Pick a request identity uniformly at random on every call.

    ``rng`` lets callers pin the choice sequence; the default shares the
    module-level generator.
    """

    def __init__(
        self,
        user_agents: Iterable[str] | None = None,
        file_path: Path | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._lock = Lock()
        self._rng = rng or random
        identities = [ua.strip() for ua in (user_agents or ()) if ua.strip()]
        if file_path and file_path.exists():
            lines = file_path.read_text(encoding="utf-8").splitlines()
            identities.extend(line.strip() for line in lines if line.strip())
        # Keep first-seen order while dropping duplicates so the draw stays uniform.
        self._identities: tuple[str, ...] = tuple(dict.fromkeys(identities))

    @property
    def identities(self) -> Sequence[str]:
        return self._identities

    def __len__(self) -> int:
        return len(self._identities)

    def get(self) -> Optional[str]:
        if not self._identities:
            return None
        with self._lock:
            return self._rng.choice(self._identities)


__all__ = ["UserAgentPool"]
