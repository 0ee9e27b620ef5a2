"""Per-client sliding-window limiter for the browser link flow."""

from __future__ import annotations

import math
import time
from collections import deque
from typing import Callable


class InMemoryRateLimiter:
    """Allow at most *max_requests* hits per client within *window_seconds*.

    Hits are kept per client key (the caller's IP) as a deque of clock
    readings, oldest first. State lives in process memory only.
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: int = 60,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    def _window(self, key: str) -> deque[float]:
        """Live hits for *key*; clients with none left are forgotten."""
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        cutoff = self._clock() - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def __len__(self) -> int:
        return len(self._hits)

    def _sweep(self) -> None:
        now = self._clock()
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for key in list(self._hits):
            self._window(key)

    def check(self, key: str) -> bool:
        """Record a hit for *key*; ``False`` means the hit was refused."""
        self._sweep()
        hits = self._window(key)
        if len(hits) >= self.max_requests:
            return False
        hits.append(self._clock())
        self._hits[key] = hits
        return True

    def remaining(self, key: str) -> int:
        return max(0, self.max_requests - len(self._window(key)))

    def retry_after(self, key: str) -> int:
        """Whole seconds until *key* may be allowed again (0 if it already may)."""
        hits = self._window(key)
        if len(hits) < self.max_requests:
            return 0
        return max(1, math.ceil(hits[0] + self.window_seconds - self._clock()))

    def reset(self) -> None:
        self._hits.clear()
