"""Sliding-window throttle for point-minting endpoints."""

from __future__ import annotations

import math
import threading
from collections import deque
from time import monotonic
from typing import Callable

from gymbro.core.errors import RateLimited


class SlidingWindowLimiter:
    """Allow at most ``limit`` hits per ``window_seconds`` for each key.

    Keys whose hits have all aged out are dropped, at most once per window,
    so idle users do not accumulate.
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = monotonic) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def hit(self, key: str) -> None:
        """Record one request for ``key`` or raise ``RateLimited``."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            hits = self._hits.setdefault(key, deque())
            self._prune(hits, now)
            if len(hits) >= self.limit:
                retry_after = math.ceil(self.window_seconds - (now - hits[0]))
                raise RateLimited(retry_after=max(retry_after, 1), limit=self.limit)
            hits.append(now)

    def _prune(self, hits: deque[float], now: float) -> None:
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def _sweep(self, now: float) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            self._prune(hits, now)
            if not hits:
                del self._hits[key]
        self._last_sweep = now

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def __len__(self) -> int:
        return len(self._hits)
