"""Per-user TTL cache for the journey read model."""

from __future__ import annotations

import json
import threading
from time import monotonic
from typing import Any, Callable


class JourneyCache:
    """In-memory cache keyed by user id.

    Values are stored as JSON-safe copies so callers can never mutate a cached
    entry. Purely an optimization: a miss always falls through to the store.

    Each user has a generation that ``invalidate`` bumps. A reader takes the
    generation before it loads anything and hands it back to ``set``; if a
    write invalidated the user in between, the snapshot is dropped instead of
    being cached.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._entries.get(user_id)
            if record is None:
                return None
            stored_at, serialized = record
            if self._clock() - stored_at > self.ttl_seconds:
                self._entries.pop(user_id, None)
                return None
        return json.loads(serialized)

    def generation(self, user_id: str) -> int:
        with self._lock:
            return self._generations.get(user_id, 0)

    def set(self, user_id: str, value: dict[str, Any], generation: int | None = None) -> bool:
        """Store ``value``. Returns False when it was skipped as stale or caching is off."""
        if self.ttl_seconds <= 0:
            return False
        serialized = json.dumps(value, ensure_ascii=True, default=str)
        with self._lock:
            if generation is not None and self._generations.get(user_id, 0) != generation:
                return False
            self._entries[user_id] = (self._clock(), serialized)
        return True

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)
            self._generations[user_id] = self._generations.get(user_id, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            for user_id in self._generations:
                self._generations[user_id] += 1

    def __len__(self) -> int:
        return len(self._entries)
