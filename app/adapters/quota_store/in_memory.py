"""In-memory usage-counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Counters are never pruned; intended for tests and local development.
"""

from __future__ import annotations

import threading

from app.adapters.quota_store.base import AbstractQuotaStore


class InMemoryQuotaStore(AbstractQuotaStore):
    """Dictionary-backed counter store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counts: dict[str, int] = {}

    async def get_count(self, key: str) -> int:
        with self._lock:
            return self._counts.get(key, 0)

    async def increment_if_below(self, key: str, limit: int) -> int | None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            current = self._counts.get(key, 0)
            if current >= limit:
                return None
            self._counts[key] = current + 1
            return current + 1

    def snapshot(self) -> dict[str, int]:
        """Copy of all counters, for inspection in tests."""
        with self._lock:
            return dict(self._counts)
