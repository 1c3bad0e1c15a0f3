"""Usage-counter store interface.

The quota gate depends on this abstraction so the persistent backend
(Firestore in production) can be swapped for the in-memory one in tests and
local development.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


def counter_key(caller_key: str, day: str) -> str:
    """Build the document key for a caller's usage on a given UTC day.

    Examples:
        >>> counter_key("1.2.3.4", "2024-01-01")
        '1.2.3.4_2024-01-01'
    """
    return f"{caller_key}_{day}"


class AbstractQuotaStore(ABC):
    """Interface for daily usage-counter stores.

    Implementations must raise ``StoreAppError`` for any backend failure so the
    gate fails closed.
    """

    @abstractmethod
    async def get_count(self, key: str) -> int:
        """Return the current count for ``key`` (0 when no counter exists)."""
        raise NotImplementedError

    @abstractmethod
    async def increment_if_below(self, key: str, limit: int) -> int | None:
        """Atomically add 1 to the counter for ``key`` unless it reached ``limit``.

        The counter is created at 1 when absent. Other fields stored alongside
        the count are left untouched. Concurrent callers on the same key never
        lose increments and never push the count above ``limit``.

        Args:
            key: Counter key (see ``counter_key``).
            limit: Upper bound for the count.

        Returns:
            The new count, or None when the counter was already at the limit
            (nothing is written in that case).
        """
        raise NotImplementedError
