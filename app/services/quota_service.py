"""Daily per-caller quota gate.

Decides whether a caller may make another verification today and, when it
may, records the attempt in the counter store. Counters are keyed by caller
and UTC day, so a new day starts from a fresh key instead of resetting an
existing one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Callable

from app.adapters.quota_store.base import AbstractQuotaStore, counter_key


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def quota_day(now: datetime) -> str:
    """UTC calendar date of ``now`` as ``YYYY-MM-DD``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d")


def next_reset(now: datetime) -> datetime:
    """Start of the next UTC day, when every counter rolls over."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = now.astimezone(timezone.utc).date()
    return datetime.combine(today + timedelta(days=1), time.min, tzinfo=timezone.utc)


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check.

    Attributes:
        allowed: Whether the request may proceed (the attempt was recorded).
        caller_key: Bucket the decision applies to.
        day: UTC day of the counter.
        count: Counter value after the decision.
        limit: Configured daily limit.
        reset_at: UNIX epoch seconds of the next UTC midnight.
        retry_after_seconds: Seconds until reset when denied, else None.
    """

    allowed: bool
    caller_key: str
    day: str
    count: int
    limit: int
    reset_at: int
    retry_after_seconds: int | None

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class QuotaGate:
    """Check-and-consume gate over an ``AbstractQuotaStore``.

    Denials never write to the store. Admissions go through the store's atomic
    conditional increment, so at most ``limit`` attempts are admitted per
    caller per day even under concurrent requests.
    """

    def __init__(
        self,
        store: AbstractQuotaStore,
        *,
        limit: int,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the gate.

        Args:
            store: Counter store shared by all instances of the service.
            limit: Maximum admitted attempts per caller per UTC day.
            clock: Source of the current time (UTC-aware datetime).

        Raises:
            ValueError: If limit is invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")

        self._store = store
        self._limit = limit
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    def _decision(self, *, allowed: bool, caller_key: str, day: str, count: int, now: datetime) -> QuotaDecision:
        reset = next_reset(now)
        retry_after = None
        if not allowed:
            retry_after = max(0, int(math.ceil((reset - now).total_seconds())))
        return QuotaDecision(
            allowed=allowed,
            caller_key=caller_key,
            day=day,
            count=count,
            limit=self._limit,
            reset_at=int(reset.timestamp()),
            retry_after_seconds=retry_after,
        )

    async def check_and_consume(self, caller_key: str) -> QuotaDecision:
        """Admit and record one attempt for ``caller_key``, or deny it.

        Args:
            caller_key: Opaque caller identifier.

        Returns:
            QuotaDecision describing the outcome.

        Raises:
            StoreAppError: If the counter store cannot be read or written.
        """
        now = self._clock()
        day = quota_day(now)
        key = counter_key(caller_key, day)

        current = await self._store.get_count(key)
        if current >= self._limit:
            return self._decision(allowed=False, caller_key=caller_key, day=day, count=current, now=now)

        new_count = await self._store.increment_if_below(key, self._limit)
        if new_count is None:
            # A concurrent request took the last slot between the read and the increment
            return self._decision(allowed=False, caller_key=caller_key, day=day, count=self._limit, now=now)

        return self._decision(allowed=True, caller_key=caller_key, day=day, count=new_count, now=now)
