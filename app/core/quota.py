"""Daily quota enforcement for the HTTP layer.

This module wires the ``QuotaGate`` into request handling: it hashes the
caller key for logging, turns a denial into a 429 and exposes the
``X-RateLimit-*`` headers.

Strategy:
- Fixed daily window per caller address, rolling over at UTC midnight.
- The attempt is charged before the provider call and is not refunded if the
  provider fails, so provider volume stays bounded.
"""

from __future__ import annotations

import hashlib
import logging

from app.core.config import settings
from app.core.errors import QuotaExceededAppError
from app.services.quota_service import QuotaDecision, QuotaGate

logger = logging.getLogger(__name__)


def hash_caller_key(caller_key: str) -> str:
    """Hash the caller key for logging without exposing the address."""
    return hashlib.sha256(caller_key.encode()).hexdigest()[:16]


def quota_headers(decision: QuotaDecision) -> dict[str, str]:
    """Rate-limit headers describing ``decision``."""
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }
    if decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


async def enforce_daily_quota(gate: QuotaGate, caller_key: str) -> QuotaDecision:
    """Consume one unit of the caller's daily quota.

    Args:
        gate: Quota gate bound to the counter store.
        caller_key: Caller identifier from ``get_caller_key``.

    Returns:
        The allowing QuotaDecision.

    Raises:
        QuotaExceededAppError: 429 when the caller has no quota left today.
        StoreAppError: When the counter store fails (fail closed).
    """
    decision = await gate.check_and_consume(caller_key)
    key_hash = hash_caller_key(caller_key)

    if decision.allowed:
        logger.info(
            "quota.allowed",
            extra={
                "key_hash": key_hash,
                "day": decision.day,
                "count": decision.count,
                "limit": decision.limit,
                "remaining": decision.remaining,
            },
        )
        return decision

    logger.warning(
        "quota.exceeded",
        extra={
            "key_hash": key_hash,
            "day": decision.day,
            "count": decision.count,
            "limit": decision.limit,
            "retry_after_s": decision.retry_after_seconds,
        },
    )

    headers = quota_headers(decision) if settings.app.quota_include_headers else None
    raise QuotaExceededAppError(
        code="daily_quota_exceeded",
        message=f"Has alcanzado el límite de {decision.limit} consultas diarias.",
        details={
            "limit": decision.limit,
            "day": decision.day,
            "retry_after": decision.retry_after_seconds or 0,
        },
        headers=headers,
    )
