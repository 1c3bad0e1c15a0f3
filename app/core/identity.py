"""Caller identification for quota bucketing.

The caller key is the client network address reported by the hosting
platform. It is treated as an opaque string: no format validation happens
here, and requests without any address share the ``unknown`` bucket.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from fastapi import Request

from app.core.config import settings

UNKNOWN_CALLER = "unknown"

# Keeps the derived store document id well under Firestore's 1500 byte limit
MAX_CALLER_KEY_LENGTH = 256


def parse_header_names(names: str | None) -> list[str]:
    """Split a comma-separated header list into lower-cased names.

    Examples:
        >>> parse_header_names("X-NF-Client-Connection-IP, x-real-ip")
        ['x-nf-client-connection-ip', 'x-real-ip']
        >>> parse_header_names("")
        []
    """
    if not names:
        return []
    return [name.strip().lower() for name in names.split(",") if name.strip()]


def _first_hop(header_name: str, value: str) -> str:
    # X-Forwarded-For is "client, proxy1, proxy2"
    if header_name == "x-forwarded-for":
        return value.split(",", 1)[0].strip()
    return value.strip()


def resolve_caller_key(
    headers: Mapping[str, str],
    *,
    header_names: Iterable[str],
    peer: str | None = None,
    fallback_to_peer: bool = False,
) -> str:
    """Derive the quota bucket key for a request.

    Args:
        headers: Request headers (case-insensitive mapping, or lower-cased keys).
        header_names: Headers to check, in priority order.
        peer: Socket peer address, if known.
        fallback_to_peer: Use ``peer`` when no header carries an address.

    Returns:
        The first non-empty address found, the peer address when allowed,
        or ``"unknown"``.
    """
    for name in header_names:
        raw = headers.get(name)
        if not raw:
            continue
        value = _first_hop(name, raw)
        if value:
            return value[:MAX_CALLER_KEY_LENGTH]

    if fallback_to_peer and peer:
        return peer[:MAX_CALLER_KEY_LENGTH]

    return UNKNOWN_CALLER


def get_caller_key(request: Request) -> str:
    """FastAPI dependency returning the caller key for the current request."""
    return resolve_caller_key(
        request.headers,
        header_names=parse_header_names(settings.app.client_ip_headers),
        peer=request.client.host if request.client else None,
        fallback_to_peer=settings.app.client_ip_fallback_to_peer,
    )
