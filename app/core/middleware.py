"""HTTP middleware for request ID propagation and access logging.

Every response carries the correlation id (accepted from the client or
generated) and the total handling time, and a single ``http.request`` log
line is emitted per request.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

_MAX_REQUEST_ID_LENGTH = 128


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id to the logging context for the whole request.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        The downstream response with ``X-Request-ID`` and
        ``X-Request-Duration-ms`` headers added.
    """

    header_name = settings.log.request_id_header
    incoming = (request.headers.get(header_name) or "").strip()
    request_id = incoming[:_MAX_REQUEST_ID_LENGTH] or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
