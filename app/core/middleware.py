"""HTTP middleware for request correlation.

Every request/response pair carries a request id:
- An incoming header (``LOG_REQUEST_ID_HEADER``, default ``X-Request-ID``)
  is reused, otherwise a UUID4 is generated.
- The id lives in a context variable for the duration of the request so all
  log lines emitted while serving it are correlated.
- The id and the total handling time are echoed in response headers. This
  includes 429 answers from the admission middleware, which runs inside this
  one.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id and duration header to every response."""

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "request.completed",
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
