"""HTTP middleware for request correlation.

Every request/response pair carries a correlation id so the notifications a
browser shows can be traced back to the rename or send that produced them.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate (or mint) the request id and time the request.

    The incoming header configured by ``LOG_REQUEST_ID_HEADER`` is reused when
    present, otherwise a UUID4 is generated. The id lives in a contextvar for
    the duration of the request so service logs pick it up, and is echoed on
    the response together with ``X-Request-Duration-ms``.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{elapsed_ms:.2f}")
    return response
