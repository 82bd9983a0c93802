"""
Request context middleware: request ids and latency logging.
"""

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to ``request.state`` and log per-request metrics."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        process_time_ms = round((time.time() - start_time) * 1000, 2)

        logger.info(
            "REQUEST: method=%s path=%s status=%s latency=%sms request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            process_time_ms,
            request_id,
        )
        if process_time_ms > 1000:
            logger.warning(
                "SLOW_REQUEST: method=%s path=%s latency=%sms",
                request.method,
                request.url.path,
                process_time_ms,
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time_ms)
        return response
