import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000


class ProcessingTimeMiddleware(BaseHTTPMiddleware):
    """Adds ``X-Process-Time-MS`` to every response and logs slow requests."""

    def __init__(self, app: ASGIApp, slow_request_ms: float = SLOW_REQUEST_MS):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        processing_time = (time.perf_counter() - start_time) * 1000
        response.headers["X-Process-Time-MS"] = str(round(processing_time, 2))

        if processing_time > self.slow_request_ms:
            logger.warning(
                "slow request %s %s took %.0f ms (status %s)",
                request.method,
                request.url.path,
                processing_time,
                response.status_code,
            )
        return response
