"""
Observability Middleware.

Adds correlation IDs and structured logging context to requests. The
correlation id is kept in a context variable for the duration of the
request so every log line emitted while serving it carries the same id.
"""

import time
import uuid
import logging
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from delivery_backend.app.core.config import settings

CORRELATION_HEADER = "X-Correlation-ID"

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

# Configure structured logger
logger = logging.getLogger("delivery.http")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Stamp the current request's correlation id on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(level: str = None):
    """
    Configure the `delivery` logger hierarchy.

    Idempotent: calling it again only updates the level.
    """
    root = logging.getLogger("delivery")
    root.setLevel((level or settings.log_level).upper())

    if not any(isinstance(f, CorrelationIdFilter) for h in root.handlers for f in h.filters):
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    return root


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # 1. Generate or extract Correlation ID
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        token = correlation_id_var.set(correlation_id)

        # 2. Start Timer
        start_time = time.perf_counter()

        try:
            # 3. Process Request
            response = await call_next(request)

            # 4. Calculate Duration
            process_time = (time.perf_counter() - start_time) * 1000  # ms

            # 5. Add Header to Response
            response.headers[CORRELATION_HEADER] = correlation_id
            response.headers["X-Process-Time"] = f"{process_time:.2f}"

            # 6. Structured Log
            log_data = {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(process_time, 2),
                "ip": request.client.host if request.client else "unknown"
            }
            message = "%s %s -> %s (%.2f ms)"
            args = (request.method, request.url.path, response.status_code, process_time)

            # Log level based on status
            if response.status_code >= 500:
                logger.error(message, *args, extra=log_data)
            elif response.status_code >= 400:
                logger.warning(message, *args, extra=log_data)
            else:
                logger.info(message, *args, extra=log_data)

            return response
        finally:
            correlation_id_var.reset(token)
