"""
Structured access log middleware.

Replaces Uvicorn's default access logs with structlog entries that carry a
correlation ID, the request duration and the response status.
"""

import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


logger = structlog.get_logger(__name__)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Access logging middleware.

    - Binds a correlation ID to the structlog context for the whole request
    - Logs method, path, status and duration once per request
    - Logs Slack's X-Slack-Retry-Num so redeliveries can be spotted
    - Echoes the correlation ID in the response headers
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid.uuid4())

        bind_contextvars(
            correlation_id=correlation_id,
            request_id=correlation_id,  # Alias for compatibility
        )
        request.state.correlation_id = correlation_id

        start_time = time.perf_counter()

        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else None
        slack_retry_num = request.headers.get("X-Slack-Retry-Num")

        logger.debug("request_started", method=method, path=path, client_ip=client_host)

        response = None
        error = None
        status_code = 500  # Default to error if something goes wrong

        try:
            response = await call_next(request)
            status_code = response.status_code

        except Exception as e:
            error = e
            status_code = 500

            logger.error(
                "request_error_unhandled",
                method=method,
                path=path,
                error_type=type(e).__name__,
                error=str(e),
                client_ip=client_host,
                exc_info=True,
            )
            raise

        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            if status_code >= 500:
                log_level = "error"
            elif status_code >= 400:
                log_level = "warning"
            else:
                log_level = "info"

            getattr(logger, log_level)(
                "http_request",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_ip=client_host,
                slack_retry_num=slack_retry_num,
                error_type=type(error).__name__ if error else None,
                slow_request=duration_ms > 3000,  # Slack gives up after 3 seconds
            )

            clear_contextvars()

        if response:
            response.headers["X-Correlation-ID"] = correlation_id
            response.headers["X-Request-ID"] = correlation_id

        return response
