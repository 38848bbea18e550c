"""API middleware for authentication, logging, and request context."""

import hmac
import logging
import time
from collections.abc import Callable

from fastapi import Header, HTTPException, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from courier_hub.config import get_settings
from courier_hub.context import (
    clear_request_context,
    generate_request_id,
    get_current_request_id,
    set_request_context,
)
from courier_hub.observability.tracing import add_span_attribute, get_current_trace_id

logger = logging.getLogger(__name__)


async def verify_api_key(request: Request) -> str:
    """
    Verify the API key from the Authorization header.

    Expected format: "Bearer <api_key>"

    Raises:
        HTTPException: If the API key is missing or invalid.
    """
    settings = get_settings()

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(
            status_code=401,
            detail="Missing Authorization header",
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="Invalid Authorization header format. Expected: Bearer <api_key>",
        )

    api_key = parts[1]
    if not hmac.compare_digest(api_key.encode("utf-8"), settings.api_key.encode("utf-8")):
        raise HTTPException(
            status_code=401,
            detail="Invalid API key",
        )

    return api_key


async def get_client_id(
    x_client_id: str | None = Header(default=None, alias="X-Client-ID"),
) -> int:
    """
    The merchant the request acts for, from the X-Client-ID header.

    Raises:
        HTTPException: If the header is missing or not a positive integer.
    """
    if not x_client_id:
        raise HTTPException(status_code=400, detail="Missing X-Client-ID header")
    try:
        client_id = int(x_client_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Client-ID must be an integer") from None
    if client_id <= 0:
        raise HTTPException(status_code=400, detail="X-Client-ID must be positive")

    set_request_context(get_request_id(), client_id)
    add_span_attribute("client.id", client_id)
    return client_id


def get_request_id() -> str:
    return get_current_request_id() or generate_request_id()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging, timing and request context."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        """Log request details and timing with trace correlation."""
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        request.state.request_id = request_id
        set_request_context(request_id)

        trace_id = get_current_trace_id()
        add_span_attribute("http.request_id", request_id)

        start_time = time.perf_counter()
        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "trace_id": trace_id,
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else "unknown",
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            processing_time = int((time.perf_counter() - start_time) * 1000)
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "trace_id": trace_id,
                    "error": str(e),
                    "processing_time_ms": processing_time,
                },
            )
            raise
        finally:
            clear_request_context()

        processing_time = int((time.perf_counter() - start_time) * 1000)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time-Ms"] = str(processing_time)
        if trace_id:
            response.headers["X-Trace-ID"] = trace_id

        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "trace_id": trace_id,
                "status_code": response.status_code,
                "processing_time_ms": processing_time,
            },
        )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security-related headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response
