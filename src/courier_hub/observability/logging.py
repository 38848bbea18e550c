"""Structured JSON logging with trace and request correlation."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from courier_hub.context import get_current_client_id, get_current_request_id
from courier_hub.observability.tracing import get_current_span_id, get_current_trace_id


class StructuredLogFormatter(logging.Formatter):
    """
    JSON log formatter with trace and client correlation.

    Outputs logs in JSON format with:
    - Standard log fields (timestamp, level, message, logger)
    - Trace correlation (trace_id, span_id)
    - Client and request context (client_id, request_id)
    - Exception information
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        trace_id = get_current_trace_id()
        if trace_id:
            log_entry["trace_id"] = trace_id

        span_id = get_current_span_id()
        if span_id:
            log_entry["span_id"] = span_id

        client_id = get_current_client_id()
        if client_id is not None:
            log_entry["client_id"] = client_id

        request_id = get_current_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        log_entry["location"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        if hasattr(record, "extra") and record.extra:
            log_entry["extra"] = record.extra

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class RequestContextFilter(logging.Filter):
    """Logging filter that adds client and request context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context fields to the log record."""
        client_id = get_current_client_id()
        record.client_id = client_id if client_id is not None else "-"
        record.request_id = get_current_request_id() or "-"
        return True


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    module_levels: dict[str, str] | None = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Default log level.
        json_format: If True, use JSON format. Otherwise, use standard format.
        module_levels: Per-module log levels (e.g., {"courier_hub.couriers": "DEBUG"}).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    if json_format:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [client=%(client_id)s req=%(request_id)s] %(message)s"
        ))

    handler.addFilter(RequestContextFilter())
    root_logger.addHandler(handler)

    if module_levels:
        for module, mod_level in module_levels.items():
            logging.getLogger(module).setLevel(getattr(logging, mod_level.upper()))

    # Reduce noise from common libraries; httpx logs full URLs, which may carry tokens
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.info(
        "Logging configured: level=%s, json=%s, module_levels=%s",
        level,
        json_format,
        module_levels or {},
    )


def mask_secret(value: str | None, visible: int = 4) -> str:
    """
    Mask a credential for display, keeping only its last characters.

    Args:
        value: The secret to mask.
        visible: Number of trailing characters to keep.

    Returns:
        Masked representation such as "...a1b2", or "***" for short values.
    """
    if not value:
        return "<empty>"
    if len(value) <= visible * 2:
        return "***"
    return f"...{value[-visible:]}"
