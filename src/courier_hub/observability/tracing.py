"""Tracing utilities and decorators."""

import asyncio
import functools
import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Callable, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span, StatusCode, Tracer

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def get_tracer(name: str = "courier_hub") -> Tracer:
    """
    Get an OpenTelemetry tracer.

    Without an installed SDK tracer provider this returns the API's
    no-op tracer, so callers never need to check.
    """
    return trace.get_tracer(name)


def traced(
    name: str | None = None,
    attributes: dict[str, Any] | None = None,
    record_exception: bool = True,
) -> Callable[[F], F]:
    """
    Decorator to trace a function.

    Creates a span that wraps the function execution.
    Works with both sync and async functions.

    Args:
        name: Span name (defaults to function name).
        attributes: Static attributes to add to the span.
        record_exception: Whether to record exceptions.

    Example:
        @traced(name="delivery.generate_label")
        async def generate_label(order_id: int, ...):
            ...
    """
    def decorator(func: F) -> F:
        span_name = name or func.__name__
        tracer = get_tracer(func.__module__)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            with tracer.start_as_current_span(span_name) as span:
                if attributes:
                    span.set_attributes(attributes)
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if record_exception:
                        span.record_exception(e)
                        span.set_status(StatusCode.ERROR)
                    raise

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            with tracer.start_as_current_span(span_name) as span:
                if attributes:
                    span.set_attributes(attributes)
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if record_exception:
                        span.record_exception(e)
                        span.set_status(StatusCode.ERROR)
                    raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator


@contextmanager
def courier_span(
    provider: str,
    operation: str,
    **attributes: Any,
) -> Generator[Span, None, None]:
    """
    Context manager for tracing a single courier API operation.

    Example:
        with courier_span("yalidine", "create_shipment", order_reference="ORDER-1"):
            result = await adapter.create_shipment(...)
    """
    tracer = get_tracer("courier_hub.couriers")

    span_attrs: dict[str, Any] = {
        "courier.provider": provider,
        "courier.operation": operation,
    }
    span_attrs.update({k: v for k, v in attributes.items() if v is not None})

    with tracer.start_as_current_span(f"courier.{provider}.{operation}") as span:
        span.set_attributes(span_attrs)
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(StatusCode.ERROR)
            raise


def add_span_attribute(key: str, value: Any) -> None:
    """Add an attribute to the current span."""
    span = trace.get_current_span()
    if span:
        span.set_attribute(key, value)


def get_current_trace_id() -> str | None:
    """
    Get the current trace ID.

    Returns:
        Trace ID as hex string, or None if not in a trace.
    """
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        return format(ctx.trace_id, "032x")
    return None


def get_current_span_id() -> str | None:
    """
    Get the current span ID.

    Returns:
        Span ID as hex string, or None if not in a span.
    """
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        return format(ctx.span_id, "016x")
    return None
