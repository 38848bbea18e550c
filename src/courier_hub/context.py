"""Request context propagation using contextvars."""

import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar

# Context variables for the current client and request
_current_client_id: ContextVar[int | None] = ContextVar("current_client_id", default=None)
_current_request_id: ContextVar[str | None] = ContextVar("current_request_id", default=None)


def get_current_client_id() -> int | None:
    """
    Get the current client ID from context.

    Returns:
        The current client ID, or None if not set.
    """
    return _current_client_id.get()


def get_current_request_id() -> str | None:
    """
    Get the current request ID from context.

    Returns:
        The current request ID, or None if not set.
    """
    return _current_request_id.get()


def generate_request_id() -> str:
    """Create a request ID for correlating logs and error rows."""
    return uuid.uuid4().hex[:16]


def set_request_context(request_id: str, client_id: int | None = None) -> None:
    """
    Set the current request (and optionally client) in context.

    This should be called by middleware at the start of a request.
    """
    _current_request_id.set(request_id)
    if client_id is not None:
        _current_client_id.set(client_id)


def clear_request_context() -> None:
    """Clear the current request and client from context."""
    _current_request_id.set(None)
    _current_client_id.set(None)


@contextmanager
def client_context(client_id: int, request_id: str | None = None) -> Generator[str, None, None]:
    """
    Context manager binding a client and request ID for the enclosed work.

    Usage:
        with client_context(42) as request_id:
            await orchestrator.generate_label(...)

    Yields:
        The request ID in effect.
    """
    request_id = request_id or get_current_request_id() or generate_request_id()
    client_token = _current_client_id.set(client_id)
    request_token = _current_request_id.set(request_id)
    try:
        yield request_id
    finally:
        _current_request_id.reset(request_token)
        _current_client_id.reset(client_token)
