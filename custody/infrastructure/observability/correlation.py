"""Correlation ID management for request tracing.

Correlation ids live in a contextvar so they follow a request across
async boundaries. The API middleware sets one per request (taken from
X-Request-ID when the caller supplies it); workers set one per job so
that every log line of one export attempt can be grouped.

Usage:
    correlation_id = request.headers.get("X-Request-ID") or generate_correlation_id()
    set_correlation_id(correlation_id)
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id() -> str:
    return str(uuid4())


def get_correlation_id() -> str:
    """Current correlation id, or "" if none has been set."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def correlation_id_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor adding correlation_id to every log entry."""
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict
