"""Request-scoped context for the canonical ``request.completed`` log line.

RequestContextMiddleware creates the dict at request start and logs it once
the response body is sent. Services enrich it along the way:

    from core.wide_event import set_wide_event_fields

    set_wide_event_fields(certificate_id=cert.certificate_id, fallback=False)
"""

from contextvars import ContextVar
from typing import Any

_wide_event: ContextVar[dict[str, Any] | None] = ContextVar("wide_event", default=None)


def init_wide_event(**fields: Any) -> dict[str, Any]:
    event: dict[str, Any] = dict(fields)
    _wide_event.set(event)
    return event


def get_wide_event() -> dict[str, Any]:
    """Get the current wide event dict. Returns empty dict if not initialized."""
    return _wide_event.get() or {}


def set_wide_event_fields(**kwargs: Any) -> None:
    """Set fields on the current wide event.

    No-op outside a request (CLI, tests calling services directly).
    """
    event = _wide_event.get()
    if event is not None:
        event.update(kwargs)


def clear_wide_event() -> None:
    _wide_event.set(None)
