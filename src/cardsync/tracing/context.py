"""
Span helpers used by the sync stages and connection providers.

Attribute values are stringified unless OpenTelemetry accepts them as-is
(str, bool, int, float), so callers can pass record counts, stage enums
or None without thinking about the attribute type rules.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

from .tracer import get_tracer

_NATIVE_TYPES = (str, bool, int, float)


def _attribute(value: Any) -> Any:
    return value if isinstance(value, _NATIVE_TYPES) else str(value)


def _attributes(values: dict[str, Any]) -> dict[str, Any]:
    return {key: _attribute(value) for key, value in values.items()}


@contextmanager
def trace_operation(
    operation_name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    **attributes: Any,
) -> Iterator[Span]:
    """
    Run the block inside a new span.

    An exception leaving the block is recorded on the span, which is marked
    as errored, and then re-raised unchanged.

    Example:
        >>> with trace_operation("sync.load", table="staff_cards") as span:
        ...     written = loader.replace_all(conn, records, synced_at)
        ...     span.set_attribute("rows_written", written)
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        operation_name,
        kind=kind,
        attributes=_attributes(attributes),
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_attributes({"error": True, "error.type": type(e).__name__})
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


def add_span_attributes(**attributes: Any) -> None:
    """Attach attributes to the active span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attributes(_attributes(attributes))


def add_span_event(name: str, **attributes: Any) -> None:
    """Record a point-in-time event on the active span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes=_attributes(attributes))
