"""
OpenTelemetry spans around matching and assignment.

Without a configured SDK the API hands out no-op spans, so these helpers
are safe to call unconditionally.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

tracer = trace.get_tracer("teleconsult")


@contextmanager
def trace_operation(operation_name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[Span]:
    """
    Run the block inside a span named ``operation_name``.

    Exceptions escaping the block are recorded on the span, which is marked
    as failed, and re-raised.

    Example:
        with trace_operation("match_doctor", {"category": "Cardiology"}) as span:
            ranked = engine.rank(candidates, specialties)
    """
    with tracer.start_as_current_span(
        operation_name, record_exception=False, set_status_on_exception=False
    ) as span:
        for key, value in (attributes or {}).items():
            span.set_attribute(key, str(value))
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            raise


def set_span_status(span: Optional[Span], success: bool, error_message: Optional[str] = None) -> None:
    if span is None:
        return
    if success:
        span.set_status(Status(StatusCode.OK))
    else:
        span.set_status(Status(StatusCode.ERROR, error_message or "Operation failed"))


def add_span_attribute(span: Optional[Span], key: str, value: Any) -> None:
    """Attach ``value`` (stringified) to the span."""
    if span is not None:
        span.set_attribute(key, str(value))
