"""
Tracing spans and metric instruments for matching, doctor load,
request status transitions and HTTP traffic.
"""

from .metrics import (
    record_assignment,
    record_error,
    record_http_request,
    record_load_change,
    record_match_attempt,
    record_status_transition,
)
from .tracing import add_span_attribute, set_span_status, trace_operation

__all__ = [
    "add_span_attribute",
    "record_assignment",
    "record_error",
    "record_http_request",
    "record_load_change",
    "record_match_attempt",
    "record_status_transition",
    "set_span_status",
    "trace_operation",
]
