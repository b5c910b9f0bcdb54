"""
Custom metrics for Teleconsult using OpenTelemetry.

Provides counters for matching, doctor load and request lifecycle events.
Without a configured MeterProvider the API's no-op meter is used.
"""
from typing import Optional

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram

meter = metrics.get_meter("teleconsult")

# Initialize custom metrics (lazy initialization)
_metrics_initialized = False
_match_counter: Optional[Counter] = None
_assignment_counter: Optional[Counter] = None
_load_change_counter: Optional[Counter] = None
_transition_counter: Optional[Counter] = None
_request_counter: Optional[Counter] = None
_request_latency_histogram: Optional[Histogram] = None
_error_counter: Optional[Counter] = None


def _initialize_metrics():
    """Initialize custom metrics instruments."""
    global _metrics_initialized, _match_counter, _assignment_counter
    global _load_change_counter, _transition_counter
    global _request_counter, _request_latency_histogram, _error_counter

    if _metrics_initialized:
        return

    _match_counter = meter.create_counter(
        name="teleconsult.matching.attempts",
        description="Doctor match attempts by outcome",
        unit="1",
    )
    _assignment_counter = meter.create_counter(
        name="teleconsult.requests.assignments",
        description="Consultation request assignments by path",
        unit="1",
    )
    _load_change_counter = meter.create_counter(
        name="teleconsult.doctors.load_changes",
        description="Doctor load increments and decrements",
        unit="1",
    )
    _transition_counter = meter.create_counter(
        name="teleconsult.requests.transitions",
        description="Consultation request status transitions",
        unit="1",
    )
    _request_counter = meter.create_counter(
        name="teleconsult.http.requests",
        description="Total HTTP requests",
        unit="1",
    )
    _request_latency_histogram = meter.create_histogram(
        name="teleconsult.http.latency",
        description="HTTP request latency in milliseconds",
        unit="ms",
    )
    _error_counter = meter.create_counter(
        name="teleconsult.errors",
        description="Total application errors",
        unit="1",
    )
    _metrics_initialized = True


def record_match_attempt(category: str, matched: bool):
    """Record a matching engine decision."""
    _initialize_metrics()
    _match_counter.add(1, {"category": category, "outcome": "matched" if matched else "none"})


def record_assignment(path: str):
    """
    Record a request assignment.

    Args:
        path: How the doctor was chosen ("preferred", "matched", "pending_retry", "reassigned")
    """
    _initialize_metrics()
    _assignment_counter.add(1, {"path": path})


def record_load_change(direction: str, success: bool = True):
    """Record a load increment or decrement ("increment" / "decrement")."""
    _initialize_metrics()
    _load_change_counter.add(1, {"direction": direction, "status": "success" if success else "rejected"})


def record_status_transition(from_status: str, to_status: str):
    """Record a status transition."""
    _initialize_metrics()
    _transition_counter.add(1, {"from": from_status, "to": to_status})


def record_http_request(method: str, path: str, status_code: int, latency_ms: float):
    """
    Record an HTTP request metric.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status_code: HTTP status code
        latency_ms: Request latency in milliseconds
    """
    _initialize_metrics()
    _request_counter.add(1, {
        "method": method,
        "path": path,
        "status_code": str(status_code),
        "status": "success" if 200 <= status_code < 400 else "error",
    })
    _request_latency_histogram.record(latency_ms, {"method": method, "path": path})
    if status_code >= 500:
        _error_counter.add(1, {"type": "http_error", "status_code": str(status_code)})


def record_error(error_type: str, error_message: Optional[str] = None):
    """
    Record an application error.

    Args:
        error_type: Type of error (e.g., "database", "notification")
        error_message: Optional error message
    """
    _initialize_metrics()
    attributes = {"type": error_type}
    if error_message:
        attributes["message"] = error_message[:100]  # Truncate long messages
    _error_counter.add(1, attributes)
