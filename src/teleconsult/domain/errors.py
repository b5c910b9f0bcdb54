"""
Domain-specific error types for business rule violations.
"""

from typing import Any, Dict, List, Optional


class DomainError(Exception):
    """Base domain error."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DomainError):
    """Invalid input shape or value."""

    def __init__(self, field: str, message: str, value: Any = None) -> None:
        super().__init__(
            message, "VALIDATION_ERROR", {"field": field, "value": value}
        )


class InvalidCategoryError(DomainError):
    """Unknown health category."""

    def __init__(self, category: str) -> None:
        message = f"Invalid health category: {category}"
        super().__init__(message, "INVALID_CATEGORY", {"category": category})


class RequestNotFoundError(DomainError):
    """Consultation request not found."""

    def __init__(self, request_id: str) -> None:
        message = f"Consultation request '{request_id}' not found"
        super().__init__(message, "REQUEST_NOT_FOUND", {"request_id": request_id})


class ForbiddenActionError(DomainError):
    """Caller is not allowed to perform this mutation."""

    def __init__(self, username: str, action: str, request_id: Optional[str] = None) -> None:
        message = f"User '{username}' is not allowed to {action}"
        super().__init__(
            message,
            "FORBIDDEN",
            {"username": username, "action": action, "request_id": request_id},
        )


class InvalidTransitionError(DomainError):
    """Status change not allowed by the request state machine."""

    def __init__(self, request_id: str, current_status: str, new_status: str) -> None:
        message = (
            f"Cannot change consultation request '{request_id}' "
            f"from '{current_status}' to '{new_status}'"
        )
        super().__init__(
            message,
            "INVALID_TRANSITION",
            {
                "request_id": request_id,
                "current_status": current_status,
                "new_status": new_status,
            },
        )


class CapacityExceededError(DomainError):
    """Doctor is already at maximum consultation load."""

    def __init__(self, doctor_username: str, current_load: int, max_load: int) -> None:
        message = (
            f"Doctor '{doctor_username}' has reached maximum consultation load "
            f"({current_load}/{max_load})"
        )
        super().__init__(
            message,
            "CAPACITY_EXCEEDED",
            {
                "doctor_username": doctor_username,
                "current_load": current_load,
                "max_load": max_load,
            },
        )


class NoDoctorsAvailableError(DomainError):
    """No online doctor can take the consultation right now."""

    def __init__(
        self,
        category: Optional[str] = None,
        specialties: Optional[List[str]] = None,
        doctor_username: Optional[str] = None,
    ) -> None:
        if doctor_username:
            message = f"Doctor '{doctor_username}' is not available"
        else:
            message = "No doctors available"
        super().__init__(
            message,
            "NO_DOCTORS_AVAILABLE",
            {
                "category": category,
                "specialties": specialties or [],
                "doctor_username": doctor_username,
            },
        )


class ConcurrentModificationError(DomainError):
    """Request changed underneath the caller; the write was not applied."""

    def __init__(self, request_id: str) -> None:
        message = f"Consultation request '{request_id}' was modified concurrently"
        super().__init__(message, "CONCURRENT_MODIFICATION", {"request_id": request_id})
