"""
Status, urgency, note type and role enums for consultation requests.
"""

from enum import Enum


class RequestStatus(str, Enum):
    """Consultation request status values."""

    PENDING = "pending"        # No doctor available at creation time
    ASSIGNED = "assigned"      # Matched, waiting for the doctor
    ACCEPTED = "accepted"      # Doctor took the consultation
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def holds_load(self) -> bool:
        """Whether a request in this status counts towards its doctor's load."""
        return self in (RequestStatus.ASSIGNED, RequestStatus.ACCEPTED)


TERMINAL_STATUSES = frozenset(
    {RequestStatus.COMPLETED, RequestStatus.REJECTED, RequestStatus.CANCELLED}
)


class Urgency(str, Enum):
    """Patient-declared urgency."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class NoteType(str, Enum):
    """Request note types."""

    GENERAL = "general"
    MEDICAL = "medical"
    ADMINISTRATIVE = "administrative"
    STATUS_CHANGE = "status_change"
    REASSIGNMENT = "reassignment"


USER_NOTE_TYPES = frozenset(
    {NoteType.GENERAL, NoteType.MEDICAL, NoteType.ADMINISTRATIVE}
)


class UserRole(str, Enum):
    """Caller roles understood by the consultation API."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"
