"""Consultation request domain entity and its status state machine.

A request is created by a patient, matched to a doctor (or left pending),
then moved through accept/reject/complete/cancel by its participants.
Terminal requests only accept new notes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from ..enums.consultation import NoteType, RequestStatus, Urgency
from ..errors import InvalidTransitionError, ValidationError
from ..value_objects.request_id import RequestId

# Transitions reachable through an explicit status update. pending -> assigned
# and assigned -> assigned go through assign() and reassign() instead.
STATUS_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.CANCELLED}),
    RequestStatus.ASSIGNED: frozenset(
        {RequestStatus.ACCEPTED, RequestStatus.REJECTED, RequestStatus.CANCELLED}
    ),
    RequestStatus.ACCEPTED: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

# Transitions only the assigned doctor may perform
DOCTOR_ONLY_TRANSITIONS = frozenset(
    {RequestStatus.ACCEPTED, RequestStatus.REJECTED, RequestStatus.COMPLETED}
)

DEFAULT_REJECTION_REASON = "No reason provided"


@dataclass
class RequestNote:
    """Append-only note attached to a consultation request."""

    content: str
    created_by: str
    type: NoteType = NoteType.GENERAL
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ConsultationRequest:
    """Consultation request entity."""

    request_id: RequestId
    patient_username: str
    category: str
    description: str
    preferred_specialties: List[str] = field(default_factory=list)
    urgency: Urgency = Urgency.MEDIUM
    status: RequestStatus = RequestStatus.PENDING
    assigned_doctor_username: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: List[RequestNote] = field(default_factory=list)
    version: int = 0

    def __post_init__(self) -> None:
        if not self.patient_username or not self.patient_username.strip():
            raise ValidationError("patient_username", "patient_username is required", self.patient_username)
        if not self.description or not self.description.strip():
            raise ValidationError("description", "description must not be empty", self.description)
        self.description = self.description.strip()

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def holds_load(self) -> bool:
        return self.status.holds_load and self.assigned_doctor_username is not None

    def is_participant(self, username: str) -> bool:
        return username in (self.patient_username, self.assigned_doctor_username)

    def can_transition_to(self, new_status: RequestStatus) -> bool:
        return new_status in STATUS_TRANSITIONS[self.status]

    def add_note(
        self,
        content: str,
        created_by: str,
        note_type: NoteType = NoteType.GENERAL,
        now: Optional[datetime] = None,
    ) -> RequestNote:
        if not content or not content.strip():
            raise ValidationError("content", "note content must not be empty", content)
        note = RequestNote(
            content=content.strip(),
            created_by=created_by,
            type=note_type,
            created_at=now or datetime.utcnow(),
        )
        self.notes.append(note)
        self.updated_at = note.created_at
        return note

    def assign(self, doctor_username: str, assigned_by: str = "system", now: Optional[datetime] = None) -> None:
        """Move a pending request to assigned."""
        if self.status != RequestStatus.PENDING:
            raise InvalidTransitionError(
                self.request_id.value, self.status.value, RequestStatus.ASSIGNED.value
            )
        now = now or datetime.utcnow()
        self.assigned_doctor_username = doctor_username
        self.assigned_at = now
        self.status = RequestStatus.ASSIGNED
        self.add_note(
            f"Status changed from 'pending' to 'assigned' ({doctor_username}) by {assigned_by}",
            assigned_by,
            NoteType.STATUS_CHANGE,
            now,
        )

    def apply_status(
        self,
        new_status: RequestStatus,
        acting_username: str,
        scheduled_at: Optional[datetime] = None,
        rejection_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RequestStatus:
        """Apply a status transition and return the previous status."""
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(self.request_id.value, self.status.value, new_status.value)

        now = now or datetime.utcnow()
        previous = self.status

        if new_status == RequestStatus.ACCEPTED:
            self.accepted_at = now
            if scheduled_at is not None:
                self.scheduled_at = scheduled_at
        elif new_status == RequestStatus.REJECTED:
            self.rejection_reason = rejection_reason or DEFAULT_REJECTION_REASON
        elif new_status == RequestStatus.COMPLETED:
            self.completed_at = now
        elif new_status == RequestStatus.CANCELLED:
            self.cancelled_at = now

        self.status = new_status
        self.add_note(
            f"Status changed from '{previous.value}' to '{new_status.value}' by {acting_username}",
            acting_username,
            NoteType.STATUS_CHANGE,
            now,
        )
        return previous

    def reassign(self, new_doctor_username: str, acting_username: str, now: Optional[datetime] = None) -> Optional[str]:
        """Swap the assigned doctor on an assigned request; returns the old doctor."""
        if self.status != RequestStatus.ASSIGNED:
            raise InvalidTransitionError(
                self.request_id.value, self.status.value, RequestStatus.ASSIGNED.value
            )
        if new_doctor_username == self.assigned_doctor_username:
            raise ValidationError(
                "new_doctor_username",
                "Request is already assigned to this doctor",
                new_doctor_username,
            )
        now = now or datetime.utcnow()
        old_doctor = self.assigned_doctor_username
        self.assigned_doctor_username = new_doctor_username
        self.assigned_at = now
        self.add_note(
            f"Request reassigned from '{old_doctor or 'unassigned'}' to "
            f"'{new_doctor_username}' by {acting_username}",
            acting_username,
            NoteType.REASSIGNMENT,
            now,
        )
        return old_doctor
