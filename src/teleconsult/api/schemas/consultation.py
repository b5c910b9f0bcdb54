"""
Consultation request schemas.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from teleconsult.domain.entities.category import CategoryEntry
from teleconsult.domain.entities.consultation_request import ConsultationRequest, RequestNote
from teleconsult.domain.enums.consultation import NoteType, RequestStatus, Urgency

from .common import CamelModel, PageInfo


class CreateConsultationRequestBody(CamelModel):
    """Body of POST /requests."""

    category: str = Field(..., description="Health category from the catalog")
    description: str = Field(..., max_length=5000, description="Issue description")
    preferred_specialties: List[str] = Field(default_factory=list)
    urgency: Urgency = Field(Urgency.MEDIUM)
    preferred_doctor_username: Optional[str] = Field(None, max_length=100)


class UpdateStatusBody(CamelModel):
    """Body of PATCH /requests/{id}/status."""

    status: RequestStatus
    scheduled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = Field(None, max_length=1000)


class ReassignBody(CamelModel):
    """Body of PATCH /requests/{id}/reassign."""

    new_doctor_username: str = Field(..., min_length=1, max_length=100)


class AddNoteBody(CamelModel):
    """Body of POST /requests/{id}/notes."""

    content: str = Field(..., max_length=5000)
    type: NoteType = Field(NoteType.GENERAL)


class RequestNoteResponse(CamelModel):
    content: str
    created_by: str
    type: NoteType
    created_at: datetime

    @classmethod
    def from_domain(cls, note: RequestNote) -> "RequestNoteResponse":
        return cls(content=note.content, created_by=note.created_by, type=note.type, created_at=note.created_at)


class ConsultationRequestResponse(CamelModel):
    request_id: str
    patient_username: str
    assigned_doctor_username: Optional[str] = None
    category: str
    description: str
    preferred_specialties: List[str]
    urgency: Urgency
    status: RequestStatus
    created_at: datetime
    updated_at: datetime
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: List[RequestNoteResponse]
    version: int

    @classmethod
    def from_domain(cls, request: ConsultationRequest) -> "ConsultationRequestResponse":
        return cls(
            request_id=request.request_id.value,
            patient_username=request.patient_username,
            assigned_doctor_username=request.assigned_doctor_username,
            category=request.category,
            description=request.description,
            preferred_specialties=list(request.preferred_specialties),
            urgency=request.urgency,
            status=request.status,
            created_at=request.created_at,
            updated_at=request.updated_at,
            assigned_at=request.assigned_at,
            accepted_at=request.accepted_at,
            scheduled_at=request.scheduled_at,
            completed_at=request.completed_at,
            cancelled_at=request.cancelled_at,
            rejection_reason=request.rejection_reason,
            notes=[RequestNoteResponse.from_domain(n) for n in request.notes],
            version=request.version,
        )


class ConsultationRequestListResponse(CamelModel):
    requests: List[ConsultationRequestResponse]
    page: PageInfo


class CategoryResponse(CamelModel):
    name: str
    description: str
    specialties: List[str]

    @classmethod
    def from_domain(cls, entry: CategoryEntry) -> "CategoryResponse":
        return cls(name=entry.name, description=entry.description, specialties=list(entry.specialties))


class CategorySpecialtiesResponse(CamelModel):
    category: str
    specialties: List[str]


class RequestStatsResponse(CamelModel):
    total: int
    by_status: Dict[str, int]
