"""Consultation request DTOs passed from the API layer to the lifecycle manager."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, List, Mapping, Optional


@dataclass
class CreateConsultationRequestData:
    """Input for creating a consultation request."""

    category: str
    description: str
    preferred_specialties: List[str] = field(default_factory=list)
    urgency: str = "medium"
    preferred_doctor_username: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CreateConsultationRequestData":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        values.setdefault("category", "")
        values.setdefault("description", "")
        return cls(**values)


@dataclass
class StatusUpdateData:
    """Optional fields accompanying a status change."""

    scheduled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
