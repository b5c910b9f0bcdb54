"""
Doctor availability and matching schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from teleconsult.application.services.matching_engine import ScoredDoctor
from teleconsult.domain.entities.doctor_availability import DoctorAvailability

from .common import CamelModel


class SetAvailabilityRequest(CamelModel):
    """Body of POST /doctors/availability."""

    is_online: bool = Field(..., description="Whether the doctor accepts consultations")
    specialties: Optional[List[str]] = Field(None, description="Replaces the stored specialties when given")
    max_load: Optional[int] = Field(None, ge=1, description="Maximum concurrent consultations")

    @field_validator("specialties")
    @classmethod
    def strip_specialties(cls, v):
        if v is None:
            return v
        return [s.strip() for s in v if s and s.strip()]


class DoctorAvailabilityResponse(CamelModel):
    doctor_username: str
    is_online: bool
    specialties: List[str]
    current_load: int
    max_load: int
    has_capacity: bool
    last_seen: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, record: DoctorAvailability) -> "DoctorAvailabilityResponse":
        return cls(
            doctor_username=record.doctor_username,
            is_online=record.is_online,
            specialties=list(record.specialties),
            current_load=record.current_load,
            max_load=record.max_load,
            has_capacity=record.has_capacity,
            last_seen=record.last_seen,
            updated_at=record.updated_at,
        )


class AvailableDoctorsResponse(CamelModel):
    doctors: List[DoctorAvailabilityResponse]
    count: int


class FindMatchRequest(CamelModel):
    """Body of POST /doctors/find-match."""

    category: str = Field(..., min_length=1, description="Health category")
    preferred_specialties: List[str] = Field(default_factory=list, description="Preferred doctor specialties")


class MatchResponse(CamelModel):
    doctor: DoctorAvailabilityResponse
    score: int
    matching_specialties: List[str]

    @classmethod
    def from_scored(cls, scored: ScoredDoctor) -> "MatchResponse":
        return cls(
            doctor=DoctorAvailabilityResponse.from_domain(scored.doctor),
            score=scored.score,
            matching_specialties=list(scored.matching_specialties),
        )


class AvailabilityStatsResponse(CamelModel):
    total_doctors: int
    online_doctors: int
    offline_doctors: int
    total_active_consultations: int
    average_load: float
    cache_size: int
