"""API request/response schemas."""

from .availability import (
    AvailabilityStatsResponse,
    AvailableDoctorsResponse,
    DoctorAvailabilityResponse,
    FindMatchRequest,
    MatchResponse,
    SetAvailabilityRequest,
)
from .common import ApiResponse, CamelModel, ErrorResponse, PageInfo
from .consultation import (
    AddNoteBody,
    CategoryResponse,
    CategorySpecialtiesResponse,
    ConsultationRequestListResponse,
    ConsultationRequestResponse,
    CreateConsultationRequestBody,
    ReassignBody,
    RequestNoteResponse,
    RequestStatsResponse,
    UpdateStatusBody,
)

__all__ = [
    "AddNoteBody",
    "ApiResponse",
    "AvailabilityStatsResponse",
    "AvailableDoctorsResponse",
    "CamelModel",
    "CategoryResponse",
    "CategorySpecialtiesResponse",
    "ConsultationRequestListResponse",
    "ConsultationRequestResponse",
    "CreateConsultationRequestBody",
    "DoctorAvailabilityResponse",
    "ErrorResponse",
    "FindMatchRequest",
    "MatchResponse",
    "PageInfo",
    "ReassignBody",
    "RequestNoteResponse",
    "RequestStatsResponse",
    "SetAvailabilityRequest",
    "UpdateStatusBody",
]
