"""
Consultation request endpoints.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Path, Query, Request, status

from teleconsult.application.dto.consultation_dto import CreateConsultationRequestData, StatusUpdateData
from teleconsult.domain.enums.consultation import RequestStatus

from ..deps import AdminDep, CurrentUserDep, LifecycleDep, PatientDep
from ..schemas.common import ApiResponse, PageInfo
from ..schemas.consultation import (
    AddNoteBody,
    ConsultationRequestListResponse,
    ConsultationRequestResponse,
    CreateConsultationRequestBody,
    ReassignBody,
    RequestNoteResponse,
    UpdateStatusBody,
)
from ..utils.responses import ok

router = APIRouter(prefix="/requests", tags=["consultation-requests"])

RequestIdPath = Annotated[str, Path(min_length=1, max_length=64, description="Consultation request ID")]


@router.get("", response_model=ApiResponse[ConsultationRequestListResponse])
async def list_requests(
    request: Request,
    lifecycle: LifecycleDep,
    user: CurrentUserDep,
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """The caller's requests: as patient, or as assigned doctor. Newest first."""
    items = await lifecycle.get_consultation_requests(
        user.username, user.role, status=status_filter, category=category, limit=limit, offset=offset
    )
    data = ConsultationRequestListResponse(
        requests=[ConsultationRequestResponse.from_domain(r) for r in items],
        page=PageInfo(limit=limit, offset=offset, count=len(items)),
    )
    return ok(request, data=data, message="OK")


@router.get("/{request_id}", response_model=ApiResponse[ConsultationRequestResponse])
async def get_request(request: Request, lifecycle: LifecycleDep, user: CurrentUserDep, request_id: RequestIdPath):
    consultation = await lifecycle.get_request(request_id, user.username, user.role)
    return ok(request, data=ConsultationRequestResponse.from_domain(consultation), message="OK")


@router.post(
    "",
    response_model=ApiResponse[ConsultationRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_request(
    request: Request, payload: CreateConsultationRequestBody, lifecycle: LifecycleDep, patient: PatientDep
):
    """Create a consultation request; it is assigned right away or queued as pending."""
    consultation = await lifecycle.create_consultation_request(
        patient.username,
        CreateConsultationRequestData(
            category=payload.category,
            description=payload.description,
            preferred_specialties=payload.preferred_specialties,
            urgency=payload.urgency.value,
            preferred_doctor_username=payload.preferred_doctor_username,
        ),
    )
    if consultation.status == RequestStatus.ASSIGNED:
        message = f"Consultation request assigned to {consultation.assigned_doctor_username}"
    else:
        message = "No doctor is available right now; the request has been queued"
    return ok(request, data=ConsultationRequestResponse.from_domain(consultation), message=message)


@router.patch("/{request_id}/status", response_model=ApiResponse[ConsultationRequestResponse])
async def update_request_status(
    request: Request,
    payload: UpdateStatusBody,
    lifecycle: LifecycleDep,
    user: CurrentUserDep,
    request_id: RequestIdPath,
):
    consultation = await lifecycle.update_request_status(
        request_id,
        payload.status,
        user.username,
        StatusUpdateData(scheduled_at=payload.scheduled_at, rejection_reason=payload.rejection_reason),
    )
    return ok(
        request,
        data=ConsultationRequestResponse.from_domain(consultation),
        message=f"Request {consultation.status.value}",
    )


@router.patch("/{request_id}/reassign", response_model=ApiResponse[ConsultationRequestResponse])
async def reassign_request(
    request: Request,
    payload: ReassignBody,
    lifecycle: LifecycleDep,
    user: CurrentUserDep,
    request_id: RequestIdPath,
):
    consultation = await lifecycle.reassign_request(request_id, payload.new_doctor_username, user.username)
    return ok(
        request,
        data=ConsultationRequestResponse.from_domain(consultation),
        message=f"Request reassigned to {consultation.assigned_doctor_username}",
    )


@router.post("/{request_id}/assign", response_model=ApiResponse[ConsultationRequestResponse])
async def assign_pending_request(
    request: Request, lifecycle: LifecycleDep, admin: AdminDep, request_id: RequestIdPath
):
    """Single assignment attempt for a pending request (operator action)."""
    consultation = await lifecycle.assign_pending_request(request_id, admin.username)
    message = (
        f"Request assigned to {consultation.assigned_doctor_username}"
        if consultation.status == RequestStatus.ASSIGNED
        else "No doctor available; request remains pending"
    )
    return ok(request, data=ConsultationRequestResponse.from_domain(consultation), message=message)


@router.post(
    "/{request_id}/notes",
    response_model=ApiResponse[RequestNoteResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_request_note(
    request: Request,
    payload: AddNoteBody,
    lifecycle: LifecycleDep,
    user: CurrentUserDep,
    request_id: RequestIdPath,
):
    note = await lifecycle.add_request_note(request_id, payload.content, user.username, payload.type)
    return ok(request, data=RequestNoteResponse.from_domain(note), message="Note added")
