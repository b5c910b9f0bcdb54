"""
Doctor availability and matching endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, Request

from ..deps import CurrentUserDep, DoctorDep, MatchingEngineDep, RegistryDep
from ..errors import NotFoundError
from ..schemas.availability import (
    AvailableDoctorsResponse,
    DoctorAvailabilityResponse,
    FindMatchRequest,
    MatchResponse,
    SetAvailabilityRequest,
)
from ..schemas.common import ApiResponse
from ..utils.responses import ok

router = APIRouter(prefix="/doctors", tags=["doctors"])


def _split_specialties(values: Optional[List[str]]) -> Optional[List[str]]:
    """Accept repeated ?specialties= params as well as comma separated values."""
    if not values:
        return None
    split = [part.strip() for value in values for part in value.split(",")]
    return [s for s in split if s] or None


@router.get("/available", response_model=ApiResponse[AvailableDoctorsResponse])
async def list_available_doctors(
    request: Request,
    registry: RegistryDep,
    user: CurrentUserDep,
    specialties: Optional[List[str]] = Query(None, description="Any-of specialty filter"),
    max_load: Optional[int] = Query(None, alias="maxLoad", ge=0, description="Only doctors with current load <= maxLoad"),
    limit: Optional[int] = Query(None, ge=1, description="Result size (capped server side)"),
):
    """Online doctors ordered by load, then most recently seen."""
    doctors = await registry.get_available_doctors(
        specialties=_split_specialties(specialties), max_load=max_load, limit=limit
    )
    data = AvailableDoctorsResponse(
        doctors=[DoctorAvailabilityResponse.from_domain(d) for d in doctors],
        count=len(doctors),
    )
    return ok(request, data=data, message=f"{len(doctors)} doctors available")


@router.get("/{username}/availability", response_model=ApiResponse[DoctorAvailabilityResponse])
async def get_doctor_availability(request: Request, username: str, registry: RegistryDep, user: CurrentUserDep):
    record = await registry.get_availability(username)
    if record is None:
        raise NotFoundError(f"No availability recorded for doctor '{username}'", {"doctor_username": username})
    return ok(request, data=DoctorAvailabilityResponse.from_domain(record), message="OK")


@router.post("/availability", response_model=ApiResponse[DoctorAvailabilityResponse])
async def set_doctor_availability(
    request: Request, payload: SetAvailabilityRequest, registry: RegistryDep, doctor: DoctorDep
):
    """Set the calling doctor's online status, specialties and max load."""
    record = await registry.set_availability(
        doctor.username,
        payload.is_online,
        specialties=payload.specialties,
        max_load=payload.max_load,
    )
    message = "Doctor is now online" if record.is_online else "Doctor is now offline"
    return ok(request, data=DoctorAvailabilityResponse.from_domain(record), message=message)


@router.post("/find-match", response_model=ApiResponse[MatchResponse])
async def find_matching_doctor(
    request: Request, payload: FindMatchRequest, engine: MatchingEngineDep, user: CurrentUserDep
):
    """Best doctor for a category without assigning anything; 404 when nobody is available."""
    scored = await engine.find_match(payload.category, payload.preferred_specialties)
    return ok(request, data=MatchResponse.from_scored(scored), message="Matching doctor found")
