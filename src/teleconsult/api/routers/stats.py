"""
Operational statistics endpoint.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ..deps import ContainerDep, CurrentUserDep
from ..schemas.availability import AvailabilityStatsResponse
from ..schemas.common import ApiResponse
from ..schemas.consultation import RequestStatsResponse
from ..utils.responses import ok

router = APIRouter(prefix="/stats", tags=["stats"])


class StatsResponse(BaseModel):
    availability: AvailabilityStatsResponse
    requests: RequestStatsResponse


@router.get("", response_model=ApiResponse[StatsResponse])
async def get_stats(request: Request, container: ContainerDep, user: CurrentUserDep):
    availability = await container.registry.get_availability_stats()
    requests = await container.lifecycle.get_request_stats()
    return ok(
        request,
        data=StatsResponse(
            availability=AvailabilityStatsResponse(**availability),
            requests=RequestStatsResponse(**requests),
        ),
        message="OK",
    )
