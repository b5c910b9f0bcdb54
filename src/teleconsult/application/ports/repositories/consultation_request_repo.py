"""
Consultation request repository interface.
"""

from typing import Dict, List, Optional

from teleconsult.domain.entities.consultation_request import ConsultationRequest
from teleconsult.domain.enums.consultation import RequestStatus


class ConsultationRequestRepository:
    """Repository interface for managing consultation requests."""

    async def create(self, request: ConsultationRequest) -> ConsultationRequest:
        """Insert a new request."""
        raise NotImplementedError

    async def find_by_id(self, request_id: str) -> Optional[ConsultationRequest]:
        """Find a request by its identifier."""
        raise NotImplementedError

    async def update_if_version(
        self, request: ConsultationRequest, expected_status: RequestStatus, expected_version: int
    ) -> bool:
        """Compare-and-set write.

        Persists ``request`` only if the stored copy still has
        ``expected_status`` and ``expected_version``; the caller has already
        bumped ``request.version``. Returns False when the stored copy moved on.
        """
        raise NotImplementedError

    async def find_for_participant(
        self,
        username: str,
        as_doctor: bool,
        status: Optional[RequestStatus] = None,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ConsultationRequest]:
        """Requests where the user is the patient (or the assigned doctor), newest first."""
        raise NotImplementedError

    async def find_pending(self, limit: int = 10) -> List[ConsultationRequest]:
        """Pending requests, oldest first."""
        raise NotImplementedError

    async def count_by_status(self) -> Dict[str, int]:
        """Number of requests per status value."""
        raise NotImplementedError
