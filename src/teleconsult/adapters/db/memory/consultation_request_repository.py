"""
In-memory implementation of ConsultationRequestRepository.
"""

import asyncio
from collections import Counter
from copy import deepcopy
from typing import Dict, List, Optional

from teleconsult.application.ports.repositories.consultation_request_repo import ConsultationRequestRepository
from teleconsult.domain.entities.consultation_request import ConsultationRequest
from teleconsult.domain.enums.consultation import RequestStatus


class InMemoryConsultationRequestRepository(ConsultationRequestRepository):
    """Dict-backed request store with compare-and-set updates."""

    def __init__(self) -> None:
        self._requests: Dict[str, ConsultationRequest] = {}
        self._lock = asyncio.Lock()

    async def create(self, request: ConsultationRequest) -> ConsultationRequest:
        async with self._lock:
            key = request.request_id.value
            if key in self._requests:
                raise ValueError(f"Consultation request '{key}' already exists")
            self._requests[key] = deepcopy(request)
            return request

    async def find_by_id(self, request_id: str) -> Optional[ConsultationRequest]:
        async with self._lock:
            request = self._requests.get(request_id)
            return deepcopy(request) if request else None

    async def update_if_version(
        self, request: ConsultationRequest, expected_status: RequestStatus, expected_version: int
    ) -> bool:
        async with self._lock:
            stored = self._requests.get(request.request_id.value)
            if stored is None or stored.status != expected_status or stored.version != expected_version:
                return False
            self._requests[request.request_id.value] = deepcopy(request)
            return True

    async def find_for_participant(
        self,
        username: str,
        as_doctor: bool,
        status: Optional[RequestStatus] = None,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ConsultationRequest]:
        async with self._lock:
            owner = (lambda r: r.assigned_doctor_username) if as_doctor else (lambda r: r.patient_username)
            matches = [
                r
                for r in self._requests.values()
                if owner(r) == username
                and (status is None or r.status == status)
                and (category is None or r.category == category)
            ]
            matches.sort(key=lambda r: r.created_at, reverse=True)
            return [deepcopy(r) for r in matches[offset:offset + limit]]

    async def find_pending(self, limit: int = 10) -> List[ConsultationRequest]:
        async with self._lock:
            pending = [r for r in self._requests.values() if r.status == RequestStatus.PENDING]
            pending.sort(key=lambda r: r.created_at)
            return [deepcopy(r) for r in pending[:limit]]

    async def count_by_status(self) -> Dict[str, int]:
        async with self._lock:
            return dict(Counter(r.status.value for r in self._requests.values()))
