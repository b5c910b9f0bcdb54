"""
In-memory implementation of AvailabilityRepository.

Used for development and tests. Records are copied in and out so callers
never share state with the store; every method body is a single critical
section, which makes the conditional load updates atomic.
"""

import asyncio
from copy import deepcopy
from datetime import datetime
from typing import Dict, List, Optional

from teleconsult.application.ports.repositories.availability_repo import AvailabilityRepository
from teleconsult.domain.entities.doctor_availability import DoctorAvailability


class InMemoryAvailabilityRepository(AvailabilityRepository):
    """Dict-backed availability store."""

    def __init__(self) -> None:
        self._records: Dict[str, DoctorAvailability] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, availability: DoctorAvailability) -> DoctorAvailability:
        async with self._lock:
            record = deepcopy(availability)
            existing = self._records.get(record.doctor_username)
            if existing is None:
                record.current_load = 0
            else:
                record.created_at = existing.created_at
                record.current_load = min(existing.current_load, record.max_load)
            self._records[record.doctor_username] = record
            return deepcopy(record)

    async def find_by_username(self, doctor_username: str) -> Optional[DoctorAvailability]:
        async with self._lock:
            record = self._records.get(doctor_username)
            return deepcopy(record) if record else None

    async def find_online(
        self,
        specialties: Optional[List[str]] = None,
        max_current_load: Optional[int] = None,
        require_capacity: bool = False,
        limit: Optional[int] = None,
    ) -> List[DoctorAvailability]:
        wanted = set(specialties or [])
        async with self._lock:
            matches = [
                r
                for r in self._records.values()
                if r.is_online
                and (max_current_load is None or r.current_load <= max_current_load)
                and (not require_capacity or r.current_load < r.max_load)
                and (not wanted or wanted.intersection(r.specialties))
            ]
            # last_seen descending inside equal load: sort in two stable passes
            matches.sort(key=lambda r: r.doctor_username)
            matches.sort(key=lambda r: r.last_seen, reverse=True)
            matches.sort(key=lambda r: r.current_load)
            if limit is not None:
                matches = matches[:limit]
            return [deepcopy(r) for r in matches]

    async def increment_load(self, doctor_username: str, now: datetime) -> Optional[DoctorAvailability]:
        async with self._lock:
            record = self._records.get(doctor_username)
            if record is None or record.current_load >= record.max_load:
                return None
            record.current_load += 1
            record.updated_at = now
            return deepcopy(record)

    async def decrement_load(self, doctor_username: str, now: datetime) -> Optional[DoctorAvailability]:
        async with self._lock:
            record = self._records.get(doctor_username)
            if record is None or record.current_load <= 0:
                return None
            record.current_load -= 1
            record.updated_at = now
            return deepcopy(record)

    async def mark_stale_offline(self, seen_before: datetime, now: datetime) -> List[str]:
        async with self._lock:
            stale = [r for r in self._records.values() if r.is_online and r.last_seen < seen_before]
            for record in stale:
                record.is_online = False
                record.updated_at = now
            return [r.doctor_username for r in stale]

    async def aggregate_stats(self) -> Dict[str, int]:
        async with self._lock:
            online = [r for r in self._records.values() if r.is_online]
            return {
                "total": len(self._records),
                "online": len(online),
                "total_load": sum(r.current_load for r in self._records.values()),
                "online_load": sum(r.current_load for r in online),
            }
