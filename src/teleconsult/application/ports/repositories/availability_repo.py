"""
Availability repository interface for doctor availability records.

Load changes must be applied atomically by the store: an increment only
succeeds while current_load < max_load and a decrement never goes below zero.
"""

from datetime import datetime
from typing import Dict, List, Optional

from teleconsult.domain.entities.doctor_availability import DoctorAvailability


class AvailabilityRepository:
    """Repository interface for managing doctor availability."""

    async def upsert(self, availability: DoctorAvailability) -> DoctorAvailability:
        """Insert or update a record.

        current_load is never written here: a new record starts at 0 and an
        existing one keeps its stored value. Returns the stored record.
        """
        raise NotImplementedError

    async def find_by_username(self, doctor_username: str) -> Optional[DoctorAvailability]:
        """Find the availability record of a doctor."""
        raise NotImplementedError

    async def find_online(
        self,
        specialties: Optional[List[str]] = None,
        max_current_load: Optional[int] = None,
        require_capacity: bool = False,
        limit: Optional[int] = None,
    ) -> List[DoctorAvailability]:
        """Online doctors, optionally filtered.

        specialties: any-of match. max_current_load: current_load <= bound.
        require_capacity: current_load < max_load. Ordered by current_load
        ascending, last_seen descending, then username.
        """
        raise NotImplementedError

    async def increment_load(self, doctor_username: str, now: datetime) -> Optional[DoctorAvailability]:
        """Conditionally add one unit of load; None when the doctor is missing or at capacity."""
        raise NotImplementedError

    async def decrement_load(self, doctor_username: str, now: datetime) -> Optional[DoctorAvailability]:
        """Conditionally remove one unit of load; None when the doctor is missing or already at zero."""
        raise NotImplementedError

    async def mark_stale_offline(self, seen_before: datetime, now: datetime) -> List[str]:
        """Mark online doctors last seen before the cutoff offline; returns their usernames."""
        raise NotImplementedError

    async def aggregate_stats(self) -> Dict[str, int]:
        """Totals: total, online, total_load (all doctors) and online_load."""
        raise NotImplementedError
