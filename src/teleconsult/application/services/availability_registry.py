"""
Doctor availability registry.

Read-through TTL cache in front of the availability repository. Every write
made through the registry invalidates the doctor's cache entry; reads may lag
writes made by other processes by up to the cache TTL. Load changes always go
to the store and are serialised per doctor inside the process.
"""

import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import AsyncContextManager, Callable, Dict, Iterable, List, Optional, Tuple

from teleconsult.application.ports.repositories.availability_repo import AvailabilityRepository
from teleconsult.application.services.keyed_lock import KeyedLock
from teleconsult.core.config import AvailabilitySettings
from teleconsult.core.structured_logger import get_logger
from teleconsult.domain.entities.doctor_availability import DoctorAvailability, normalize_specialties
from teleconsult.domain.errors import CapacityExceededError, ValidationError
from teleconsult.observability.metrics import record_load_change

logger = get_logger("teleconsult.availability")

Clock = Callable[[], datetime]


class AvailabilityRegistry:
    """Tracks online status, specialties and consultation load per doctor."""

    def __init__(
        self,
        repository: AvailabilityRepository,
        settings: Optional[AvailabilitySettings] = None,
        clock: Clock = datetime.utcnow,
    ) -> None:
        self._repository = repository
        self._settings = settings or AvailabilitySettings()
        self._clock = clock
        self._cache: Dict[str, Tuple[float, DoctorAvailability]] = {}
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Cache and lock helpers
    # ------------------------------------------------------------------
    def _lock_for(self, doctor_username: str) -> AsyncContextManager[None]:
        return self._locks.hold(doctor_username)

    def _cache_get(self, doctor_username: str) -> Optional[DoctorAvailability]:
        entry = self._cache.get(doctor_username)
        if entry is None:
            return None
        expires_at, record = entry
        if time.monotonic() >= expires_at:
            self._cache.pop(doctor_username, None)
            return None
        return replace(record, specialties=list(record.specialties))

    def _cache_put(self, record: DoctorAvailability) -> None:
        if self._settings.cache_ttl_seconds <= 0:
            return
        expires_at = time.monotonic() + self._settings.cache_ttl_seconds
        self._cache[record.doctor_username] = (
            expires_at,
            replace(record, specialties=list(record.specialties)),
        )

    def invalidate(self, doctor_username: Optional[str] = None) -> None:
        """Drop one cache entry, or the whole cache when no username is given."""
        if doctor_username is None:
            self._cache.clear()
        else:
            self._cache.pop(doctor_username, None)

    @property
    def cache_size(self) -> int:
        now = time.monotonic()
        for username in [u for u, (exp, _) in self._cache.items() if now >= exp]:
            self._cache.pop(username, None)
        return len(self._cache)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    @staticmethod
    def _require_username(doctor_username: str) -> str:
        if not isinstance(doctor_username, str) or not doctor_username.strip():
            raise ValidationError("doctor_username", "doctor_username must be a non-empty string", doctor_username)
        return doctor_username.strip()

    def _validate_max_load(self, max_load: Optional[int]) -> Optional[int]:
        if max_load is None:
            return None
        if isinstance(max_load, bool) or not isinstance(max_load, int):
            raise ValidationError("max_load", "max_load must be an integer", max_load)
        if not 1 <= max_load <= self._settings.max_load_ceiling:
            raise ValidationError(
                "max_load",
                f"max_load must be between 1 and {self._settings.max_load_ceiling}",
                max_load,
            )
        return max_load

    @staticmethod
    def _validate_specialties(specialties: Optional[Iterable[str]]) -> Optional[List[str]]:
        if specialties is None:
            return None
        if isinstance(specialties, str) or not all(isinstance(s, str) for s in specialties):
            raise ValidationError("specialties", "specialties must be a list of strings", specialties)
        return normalize_specialties(specialties)

    def _resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self._settings.default_limit
        if limit < 1:
            raise ValidationError("limit", "limit must be a positive integer", limit)
        return min(limit, self._settings.max_limit)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def set_availability(
        self,
        doctor_username: str,
        is_online: bool,
        specialties: Optional[List[str]] = None,
        max_load: Optional[int] = None,
    ) -> DoctorAvailability:
        """Idempotent upsert of a doctor's availability.

        A new record starts with no load. An existing record keeps its load;
        specialties and max_load are only replaced when given, and max_load
        is never set below the current load.
        """
        doctor_username = self._require_username(doctor_username)
        specialties = self._validate_specialties(specialties)
        max_load = self._validate_max_load(max_load)

        async with self._lock_for(doctor_username):
            now = self._clock()
            existing = await self._repository.find_by_username(doctor_username)

            if existing is None:
                record = DoctorAvailability(
                    doctor_username=doctor_username,
                    is_online=bool(is_online),
                    specialties=specialties or [],
                    current_load=0,
                    max_load=max_load or self._settings.default_max_load,
                    last_seen=now,
                    created_at=now,
                    updated_at=now,
                )
            else:
                new_max_load = existing.max_load
                if max_load is not None:
                    if max_load < existing.current_load:
                        logger.warning(
                            "max_load below current load, clamping",
                            doctor_username=doctor_username,
                            requested_max_load=max_load,
                            current_load=existing.current_load,
                        )
                    new_max_load = max(max_load, existing.current_load)
                record = replace(
                    existing,
                    is_online=bool(is_online),
                    specialties=specialties if specialties is not None else list(existing.specialties),
                    max_load=new_max_load,
                    last_seen=now,
                    updated_at=now,
                )

            stored = await self._repository.upsert(record)
            self.invalidate(doctor_username)

        logger.info(
            "Doctor availability updated",
            doctor_username=doctor_username,
            is_online=stored.is_online,
            specialties=stored.specialties,
            max_load=stored.max_load,
        )
        return stored

    async def set_offline(self, doctor_username: str) -> DoctorAvailability:
        """Mark a doctor offline keeping specialties, max_load and load."""
        return await self.set_availability(doctor_username, False)

    async def increment_load(self, doctor_username: str) -> DoctorAvailability:
        """Atomically take one unit of capacity for a doctor.

        Raises CapacityExceededError when the doctor is already at max_load.
        An unknown doctor gets an offline record with no load first.
        """
        doctor_username = self._require_username(doctor_username)

        async with self._lock_for(doctor_username):
            now = self._clock()
            updated = await self._repository.increment_load(doctor_username, now)

            if updated is None:
                existing = await self._repository.find_by_username(doctor_username)
                if existing is None:
                    await self._repository.upsert(
                        DoctorAvailability(
                            doctor_username=doctor_username,
                            is_online=False,
                            max_load=self._settings.default_max_load,
                            last_seen=now,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    updated = await self._repository.increment_load(doctor_username, now)

                if updated is None:
                    existing = existing or await self._repository.find_by_username(doctor_username)
                    self.invalidate(doctor_username)
                    record_load_change("increment", success=False)
                    raise CapacityExceededError(
                        doctor_username,
                        existing.current_load if existing else 0,
                        existing.max_load if existing else self._settings.default_max_load,
                    )

            self.invalidate(doctor_username)

        record_load_change("increment")
        logger.info(
            "Doctor load updated",
            doctor_username=doctor_username,
            change=1,
            new_load=updated.current_load,
            max_load=updated.max_load,
        )
        return updated

    async def decrement_load(self, doctor_username: str) -> Optional[DoctorAvailability]:
        """Atomically release one unit of load; a no-op at zero or for unknown doctors."""
        doctor_username = self._require_username(doctor_username)

        async with self._lock_for(doctor_username):
            now = self._clock()
            updated = await self._repository.decrement_load(doctor_username, now)
            self.invalidate(doctor_username)

            if updated is None:
                existing = await self._repository.find_by_username(doctor_username)
                logger.debug(
                    "Load release skipped",
                    doctor_username=doctor_username,
                    reason="no record" if existing is None else "load already zero",
                )
                return existing

        record_load_change("decrement")
        logger.info(
            "Doctor load updated",
            doctor_username=doctor_username,
            change=-1,
            new_load=updated.current_load,
            max_load=updated.max_load,
        )
        return updated

    async def cleanup_stale_availability(self, stale_minutes: Optional[int] = None) -> int:
        """Mark online doctors not seen for stale_minutes as offline; returns how many."""
        minutes = self._settings.stale_minutes if stale_minutes is None else stale_minutes
        if minutes < 0:
            raise ValidationError("stale_minutes", "stale_minutes must not be negative", minutes)

        now = self._clock()
        cutoff = now - timedelta(minutes=minutes)
        usernames = await self._repository.mark_stale_offline(cutoff, now)
        for username in usernames:
            self.invalidate(username)

        if usernames:
            logger.info(
                "Cleaned up stale doctor availability records",
                count=len(usernames),
                stale_minutes=minutes,
            )
        return len(usernames)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_availability(self, doctor_username: str) -> Optional[DoctorAvailability]:
        """Cached lookup; None for unknown doctors."""
        if not isinstance(doctor_username, str) or not doctor_username.strip():
            return None
        doctor_username = doctor_username.strip()

        cached = self._cache_get(doctor_username)
        if cached is not None:
            return cached

        record = await self._repository.find_by_username(doctor_username)
        if record is not None:
            self._cache_put(record)
        return record

    async def get_available_doctors(
        self,
        specialties: Optional[List[str]] = None,
        max_load: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[DoctorAvailability]:
        """Online doctors with current_load <= max_load (when given), any-of specialties."""
        specialties = self._validate_specialties(specialties)
        if max_load is not None and max_load < 0:
            raise ValidationError("max_load", "max_load must not be negative", max_load)

        return await self._repository.find_online(
            specialties=specialties or None,
            max_current_load=max_load,
            limit=self._resolve_limit(limit),
        )

    async def get_match_candidates(
        self, specialties: Optional[List[str]] = None, limit: Optional[int] = None
    ) -> List[DoctorAvailability]:
        """Online doctors with spare capacity, optional any-of specialty filter.

        Unbounded unless a limit is given; the matching engine scores the full set.
        """
        specialties = self._validate_specialties(specialties)
        return await self._repository.find_online(
            specialties=specialties or None,
            require_capacity=True,
            limit=limit if limit and limit > 0 else None,
        )

    async def get_availability_stats(self) -> Dict[str, float]:
        totals = await self._repository.aggregate_stats()
        online = totals.get("online", 0)
        total = totals.get("total", 0)
        online_load = totals.get("online_load", 0)
        return {
            "total_doctors": total,
            "online_doctors": online,
            "offline_doctors": total - online,
            "total_active_consultations": totals.get("total_load", 0),
            "average_load": round(online_load / online, 2) if online else 0,
            "cache_size": self.cache_size,
        }
