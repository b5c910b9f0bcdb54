"""
MongoDB implementation of AvailabilityRepository.

Load changes are single conditional find-and-modify operations, so they stay
correct across processes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from beanie.odm.queries.update import UpdateResponse

from teleconsult.application.ports.repositories.availability_repo import AvailabilityRepository
from teleconsult.domain.entities.doctor_availability import DoctorAvailability

from ..errors import translate_mongo_errors
from ..models.availability_m import DoctorAvailabilityMongo

_ONLINE_ORDER = [("current_load", 1), ("last_seen", -1), ("doctor_username", 1)]


class MongoAvailabilityRepository(AvailabilityRepository):
    """MongoDB implementation of AvailabilityRepository."""

    @translate_mongo_errors
    async def upsert(self, availability: DoctorAvailability) -> DoctorAvailability:
        """Insert or update; current_load and created_at are only written on insert."""
        await DoctorAvailabilityMongo.find_one(
            DoctorAvailabilityMongo.doctor_username == availability.doctor_username
        ).upsert(
            {
                "$set": {
                    "is_online": availability.is_online,
                    "specialties": list(availability.specialties),
                    "max_load": availability.max_load,
                    "last_seen": availability.last_seen,
                    "updated_at": availability.updated_at,
                }
            },
            on_insert=DoctorAvailabilityMongo(
                doctor_username=availability.doctor_username,
                is_online=availability.is_online,
                specialties=list(availability.specialties),
                current_load=0,
                max_load=availability.max_load,
                last_seen=availability.last_seen,
                created_at=availability.created_at,
                updated_at=availability.updated_at,
            ),
        )
        stored = await DoctorAvailabilityMongo.find_one(
            DoctorAvailabilityMongo.doctor_username == availability.doctor_username
        )
        return self._mongo_to_domain(stored)

    @translate_mongo_errors
    async def find_by_username(self, doctor_username: str) -> Optional[DoctorAvailability]:
        doc = await DoctorAvailabilityMongo.find_one(DoctorAvailabilityMongo.doctor_username == doctor_username)
        return self._mongo_to_domain(doc) if doc else None

    @translate_mongo_errors
    async def find_online(
        self,
        specialties: Optional[List[str]] = None,
        max_current_load: Optional[int] = None,
        require_capacity: bool = False,
        limit: Optional[int] = None,
    ) -> List[DoctorAvailability]:
        query: Dict[str, Any] = {"is_online": True}
        if specialties:
            query["specialties"] = {"$in": list(specialties)}
        if max_current_load is not None:
            query["current_load"] = {"$lte": max_current_load}
        if require_capacity:
            query["$expr"] = {"$lt": ["$current_load", "$max_load"]}

        cursor = DoctorAvailabilityMongo.find(query).sort(_ONLINE_ORDER)
        if limit is not None:
            cursor = cursor.limit(limit)
        return [self._mongo_to_domain(doc) for doc in await cursor.to_list()]

    @translate_mongo_errors
    async def increment_load(self, doctor_username: str, now: datetime) -> Optional[DoctorAvailability]:
        doc = await DoctorAvailabilityMongo.find_one(
            {"doctor_username": doctor_username, "$expr": {"$lt": ["$current_load", "$max_load"]}}
        ).update(
            {"$inc": {"current_load": 1}, "$set": {"updated_at": now}},
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        return self._mongo_to_domain(doc) if doc else None

    @translate_mongo_errors
    async def decrement_load(self, doctor_username: str, now: datetime) -> Optional[DoctorAvailability]:
        doc = await DoctorAvailabilityMongo.find_one(
            {"doctor_username": doctor_username, "current_load": {"$gt": 0}}
        ).update(
            {"$inc": {"current_load": -1}, "$set": {"updated_at": now}},
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        return self._mongo_to_domain(doc) if doc else None

    @translate_mongo_errors
    async def mark_stale_offline(self, seen_before: datetime, now: datetime) -> List[str]:
        stale_query = {"is_online": True, "last_seen": {"$lt": seen_before}}
        stale = await DoctorAvailabilityMongo.find(stale_query).to_list()
        usernames = [doc.doctor_username for doc in stale]
        if usernames:
            await DoctorAvailabilityMongo.find(
                {**stale_query, "doctor_username": {"$in": usernames}}
            ).update_many({"$set": {"is_online": False, "updated_at": now}})
        return usernames

    @translate_mongo_errors
    async def aggregate_stats(self) -> Dict[str, int]:
        rows = await DoctorAvailabilityMongo.aggregate(
            [
                {
                    "$group": {
                        "_id": None,
                        "total": {"$sum": 1},
                        "online": {"$sum": {"$cond": ["$is_online", 1, 0]}},
                        "total_load": {"$sum": "$current_load"},
                        "online_load": {"$sum": {"$cond": ["$is_online", "$current_load", 0]}},
                    }
                }
            ]
        ).to_list()
        if not rows:
            return {"total": 0, "online": 0, "total_load": 0, "online_load": 0}
        row = rows[0]
        return {key: int(row.get(key, 0)) for key in ("total", "online", "total_load", "online_load")}

    def _mongo_to_domain(self, doc: DoctorAvailabilityMongo) -> DoctorAvailability:
        return DoctorAvailability(
            doctor_username=doc.doctor_username,
            is_online=doc.is_online,
            specialties=list(doc.specialties),
            current_load=doc.current_load,
            max_load=doc.max_load,
            last_seen=doc.last_seen,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
        )
