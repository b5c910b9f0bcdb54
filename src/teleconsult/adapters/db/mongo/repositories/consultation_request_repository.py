"""
MongoDB implementation of ConsultationRequestRepository.
"""

from typing import Any, Dict, List, Optional

from teleconsult.application.ports.repositories.consultation_request_repo import ConsultationRequestRepository
from teleconsult.domain.entities.consultation_request import ConsultationRequest, RequestNote
from teleconsult.domain.enums.consultation import NoteType, RequestStatus, Urgency
from teleconsult.domain.value_objects.request_id import RequestId

from ..errors import translate_mongo_errors
from ..models.consultation_request_m import ConsultationRequestMongo, RequestNoteMongo

# Fields rewritten by a compare-and-set update; identity fields never change
_MUTABLE_FIELDS = (
    "assigned_doctor_username",
    "status",
    "updated_at",
    "assigned_at",
    "accepted_at",
    "scheduled_at",
    "completed_at",
    "cancelled_at",
    "rejection_reason",
    "notes",
    "version",
)


class MongoConsultationRequestRepository(ConsultationRequestRepository):
    """MongoDB implementation of ConsultationRequestRepository."""

    @translate_mongo_errors
    async def create(self, request: ConsultationRequest) -> ConsultationRequest:
        await self._domain_to_mongo(request).insert()
        return request

    @translate_mongo_errors
    async def find_by_id(self, request_id: str) -> Optional[ConsultationRequest]:
        doc = await ConsultationRequestMongo.find_one(ConsultationRequestMongo.request_id == request_id)
        return self._mongo_to_domain(doc) if doc else None

    @translate_mongo_errors
    async def update_if_version(
        self, request: ConsultationRequest, expected_status: RequestStatus, expected_version: int
    ) -> bool:
        document = self._domain_to_mongo(request).model_dump(include=set(_MUTABLE_FIELDS))
        result = await ConsultationRequestMongo.find_one(
            {
                "request_id": request.request_id.value,
                "status": expected_status.value,
                "version": expected_version,
            }
        ).update({"$set": document})
        return result is not None and result.matched_count == 1

    @translate_mongo_errors
    async def find_for_participant(
        self,
        username: str,
        as_doctor: bool,
        status: Optional[RequestStatus] = None,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ConsultationRequest]:
        query: Dict[str, Any] = {"assigned_doctor_username" if as_doctor else "patient_username": username}
        if status is not None:
            query["status"] = status.value
        if category is not None:
            query["category"] = category
        docs = await (
            ConsultationRequestMongo.find(query)
            .sort([("created_at", -1)])
            .skip(offset)
            .limit(limit)
            .to_list()
        )
        return [self._mongo_to_domain(doc) for doc in docs]

    @translate_mongo_errors
    async def find_pending(self, limit: int = 10) -> List[ConsultationRequest]:
        docs = await (
            ConsultationRequestMongo.find({"status": RequestStatus.PENDING.value})
            .sort([("created_at", 1)])
            .limit(limit)
            .to_list()
        )
        return [self._mongo_to_domain(doc) for doc in docs]

    @translate_mongo_errors
    async def count_by_status(self) -> Dict[str, int]:
        rows = await ConsultationRequestMongo.aggregate(
            [{"$group": {"_id": "$status", "count": {"$sum": 1}}}]
        ).to_list()
        return {row["_id"]: int(row["count"]) for row in rows if row.get("_id")}

    def _domain_to_mongo(self, request: ConsultationRequest) -> ConsultationRequestMongo:
        return ConsultationRequestMongo(
            request_id=request.request_id.value,
            patient_username=request.patient_username,
            assigned_doctor_username=request.assigned_doctor_username,
            category=request.category,
            description=request.description,
            preferred_specialties=list(request.preferred_specialties),
            urgency=request.urgency.value,
            status=request.status.value,
            created_at=request.created_at,
            updated_at=request.updated_at,
            assigned_at=request.assigned_at,
            accepted_at=request.accepted_at,
            scheduled_at=request.scheduled_at,
            completed_at=request.completed_at,
            cancelled_at=request.cancelled_at,
            rejection_reason=request.rejection_reason,
            notes=[
                RequestNoteMongo(
                    content=note.content,
                    created_by=note.created_by,
                    type=note.type.value,
                    created_at=note.created_at,
                )
                for note in request.notes
            ],
            version=request.version,
        )

    def _mongo_to_domain(self, doc: ConsultationRequestMongo) -> ConsultationRequest:
        return ConsultationRequest(
            request_id=RequestId(doc.request_id),
            patient_username=doc.patient_username,
            assigned_doctor_username=doc.assigned_doctor_username,
            category=doc.category,
            description=doc.description,
            preferred_specialties=list(doc.preferred_specialties),
            urgency=Urgency(doc.urgency),
            status=RequestStatus(doc.status),
            created_at=doc.created_at,
            updated_at=doc.updated_at,
            assigned_at=doc.assigned_at,
            accepted_at=doc.accepted_at,
            scheduled_at=doc.scheduled_at,
            completed_at=doc.completed_at,
            cancelled_at=doc.cancelled_at,
            rejection_reason=doc.rejection_reason,
            notes=[
                RequestNote(
                    content=note.content,
                    created_by=note.created_by,
                    type=NoteType(note.type),
                    created_at=note.created_at,
                )
                for note in doc.notes
            ],
            version=doc.version,
        )
