"""
Consultation request lifecycle manager.

Owns creation, assignment, status transitions, reassignment and notes.
Transitions on one request are serialised by a per-request lock in this
process and by a (status, version) compare-and-set in the store, so the loser
of a race fails instead of overwriting. Doctor load is taken before an
assignment is recorded and released exactly once when the request leaves a
load-holding status.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, Callable, Dict, List, Mapping, Optional, Set, Tuple, Union

from teleconsult.application.dto.consultation_dto import CreateConsultationRequestData, StatusUpdateData
from teleconsult.application.ports.repositories.consultation_request_repo import ConsultationRequestRepository
from teleconsult.application.ports.services.notification_service import NotificationDispatcher
from teleconsult.application.services.availability_registry import AvailabilityRegistry
from teleconsult.application.services.category_catalog import CategoryCatalog
from teleconsult.application.services.keyed_lock import KeyedLock
from teleconsult.application.services.matching_engine import MatchingEngine
from teleconsult.core.config import MatchingSettings
from teleconsult.core.structured_logger import get_logger
from teleconsult.domain.entities.consultation_request import (
    DOCTOR_ONLY_TRANSITIONS,
    ConsultationRequest,
    RequestNote,
)
from teleconsult.domain.entities.doctor_availability import normalize_specialties
from teleconsult.domain.enums.consultation import (
    USER_NOTE_TYPES,
    NoteType,
    RequestStatus,
    Urgency,
    UserRole,
)
from teleconsult.domain.errors import (
    CapacityExceededError,
    ConcurrentModificationError,
    ForbiddenActionError,
    InvalidCategoryError,
    InvalidTransitionError,
    NoDoctorsAvailableError,
    RequestNotFoundError,
    ValidationError,
)
from teleconsult.domain.value_objects.request_id import RequestId
from teleconsult.observability.metrics import record_assignment, record_error, record_status_transition

logger = get_logger("teleconsult.requests")

MAX_PAGE_SIZE = 100

# Notification event names
EVENT_REQUEST_ASSIGNED = "request_assigned"
EVENT_REQUEST_QUEUED = "request_queued"
EVENT_STATUS_CHANGED = "status_changed"
EVENT_REQUEST_REASSIGNED = "request_reassigned"


class RequestLifecycleManager:
    """Consultation request state machine and assignment commit step."""

    def __init__(
        self,
        request_repository: ConsultationRequestRepository,
        registry: AvailabilityRegistry,
        matching_engine: MatchingEngine,
        catalog: CategoryCatalog,
        notifier: NotificationDispatcher,
        settings: Optional[MatchingSettings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._requests = request_repository
        self._registry = registry
        self._matching = matching_engine
        self._catalog = catalog
        self._notifier = notifier
        self._settings = settings or MatchingSettings()
        self._clock = clock
        self._locks = KeyedLock()
        self._pending_notifications: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _lock_for(self, request_id: str) -> AsyncContextManager[None]:
        return self._locks.hold(request_id)

    async def _load(self, request_id: str) -> ConsultationRequest:
        request = await self._requests.find_by_id(request_id) if request_id else None
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    async def _commit(
        self, request: ConsultationRequest, expected_status: RequestStatus, expected_version: int
    ) -> None:
        request.version = expected_version + 1
        if not await self._requests.update_if_version(request, expected_status, expected_version):
            logger.warning(
                "Consultation request changed concurrently",
                request_id=request.request_id.value,
                expected_status=expected_status.value,
                expected_version=expected_version,
            )
            raise ConcurrentModificationError(request.request_id.value)

    async def _acquire_doctor(
        self,
        category: str,
        preferred_specialties: List[str],
        preferred_doctor_username: Optional[str] = None,
    ) -> Optional[Tuple[str, str]]:
        """Take one unit of load on the chosen doctor; returns (username, path) or None."""
        excluded: Set[str] = set()

        if preferred_doctor_username:
            availability = await self._registry.get_availability(preferred_doctor_username)
            if availability is not None and availability.is_available:
                try:
                    await self._registry.increment_load(preferred_doctor_username)
                    return preferred_doctor_username, "preferred"
                except CapacityExceededError:
                    logger.info(
                        "Preferred doctor reached capacity, falling back to matching",
                        doctor_username=preferred_doctor_username,
                    )
            excluded.add(preferred_doctor_username)

        for attempt in range(1, self._settings.assignment_attempts + 1):
            candidate = await self._matching.find_best_matching_doctor(
                category, preferred_specialties, exclude=excluded
            )
            if candidate is None:
                return None
            try:
                await self._registry.increment_load(candidate.doctor_username)
                return candidate.doctor_username, "matched"
            except CapacityExceededError:
                logger.info(
                    "Lost capacity race for matched doctor",
                    doctor_username=candidate.doctor_username,
                    attempt=attempt,
                )
                excluded.add(candidate.doctor_username)
        return None

    def _notify(self, event_type: str, recipient: Optional[str], request: ConsultationRequest, **extra: Any) -> None:
        """Schedule a best-effort notification; failures are logged and dropped."""
        if not recipient:
            return
        payload = {
            "request_id": request.request_id.value,
            "status": request.status.value,
            "category": request.category,
            "urgency": request.urgency.value,
            "patient_username": request.patient_username,
            "assigned_doctor_username": request.assigned_doctor_username,
            **extra,
        }
        task = asyncio.create_task(self._deliver(event_type, recipient, payload))
        self._pending_notifications.add(task)
        task.add_done_callback(self._pending_notifications.discard)

    async def _deliver(self, event_type: str, recipient: str, payload: Dict[str, Any]) -> None:
        try:
            await self._notifier.dispatch(event_type, recipient, payload)
        except Exception as e:
            record_error("notification", str(e))
            logger.error(
                "Notification delivery failed",
                event_type=event_type,
                recipient=recipient,
                request_id=payload.get("request_id"),
                error=str(e),
            )

    async def drain_notifications(self) -> None:
        """Wait for notifications scheduled so far (shutdown and tests)."""
        if self._pending_notifications:
            await asyncio.gather(*list(self._pending_notifications), return_exceptions=True)

    @staticmethod
    def _parse_status(value: Union[str, RequestStatus]) -> RequestStatus:
        try:
            return RequestStatus(value)
        except ValueError:
            raise ValidationError("status", f"Unknown status: {value}", value)

    @staticmethod
    def _parse_datetime(field_name: str, value: Any) -> Optional[datetime]:
        """Parse to naive UTC, matching every other stored timestamp."""
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError(field_name, f"{field_name} must be an ISO-8601 datetime", value)
        if value is None:
            return None
        if not isinstance(value, datetime):
            raise ValidationError(field_name, f"{field_name} must be an ISO-8601 datetime", value)
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @staticmethod
    def _validate_page(limit: int, offset: int) -> None:
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError("limit", f"limit must be between 1 and {MAX_PAGE_SIZE}", limit)
        if offset < 0:
            raise ValidationError("offset", "offset must not be negative", offset)

    # ------------------------------------------------------------------
    # Creation and assignment
    # ------------------------------------------------------------------
    async def create_consultation_request(
        self,
        patient_username: str,
        data: Union[CreateConsultationRequestData, Mapping[str, Any]],
    ) -> ConsultationRequest:
        """Create a request and try to assign a doctor straight away.

        No available doctor is not an error: the request is stored as pending.
        """
        if not isinstance(data, CreateConsultationRequestData):
            data = CreateConsultationRequestData.from_mapping(data)

        if not isinstance(patient_username, str) or not patient_username.strip():
            raise ValidationError("patient_username", "patient_username is required", patient_username)
        patient_username = patient_username.strip()

        if not self._catalog.has_category(data.category):
            raise InvalidCategoryError(data.category)
        if not isinstance(data.description, str) or not data.description.strip():
            raise ValidationError("description", "description must not be empty", data.description)
        try:
            urgency = Urgency(data.urgency)
        except ValueError:
            raise ValidationError("urgency", f"Unknown urgency: {data.urgency}", data.urgency)
        if isinstance(data.preferred_specialties, str) or not all(
            isinstance(s, str) for s in data.preferred_specialties or []
        ):
            raise ValidationError(
                "preferred_specialties", "preferred_specialties must be a list of strings", data.preferred_specialties
            )
        preferred_specialties = normalize_specialties(data.preferred_specialties)

        now = self._clock()
        request = ConsultationRequest(
            request_id=RequestId.generate(now),
            patient_username=patient_username,
            category=data.category,
            description=data.description,
            preferred_specialties=preferred_specialties,
            urgency=urgency,
            created_at=now,
            updated_at=now,
        )

        acquired = await self._acquire_doctor(
            data.category,
            preferred_specialties,
            (data.preferred_doctor_username or "").strip() or None,
        )
        if acquired is not None:
            doctor_username, path = acquired
            request.assign(doctor_username, assigned_by="system", now=now)

        try:
            await self._requests.create(request)
        except Exception:
            if acquired is not None:
                await self._registry.decrement_load(acquired[0])
            raise

        if acquired is not None:
            record_assignment(acquired[1])
            logger.info(
                "Consultation request created and assigned",
                request_id=request.request_id.value,
                patient_username=patient_username,
                doctor_username=request.assigned_doctor_username,
                category=request.category,
                urgency=urgency.value,
                assignment_path=acquired[1],
            )
            self._notify(EVENT_REQUEST_ASSIGNED, request.assigned_doctor_username, request)
            self._notify(EVENT_REQUEST_ASSIGNED, request.patient_username, request)
        else:
            logger.info(
                "Consultation request created and queued",
                request_id=request.request_id.value,
                patient_username=patient_username,
                category=request.category,
                urgency=urgency.value,
            )
            self._notify(EVENT_REQUEST_QUEUED, request.patient_username, request)

        return request

    async def assign_pending_request(self, request_id: str, acting_username: str = "system") -> ConsultationRequest:
        """Single attempt to assign a pending request; it stays pending when nobody is available."""
        async with self._lock_for(request_id):
            request = await self._load(request_id)
            if request.status != RequestStatus.PENDING:
                raise InvalidTransitionError(request_id, request.status.value, RequestStatus.ASSIGNED.value)

            acquired = await self._acquire_doctor(request.category, request.preferred_specialties)
            if acquired is None:
                logger.info("Pending request still has no available doctor", request_id=request_id)
                return request

            doctor_username, _ = acquired
            expected_status, expected_version = request.status, request.version
            request.assign(doctor_username, assigned_by=acting_username, now=self._clock())
            try:
                await self._commit(request, expected_status, expected_version)
            except ConcurrentModificationError:
                await self._registry.decrement_load(doctor_username)
                raise

        record_assignment("pending_retry")
        record_status_transition(RequestStatus.PENDING.value, RequestStatus.ASSIGNED.value)
        logger.info(
            "Pending consultation request assigned",
            request_id=request_id,
            doctor_username=doctor_username,
            acting_username=acting_username,
        )
        self._notify(EVENT_REQUEST_ASSIGNED, doctor_username, request)
        self._notify(EVENT_REQUEST_ASSIGNED, request.patient_username, request)
        return request

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    async def update_request_status(
        self,
        request_id: str,
        new_status: Union[str, RequestStatus],
        acting_username: str,
        additional_data: Optional[Union[StatusUpdateData, Mapping[str, Any]]] = None,
    ) -> ConsultationRequest:
        new_status = self._parse_status(new_status)
        if isinstance(additional_data, StatusUpdateData):
            scheduled_at = self._parse_datetime("scheduled_at", additional_data.scheduled_at)
            rejection_reason = additional_data.rejection_reason
        else:
            extra = additional_data or {}
            scheduled_at = self._parse_datetime("scheduled_at", extra.get("scheduled_at"))
            rejection_reason = extra.get("rejection_reason")

        async with self._lock_for(request_id):
            request = await self._load(request_id)

            if new_status == RequestStatus.ASSIGNED or not request.can_transition_to(new_status):
                raise InvalidTransitionError(request_id, request.status.value, new_status.value)

            if new_status in DOCTOR_ONLY_TRANSITIONS:
                if not acting_username or acting_username != request.assigned_doctor_username:
                    raise ForbiddenActionError(acting_username, f"mark this request as {new_status.value}", request_id)
            elif not acting_username or not request.is_participant(acting_username):
                raise ForbiddenActionError(acting_username, f"mark this request as {new_status.value}", request_id)

            if new_status == RequestStatus.REJECTED and not (rejection_reason or "").strip():
                logger.warning("Request rejected without a reason", request_id=request_id, doctor_username=acting_username)

            released_doctor = request.assigned_doctor_username if request.holds_load and new_status.is_terminal else None
            expected_status, expected_version = request.status, request.version
            previous = request.apply_status(
                new_status,
                acting_username,
                scheduled_at=scheduled_at,
                rejection_reason=(rejection_reason or "").strip() or None,
                now=self._clock(),
            )
            await self._commit(request, expected_status, expected_version)

            if released_doctor:
                await self._registry.decrement_load(released_doctor)

        record_status_transition(previous.value, new_status.value)
        logger.info(
            "Consultation request status updated",
            request_id=request_id,
            previous_status=previous.value,
            new_status=new_status.value,
            acting_username=acting_username,
            released_doctor=released_doctor,
        )
        for recipient in {request.patient_username, request.assigned_doctor_username} - {acting_username}:
            self._notify(EVENT_STATUS_CHANGED, recipient, request, previous_status=previous.value)
        return request

    async def reassign_request(
        self, request_id: str, new_doctor_username: str, acting_username: str
    ) -> ConsultationRequest:
        """Move an assigned request to another online doctor.

        The new doctor's load is taken first; if the request write then loses
        a race the increment is rolled back. The old doctor is released last.
        """
        if not isinstance(new_doctor_username, str) or not new_doctor_username.strip():
            raise ValidationError("new_doctor_username", "new_doctor_username is required", new_doctor_username)
        new_doctor_username = new_doctor_username.strip()

        async with self._lock_for(request_id):
            request = await self._load(request_id)

            if request.status != RequestStatus.ASSIGNED:
                raise InvalidTransitionError(request_id, request.status.value, RequestStatus.ASSIGNED.value)
            if acting_username not in (request.assigned_doctor_username, request.patient_username):
                raise ForbiddenActionError(acting_username, "reassign this request", request_id)
            if new_doctor_username == request.assigned_doctor_username:
                raise ValidationError("new_doctor_username", "Request is already assigned to this doctor", new_doctor_username)

            availability = await self._registry.get_availability(new_doctor_username)
            if availability is None or not availability.is_online:
                raise NoDoctorsAvailableError(category=request.category, doctor_username=new_doctor_username)

            await self._registry.increment_load(new_doctor_username)

            expected_status, expected_version = request.status, request.version
            old_doctor = request.reassign(new_doctor_username, acting_username, now=self._clock())
            try:
                await self._commit(request, expected_status, expected_version)
            except ConcurrentModificationError:
                await self._registry.decrement_load(new_doctor_username)
                raise

            if old_doctor:
                await self._registry.decrement_load(old_doctor)

        record_assignment("reassigned")
        logger.info(
            "Consultation request reassigned",
            request_id=request_id,
            old_doctor_username=old_doctor,
            new_doctor_username=new_doctor_username,
            acting_username=acting_username,
        )
        self._notify(EVENT_REQUEST_ASSIGNED, new_doctor_username, request)
        self._notify(EVENT_REQUEST_REASSIGNED, old_doctor, request, new_doctor_username=new_doctor_username)
        if acting_username != request.patient_username:
            self._notify(EVENT_REQUEST_REASSIGNED, request.patient_username, request)
        return request

    async def add_request_note(
        self,
        request_id: str,
        content: str,
        created_by: str,
        note_type: Union[str, NoteType] = NoteType.GENERAL,
    ) -> RequestNote:
        """Append a participant note; allowed on terminal requests too."""
        try:
            note_type = NoteType(note_type)
        except ValueError:
            raise ValidationError("type", f"Unknown note type: {note_type}", note_type)
        if note_type not in USER_NOTE_TYPES:
            raise ValidationError("type", f"Note type '{note_type.value}' is reserved", note_type.value)

        async with self._lock_for(request_id):
            request = await self._load(request_id)
            if not created_by or not request.is_participant(created_by):
                raise ForbiddenActionError(created_by, "add notes to this request", request_id)

            expected_status, expected_version = request.status, request.version
            note = request.add_note(content, created_by, note_type, now=self._clock())
            await self._commit(request, expected_status, expected_version)

        logger.info("Note added to consultation request", request_id=request_id, created_by=created_by, type=note_type.value)
        return note

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get_request(
        self, request_id: str, username: str, role: Optional[Union[str, UserRole]] = None
    ) -> ConsultationRequest:
        """A request visible to its patient, its assigned doctor or an admin."""
        request = await self._load(request_id)
        if role == UserRole.ADMIN or role == UserRole.ADMIN.value:
            return request
        if not username or not request.is_participant(username):
            raise RequestNotFoundError(request_id)
        return request

    async def get_consultation_requests(
        self,
        username: str,
        role: Union[str, UserRole],
        status: Optional[Union[str, RequestStatus]] = None,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ConsultationRequest]:
        """Requests of a patient, or requests assigned to a doctor, newest first."""
        try:
            role = UserRole(role)
        except ValueError:
            raise ValidationError("role", f"Unknown role: {role}", role)
        if role == UserRole.ADMIN:
            raise ValidationError("role", "Request listing is scoped to patients and doctors", role.value)
        self._validate_page(limit, offset)
        status = self._parse_status(status) if status is not None else None

        return await self._requests.find_for_participant(
            username,
            as_doctor=role == UserRole.DOCTOR,
            status=status,
            category=category,
            limit=limit,
            offset=offset,
        )

    async def get_pending_requests(self, limit: int = 10) -> List[ConsultationRequest]:
        """Pending requests, oldest first."""
        self._validate_page(limit, 0)
        return await self._requests.find_pending(limit=limit)

    async def get_request_stats(self) -> Dict[str, Any]:
        counts = await self._requests.count_by_status()
        by_status = {status.value: counts.get(status.value, 0) for status in RequestStatus}
        return {"total": sum(by_status.values()), "by_status": by_status}
