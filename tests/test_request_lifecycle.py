"""
Request lifecycle tests: creation and assignment, the status state machine,
reassignment, notes, queries and the load bookkeeping behind them.
"""

import asyncio
from datetime import datetime

import pytest

from teleconsult.domain.entities.consultation_request import DEFAULT_REJECTION_REASON
from teleconsult.domain.enums.consultation import NoteType, RequestStatus, UserRole
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


def _request(category="Cardiology", description="chest pain", **extra):
    return {"category": category, "description": description, **extra}


async def _load(registry, username):
    return (await registry.get_availability(username)).current_load


async def _assigned_request(registry, lifecycle, doctor="dr_a", patient="patient_1"):
    await registry.set_availability(doctor, True, ["Cardiology"])
    return await lifecycle.create_consultation_request(patient, _request())


# ----------------------------------------------------------------------
# End-to-end scenarios
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_request_is_assigned_to_matching_online_doctor(registry, lifecycle, notifier):
    await registry.set_availability("dr_a", True, ["Cardiology"])

    request = await lifecycle.create_consultation_request("patient_1", _request())

    assert request.status == RequestStatus.ASSIGNED
    assert request.assigned_doctor_username == "dr_a"
    assert request.assigned_at is not None
    assert RequestId.is_valid(request.request_id.value)
    assert await _load(registry, "dr_a") == 1
    assert request.notes[-1].type == NoteType.STATUS_CHANGE

    await lifecycle.drain_notifications()
    assert sorted(notifier.recipients("request_assigned")) == ["dr_a", "patient_1"]


@pytest.mark.asyncio
async def test_request_is_queued_when_no_doctor_is_online(registry, lifecycle, notifier):
    await registry.set_availability("dr_off", False, ["Cardiology"])

    request = await lifecycle.create_consultation_request("patient_1", _request())

    assert request.status == RequestStatus.PENDING
    assert request.assigned_doctor_username is None
    assert await _load(registry, "dr_off") == 0

    await lifecycle.drain_notifications()
    assert notifier.recipients("request_queued") == ["patient_1"]


@pytest.mark.asyncio
async def test_rejection_releases_doctor_load(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)

    updated = await lifecycle.update_request_status(
        request.request_id.value, "rejected", "dr_a", {"rejection_reason": "out of scope"}
    )

    assert updated.status == RequestStatus.REJECTED
    assert updated.rejection_reason == "out of scope"
    assert await _load(registry, "dr_a") == 0


@pytest.mark.asyncio
async def test_completion_releases_load_exactly_once(registry, lifecycle, clock):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value

    await lifecycle.update_request_status(request_id, "accepted", "dr_a")
    assert await _load(registry, "dr_a") == 1

    clock.advance(minutes=30)
    completed = await lifecycle.update_request_status(request_id, "completed", "dr_a")

    assert completed.status == RequestStatus.COMPLETED
    assert completed.completed_at == clock.now
    assert await _load(registry, "dr_a") == 0

    # A second release on an idle doctor is a no-op
    assert (await registry.decrement_load("dr_a")).current_load == 0


# ----------------------------------------------------------------------
# Creation
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_create_validates_input(lifecycle):
    with pytest.raises(InvalidCategoryError):
        await lifecycle.create_consultation_request("patient_1", _request(category="Astrology"))
    with pytest.raises(ValidationError):
        await lifecycle.create_consultation_request("patient_1", _request(description="   "))
    with pytest.raises(ValidationError):
        await lifecycle.create_consultation_request("patient_1", _request(urgency="whenever"))
    with pytest.raises(ValidationError):
        await lifecycle.create_consultation_request("patient_1", _request(preferred_specialties="Cardiology"))
    with pytest.raises(ValidationError):
        await lifecycle.create_consultation_request("", _request())


@pytest.mark.asyncio
async def test_create_defaults_and_normalisation(registry, lifecycle):
    request = await lifecycle.create_consultation_request(
        "patient_1",
        _request(description="  palpitations  ", preferred_specialties=[" Cardiology", "Cardiology", ""]),
    )

    assert request.urgency.value == "medium"
    assert request.description == "palpitations"
    assert request.preferred_specialties == ["Cardiology"]


@pytest.mark.asyncio
async def test_preferred_doctor_is_used_when_available(registry, lifecycle):
    await registry.set_availability("dr_cardio", True, ["Cardiology"])
    await registry.set_availability("dr_general", True, ["General Practice"])

    request = await lifecycle.create_consultation_request(
        "patient_1", _request(preferred_doctor_username="dr_general")
    )

    assert request.assigned_doctor_username == "dr_general"
    assert await _load(registry, "dr_general") == 1
    assert await _load(registry, "dr_cardio") == 0


@pytest.mark.asyncio
async def test_unavailable_preferred_doctor_falls_back_to_matching(registry, lifecycle):
    await registry.set_availability("dr_cardio", True, ["Cardiology"])
    await registry.set_availability("dr_away", False, ["Cardiology"])

    request = await lifecycle.create_consultation_request(
        "patient_1", _request(preferred_doctor_username="dr_away")
    )

    assert request.assigned_doctor_username == "dr_cardio"
    assert await _load(registry, "dr_away") == 0


@pytest.mark.asyncio
async def test_concurrent_creations_share_a_single_slot(registry, lifecycle):
    await registry.set_availability("dr_solo", True, ["Cardiology"], max_load=1)

    first, second = await asyncio.gather(
        lifecycle.create_consultation_request("patient_1", _request()),
        lifecycle.create_consultation_request("patient_2", _request()),
    )

    statuses = sorted([first.status, second.status], key=lambda s: s.value)
    assert statuses == [RequestStatus.ASSIGNED, RequestStatus.PENDING]
    assert await _load(registry, "dr_solo") == 1


@pytest.mark.asyncio
async def test_concurrent_creations_spill_over_to_next_doctor(registry, lifecycle):
    await registry.set_availability("dr_solo", True, ["Cardiology"], max_load=1)
    await registry.set_availability("dr_backup", True, ["General Practice"], max_load=1)

    results = await asyncio.gather(
        *[lifecycle.create_consultation_request(f"patient_{i}", _request()) for i in range(3)]
    )

    assigned = sorted(r.assigned_doctor_username for r in results if r.status == RequestStatus.ASSIGNED)
    assert assigned == ["dr_backup", "dr_solo"]
    assert sum(1 for r in results if r.status == RequestStatus.PENDING) == 1
    assert await _load(registry, "dr_solo") == 1
    assert await _load(registry, "dr_backup") == 1


@pytest.mark.asyncio
async def test_failed_store_write_releases_taken_load(registry, lifecycle, container, monkeypatch):
    await registry.set_availability("dr_a", True, ["Cardiology"])

    async def broken_create(request):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(container.request_repository, "create", broken_create)

    with pytest.raises(RuntimeError):
        await lifecycle.create_consultation_request("patient_1", _request())
    assert await _load(registry, "dr_a") == 0


# ----------------------------------------------------------------------
# Status transitions
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_pending_request_cannot_complete(lifecycle):
    request = await lifecycle.create_consultation_request("patient_1", _request())

    with pytest.raises(InvalidTransitionError) as exc_info:
        await lifecycle.update_request_status(request.request_id.value, "completed", "patient_1")
    assert exc_info.value.details["current_status"] == "pending"


@pytest.mark.asyncio
async def test_assigned_is_not_reachable_through_status_update(lifecycle):
    request = await lifecycle.create_consultation_request("patient_1", _request())

    with pytest.raises(InvalidTransitionError):
        await lifecycle.update_request_status(request.request_id.value, "assigned", "patient_1")


@pytest.mark.asyncio
async def test_patient_can_cancel_pending_request(registry, lifecycle, clock):
    request = await lifecycle.create_consultation_request("patient_1", _request())

    cancelled = await lifecycle.update_request_status(request.request_id.value, "cancelled", "patient_1")

    assert cancelled.status == RequestStatus.CANCELLED
    assert cancelled.cancelled_at == clock.now


@pytest.mark.asyncio
async def test_cancelling_assigned_request_releases_load(registry, lifecycle, notifier):
    request = await _assigned_request(registry, lifecycle)

    await lifecycle.update_request_status(request.request_id.value, "cancelled", "patient_1")

    assert await _load(registry, "dr_a") == 0
    await lifecycle.drain_notifications()
    assert notifier.recipients("status_changed") == ["dr_a"]


@pytest.mark.asyncio
async def test_terminal_requests_accept_no_transitions(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value
    await lifecycle.update_request_status(request_id, "cancelled", "patient_1")

    for status in ("accepted", "completed", "rejected", "cancelled"):
        with pytest.raises(InvalidTransitionError):
            await lifecycle.update_request_status(request_id, status, "dr_a")
    assert await _load(registry, "dr_a") == 0


@pytest.mark.asyncio
async def test_only_assigned_doctor_can_accept(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    await registry.set_availability("dr_other", True, ["Cardiology"])

    with pytest.raises(ForbiddenActionError):
        await lifecycle.update_request_status(request.request_id.value, "accepted", "patient_1")
    with pytest.raises(ForbiddenActionError):
        await lifecycle.update_request_status(request.request_id.value, "accepted", "dr_other")


@pytest.mark.asyncio
async def test_strangers_cannot_cancel(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)

    with pytest.raises(ForbiddenActionError):
        await lifecycle.update_request_status(request.request_id.value, "cancelled", "patient_2")
    assert await _load(registry, "dr_a") == 1


@pytest.mark.asyncio
async def test_rejection_without_reason_uses_default(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)

    rejected = await lifecycle.update_request_status(request.request_id.value, "rejected", "dr_a")
    assert rejected.rejection_reason == DEFAULT_REJECTION_REASON


@pytest.mark.asyncio
async def test_accept_records_schedule(registry, lifecycle, clock):
    request = await _assigned_request(registry, lifecycle)

    accepted = await lifecycle.update_request_status(
        request.request_id.value, "accepted", "dr_a", {"scheduled_at": "2024-03-05T12:00:00+02:00"}
    )

    assert accepted.accepted_at == clock.now
    # Offsets are folded into naive UTC like every other timestamp
    assert accepted.scheduled_at == datetime(2024, 3, 5, 10, 0)
    assert accepted.scheduled_at.tzinfo is None
    assert accepted.scheduled_at > accepted.accepted_at
    assert await _load(registry, "dr_a") == 1


@pytest.mark.asyncio
async def test_invalid_status_inputs(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)

    with pytest.raises(ValidationError):
        await lifecycle.update_request_status(request.request_id.value, "teleported", "dr_a")
    with pytest.raises(ValidationError):
        await lifecycle.update_request_status(
            request.request_id.value, "accepted", "dr_a", {"scheduled_at": "tomorrow"}
        )
    with pytest.raises(RequestNotFoundError):
        await lifecycle.update_request_status("CREQ-20240304-deadbeef", "accepted", "dr_a")


@pytest.mark.asyncio
async def test_concurrent_transitions_on_one_request_have_one_winner(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value

    results = await asyncio.gather(
        lifecycle.update_request_status(request_id, "accepted", "dr_a"),
        lifecycle.update_request_status(request_id, "accepted", "dr_a"),
        return_exceptions=True,
    )

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert sum(1 for r in results if isinstance(r, InvalidTransitionError)) == 1
    assert len(lifecycle._locks) == 0


@pytest.mark.asyncio
async def test_unknown_request_ids_leave_no_locks_behind(lifecycle):
    for i in range(200):
        with pytest.raises(RequestNotFoundError):
            await lifecycle.update_request_status(f"CREQ-20240304-{i:08x}", "cancelled", "patient_1")

    assert len(lifecycle._locks) == 0


@pytest.mark.asyncio
async def test_stale_write_is_rejected(registry, lifecycle, container, monkeypatch):
    request = await _assigned_request(registry, lifecycle)

    async def lost_race(request, expected_status, expected_version):
        return False

    monkeypatch.setattr(container.request_repository, "update_if_version", lost_race)

    with pytest.raises(ConcurrentModificationError):
        await lifecycle.update_request_status(request.request_id.value, "cancelled", "patient_1")
    # Load is only released after a successful write
    assert await _load(registry, "dr_a") == 1


@pytest.mark.asyncio
async def test_version_increases_with_every_change(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value
    assert request.version == 0

    await lifecycle.update_request_status(request_id, "accepted", "dr_a")
    await lifecycle.add_request_note(request_id, "Bring ECG results", "dr_a")

    stored = await lifecycle.get_request(request_id, "patient_1")
    assert stored.version == 2


# ----------------------------------------------------------------------
# Pending assignment
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_pending_request_assigned_once_doctor_comes_online(registry, lifecycle):
    request = await lifecycle.create_consultation_request("patient_1", _request())
    request_id = request.request_id.value

    still_pending = await lifecycle.assign_pending_request(request_id)
    assert still_pending.status == RequestStatus.PENDING

    await registry.set_availability("dr_a", True, ["Cardiology"])
    assigned = await lifecycle.assign_pending_request(request_id, "admin_1")

    assert assigned.status == RequestStatus.ASSIGNED
    assert assigned.assigned_doctor_username == "dr_a"
    assert await _load(registry, "dr_a") == 1

    with pytest.raises(InvalidTransitionError):
        await lifecycle.assign_pending_request(request_id)


@pytest.mark.asyncio
async def test_pending_assignment_rolls_back_load_on_lost_race(registry, lifecycle, container, monkeypatch):
    request = await lifecycle.create_consultation_request("patient_1", _request())
    await registry.set_availability("dr_a", True, ["Cardiology"])

    async def lost_race(request, expected_status, expected_version):
        return False

    monkeypatch.setattr(container.request_repository, "update_if_version", lost_race)

    with pytest.raises(ConcurrentModificationError):
        await lifecycle.assign_pending_request(request.request_id.value)
    assert await _load(registry, "dr_a") == 0


@pytest.mark.asyncio
async def test_pending_requests_listed_oldest_first(lifecycle, clock):
    first = await lifecycle.create_consultation_request("patient_1", _request())
    clock.advance(minutes=1)
    second = await lifecycle.create_consultation_request("patient_2", _request())

    pending = await lifecycle.get_pending_requests()
    assert [r.request_id for r in pending] == [first.request_id, second.request_id]


# ----------------------------------------------------------------------
# Reassignment
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_reassign_moves_load_between_doctors(registry, lifecycle, notifier):
    request = await _assigned_request(registry, lifecycle)
    await registry.set_availability("dr_b", True, ["Cardiology"])

    reassigned = await lifecycle.reassign_request(request.request_id.value, "dr_b", "dr_a")

    assert reassigned.status == RequestStatus.ASSIGNED
    assert reassigned.assigned_doctor_username == "dr_b"
    assert reassigned.notes[-1].type == NoteType.REASSIGNMENT
    assert await _load(registry, "dr_a") == 0
    assert await _load(registry, "dr_b") == 1

    await lifecycle.drain_notifications()
    assert "dr_a" in notifier.recipients("request_reassigned")
    assert "patient_1" in notifier.recipients("request_reassigned")
    assert "dr_b" in notifier.recipients("request_assigned")


@pytest.mark.asyncio
async def test_reassign_from_accepted_fails(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    await registry.set_availability("dr_b", True, ["Cardiology"])
    await lifecycle.update_request_status(request.request_id.value, "accepted", "dr_a")

    with pytest.raises(InvalidTransitionError):
        await lifecycle.reassign_request(request.request_id.value, "dr_b", "dr_a")
    assert await _load(registry, "dr_b") == 0


@pytest.mark.asyncio
async def test_reassign_to_full_doctor_has_no_partial_effect(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    await registry.set_availability("dr_full", True, ["Cardiology"], max_load=1)
    await registry.increment_load("dr_full")

    with pytest.raises(CapacityExceededError):
        await lifecycle.reassign_request(request.request_id.value, "dr_full", "patient_1")

    assert await _load(registry, "dr_a") == 1
    assert await _load(registry, "dr_full") == 1
    stored = await lifecycle.get_request(request.request_id.value, "patient_1")
    assert stored.assigned_doctor_username == "dr_a"


@pytest.mark.asyncio
async def test_reassign_rolls_back_on_lost_race(registry, lifecycle, container, monkeypatch):
    request = await _assigned_request(registry, lifecycle)
    await registry.set_availability("dr_b", True, ["Cardiology"])

    async def lost_race(request, expected_status, expected_version):
        return False

    monkeypatch.setattr(container.request_repository, "update_if_version", lost_race)

    with pytest.raises(ConcurrentModificationError):
        await lifecycle.reassign_request(request.request_id.value, "dr_b", "dr_a")
    assert await _load(registry, "dr_a") == 1
    assert await _load(registry, "dr_b") == 0


@pytest.mark.asyncio
async def test_reassign_validation(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value
    await registry.set_availability("dr_offline", False, ["Cardiology"])
    await registry.set_availability("dr_b", True, ["Cardiology"])

    with pytest.raises(ValidationError):
        await lifecycle.reassign_request(request_id, "dr_a", "dr_a")
    with pytest.raises(NoDoctorsAvailableError):
        await lifecycle.reassign_request(request_id, "dr_offline", "dr_a")
    with pytest.raises(NoDoctorsAvailableError):
        await lifecycle.reassign_request(request_id, "dr_unknown", "dr_a")
    with pytest.raises(ForbiddenActionError):
        await lifecycle.reassign_request(request_id, "dr_b", "dr_b")
    assert await _load(registry, "dr_b") == 0


# ----------------------------------------------------------------------
# Notes
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_participants_add_notes(registry, lifecycle, clock):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value

    note = await lifecycle.add_request_note(request_id, "  Pain started yesterday  ", "patient_1", "medical")

    assert note.content == "Pain started yesterday"
    assert note.type == NoteType.MEDICAL
    assert note.created_at == clock.now
    stored = await lifecycle.get_request(request_id, "dr_a")
    assert stored.notes[-1].content == "Pain started yesterday"


@pytest.mark.asyncio
async def test_note_rules(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value

    with pytest.raises(ForbiddenActionError):
        await lifecycle.add_request_note(request_id, "hello", "patient_2")
    with pytest.raises(ValidationError):
        await lifecycle.add_request_note(request_id, "   ", "patient_1")
    with pytest.raises(ValidationError):
        await lifecycle.add_request_note(request_id, "sneaky", "patient_1", "status_change")
    with pytest.raises(ValidationError):
        await lifecycle.add_request_note(request_id, "hello", "patient_1", "diary")


@pytest.mark.asyncio
async def test_notes_allowed_on_terminal_request(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value
    await lifecycle.update_request_status(request_id, "rejected", "dr_a")

    note = await lifecycle.add_request_note(request_id, "Referred elsewhere", "dr_a", "administrative")
    assert note.type == NoteType.ADMINISTRATIVE


# ----------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_request_visibility(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    request_id = request.request_id.value

    assert (await lifecycle.get_request(request_id, "patient_1")).request_id == request.request_id
    assert (await lifecycle.get_request(request_id, "dr_a")).request_id == request.request_id
    assert (await lifecycle.get_request(request_id, "ops", UserRole.ADMIN)).request_id == request.request_id
    with pytest.raises(RequestNotFoundError):
        await lifecycle.get_request(request_id, "patient_2")
    with pytest.raises(RequestNotFoundError):
        await lifecycle.get_request("CREQ-20240304-00000000", "patient_1")


@pytest.mark.asyncio
async def test_list_requests_for_patient_and_doctor(registry, lifecycle, clock):
    await registry.set_availability("dr_a", True, ["Cardiology"])
    first = await lifecycle.create_consultation_request("patient_1", _request())
    clock.advance(minutes=1)
    second = await lifecycle.create_consultation_request("patient_1", _request(category="Dermatology"))
    clock.advance(minutes=1)
    await lifecycle.create_consultation_request("patient_2", _request())

    mine = await lifecycle.get_consultation_requests("patient_1", "patient")
    assert [r.request_id for r in mine] == [second.request_id, first.request_id]

    dermatology = await lifecycle.get_consultation_requests("patient_1", "patient", category="Dermatology")
    assert [r.request_id for r in dermatology] == [second.request_id]

    paged = await lifecycle.get_consultation_requests("patient_1", "patient", limit=1, offset=1)
    assert [r.request_id for r in paged] == [first.request_id]

    doctor_view = await lifecycle.get_consultation_requests("dr_a", "doctor", status="assigned")
    assert len(doctor_view) == 3
    assert all(r.assigned_doctor_username == "dr_a" for r in doctor_view)


@pytest.mark.asyncio
async def test_list_requests_validation(lifecycle):
    with pytest.raises(ValidationError):
        await lifecycle.get_consultation_requests("ops", "admin")
    with pytest.raises(ValidationError):
        await lifecycle.get_consultation_requests("patient_1", "patient", limit=0)
    with pytest.raises(ValidationError):
        await lifecycle.get_consultation_requests("patient_1", "patient", limit=101)
    with pytest.raises(ValidationError):
        await lifecycle.get_consultation_requests("patient_1", "patient", offset=-1)
    with pytest.raises(ValidationError):
        await lifecycle.get_consultation_requests("patient_1", "patient", status="lost")


@pytest.mark.asyncio
async def test_request_stats(registry, lifecycle):
    request = await _assigned_request(registry, lifecycle)
    await lifecycle.create_consultation_request("patient_2", _request(category="Neurology"))
    await lifecycle.update_request_status(request.request_id.value, "accepted", "dr_a")

    stats = await lifecycle.get_request_stats()
    assert stats["total"] == 2
    assert stats["by_status"]["accepted"] == 1
    assert stats["by_status"]["assigned"] == 1
    assert stats["by_status"]["completed"] == 0


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------
@pytest.mark.asyncio
async def test_notification_failures_do_not_break_the_lifecycle(registry, lifecycle, notifier):
    notifier.fail = True
    await registry.set_availability("dr_a", True, ["Cardiology"])

    request = await lifecycle.create_consultation_request("patient_1", _request())
    await lifecycle.drain_notifications()

    assert request.status == RequestStatus.ASSIGNED
    assert notifier.events == []
    stored = await lifecycle.get_request(request.request_id.value, "patient_1")
    assert stored.status == RequestStatus.ASSIGNED
