"""
Matching engine tests: score ordering, fallbacks and no-match handling.
"""

import pytest

from teleconsult.domain.errors import InvalidCategoryError, NoDoctorsAvailableError


async def _online(registry, username, specialties=None, load=0, max_load=5):
    await registry.set_availability(username, True, specialties or [], max_load=max_load)
    for _ in range(load):
        await registry.increment_load(username)


@pytest.mark.asyncio
async def test_specialty_match_outweighs_lower_load(registry, engine):
    await _online(registry, "dr_cardio", ["Cardiology"], load=3)
    await _online(registry, "dr_general", ["General Practice"], load=0)

    best = await engine.find_best_matching_doctor("Cardiology")
    assert best.doctor_username == "dr_cardio"


@pytest.mark.asyncio
async def test_more_specialty_matches_win(registry, engine):
    await _online(registry, "dr_one", ["Dermatology"])
    await _online(registry, "dr_two", ["Dermatology", "Cosmetic Dermatology"], load=2)

    best = await engine.find_best_matching_doctor("Dermatology")
    assert best.doctor_username == "dr_two"


@pytest.mark.asyncio
async def test_lower_load_wins_between_equal_specialists(registry, engine):
    await _online(registry, "dr_busy", ["Neurology"], load=2)
    await _online(registry, "dr_free", ["Neurology"], load=1)

    best = await engine.find_best_matching_doctor("Neurology")
    assert best.doctor_username == "dr_free"


@pytest.mark.asyncio
async def test_recency_breaks_ties_between_equal_load(registry, engine, clock):
    await _online(registry, "dr_early", ["Pediatrics"])
    clock.advance(minutes=20)
    await _online(registry, "dr_late", ["Pediatrics"])
    clock.advance(minutes=5)

    ranked = engine.rank(await registry.get_match_candidates(["Pediatrics"]), ["Pediatrics"])
    assert [s.doctor.doctor_username for s in ranked] == ["dr_late", "dr_early"]
    assert ranked[0].score - ranked[1].score == 10 - 5


@pytest.mark.asyncio
async def test_load_outweighs_recency(registry, engine, clock):
    await _online(registry, "dr_idle", ["Urology"])
    clock.advance(minutes=50)
    await _online(registry, "dr_fresh", ["Urology"], load=1)

    best = await engine.find_best_matching_doctor("Urology")
    assert best.doctor_username == "dr_idle"


@pytest.mark.asyncio
async def test_equal_scores_fall_back_to_username(registry, engine):
    await _online(registry, "dr_b", ["Cardiology"])
    await _online(registry, "dr_a", ["Cardiology"])

    best = await engine.find_best_matching_doctor("Cardiology")
    assert best.doctor_username == "dr_a"


@pytest.mark.asyncio
async def test_score_components(registry, engine):
    await _online(registry, "dr_x", ["Cardiology", "Dermatology"], load=2)
    record = await registry.get_availability("dr_x")

    scored = engine.score_doctor(record, ["Cardiology", "Interventional Cardiology"])
    # base + one specialty - two units of load + freshest recency tier
    assert scored.score == 10 + 500 - 40 + 15
    assert list(scored.matching_specialties) == ["Cardiology"]


@pytest.mark.asyncio
async def test_preferred_specialties_replace_category_suggestions(registry, engine):
    await _online(registry, "dr_cardio", ["Cardiology"])
    await _online(registry, "dr_sleep", ["Sleep Medicine"], load=1)

    best = await engine.find_best_matching_doctor("Cardiology", ["Sleep Medicine"])
    assert best.doctor_username == "dr_sleep"
    assert engine.candidate_specialties("Cardiology", ["Sleep Medicine"]) == ["Sleep Medicine"]
    assert engine.candidate_specialties("Cardiology") == [
        "Cardiology",
        "Cardiovascular Surgery",
        "Interventional Cardiology",
    ]


@pytest.mark.asyncio
async def test_falls_back_to_any_online_doctor(registry, engine):
    await _online(registry, "dr_derm", ["Dermatology"], load=1)
    await _online(registry, "dr_ent", ["Audiology"])

    best = await engine.find_best_scored_doctor("Psychiatry")
    assert best.doctor.doctor_username == "dr_ent"
    assert list(best.matching_specialties) == []


@pytest.mark.asyncio
async def test_unknown_category_without_preferences_matches_anyone(registry, engine):
    await _online(registry, "dr_any", ["Oncology"])

    best = await engine.find_best_matching_doctor("Not A Category")
    assert best.doctor_username == "dr_any"


@pytest.mark.asyncio
async def test_full_and_offline_doctors_are_never_matched(registry, engine):
    await _online(registry, "dr_full", ["Cardiology"], load=1, max_load=1)
    await registry.set_availability("dr_offline", False, ["Cardiology"])

    assert await engine.find_best_matching_doctor("Cardiology") is None


@pytest.mark.asyncio
async def test_matching_does_not_take_load(registry, engine):
    await _online(registry, "dr_cardio", ["Cardiology"])

    await engine.find_best_matching_doctor("Cardiology")
    await engine.find_match("Cardiology")

    assert (await registry.get_availability("dr_cardio")).current_load == 0


@pytest.mark.asyncio
async def test_excluded_doctors_are_skipped(registry, engine):
    await _online(registry, "dr_a", ["Cardiology"])
    await _online(registry, "dr_b", ["Cardiology"], load=1)

    best = await engine.find_best_matching_doctor("Cardiology", exclude={"dr_a"})
    assert best.doctor_username == "dr_b"
    assert await engine.find_best_matching_doctor("Cardiology", exclude={"dr_a", "dr_b"}) is None


@pytest.mark.asyncio
async def test_find_match_errors(registry, engine):
    with pytest.raises(InvalidCategoryError):
        await engine.find_match("Astrology")

    with pytest.raises(NoDoctorsAvailableError) as exc_info:
        await engine.find_match("Cardiology")
    assert exc_info.value.details["category"] == "Cardiology"
    assert "Cardiology" in exc_info.value.details["specialties"]


@pytest.mark.asyncio
async def test_find_match_returns_score(registry, engine):
    await _online(registry, "dr_cardio", ["Cardiology"])

    scored = await engine.find_match("Cardiology")
    assert scored.doctor.doctor_username == "dr_cardio"
    assert scored.score == 525


@pytest.mark.asyncio
async def test_stronger_specialist_found_behind_many_idle_specialists(registry, engine):
    # More idle single-specialty doctors than any listing limit, all ahead of
    # dr_multi in load order
    for i in range(60):
        await _online(registry, f"dr_single_{i:02d}", ["Cardiology"])
    await _online(
        registry, "dr_multi", ["Cardiology", "Cardiovascular Surgery", "Interventional Cardiology"], load=1
    )

    best = await engine.find_best_scored_doctor("Cardiology")
    assert best.doctor.doctor_username == "dr_multi"
    assert len(best.matching_specialties) == 3


@pytest.mark.asyncio
async def test_repeated_match_on_unchanged_registry_is_stable(registry, engine):
    for username in ("dr_c", "dr_a", "dr_d", "dr_b"):
        await _online(registry, username, ["Nephrology"])

    first = await engine.find_best_matching_doctor("Urology", ["Nephrology"])
    second = await engine.find_best_matching_doctor("Urology", ["Nephrology"])

    assert first.doctor_username == second.doctor_username == "dr_a"
