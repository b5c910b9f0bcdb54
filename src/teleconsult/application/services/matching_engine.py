"""
Doctor matching engine.

Scores online doctors with spare capacity for a consultation and picks the
best one. Matching only decides; committing the assignment (taking load) is
the lifecycle manager's job.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

from teleconsult.application.services.availability_registry import AvailabilityRegistry
from teleconsult.application.services.category_catalog import CategoryCatalog
from teleconsult.core.config import MatchingSettings
from teleconsult.core.structured_logger import get_logger
from teleconsult.domain.entities.doctor_availability import DoctorAvailability, normalize_specialties
from teleconsult.domain.errors import InvalidCategoryError, NoDoctorsAvailableError
from teleconsult.observability.metrics import record_match_attempt
from teleconsult.observability.tracing import add_span_attribute, set_span_status, trace_operation

logger = get_logger("teleconsult.matching")


@dataclass(frozen=True)
class ScoredDoctor:
    """A candidate doctor together with its matching score."""

    doctor: DoctorAvailability
    score: int
    matching_specialties: Sequence[str]


class MatchingEngine:
    """Picks the best available doctor for a category and preferred specialties.

    score = base + matches * specialty_bonus - load * load_penalty + recency bonus.
    Ties are broken by lower load, then username.
    """

    def __init__(
        self,
        registry: AvailabilityRegistry,
        catalog: CategoryCatalog,
        settings: Optional[MatchingSettings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._registry = registry
        self._catalog = catalog
        self._settings = settings or MatchingSettings()
        self._clock = clock

    def candidate_specialties(
        self, category: str, preferred_specialties: Optional[Iterable[str]] = None
    ) -> List[str]:
        """Preferred specialties when given, else the category's suggestions."""
        preferred = normalize_specialties(preferred_specialties)
        if preferred:
            return preferred
        return self._catalog.get_suggested_specialties(category)

    def recency_bonus(self, last_seen: datetime, now: Optional[datetime] = None) -> int:
        minutes = max(0.0, ((now or self._clock()) - last_seen).total_seconds() / 60.0)
        for bound, bonus in zip(self._settings.recency_tier_minutes, self._settings.recency_tier_bonus):
            if minutes < bound:
                return bonus
        return 0

    def score_doctor(
        self, doctor: DoctorAvailability, specialties: Iterable[str], now: Optional[datetime] = None
    ) -> ScoredDoctor:
        matches = doctor.matching_specialties(specialties)
        score = (
            self._settings.base_score
            + len(matches) * self._settings.specialty_bonus
            - doctor.current_load * self._settings.load_penalty
            + self.recency_bonus(doctor.last_seen, now)
        )
        return ScoredDoctor(doctor=doctor, score=score, matching_specialties=tuple(matches))

    def rank(
        self, candidates: Iterable[DoctorAvailability], specialties: Iterable[str], now: Optional[datetime] = None
    ) -> List[ScoredDoctor]:
        """Score and order candidates, best first."""
        now = now or self._clock()
        specialties = list(specialties)
        scored = [self.score_doctor(d, specialties, now) for d in candidates if d.is_available]
        scored.sort(key=lambda s: (-s.score, s.doctor.current_load, s.doctor.doctor_username))
        return scored

    async def _load_candidates(self, specialties: List[str], exclude: set) -> List[DoctorAvailability]:
        # No limit: the store orders by load, so any cut before scoring could
        # drop a better specialty match.
        candidates: List[DoctorAvailability] = []
        if specialties:
            candidates = [
                d
                for d in await self._registry.get_match_candidates(specialties)
                if d.doctor_username not in exclude
            ]
        if not candidates:
            candidates = [
                d for d in await self._registry.get_match_candidates(None) if d.doctor_username not in exclude
            ]
        return candidates

    async def find_best_scored_doctor(
        self,
        category: str,
        preferred_specialties: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> Optional[ScoredDoctor]:
        specialties = self.candidate_specialties(category, preferred_specialties)
        exclude_set = set(exclude or ())

        with trace_operation("match_doctor", {"category": category}) as span:
            candidates = await self._load_candidates(specialties, exclude_set)
            ranked = self.rank(candidates, specialties)
            add_span_attribute(span, "candidates", len(ranked))
            set_span_status(span, bool(ranked), "no doctor available")

        if not ranked:
            record_match_attempt(category, matched=False)
            logger.info(
                "No doctor available for match",
                category=category,
                specialties=specialties,
                excluded=sorted(exclude_set),
            )
            return None

        best = ranked[0]
        record_match_attempt(category, matched=True)
        logger.info(
            "Best matching doctor found",
            category=category,
            doctor_username=best.doctor.doctor_username,
            score=best.score,
            matching_specialties=list(best.matching_specialties),
            candidates=len(ranked),
        )
        return best

    async def find_best_matching_doctor(
        self,
        category: str,
        preferred_specialties: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> Optional[DoctorAvailability]:
        """Best doctor for the request, or None when nobody qualifies. Never mutates the registry."""
        best = await self.find_best_scored_doctor(category, preferred_specialties, exclude)
        return best.doctor if best else None

    async def find_match(
        self, category: str, preferred_specialties: Optional[Iterable[str]] = None
    ) -> ScoredDoctor:
        """Like find_best_matching_doctor but raises NoDoctorsAvailableError on no match."""
        if not self._catalog.has_category(category):
            raise InvalidCategoryError(category)
        best = await self.find_best_scored_doctor(category, preferred_specialties)
        if best is None:
            raise NoDoctorsAvailableError(
                category=category,
                specialties=self.candidate_specialties(category, preferred_specialties),
            )
        return best
