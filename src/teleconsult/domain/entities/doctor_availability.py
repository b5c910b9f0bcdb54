"""Doctor availability entity: online status, specialties and consultation load."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from ..errors import ValidationError


@dataclass
class DoctorAvailability:
    """Availability record for a single doctor.

    current_load counts the doctor's assigned and accepted consultation
    requests and always stays within [0, max_load].
    """

    doctor_username: str
    is_online: bool = False
    specialties: List[str] = field(default_factory=list)
    current_load: int = 0
    max_load: int = 5
    last_seen: datetime = field(default_factory=datetime.utcnow)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        if not self.doctor_username or not self.doctor_username.strip():
            raise ValidationError(
                "doctor_username", "doctor_username must be a non-empty string", self.doctor_username
            )
        if self.max_load < 1:
            raise ValidationError("max_load", "max_load must be a positive integer", self.max_load)
        self.specialties = normalize_specialties(self.specialties)
        # Clamp stored values that drifted outside the invariant
        self.current_load = max(0, min(self.current_load, self.max_load))

    @property
    def has_capacity(self) -> bool:
        return self.current_load < self.max_load

    @property
    def is_available(self) -> bool:
        """Online and able to take one more consultation."""
        return self.is_online and self.has_capacity

    def matching_specialties(self, wanted: Iterable[str]) -> List[str]:
        wanted_set = set(wanted)
        return [s for s in self.specialties if s in wanted_set]

    def minutes_since_seen(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.utcnow()
        return max(0.0, (now - self.last_seen).total_seconds() / 60.0)


def normalize_specialties(specialties: Optional[Iterable[str]]) -> List[str]:
    """Strip, drop blanks and de-duplicate while keeping first-seen order."""
    if not specialties:
        return []
    cleaned = [s.strip() for s in specialties if isinstance(s, str) and s.strip()]
    return list(dict.fromkeys(cleaned))
