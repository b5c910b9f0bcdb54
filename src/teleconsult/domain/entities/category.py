"""Health category entry of the static category catalog."""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class CategoryEntry:
    """A coarse health grouping and its ordered list of suggested specialties."""

    name: str
    description: str
    specialties: Tuple[str, ...]

    @property
    def primary_specialty(self) -> Optional[str]:
        return self.specialties[0] if self.specialties else None
