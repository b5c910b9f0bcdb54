"""
Consultation request ID value object for type-safe request identification.
Format: CREQ-YYYYMMDD-XXXXXXXX
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

_REQUEST_ID_PATTERN = re.compile(r"^CREQ-\d{8}-[0-9a-f]{8}$")


@dataclass(frozen=True)
class RequestId:
    """Immutable consultation request identifier value object."""

    value: str

    def __post_init__(self) -> None:
        """Validate request ID format."""
        if not self.value:
            raise ValueError("Request ID cannot be empty")

        if not isinstance(self.value, str):
            raise ValueError("Request ID must be a string")

        if not _REQUEST_ID_PATTERN.match(self.value):
            raise ValueError("Request ID must follow format: CREQ-YYYYMMDD-XXXXXXXX")

    def __str__(self) -> str:
        return self.value

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RequestId):
            return False
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return bool(value) and bool(_REQUEST_ID_PATTERN.match(value))

    @classmethod
    def generate(cls, date: Optional[datetime] = None) -> "RequestId":
        """Generate a new request ID."""
        if date is None:
            date = datetime.utcnow()

        date_str = date.strftime("%Y%m%d")
        suffix = uuid.uuid4().hex[:8]

        return cls(f"CREQ-{date_str}-{suffix}")
