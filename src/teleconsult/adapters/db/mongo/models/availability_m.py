"""MongoDB Beanie model for doctor availability documents."""

from datetime import datetime
from typing import List

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, IndexModel


class DoctorAvailabilityMongo(Document):
    """MongoDB model for DoctorAvailability entity."""

    doctor_username: str = Field(..., description="Doctor username")
    is_online: bool = Field(default=False, description="Whether the doctor accepts consultations")
    specialties: List[str] = Field(default_factory=list, description="Doctor specialties")
    current_load: int = Field(default=0, ge=0, description="Assigned and accepted consultations")
    max_load: int = Field(default=5, ge=1, description="Maximum concurrent consultations")
    last_seen: datetime = Field(default_factory=datetime.utcnow)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "doctor_availability"
        indexes = [
            IndexModel([("doctor_username", ASCENDING)], unique=True),
            IndexModel(
                [("is_online", ASCENDING), ("current_load", ASCENDING), ("last_seen", DESCENDING)]
            ),
            "specialties",
        ]
