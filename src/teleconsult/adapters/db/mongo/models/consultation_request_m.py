"""MongoDB Beanie models for consultation request documents."""

from datetime import datetime
from typing import List, Optional

from beanie import Document
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING, IndexModel


class RequestNoteMongo(BaseModel):
    """Embedded request note."""

    content: str
    created_by: str
    type: str = "general"
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ConsultationRequestMongo(Document):
    """MongoDB model for ConsultationRequest entity."""

    request_id: str = Field(..., description="Request ID (CREQ-YYYYMMDD-XXXXXXXX)")
    patient_username: str = Field(..., description="Requesting patient")
    assigned_doctor_username: Optional[str] = Field(None, description="Assigned doctor")
    category: str = Field(..., description="Health category")
    description: str = Field(..., description="Issue description")
    preferred_specialties: List[str] = Field(default_factory=list)
    urgency: str = Field(default="medium")
    status: str = Field(default="pending")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: List[RequestNoteMongo] = Field(default_factory=list)
    version: int = Field(default=0, description="Optimistic concurrency token")

    class Settings:
        name = "consultation_requests"
        indexes = [
            IndexModel([("request_id", ASCENDING)], unique=True),
            IndexModel([("patient_username", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("assigned_doctor_username", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("status", ASCENDING), ("created_at", ASCENDING)]),
        ]
