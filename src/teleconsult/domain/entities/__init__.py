"""
Domain entities package.
"""

from .category import CategoryEntry
from .consultation_request import ConsultationRequest, RequestNote
from .doctor_availability import DoctorAvailability

__all__ = [
    "CategoryEntry",
    "ConsultationRequest",
    "RequestNote",
    "DoctorAvailability",
]
