# Doctor Profiles Feature - Models

from typing import Optional
from enum import Enum
from beanie import Document, Indexed
from app.shared.models import TimestampMixin


class Specialization(str, Enum):
    CARDIOLOGY = "CARDIOLOGY"
    DERMATOLOGY = "DERMATOLOGY"
    ENDOCRINOLOGY = "ENDOCRINOLOGY"
    GASTROENTEROLOGY = "GASTROENTEROLOGY"
    GENERAL_PRACTICE = "GENERAL_PRACTICE"
    NEUROLOGY = "NEUROLOGY"
    ONCOLOGY = "ONCOLOGY"
    PEDIATRICS = "PEDIATRICS"
    PSYCHIATRY = "PSYCHIATRY"
    SURGERY = "SURGERY"
    OTHER = "OTHER"


class DoctorProfile(Document, TimestampMixin):
    """Professional profile attached to a doctor's user account."""

    user_id: Indexed(str, unique=True)
    specialization: Specialization
    license_number: str
    affiliation: Optional[str] = None
    education: Optional[str] = None
    years_of_experience: Optional[int] = None

    class Settings:
        name = "doctor_profiles"
        use_state_management = True

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "665f1c2e8b3e4a0012345679",
                "specialization": "CARDIOLOGY",
                "license_number": "MD-123456",
                "affiliation": "City General Hospital",
                "years_of_experience": 12,
            }
        }
