# Patient Profiles Feature - Models

from typing import Optional
from datetime import date
from enum import Enum
from beanie import Document, Indexed
from app.shared.models import TimestampMixin


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class BloodType(str, Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"


class PatientProfile(Document, TimestampMixin):
    """Clinical profile attached to a user account (one per user)."""

    user_id: Indexed(str, unique=True)

    # Personal information
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None

    # Health information
    blood_type: Optional[BloodType] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    medications: Optional[str] = None

    class Settings:
        name = "patient_profiles"
        use_state_management = True

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "665f1c2e8b3e4a0012345678",
                "date_of_birth": "1990-05-15",
                "gender": "FEMALE",
                "phone_number": "+1234567890",
                "blood_type": "O+",
                "allergies": "Penicillin",
                "medications": "Metformin 500mg twice daily",
            }
        }
