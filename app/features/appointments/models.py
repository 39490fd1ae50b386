# Appointments Feature - Models

from typing import Optional
from datetime import datetime
from enum import Enum
from beanie import Document, Indexed
from pymongo import ASCENDING
from app.shared.models import TimestampMixin


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class Appointment(Document, TimestampMixin):
    """
    A booked slot ``[scheduled_at, end_time)`` between a patient and a doctor.

    Non-cancelled appointments of one doctor never overlap.
    """

    patient_id: Indexed(str)  # PatientProfile id
    doctor_id: Indexed(str)  # DoctorProfile id
    created_by_user_id: str
    scheduled_at: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None
    meeting_link: Optional[str] = None

    class Settings:
        name = "appointments"
        use_state_management = True
        indexes = [
            [("doctor_id", ASCENDING), ("scheduled_at", ASCENDING)],
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "patient_id": "665f1c2e8b3e4a0012345691",
                "doctor_id": "665f1c2e8b3e4a0012345690",
                "scheduled_at": "2025-03-01T09:00:00",
                "end_time": "2025-03-01T09:30:00",
                "status": "SCHEDULED",
                "meeting_link": "https://meet.example.com/abc-defg-hij",
            }
        }
