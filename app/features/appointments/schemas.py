# Appointments Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from app.features.appointments.models import AppointmentStatus
from app.shared.schemas import naive_utc


class CreateAppointmentRequest(BaseModel):
    """Request schema for booking an appointment."""
    patient_id: str
    doctor_id: str
    scheduled_at: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = Field(None, max_length=2000)
    meeting_link: Optional[str] = Field(None, max_length=500)

    @field_validator("scheduled_at", "end_time")
    @classmethod
    def normalize_times(cls, v: datetime) -> datetime:
        return naive_utc(v)


class UpdateAppointmentRequest(BaseModel):
    """Request schema for updating an appointment."""
    scheduled_at: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = Field(None, max_length=2000)
    meeting_link: Optional[str] = Field(None, max_length=500)

    @field_validator("scheduled_at", "end_time")
    @classmethod
    def normalize_times(cls, v: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(v)


class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    created_by_user_id: str
    scheduled_at: datetime
    end_time: datetime
    status: AppointmentStatus
    notes: Optional[str] = None
    meeting_link: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    total: int
