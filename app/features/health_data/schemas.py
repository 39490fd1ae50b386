# Health Data Feature - Schemas

from typing import Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from app.features.health_data.models import ReadingType
from app.shared.schemas import PaginationMeta, naive_utc


# ============== Readings ==============

class CreateReadingRequest(BaseModel):
    """A single measurement submitted by the patient."""
    type: ReadingType
    value: float
    unit: str = Field(..., min_length=1, max_length=20)
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(v)


class BatchReadingsRequest(BaseModel):
    readings: List[CreateReadingRequest] = Field(..., min_length=1, max_length=500)


class ReadingResponse(BaseModel):
    id: str
    patient_user_id: str
    type: ReadingType
    value: float
    unit: str
    timestamp: datetime


class ReadingListResponse(BaseModel):
    """Paginated readings, newest first."""
    data: List[ReadingResponse]
    meta: PaginationMeta


class SampleDataResponse(BaseModel):
    message: str
    count: int


# ============== Vital Signs ==============

class CreateVitalSignRequest(BaseModel):
    """
    Structured snapshot. Patients record for themselves (patient_id may be
    omitted); doctors must name an actively connected patient profile.
    """
    patient_id: Optional[str] = None
    heart_rate: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[float] = None
    oxygen_saturation: Optional[float] = None
    glucose_level: Optional[float] = None
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(v)


class VitalSignResponse(BaseModel):
    id: str
    patient_id: str
    recorded_by_user_id: str
    heart_rate: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[float] = None
    oxygen_saturation: Optional[float] = None
    glucose_level: Optional[float] = None
    timestamp: datetime


class VitalSignListResponse(BaseModel):
    vital_signs: List[VitalSignResponse]
    total: int


# ============== Latest Vitals ==============

VitalSource = Literal["vital_sign", "reading"]


class LatestVitalsResponse(BaseModel):
    """
    Most recent value per field.

    ``sources`` names where each present field came from; ``timestamp`` is
    the newest contributing measurement time (None when nothing is recorded).
    """
    patient_user_id: str
    heart_rate: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[float] = None
    oxygen_saturation: Optional[float] = None
    glucose_level: Optional[float] = None
    sources: Dict[str, VitalSource] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None
