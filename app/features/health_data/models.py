# Health Data Feature - Models

from typing import Optional
from datetime import datetime
from enum import Enum
from beanie import Document, Indexed
from pydantic import Field
from pymongo import ASCENDING, DESCENDING
from app.shared.models import TimestampMixin


class ReadingType(str, Enum):
    HEART_RATE = "HEART_RATE"
    BLOOD_PRESSURE_SYSTOLIC = "BLOOD_PRESSURE_SYSTOLIC"
    BLOOD_PRESSURE_DIASTOLIC = "BLOOD_PRESSURE_DIASTOLIC"
    BLOOD_OXYGEN = "BLOOD_OXYGEN"
    TEMPERATURE = "TEMPERATURE"


class HealthReading(Document, TimestampMixin):
    """A single self-submitted measurement. Append-only."""

    patient_user_id: Indexed(str)
    type: ReadingType
    value: float
    unit: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "health_readings"
        indexes = [
            [("patient_user_id", ASCENDING), ("type", ASCENDING), ("timestamp", DESCENDING)],
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "patient_user_id": "665f1c2e8b3e4a0012345678",
                "type": "HEART_RATE",
                "value": 72,
                "unit": "BPM",
                "timestamp": "2025-05-15T08:30:00",
            }
        }


class VitalSign(Document, TimestampMixin):
    """Structured snapshot of several measurements taken together."""

    patient_id: Indexed(str)  # PatientProfile id
    recorded_by_user_id: str
    heart_rate: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[float] = None
    oxygen_saturation: Optional[float] = None
    glucose_level: Optional[float] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "vital_signs"
        use_state_management = True
        indexes = [
            [("patient_id", ASCENDING), ("timestamp", DESCENDING)],
        ]
