# Patient Profiles Feature - Schemas

from typing import Optional, List
from datetime import date, datetime
from pydantic import BaseModel, Field
from app.features.patients.models import BloodType, Gender


# ============== Create Patient ==============

class PatientProfileFields(BaseModel):
    """Editable patient profile fields."""
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    emergency_contact: Optional[str] = Field(None, max_length=200)
    blood_type: Optional[BloodType] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    medications: Optional[str] = None


class CreatePatientRequest(PatientProfileFields):
    """Request schema for creating a profile on behalf of a user."""
    user_id: str


# ============== Update Patient ==============

class UpdatePatientRequest(PatientProfileFields):
    """Request schema for updating patient information."""


# ============== Patient Response ==============

class PatientResponse(PatientProfileFields):
    """Response schema for patient data."""
    id: str
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    wallet_address: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PatientListResponse(BaseModel):
    """Response schema for list of patients."""
    patients: List[PatientResponse]
    total: int
