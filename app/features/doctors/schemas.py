# Doctor Profiles Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field
from app.features.doctors.models import Specialization


class DoctorProfileFields(BaseModel):
    """Fields supplied when creating a doctor profile."""
    specialization: Specialization
    license_number: str = Field(..., min_length=3, max_length=50)
    affiliation: Optional[str] = Field(None, max_length=200)
    education: Optional[str] = None
    years_of_experience: Optional[int] = Field(None, ge=0, le=80)


class CreateDoctorRequest(DoctorProfileFields):
    """Request schema for creating a profile on behalf of a user."""
    user_id: str


class UpdateDoctorRequest(BaseModel):
    """Request schema for updating a doctor profile."""
    specialization: Optional[Specialization] = None
    license_number: Optional[str] = Field(None, min_length=3, max_length=50)
    affiliation: Optional[str] = Field(None, max_length=200)
    education: Optional[str] = None
    years_of_experience: Optional[int] = Field(None, ge=0, le=80)


class DoctorResponse(BaseModel):
    """Response schema for doctor data."""
    id: str
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    wallet_address: Optional[str] = None
    specialization: Specialization
    license_number: str
    affiliation: Optional[str] = None
    education: Optional[str] = None
    years_of_experience: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class DoctorListResponse(BaseModel):
    doctors: List[DoctorResponse]
    total: int
