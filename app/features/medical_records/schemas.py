# Medical Records Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class CreateMedicalRecordRequest(BaseModel):
    """Request schema for creating a medical record."""
    patient_id: str
    doctor_id: Optional[str] = None
    diagnosis: Optional[str] = Field(None, max_length=2000)
    treatment: Optional[str] = Field(None, max_length=5000)
    medication: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=5000)


class UpdateMedicalRecordRequest(BaseModel):
    """Request schema for updating a medical record. Parties cannot change."""
    diagnosis: Optional[str] = Field(None, max_length=2000)
    treatment: Optional[str] = Field(None, max_length=5000)
    medication: Optional[str] = Field(None, max_length=2000)
    notes: Optional[str] = Field(None, max_length=5000)


class AttachmentResponse(BaseModel):
    id: str
    name: str
    ipfs_hash: str
    mime_type: str
    size: int
    gateway_url: str
    uploaded_by: str
    uploaded_at: datetime
    anchor_tx_hash: Optional[str] = None


class AttachmentDetailsResponse(AttachmentResponse):
    """Attachment plus the result of re-checking its pin."""
    exists: bool
    error: Optional[str] = None


class AttachmentListResponse(BaseModel):
    files: List[AttachmentResponse]
    total: int


class MedicalRecordResponse(BaseModel):
    id: str
    patient_id: str
    doctor_id: Optional[str] = None
    created_by_user_id: str
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    medication: Optional[str] = None
    notes: Optional[str] = None
    attachments: List[AttachmentResponse] = []
    content_hash: Optional[str] = None
    anchor_tx_hash: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MedicalRecordListResponse(BaseModel):
    records: List[MedicalRecordResponse]
    total: int


class IntegrityResponse(BaseModel):
    is_verified: bool
    content_hash_matches: bool
    anchor_tx_hash: Optional[str] = None
    record: MedicalRecordResponse
