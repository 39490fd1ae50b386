# Medical Records Feature - Models

from typing import List, Optional
from datetime import datetime
from uuid import uuid4
from beanie import Document, Indexed
from pydantic import BaseModel, Field
from app.shared.models import TimestampMixin


class RecordAttachment(BaseModel):
    """A file pinned to IPFS and attached to a medical record."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    ipfs_hash: str
    mime_type: str
    size: int
    gateway_url: str
    uploaded_by: str  # User id
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)
    anchor_tx_hash: Optional[str] = None


class MedicalRecord(Document, TimestampMixin):
    """
    Clinical record written by a doctor about a patient.

    ``content_hash`` is the digest of the clinical content at the last write;
    ``anchor_tx_hash`` is the transaction that anchored it, if anchoring succeeded.
    """

    patient_id: Indexed(str)  # PatientProfile id
    doctor_id: Optional[Indexed(str)] = None  # DoctorProfile id
    created_by_user_id: str
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    medication: Optional[str] = None
    notes: Optional[str] = None
    attachments: List[RecordAttachment] = Field(default_factory=list)
    content_hash: Optional[str] = None
    anchor_tx_hash: Optional[str] = None

    class Settings:
        name = "medical_records"
        use_state_management = True

    def integrity_payload(self) -> dict:
        """The clinical fields covered by the anchored digest."""
        return {
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
            "created_by_user_id": self.created_by_user_id,
            "diagnosis": self.diagnosis,
            "treatment": self.treatment,
            "medication": self.medication,
            "notes": self.notes,
        }

    class Config:
        json_schema_extra = {
            "example": {
                "patient_id": "665f1c2e8b3e4a0012345691",
                "doctor_id": "665f1c2e8b3e4a0012345690",
                "diagnosis": "Essential hypertension",
                "treatment": "Lifestyle changes, follow-up in 4 weeks",
                "medication": "Amlodipine 5mg daily",
            }
        }
