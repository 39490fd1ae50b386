# Connections Feature - Models

from typing import Optional
from beanie import Document
from pymongo import ASCENDING, IndexModel
from app.features.connections.state import ConnectionStatus, ConnectionTransition
from app.shared.models import TimestampMixin


class Connection(Document, TimestampMixin):
    """Doctor-patient access record. Only ACTIVE grants read access."""

    doctor_id: str  # DoctorProfile id
    patient_id: str  # PatientProfile id
    status: ConnectionStatus = ConnectionStatus.PENDING
    connection_code: Optional[str] = None
    anchor_tx_hash: Optional[str] = None

    class Settings:
        name = "connections"
        use_state_management = True
        indexes = [
            IndexModel(
                [("doctor_id", ASCENDING), ("patient_id", ASCENDING)],
                name="doctor_patient_unique",
                unique=True,
            ),
            [("patient_id", ASCENDING), ("status", ASCENDING)],
        ]

    def apply(self, transition: ConnectionTransition) -> None:
        """Move to the transition's target status."""
        self.status = transition.target
        self.update_timestamp()

    class Config:
        json_schema_extra = {
            "example": {
                "doctor_id": "665f1c2e8b3e4a0012345690",
                "patient_id": "665f1c2e8b3e4a0012345691",
                "status": "PENDING",
            }
        }
