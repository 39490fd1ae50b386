# Connections Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field
from app.features.auth.schemas import WALLET_ADDRESS_PATTERN
from app.features.connections.state import ConnectionStatus
from app.features.doctors.schemas import DoctorResponse
from app.features.patients.schemas import PatientResponse


class RequestByWalletRequest(BaseModel):
    """Doctor-initiated request addressed to a patient's wallet."""
    patient_wallet_address: str = Field(..., pattern=WALLET_ADDRESS_PATTERN)


class VerifyApproveRequest(BaseModel):
    """Patient approval: personal-message signature over the connection code."""
    connection_id: str
    signature: str


class ConnectionResponse(BaseModel):
    """Response schema for a connection."""
    id: str
    doctor_id: str
    patient_id: str
    status: ConnectionStatus
    connection_code: Optional[str] = None
    anchor_tx_hash: Optional[str] = None
    doctor: Optional[DoctorResponse] = None
    patient: Optional[PatientResponse] = None
    created_at: datetime
    updated_at: datetime


class ConnectionListResponse(BaseModel):
    connections: List[ConnectionResponse]
    total: int
