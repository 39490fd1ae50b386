from beanie import Document, Indexed
from pydantic import EmailStr
from typing import Optional
from datetime import datetime
from enum import Enum
from app.shared.models import TimestampMixin


class Role(str, Enum):
    """Account roles. USER is the pre-onboarding role."""

    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    PATIENT = "PATIENT"
    USER = "USER"


class User(Document, TimestampMixin):
    """User document model."""

    # Uniqueness of the optional identifiers is checked in AuthService
    email: Optional[Indexed(EmailStr)] = None
    name: Optional[str] = None
    clerk_id: Optional[Indexed(str)] = None
    firebase_uid: Optional[Indexed(str)] = None
    wallet_address: Optional[Indexed(str)] = None  # lowercase
    role: Role = Role.USER
    is_active: bool = True

    class Settings:
        name = "users"
        use_state_management = True

    class Config:
        json_schema_extra = {
            "example": {
                "email": "jane@example.com",
                "name": "Jane Doe",
                "wallet_address": "0x8ba1f109551bd432803012645ac136ddd64dba72",
                "role": "PATIENT",
            }
        }


class WalletNonce(Document, TimestampMixin):
    """One-time challenge a wallet signs to log in."""

    wallet_address: Indexed(str)
    message: str
    expires_at: datetime
    used: bool = False

    class Settings:
        name = "wallet_nonces"
        use_state_management = True
