from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from app.features.auth.models import Role


WALLET_ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"


# Request Schemas
class RegisterRequest(BaseModel):
    """Register request schema."""

    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    wallet_address: Optional[str] = Field(None, pattern=WALLET_ADDRESS_PATTERN)
    role: Role = Role.USER

    @field_validator('role')
    @classmethod
    def validate_role(cls, v: Role) -> Role:
        if v == Role.ADMIN:
            raise ValueError('ADMIN role cannot be self-assigned')
        return v


class WalletNonceRequest(BaseModel):
    """Wallet login challenge request schema."""

    wallet_address: str = Field(..., pattern=WALLET_ADDRESS_PATTERN)


class WalletLoginRequest(BaseModel):
    """Wallet login request schema."""

    wallet_address: str = Field(..., pattern=WALLET_ADDRESS_PATTERN)
    signature: str
    message: str


class UpdateRoleRequest(BaseModel):
    """Onboarding role selection schema."""

    role: Role

    @field_validator('role')
    @classmethod
    def validate_role(cls, v: Role) -> Role:
        if v not in (Role.PATIENT, Role.DOCTOR):
            raise ValueError('Role must be PATIENT or DOCTOR')
        return v


# Response Schemas
class UserResponse(BaseModel):
    """User response schema."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    wallet_address: Optional[str] = None
    clerk_id: Optional[str] = None
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime


class WalletNonceResponse(BaseModel):
    """Challenge the wallet must sign."""

    nonce: str
    expires_at: datetime


class LoginResponse(BaseModel):
    """Login response schema."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class RoleResponse(BaseModel):
    """Lowercase role for mobile clients."""

    role: str
