from pydantic import BaseModel
from typing import Optional, Any, Dict
from datetime import datetime, timezone
import math


class BaseResponse(BaseModel):
    """Base response model."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Error response model."""

    success: bool = False
    kind: str
    message: str
    detail: Optional[Dict[str, Any]] = None


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class CountResponse(BaseModel):
    """Response for bulk operations."""

    count: int


class PaginationMeta(BaseModel):
    """Pagination metadata for list responses."""

    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "PaginationMeta":
        return cls(total=total, page=page, limit=limit, pages=math.ceil(total / limit) if limit else 0)


class TimestampSchema(BaseModel):
    """Schema for timestamp fields."""

    created_at: datetime
    updated_at: datetime


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store datetimes as naive UTC, matching datetime.utcnow() defaults."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
