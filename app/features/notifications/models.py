# Notifications Feature - Models

from typing import Optional
from enum import Enum
from beanie import Document, Indexed
from app.shared.models import TimestampMixin


class NotificationType(str, Enum):
    APPOINTMENT = "APPOINTMENT"
    CONNECTION_REQUEST = "CONNECTION_REQUEST"
    CONNECTION_UPDATE = "CONNECTION_UPDATE"
    MEDICAL_RECORD = "MEDICAL_RECORD"
    VITAL_ALERT = "VITAL_ALERT"
    SYSTEM = "SYSTEM"


class Notification(Document, TimestampMixin):
    """Inbox entry for a single recipient."""

    user_id: Indexed(str)
    title: str
    message: str
    type: NotificationType
    is_read: bool = False
    related_id: Optional[str] = None
    action_url: Optional[str] = None

    class Settings:
        name = "notifications"
        use_state_management = True
        indexes = [
            [("user_id", 1), ("is_read", 1)],
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "665f1c2e8b3e4a0012345678",
                "title": "Appointment Confirmed",
                "message": "Your appointment on 2025-03-01 09:00 was confirmed.",
                "type": "APPOINTMENT",
                "is_read": False,
                "related_id": "665f1c2e8b3e4a00123456ab",
                "action_url": "/appointments/665f1c2e8b3e4a00123456ab",
            }
        }
