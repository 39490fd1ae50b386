# Notifications Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field
from app.features.notifications.models import NotificationType


class CreateNotificationRequest(BaseModel):
    """Request schema for creating a notification."""
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: NotificationType = NotificationType.SYSTEM
    related_id: Optional[str] = None
    action_url: Optional[str] = None


class BulkCreateNotificationsRequest(BaseModel):
    notifications: List[CreateNotificationRequest] = Field(..., min_length=1)


class MarkReadRequest(BaseModel):
    is_read: bool = True


class NotificationResponse(BaseModel):
    """Response schema for notification data."""
    id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    is_read: bool
    related_id: Optional[str] = None
    action_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int


class UnreadCountResponse(BaseModel):
    unread_count: int
