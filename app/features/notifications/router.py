# Notifications Feature - Router

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from app.features.notifications.schemas import (
    CreateNotificationRequest,
    BulkCreateNotificationsRequest,
    MarkReadRequest,
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
)
from app.features.notifications.service import NotificationService
from app.features.auth.dependencies import get_current_user, require_roles
from app.features.auth.models import Role, User
from app.shared.exceptions import ForbiddenException
from app.shared.schemas import CountResponse, MessageResponse


router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _target_user_id(current_user: User, user_id: Optional[str]) -> str:
    """Bulk inbox operations act on the caller unless an admin names another user."""
    if user_id and user_id != str(current_user.id):
        if current_user.role != Role.ADMIN:
            raise ForbiddenException("Only admins can manage another user's notifications")
        return user_id
    return str(current_user.id)


def _list_response(notifications) -> NotificationListResponse:
    return NotificationListResponse(
        notifications=[NotificationService.to_response(n) for n in notifications],
        total=len(notifications),
    )


# =============================================================================
# CREATE
# =============================================================================

@router.post("", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_notification(
    request: CreateNotificationRequest,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """Send a notification to a user."""
    notification = await NotificationService.create(request)
    return NotificationService.to_response(notification)


@router.post("/bulk", response_model=CountResponse, status_code=status.HTTP_201_CREATED)
async def create_notifications_bulk(
    request: BulkCreateNotificationsRequest,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """Send several notifications at once."""
    count = await NotificationService.create_bulk(request.notifications)
    return CountResponse(count=count)


# =============================================================================
# READ
# =============================================================================

@router.get("", response_model=NotificationListResponse)
async def list_all_notifications(
    current_user: User = Depends(require_roles(Role.ADMIN))
):
    return _list_response(await NotificationService.list_all())


@router.get("/me", response_model=NotificationListResponse)
async def list_my_notifications(current_user: User = Depends(get_current_user)):
    """Get the caller's notifications, newest first."""
    return _list_response(await NotificationService.list_for_user(str(current_user.id)))


@router.get("/me/unread-count", response_model=UnreadCountResponse)
async def get_my_unread_count(current_user: User = Depends(get_current_user)):
    count = await NotificationService.unread_count(str(current_user.id))
    return UnreadCountResponse(unread_count=count)


@router.get("/user/{user_id}", response_model=NotificationListResponse)
async def list_user_notifications(
    user_id: str,
    current_user: User = Depends(require_roles(Role.ADMIN, Role.DOCTOR))
):
    """Get the notifications of a specific user."""
    return _list_response(await NotificationService.list_for_user(user_id))


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user)
):
    notification = await NotificationService.get(notification_id, current_user)
    return NotificationService.to_response(notification)


# =============================================================================
# UPDATE
# =============================================================================

@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    request: MarkReadRequest,
    current_user: User = Depends(get_current_user)
):
    """Mark a notification as read or unread."""
    notification = await NotificationService.mark_read(notification_id, request.is_read, current_user)
    return NotificationService.to_response(notification)


@router.post("/me/mark-all-read", response_model=CountResponse)
async def mark_all_read(
    user_id: Optional[str] = Query(None, description="Admin only: target another user"),
    current_user: User = Depends(get_current_user)
):
    count = await NotificationService.mark_all_read(_target_user_id(current_user, user_id))
    return CountResponse(count=count)


# =============================================================================
# DELETE
# =============================================================================

@router.delete("/me/all", response_model=CountResponse)
async def delete_all_notifications(
    user_id: Optional[str] = Query(None, description="Admin only: target another user"),
    current_user: User = Depends(get_current_user)
):
    count = await NotificationService.delete_all(_target_user_id(current_user, user_id))
    return CountResponse(count=count)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user)
):
    await NotificationService.delete(notification_id, current_user)
    return MessageResponse(message="Notification deleted successfully")
