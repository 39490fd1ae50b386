# Notifications Feature - Service

from typing import Optional, List
from datetime import datetime
from app.features.auth.models import Role, User
from app.features.auth.service import AuthService
from app.features.notifications.models import Notification, NotificationType
from app.features.notifications.schemas import CreateNotificationRequest, NotificationResponse
from app.shared.models import get_document
from app.shared.exceptions import ForbiddenException, NotFoundException
from app.core.logging import logger


class NotificationService:
    """Service for the notification inbox and fan-out."""

    @staticmethod
    async def notify(
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        related_id: Optional[str] = None,
        action_url: Optional[str] = None,
    ) -> Notification:
        """
        Deliver a notification to one recipient.

        Called from post-commit hooks, which log and record any failure.
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_id=related_id,
            action_url=action_url,
        )
        await notification.insert()

        logger.info(f"📬 Notification {type.value} sent to user {user_id}")
        return notification

    @staticmethod
    async def create(request: CreateNotificationRequest) -> Notification:
        """
        Create a notification for an existing user.

        Raises:
            NotFoundException: If the recipient does not exist
        """
        await AuthService.require_user(request.user_id)
        return await NotificationService.notify(
            request.user_id,
            request.type,
            request.title,
            request.message,
            related_id=request.related_id,
            action_url=request.action_url,
        )

    @staticmethod
    async def create_bulk(requests: List[CreateNotificationRequest]) -> int:
        """
        Create many notifications. Nothing is written if any recipient is missing.

        Returns:
            int: Number of notifications created
        """
        missing = []
        for user_id in {r.user_id for r in requests}:
            if not await AuthService.get_user_by_id(user_id):
                missing.append(user_id)
        if missing:
            raise NotFoundException(f"Users with IDs {', '.join(sorted(missing))} not found")

        notifications = [
            Notification(
                user_id=r.user_id,
                title=r.title,
                message=r.message,
                type=r.type,
                related_id=r.related_id,
                action_url=r.action_url,
            )
            for r in requests
        ]
        await Notification.insert_many(notifications)

        logger.info(f"Created {len(notifications)} notifications in bulk")
        return len(notifications)

    @staticmethod
    async def list_all() -> List[Notification]:
        return await Notification.find_all().sort([("created_at", -1)]).to_list()

    @staticmethod
    async def list_for_user(user_id: str) -> List[Notification]:
        """Get a user's notifications, newest first."""
        return await Notification.find(
            Notification.user_id == user_id
        ).sort([("created_at", -1)]).to_list()

    @staticmethod
    async def unread_count(user_id: str) -> int:
        return await Notification.find(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        ).count()

    @staticmethod
    def _ensure_can_access(notification: Notification, caller: User, action: str) -> None:
        if caller.role != Role.ADMIN and notification.user_id != str(caller.id):
            raise ForbiddenException(f"You can only {action} your own notifications")

    @staticmethod
    async def get(notification_id: str, caller: User) -> Notification:
        """
        Get one notification visible to the caller.

        Raises:
            NotFoundException: If it does not exist
            ForbiddenException: If the caller is neither recipient nor admin
        """
        notification = await get_document(Notification, notification_id)
        if not notification:
            raise NotFoundException(f"Notification with ID {notification_id} not found")

        NotificationService._ensure_can_access(notification, caller, "view")
        return notification

    @staticmethod
    async def mark_read(notification_id: str, is_read: bool, caller: User) -> Notification:
        notification = await get_document(Notification, notification_id)
        if not notification:
            raise NotFoundException(f"Notification with ID {notification_id} not found")

        NotificationService._ensure_can_access(notification, caller, "update")

        notification.is_read = is_read
        notification.update_timestamp()
        await notification.save()
        return notification

    @staticmethod
    async def mark_all_read(user_id: str) -> int:
        """
        Mark every unread notification of a user as read.

        Returns:
            int: Number of notifications updated
        """
        query = Notification.find(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
        count = await query.count()
        if count:
            await query.update({"$set": {"is_read": True, "updated_at": datetime.utcnow()}})

        logger.info(f"Marked {count} notifications as read for user {user_id}")
        return count

    @staticmethod
    async def delete(notification_id: str, caller: User) -> None:
        notification = await get_document(Notification, notification_id)
        if not notification:
            raise NotFoundException(f"Notification with ID {notification_id} not found")

        NotificationService._ensure_can_access(notification, caller, "delete")
        await notification.delete()

    @staticmethod
    async def delete_all(user_id: str) -> int:
        """
        Delete every notification of a user.

        Returns:
            int: Number of notifications deleted
        """
        query = Notification.find(Notification.user_id == user_id)
        count = await query.count()
        if count:
            await query.delete()

        logger.info(f"Deleted {count} notifications for user {user_id}")
        return count

    @staticmethod
    def to_response(notification: Notification) -> NotificationResponse:
        """Convert Notification document to NotificationResponse."""
        return NotificationResponse(
            id=str(notification.id),
            user_id=notification.user_id,
            title=notification.title,
            message=notification.message,
            type=notification.type,
            is_read=notification.is_read,
            related_id=notification.related_id,
            action_url=notification.action_url,
            created_at=notification.created_at,
            updated_at=notification.updated_at,
        )
