from typing import Any, Iterable

import structlog
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.auth_service.repository import UserRepository
from shopdesk.shared.config import get_db
from shopdesk.shared.errors import ForbiddenError, NotFoundError

from .models import Notification, NotificationType
from .repository import NotificationRepository

logger = structlog.get_logger(__name__)


async def get_admin_recipients(db: AsyncSession = Depends(get_db)) -> list[int]:
    """Dependency resolving the admin users that receive back-office notifications."""
    return await UserRepository.list_admin_ids(db)


class NotificationService:

    @staticmethod
    def fan_out(
        db: AsyncSession,
        recipients: Iterable[int],
        type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> list[Notification]:
        """Stage one notification per recipient. The caller owns the commit."""
        notifications = [
            Notification(user_id=user_id, type=type, title=title, message=message, data=data)
            for user_id in dict.fromkeys(recipients)
        ]
        if not notifications:
            logger.warning("notification_without_recipients", type=type.value)
            return []
        NotificationRepository.add_all(db, notifications)
        return notifications

    @staticmethod
    async def list_notifications(db: AsyncSession, user_id: int, read: bool | None = None) -> dict:
        notifications = await NotificationRepository.list_for_user(db, user_id, read)
        unread_count = await NotificationRepository.count_unread(db, user_id)
        return {"notifications": notifications, "unread_count": unread_count}

    @staticmethod
    async def _get_owned(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
        notification = await NotificationRepository.get(db, notification_id)
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.user_id != user_id:
            raise ForbiddenError("Access denied")
        return notification

    @staticmethod
    async def mark_as_read(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
        notification = await NotificationService._get_owned(db, notification_id, user_id)
        return await NotificationRepository.mark_read(db, notification)

    @staticmethod
    async def mark_all_as_read(db: AsyncSession, user_id: int) -> dict:
        await NotificationRepository.mark_all_read(db, user_id)
        return {"message": "All notifications marked as read"}

    @staticmethod
    async def delete(db: AsyncSession, notification_id: int, user_id: int) -> dict:
        await NotificationService._get_owned(db, notification_id, user_id)
        await NotificationRepository.delete(db, notification_id)
        return {"message": "Notification deleted"}
