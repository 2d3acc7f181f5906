from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Notification


class NotificationRepository:

    @staticmethod
    def add_all(db: AsyncSession, notifications: list[Notification]) -> None:
        # Flushed with the caller's transaction
        db.add_all(notifications)

    @staticmethod
    async def get(db: AsyncSession, notification_id: int) -> Optional[Notification]:
        result = await db.execute(select(Notification).where(Notification.id == notification_id))
        return result.scalars().first()

    @staticmethod
    async def list_for_user(
        db: AsyncSession, user_id: int, read: bool | None = None, limit: int = 50
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if read is not None:
            stmt = stmt.where(Notification.read.is_(read))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_unread(db: AsyncSession, user_id: int) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.read.is_(False)
            )
        )
        return result.scalar_one()

    @staticmethod
    async def mark_read(db: AsyncSession, notification: Notification) -> Notification:
        notification.read = True
        await db.commit()
        await db.refresh(notification)
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int) -> None:
        await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await db.commit()

    @staticmethod
    async def delete(db: AsyncSession, notification_id: int) -> None:
        await db.execute(delete(Notification).where(Notification.id == notification_id))
        await db.commit()
