from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.shared.config import get_db
from shopdesk.shared.security import get_current_user

from .schemas import MessageResponse, NotificationListResponse, NotificationResponse
from .service import NotificationService

router = APIRouter(tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    read: bool | None = Query(default=None),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.list_notifications(db, int(user_id), read)


# Declared before /{notification_id}/read so "read-all" is not parsed as an id
@router.put("/read-all", response_model=MessageResponse)
async def mark_all_as_read(
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.mark_all_as_read(db, int(user_id))


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(
    notification_id: int,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.mark_as_read(db, notification_id, int(user_id))


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.delete(db, notification_id, int(user_id))
