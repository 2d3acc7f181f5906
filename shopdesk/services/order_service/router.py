from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.auth_service.models import User
from shopdesk.services.notification_service.service import get_admin_recipients
from shopdesk.shared.config import get_db
from shopdesk.shared.mail import EmailService, get_email_service
from shopdesk.shared.security import get_current_admin, get_optional_user_id

from .models import OrderStatus
from .repository import OrderFilters
from .schemas import OrderCreate, OrderListResponse, OrderResponse, OrderStatsResponse, OrderUpdate
from .service import OrderService

router = APIRouter(tags=["Orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    user_id: Optional[int] = Depends(get_optional_user_id),
    admin_ids: list[int] = Depends(get_admin_recipients),
    email_service: EmailService = Depends(get_email_service),
):
    order = await OrderService.create_order(db, data, user_id, admin_ids)
    background_tasks.add_task(email_service.send_order_confirmation, order)
    return order


@router.get("", response_model=OrderListResponse, dependencies=[Depends(get_current_admin)])
async def list_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    search: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    sort_by: Literal["created_at", "total", "customer_name"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    db: AsyncSession = Depends(get_db),
):
    filters = OrderFilters(status=status, search=search, start_date=start_date, end_date=end_date)
    return await OrderService.list_orders(db, filters, page, limit, sort_by, sort_order)


@router.get("/stats", response_model=OrderStatsResponse, dependencies=[Depends(get_current_admin)])
async def order_stats(db: AsyncSession = Depends(get_db)):
    return await OrderService.stats(db)


@router.get("/track/{order_id}", response_model=OrderResponse)
async def track_order(order_id: int, email: str = Query(min_length=3), db: AsyncSession = Depends(get_db)):
    return await OrderService.track_order(db, order_id, email)


@router.get("/{order_id}", response_model=OrderResponse, dependencies=[Depends(get_current_admin)])
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)):
    return await OrderService.get_order(db, order_id)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    data: OrderUpdate,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.update_order(db, order_id, data, admin)
