import math
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.auth_service.models import User
from shopdesk.services.customer_service.repository import CustomerRepository
from shopdesk.services.notification_service.models import NotificationType
from shopdesk.services.notification_service.service import NotificationService
from shopdesk.services.purchase_service.service import record_order_purchases
from shopdesk.shared.errors import NotFoundError
from shopdesk.shared.observability import (
    shopdesk_order_status_changes_total,
    shopdesk_orders_created_total,
    shopdesk_purchases_recorded_total,
)

from .models import Order, OrderStatus
from .repository import OrderFilters, OrderRepository
from .schemas import OrderCreate, OrderUpdate

logger = structlog.get_logger(__name__)


def _month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _previous_month_start(moment: datetime) -> datetime:
    first = _month_start(moment)
    if first.month == 1:
        return first.replace(year=first.year - 1, month=12)
    return first.replace(month=first.month - 1)


def growth_percentage(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


class OrderService:

    @staticmethod
    async def create_order(
        db: AsyncSession,
        data: OrderCreate,
        user_id: int | None,
        admin_ids: list[int],
    ) -> Order:
        customer = await CustomerRepository.get_by_email(db, data.customer_email) if data.customer_email else None

        order = Order(
            customer_id=customer.id if customer else None,
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            customer_phone=data.customer_phone,
            items=[item.model_dump() for item in data.items],
            subtotal=data.subtotal,
            shipping=data.shipping,
            total=data.total,
            status=OrderStatus.PENDING,
            shipping_address=data.shipping_address,
            notes=data.notes,
        )
        order = await OrderRepository.create_order(db, order)

        # An admin placing the order is notified alone, anonymous checkouts reach every admin
        recipients = [user_id] if user_id is not None and user_id in admin_ids else admin_ids
        NotificationService.fan_out(
            db,
            recipients,
            NotificationType.NEW_ORDER,
            title="New order received",
            message=f"Order #{order.order_number} from {order.customer_name} - total {order.total:.2f}",
            data={"order_id": order.id, "order_number": order.order_number, "total": order.total},
        )
        await db.commit()
        await db.refresh(order)

        shopdesk_orders_created_total.inc()
        logger.info("order_created", order_id=order.id, order_number=order.order_number, total=order.total)
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int) -> Order:
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    @staticmethod
    async def update_order(db: AsyncSession, order_id: int, data: OrderUpdate, admin: User) -> Order:
        order = await OrderService.get_order(db, order_id)
        previous_status = order.status

        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(order, field, value)

        status_changed = data.status is not None and data.status != previous_status
        if status_changed:
            NotificationService.fan_out(
                db,
                [admin.id],
                NotificationType.ORDER_UPDATE,
                title="Order updated",
                message=f"Order #{order.order_number} changed from {previous_status.value} to {data.status.value}",
                data={
                    "order_id": order.id,
                    "previous_status": previous_status.value,
                    "status": data.status.value,
                },
            )

        created = []
        if data.status == OrderStatus.DELIVERED:
            # Manual fulfillment path, safe to repeat
            created = await record_order_purchases(db, order)

        await db.commit()
        await db.refresh(order)

        if status_changed:
            shopdesk_order_status_changes_total.labels(status=order.status.value).inc()
        if created:
            shopdesk_purchases_recorded_total.labels(source="manual_delivery").inc(len(created))
        logger.info(
            "order_updated",
            order_id=order.id,
            status=order.status.value,
            status_changed=status_changed,
            admin_id=admin.id,
        )
        return order

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        filters: OrderFilters,
        page: int,
        limit: int,
        sort_by: str,
        sort_order: str,
    ) -> dict:
        orders, total = await OrderRepository.list_orders(db, filters, page, limit, sort_by, sort_order)
        status_counts = await OrderRepository.count_by_status(db, filters)
        return {
            "orders": orders,
            "total": total,
            "status_counts": status_counts,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        }

    @staticmethod
    async def stats(db: AsyncSession) -> dict:
        now = datetime.now(timezone.utc)
        current_start = _month_start(now)
        last_start = _previous_month_start(now)

        by_status = await OrderRepository.count_by_status(db)
        current_month = await OrderRepository.revenue(db, start=current_start)
        last_month = await OrderRepository.revenue(db, start=last_start, end=current_start)
        return {
            "total_orders": sum(by_status.values()),
            "by_status": by_status,
            "revenue": {
                "total": await OrderRepository.revenue(db),
                "current_month": current_month,
                "last_month": last_month,
                "growth": growth_percentage(current_month, last_month),
            },
            "recent_orders": await OrderRepository.recent_orders(db),
        }

    @staticmethod
    async def track_order(db: AsyncSession, order_id: int, email: str) -> Order:
        """Public lookup; the email acts as the only credential."""
        order = await OrderRepository.get_order(db, order_id)
        if not order or (order.customer_email or "").lower() != email.strip().lower():
            raise NotFoundError("Order not found")
        return order
