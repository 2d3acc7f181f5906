import math
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.order_service.models import SPENDING_STATUSES
from shopdesk.shared.errors import NotFoundError

from .repository import CustomerRepository


class CustomerService:

    @staticmethod
    async def list_customers(db: AsyncSession, search: Optional[str], page: int, limit: int) -> dict:
        customers, total = await CustomerRepository.list_customers(db, search, page, limit)

        orders_by_customer: dict[int, list] = {}
        for order in await CustomerRepository.orders_for_customers(db, [c.id for c in customers]):
            orders_by_customer.setdefault(order.customer_id, []).append(order)

        items = []
        for customer in customers:
            orders = orders_by_customer.get(customer.id, [])
            last_order = orders[0] if orders else None
            items.append(
                {
                    "id": customer.id,
                    "name": customer.name,
                    "email": customer.email,
                    "phone": customer.phone,
                    "created_at": customer.created_at,
                    "order_count": len(orders),
                    "total_spent": sum(o.total for o in orders if o.status in SPENDING_STATUSES),
                    "last_order_id": last_order.id if last_order else None,
                    "last_order_number": last_order.order_number if last_order else None,
                    "last_order_date": last_order.created_at if last_order else None,
                }
            )
        return {
            "customers": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        }

    @staticmethod
    async def get_customer(db: AsyncSession, customer_id: int) -> dict:
        customer = await CustomerRepository.get(db, customer_id)
        if not customer:
            raise NotFoundError("Customer not found")
        return {
            "id": customer.id,
            "name": customer.name,
            "email": customer.email,
            "phone": customer.phone,
            "created_at": customer.created_at,
            "orders": await CustomerRepository.recent_orders(db, customer_id),
            "stats": await CustomerRepository.order_totals(db, customer_id),
        }

    @staticmethod
    async def stats(db: AsyncSession) -> dict:
        month_start = datetime.now(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        total_customers = await CustomerRepository.count(db)
        with_orders = await CustomerRepository.count_with_orders(db)
        total_orders = await CustomerRepository.count_orders(db)
        return {
            "total_customers": total_customers,
            "new_this_month": await CustomerRepository.count(db, since=month_start),
            "customers_with_orders": with_orders,
            "customers_without_orders": total_customers - with_orders,
            "top_customers": await CustomerRepository.top_by_order_count(db),
            "total_revenue": await CustomerRepository.spending_revenue(db),
            "average_orders_per_customer": round(total_orders / total_customers, 2) if total_customers else 0.0,
        }
