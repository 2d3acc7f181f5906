from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.order_service.models import SPENDING_STATUSES, Order, OrderStatus

from .models import Customer

_spent = func.coalesce(func.sum(case((Order.status.in_(SPENDING_STATUSES), Order.total), else_=0.0)), 0.0)


class CustomerRepository:

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[Customer]:
        result = await db.execute(select(Customer).where(Customer.email == email.strip().lower()))
        return result.scalars().first()

    @staticmethod
    async def get(db: AsyncSession, customer_id: int) -> Optional[Customer]:
        result = await db.execute(select(Customer).where(Customer.id == customer_id))
        return result.scalars().first()

    @staticmethod
    async def list_customers(
        db: AsyncSession, search: Optional[str], page: int, limit: int
    ) -> tuple[list[Customer], int]:
        conditions = []
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            conditions.append(or_(Customer.name.ilike(pattern), Customer.email.ilike(pattern)))

        total = (await db.execute(select(func.count(Customer.id)).where(*conditions))).scalar_one()
        result = await db.execute(
            select(Customer)
            .where(*conditions)
            .order_by(Customer.created_at.desc(), Customer.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def orders_for_customers(db: AsyncSession, customer_ids: list[int]) -> list[Order]:
        """Orders of the given customers, newest first."""
        if not customer_ids:
            return []
        result = await db.execute(
            select(Order)
            .where(Order.customer_id.in_(customer_ids))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def recent_orders(db: AsyncSession, customer_id: int, limit: int = 10) -> list[Order]:
        result = await db.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def order_totals(db: AsyncSession, customer_id: int) -> dict:
        result = await db.execute(
            select(
                _spent,
                func.count(case((Order.status.in_(SPENDING_STATUSES), Order.id))),
                func.count(case((Order.status == OrderStatus.CANCELLED, Order.id))),
            ).where(Order.customer_id == customer_id)
        )
        spent, orders, cancelled = result.one()
        return {"total_spent": float(spent), "total_orders": orders, "cancelled_orders": cancelled}

    @staticmethod
    async def count(db: AsyncSession, since: Optional[datetime] = None) -> int:
        stmt = select(func.count(Customer.id))
        if since:
            stmt = stmt.where(Customer.created_at >= since)
        return (await db.execute(stmt)).scalar_one()

    @staticmethod
    async def count_with_orders(db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count(func.distinct(Order.customer_id))).where(Order.customer_id.is_not(None))
        )
        return result.scalar_one()

    @staticmethod
    async def top_by_order_count(db: AsyncSession, limit: int = 5) -> list[dict]:
        order_count = func.count(Order.id).label("order_count")
        result = await db.execute(
            select(Customer.id, Customer.name, Customer.email, order_count)
            .join(Order, Order.customer_id == Customer.id)
            .group_by(Customer.id, Customer.name, Customer.email)
            .order_by(order_count.desc(), Customer.id)
            .limit(limit)
        )
        return [
            {"id": row.id, "name": row.name, "email": row.email, "order_count": row.order_count}
            for row in result.all()
        ]

    @staticmethod
    async def spending_revenue(db: AsyncSession) -> float:
        result = await db.execute(
            select(func.coalesce(func.sum(Order.total), 0.0)).where(Order.status.in_(SPENDING_STATUSES))
        )
        return float(result.scalar_one())

    @staticmethod
    async def count_orders(db: AsyncSession) -> int:
        return (await db.execute(select(func.count(Order.id)))).scalar_one()
