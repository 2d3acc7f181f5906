import math
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.order_service.models import Order

from .models import Payment, PaymentMethod, PaymentStatus


class PaymentRepository:

    @staticmethod
    async def get(db: AsyncSession, payment_id: int) -> Optional[Payment]:
        result = await db.execute(select(Payment).where(Payment.id == payment_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_order_id(db: AsyncSession, order_id: int) -> Optional[Payment]:
        result = await db.execute(select(Payment).where(Payment.order_id == order_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_gateway_payment_id(db: AsyncSession, gateway_payment_id: str) -> Optional[Payment]:
        result = await db.execute(select(Payment).where(Payment.gateway_payment_id == gateway_payment_id))
        return result.scalars().first()

    @staticmethod
    async def list_with_orders(
        db: AsyncSession,
        status: Optional[PaymentStatus],
        method: Optional[PaymentMethod],
        page: int,
        limit: int,
    ) -> tuple[list[tuple[Payment, Order]], dict]:
        conditions = []
        if status:
            conditions.append(Payment.status == status)
        if method:
            conditions.append(Payment.method == method)

        total = (await db.execute(select(func.count(Payment.id)).where(*conditions))).scalar_one()
        result = await db.execute(
            select(Payment, Order)
            .join(Order, Order.id == Payment.order_id)
            .where(*conditions)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        pagination = {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        }
        return [(row[0], row[1]) for row in result.all()], pagination

    @staticmethod
    async def count(db: AsyncSession, status: Optional[PaymentStatus] = None) -> int:
        stmt = select(func.count(Payment.id))
        if status:
            stmt = stmt.where(Payment.status == status)
        return (await db.execute(stmt)).scalar_one()

    @staticmethod
    async def approved_revenue_since(db: AsyncSession, start: datetime) -> float:
        result = await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0.0)).where(
                Payment.status == PaymentStatus.APPROVED, Payment.created_at >= start
            )
        )
        return float(result.scalar_one())

    @staticmethod
    async def approved_totals_by_method(db: AsyncSession) -> list[dict]:
        result = await db.execute(
            select(Payment.method, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0.0))
            .where(Payment.status == PaymentStatus.APPROVED)
            .group_by(Payment.method)
        )
        return [{"method": method, "count": count, "total": float(total)} for method, count, total in result.all()]
