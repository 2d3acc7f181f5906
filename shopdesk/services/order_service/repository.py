import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import NON_REVENUE_STATUSES, Order, OrderStatus

AMOUNT_PATTERN = re.compile(r"^\d+(?:[.,]\d{1,2})?$")
DAY_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{4}))?$")


@dataclass
class OrderFilters:
    status: Optional[OrderStatus] = None
    search: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


def _parse_amount(term: str) -> Optional[float]:
    if not AMOUNT_PATTERN.match(term):
        return None
    return float(term.replace(",", "."))


def _parse_day(term: str) -> Optional[datetime]:
    match = DAY_PATTERN.match(term)
    if not match:
        return None
    day, month, year = match.groups()
    try:
        return datetime(int(year or datetime.now(timezone.utc).year), int(month), int(day), tzinfo=timezone.utc)
    except ValueError:
        return None


def search_clause(search: str):
    """Match order number, customer, tracking code, an exact amount or a dd/mm[/yyyy] day."""
    term = search.strip()
    pattern = f"%{term}%"
    clauses = [
        Order.order_number.ilike(pattern),
        Order.customer_name.ilike(pattern),
        Order.customer_email.ilike(pattern),
        Order.tracking_code.ilike(pattern),
    ]
    amount = _parse_amount(term)
    if amount is not None:
        clauses.append(func.abs(Order.total - amount) < 0.005)
    day = _parse_day(term)
    if day is not None:
        clauses.append(and_(Order.created_at >= day, Order.created_at < day + timedelta(days=1)))
    return or_(*clauses)


def _conditions(filters: OrderFilters, with_status: bool = True) -> list:
    conditions = []
    if with_status and filters.status:
        conditions.append(Order.status == filters.status)
    if filters.search and filters.search.strip():
        conditions.append(search_clause(filters.search))
    if filters.start_date:
        conditions.append(Order.created_at >= filters.start_date)
    if filters.end_date:
        conditions.append(Order.created_at <= filters.end_date)
    return conditions


class OrderRepository:

    @staticmethod
    async def create_order(db: AsyncSession, order: Order) -> Order:
        db.add(order)
        await db.flush()
        order.order_number = f"{order.id:06d}"
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
        result = await db.execute(select(Order).where(Order.id == order_id))
        return result.scalars().first()

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        filters: OrderFilters,
        page: int,
        limit: int,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[Order], int]:
        conditions = _conditions(filters)
        column = getattr(Order, sort_by)
        ordering = column.asc() if sort_order == "asc" else column.desc()

        total = (await db.execute(select(func.count(Order.id)).where(*conditions))).scalar_one()
        result = await db.execute(
            select(Order)
            .where(*conditions)
            .order_by(ordering, Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def count_by_status(db: AsyncSession, filters: Optional[OrderFilters] = None) -> dict[str, int]:
        conditions = _conditions(filters, with_status=False) if filters else []
        result = await db.execute(
            select(Order.status, func.count(Order.id)).where(*conditions).group_by(Order.status)
        )
        counts = {status.value: 0 for status in OrderStatus}
        for status, count in result.all():
            counts[OrderStatus(status).value] = count
        return counts

    @staticmethod
    async def revenue(db: AsyncSession, start: Optional[datetime] = None, end: Optional[datetime] = None) -> float:
        conditions = [Order.status.not_in(NON_REVENUE_STATUSES)]
        if start:
            conditions.append(Order.created_at >= start)
        if end:
            conditions.append(Order.created_at < end)
        result = await db.execute(select(func.coalesce(func.sum(Order.total), 0.0)).where(*conditions))
        return float(result.scalar_one())

    @staticmethod
    async def recent_orders(db: AsyncSession, limit: int = 5) -> list[Order]:
        result = await db.execute(select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit))
        return list(result.scalars().all())
