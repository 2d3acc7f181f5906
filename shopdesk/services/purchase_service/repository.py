from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import PurchaseHistory


class PurchaseRepository:

    @staticmethod
    async def exists_for_order_item(db: AsyncSession, order_id: int, product_id: int) -> bool:
        result = await db.execute(
            select(PurchaseHistory.id).where(
                PurchaseHistory.order_id == order_id,
                PurchaseHistory.product_id == product_id,
            )
        )
        return result.first() is not None

    @staticmethod
    async def list_by_email(db: AsyncSession, email: str) -> list[PurchaseHistory]:
        result = await db.execute(
            select(PurchaseHistory)
            .where(PurchaseHistory.customer_email == email)
            .order_by(PurchaseHistory.purchased_at.desc(), PurchaseHistory.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def find_for_product(db: AsyncSession, email: str, product_id: int) -> Optional[PurchaseHistory]:
        result = await db.execute(
            select(PurchaseHistory)
            .where(PurchaseHistory.customer_email == email, PurchaseHistory.product_id == product_id)
            .order_by(PurchaseHistory.purchased_at.desc())
        )
        return result.scalars().first()
