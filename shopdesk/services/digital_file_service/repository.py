from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DigitalFile


class DigitalFileRepository:

    @staticmethod
    async def create(db: AsyncSession, digital_file: DigitalFile) -> DigitalFile:
        db.add(digital_file)
        await db.commit()
        await db.refresh(digital_file)
        return digital_file

    @staticmethod
    async def get(db: AsyncSession, file_id: int) -> Optional[DigitalFile]:
        result = await db.execute(select(DigitalFile).where(DigitalFile.id == file_id))
        return result.scalars().first()

    @staticmethod
    async def list_for_product(db: AsyncSession, product_id: int) -> list[DigitalFile]:
        result = await db.execute(
            select(DigitalFile)
            .where(DigitalFile.product_id == product_id)
            .order_by(DigitalFile.created_at.desc(), DigitalFile.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_active_for_products(db: AsyncSession, product_ids: list[int]) -> list[DigitalFile]:
        if not product_ids:
            return []
        result = await db.execute(
            select(DigitalFile)
            .where(DigitalFile.product_id.in_(product_ids), DigitalFile.active.is_(True))
            .order_by(DigitalFile.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def increment_download_counts(db: AsyncSession, file_ids: list[int]) -> None:
        await db.execute(
            update(DigitalFile)
            .where(DigitalFile.id.in_(file_ids))
            .values(download_count=DigitalFile.download_count + 1)
        )
        await db.commit()

    @staticmethod
    async def save(db: AsyncSession, digital_file: DigitalFile) -> DigitalFile:
        await db.commit()
        await db.refresh(digital_file)
        return digital_file

    @staticmethod
    async def delete(db: AsyncSession, digital_file: DigitalFile) -> None:
        await db.delete(digital_file)
        await db.commit()

    @staticmethod
    async def stats(db: AsyncSession) -> dict:
        total_files = (
            await db.execute(select(func.count(DigitalFile.id)).where(DigitalFile.active.is_(True)))
        ).scalar_one()
        total_downloads = (
            await db.execute(select(func.coalesce(func.sum(DigitalFile.download_count), 0)))
        ).scalar_one()
        products_with_files = (
            await db.execute(select(func.count(func.distinct(DigitalFile.product_id))))
        ).scalar_one()
        return {
            "total_files": total_files,
            "total_downloads": int(total_downloads),
            "products_with_files": products_with_files,
        }
