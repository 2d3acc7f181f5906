from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.shared.config import get_db

from .schemas import MyProductsResponse, VerifyPurchaseResponse
from .service import PurchaseService

router = APIRouter(tags=["Purchases"])


@router.get("/my-products", response_model=MyProductsResponse)
async def my_products(email: str | None = Query(default=None), db: AsyncSession = Depends(get_db)):
    return await PurchaseService.my_products(db, email)


@router.get("/verify", response_model=VerifyPurchaseResponse)
async def verify_purchase(
    product_id: int,
    email: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await PurchaseService.verify(db, email, product_id)
