from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.shared.config import get_db
from shopdesk.shared.security import get_current_admin

from .schemas import CustomerDetailResponse, CustomerListResponse, CustomerStatsResponse
from .service import CustomerService

router = APIRouter(tags=["Customers"], dependencies=[Depends(get_current_admin)])


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await CustomerService.list_customers(db, search, page, limit)


@router.get("/stats", response_model=CustomerStatsResponse)
async def customer_stats(db: AsyncSession = Depends(get_db)):
    return await CustomerService.stats(db)


@router.get("/{customer_id}", response_model=CustomerDetailResponse)
async def get_customer(customer_id: int, db: AsyncSession = Depends(get_db)):
    return await CustomerService.get_customer(db, customer_id)
