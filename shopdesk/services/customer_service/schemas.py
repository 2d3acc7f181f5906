from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from shopdesk.services.order_service.models import OrderStatus
from shopdesk.services.order_service.schemas import Pagination


class CustomerSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    created_at: datetime
    order_count: int
    total_spent: float
    last_order_id: Optional[int] = None
    last_order_number: Optional[str] = None
    last_order_date: Optional[datetime] = None


class CustomerListResponse(BaseModel):
    customers: List[CustomerSummary]
    pagination: Pagination


class CustomerOrder(BaseModel):
    id: int
    order_number: Optional[str] = None
    total: float
    status: OrderStatus
    created_at: datetime

    class Config:
        from_attributes = True


class CustomerOrderStats(BaseModel):
    total_spent: float
    total_orders: int
    cancelled_orders: int


class CustomerDetailResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    created_at: datetime
    orders: List[CustomerOrder]
    stats: CustomerOrderStats


class TopCustomer(BaseModel):
    id: int
    name: str
    email: str
    order_count: int


class CustomerStatsResponse(BaseModel):
    total_customers: int
    new_this_month: int
    customers_with_orders: int
    customers_without_orders: int
    top_customers: List[TopCustomer]
    total_revenue: float
    average_orders_per_customer: float
