from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from shopdesk.shared.phone import INVALID_PHONE_MESSAGE, format_brazilian_cell_phone

from .models import OrderStatus

TOTAL_TOLERANCE = 0.01


class OrderItem(BaseModel):
    product_id: int
    title: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0)
    quantity: int = Field(default=1, ge=1)


class OrderCreate(BaseModel):
    customer_name: str = Field(max_length=255)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None
    items: List[OrderItem] = Field(min_length=1)
    subtotal: float = Field(ge=0)
    shipping: float = Field(default=0, ge=0)
    total: float = Field(ge=0)
    shipping_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Customer name is required")
        return value

    @field_validator("customer_email")
    @classmethod
    def lower_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value

    @field_validator("customer_phone")
    @classmethod
    def brazilian_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        formatted = format_brazilian_cell_phone(value)
        if formatted is None:
            raise ValueError(INVALID_PHONE_MESSAGE)
        return formatted

    @model_validator(mode="after")
    def total_matches(self):
        if abs(self.total - (self.subtotal + self.shipping)) > TOTAL_TOLERANCE:
            raise ValueError("Order total must equal subtotal plus shipping")
        return self


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    tracking_code: Optional[str] = Field(default=None, max_length=64)
    notes: Optional[str] = None


class OrderResponse(BaseModel):
    id: int
    order_number: Optional[str] = None
    customer_id: Optional[int] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    items: List[OrderItem]
    subtotal: float
    shipping: float
    total: float
    status: OrderStatus
    tracking_code: Optional[str] = None
    notes: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int
    status_counts: Dict[str, int]
    pagination: Pagination


class RevenueStats(BaseModel):
    total: float
    current_month: float
    last_month: float
    growth: float


class OrderStatsResponse(BaseModel):
    total_orders: int
    by_status: Dict[str, int]
    revenue: RevenueStats
    recent_orders: List[OrderResponse]
