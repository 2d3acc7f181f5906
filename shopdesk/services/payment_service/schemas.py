from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from shopdesk.services.order_service.models import OrderStatus

from .models import PaymentMethod, PaymentStatus


class PaymentCreate(BaseModel):
    order_id: int
    payer_email: EmailStr
    payer_name: str = Field(min_length=1, max_length=255)
    payer_document: Optional[str] = Field(default=None, max_length=32)


class RefundRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class PaymentResponse(BaseModel):
    id: int
    order_id: int
    amount: float
    method: PaymentMethod
    status: PaymentStatus
    gateway_status: Optional[str] = None
    preference_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    payer_email: Optional[str] = None
    payer_name: Optional[str] = None
    transaction_amount: Optional[float] = None
    net_amount: Optional[float] = None
    fee_amount: Optional[float] = None
    approved_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentIntentResponse(BaseModel):
    payment: PaymentResponse
    init_point: Optional[str] = None
    sandbox_init_point: Optional[str] = None


class OrderSummary(BaseModel):
    id: int
    order_number: Optional[str] = None
    status: OrderStatus
    total: float
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentStatusResponse(BaseModel):
    payment_id: int
    status: PaymentStatus
    method: PaymentMethod
    amount: float
    approved_at: Optional[datetime] = None
    order: OrderSummary


class PaymentWithOrder(PaymentResponse):
    order: Optional[OrderSummary] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaymentListResponse(BaseModel):
    payments: List[PaymentWithOrder]
    pagination: Pagination


class PaymentOverview(BaseModel):
    total_payments: int
    pending_payments: int
    approved_payments: int
    month_revenue: float


class MethodTotals(BaseModel):
    method: PaymentMethod
    count: int
    total: float


class PaymentStatsResponse(BaseModel):
    overview: PaymentOverview
    payments_by_method: List[MethodTotals]


class WebhookPayload(BaseModel):
    """
    Gateway notification body, in either shape:

        {"type": "payment", "action": "payment.updated", "data": {"id": "123"}}
        {"topic": "payment", "resource": "/v1/payments/123"}
    """

    action: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    id: Optional[str | int] = None
    live_mode: Optional[bool] = None
    type: Optional[str] = None

    resource: Optional[str] = None
    topic: Optional[str] = None

    @model_validator(mode="after")
    def has_event_reference(self):
        has_typed = self.type and self.data and self.data.get("id")
        has_topic = self.topic and self.resource
        if not has_typed and not has_topic:
            raise ValueError("Webhook must carry either type and data.id or topic and resource")
        return self

    def get_payment_id(self) -> Optional[str]:
        if self.data and self.data.get("id"):
            return str(self.data["id"])
        if self.resource:
            return self.resource.rstrip("/").split("/")[-1] or None
        return None

    def get_notification_type(self) -> Optional[str]:
        return self.type or self.topic
