from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.auth_service.models import User
from shopdesk.services.notification_service.service import get_admin_recipients
from shopdesk.shared.config import get_db
from shopdesk.shared.gateway import MercadoPagoClient, get_payment_gateway
from shopdesk.shared.mail import EmailService, get_email_service
from shopdesk.shared.observability import shopdesk_payment_webhooks_total
from shopdesk.shared.security import get_current_admin

from .models import PaymentMethod, PaymentStatus
from .schemas import (
    PaymentCreate,
    PaymentIntentResponse,
    PaymentListResponse,
    PaymentResponse,
    PaymentStatsResponse,
    PaymentStatusResponse,
    RefundRequest,
    WebhookPayload,
)
from .service import PaymentService, WebhookResult

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Payments"])


@router.post("/create", response_model=PaymentIntentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    gateway: MercadoPagoClient = Depends(get_payment_gateway),
):
    return await PaymentService.create_intent(db, data, gateway)


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    gateway: MercadoPagoClient = Depends(get_payment_gateway),
    admin_ids: list[int] = Depends(get_admin_recipients),
    email_service: EmailService = Depends(get_email_service),
):
    """
    Gateway notifications. Always acknowledged with 200 so the gateway does
    not retry; anything that cannot be processed is logged and dropped.
    """
    raw_body = await request.body()
    try:
        payload = WebhookPayload.model_validate_json(raw_body)
    except ValidationError as e:
        logger.warning("webhook_invalid_payload", error=str(e), raw_sample=raw_body[:200].decode(errors="replace"))
        shopdesk_payment_webhooks_total.labels(outcome="invalid_payload").inc()
        return {"received": True}

    try:
        result = await PaymentService.handle_webhook(
            db,
            payload,
            request.headers.get("x-signature"),
            request.headers.get("x-request-id"),
            gateway,
            admin_ids,
        )
    except Exception:
        await db.rollback()
        logger.exception("webhook_processing_failed", gateway_payment_id=payload.get_payment_id())
        result = WebhookResult("error")

    shopdesk_payment_webhooks_total.labels(outcome=result.outcome).inc()
    if result.order is not None:
        background_tasks.add_task(email_service.send_payment_confirmation, result.order)
    return {"received": True}


@router.get("/status/{order_id}", response_model=PaymentStatusResponse)
async def payment_status(order_id: int, db: AsyncSession = Depends(get_db)):
    return await PaymentService.get_status(db, order_id)


@router.get("", response_model=PaymentListResponse, dependencies=[Depends(get_current_admin)])
async def list_payments(
    status: Optional[PaymentStatus] = None,
    method: Optional[PaymentMethod] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await PaymentService.list_payments(db, status, method, page, limit)


@router.get("/stats/overview", response_model=PaymentStatsResponse, dependencies=[Depends(get_current_admin)])
async def payment_stats(db: AsyncSession = Depends(get_db)):
    return await PaymentService.stats(db)


@router.get("/{payment_id}", response_model=PaymentResponse, dependencies=[Depends(get_current_admin)])
async def get_payment(payment_id: int, db: AsyncSession = Depends(get_db)):
    return await PaymentService.get_payment(db, payment_id)


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: int,
    data: Optional[RefundRequest] = None,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    gateway: MercadoPagoClient = Depends(get_payment_gateway),
):
    return await PaymentService.refund(db, payment_id, data.reason if data else None, admin, gateway)
