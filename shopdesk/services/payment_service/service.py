from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.auth_service.models import User
from shopdesk.services.notification_service.models import NotificationType
from shopdesk.services.notification_service.service import NotificationService
from shopdesk.services.order_service.models import Order, OrderStatus
from shopdesk.services.order_service.repository import OrderRepository
from shopdesk.services.purchase_service.models import PurchaseHistory
from shopdesk.services.purchase_service.service import record_order_purchases
from shopdesk.shared.config import settings, utcnow
from shopdesk.shared.errors import AppError, ConflictError, GatewayError, NotFoundError
from shopdesk.shared.gateway import MercadoPagoClient, PaymentGatewayError
from shopdesk.shared.observability import shopdesk_payment_intents_total, shopdesk_purchases_recorded_total
from shopdesk.shared.security import verify_webhook_signature

from .models import Payment, PaymentMethod, PaymentStatus
from .repository import PaymentRepository
from .schemas import PaymentCreate, WebhookPayload
from .state import can_transition, is_terminal, map_gateway_status, map_payment_method

logger = structlog.get_logger(__name__)

AMOUNT_TOLERANCE = 0.01


@dataclass
class WebhookResult:
    outcome: str
    order: Optional[Order] = None


def _fee_amount(gateway_payment: dict[str, Any]) -> Optional[float]:
    fees = gateway_payment.get("fee_details")
    if not fees:
        return None
    return float(sum(fee.get("amount") or 0 for fee in fees))


def _supersede_gateway_payment(payment: Payment, replacement: Optional[str] = None) -> None:
    """Retire the row's current gateway payment so late events for it are recognised as stale."""
    if payment.gateway_payment_id and payment.gateway_payment_id != replacement:
        # Reassigned, not appended: plain JSON columns do not track in-place mutation
        payment.superseded_gateway_ids = [*(payment.superseded_gateway_ids or []), payment.gateway_payment_id]
    payment.gateway_payment_id = replacement


def _adopt_decision(payment: Payment, gateway_payment_id: str, target: PaymentStatus) -> Optional[str]:
    """
    Decide whether a gateway payment found only through the order reference may
    take over the order's payment row. Returns the reason it may not, or None.

    A captured payment always takes over a row that is not yet approved. Other
    events only replace a gateway payment that already reached a final state,
    and never one that was retired before.
    """
    if payment.status == PaymentStatus.APPROVED:
        return "order_already_paid"
    if target == PaymentStatus.APPROVED:
        return None
    if gateway_payment_id in (payment.superseded_gateway_ids or []):
        return "superseded"
    if payment.gateway_payment_id and not is_terminal(payment.status):
        return "other_payment_in_flight"
    return None


async def apply_payment_approval(
    db: AsyncSession,
    payment: Payment,
    order: Order,
    gateway_payment: dict[str, Any],
    webhook_data: dict[str, Any],
    recipients: list[int],
) -> list[PurchaseHistory]:
    """
    Mark the payment approved and the order paid, record purchase history and
    notify the admins. Every step is staged on ``db``; the caller commits once.
    """
    payment.status = PaymentStatus.APPROVED
    payment.gateway_status = gateway_payment.get("status")
    payment.approved_at = utcnow()
    payment.transaction_amount = gateway_payment.get("transaction_amount")
    payment.net_amount = (gateway_payment.get("transaction_details") or {}).get("net_received_amount")
    payment.fee_amount = _fee_amount(gateway_payment)
    payment.method = map_payment_method(
        gateway_payment.get("payment_method_id"), gateway_payment.get("payment_type_id")
    )
    payment.webhook_data = webhook_data

    order.status = OrderStatus.PAID
    created = await record_order_purchases(db, order, fallback_email=payment.payer_email)

    NotificationService.fan_out(
        db,
        recipients,
        NotificationType.PAYMENT_APPROVED,
        title="Payment approved",
        message=f"Order #{order.order_number} was paid by {order.customer_name}",
        data={"order_id": order.id, "payment_id": payment.id, "amount": payment.amount},
    )
    return created


class PaymentService:

    @staticmethod
    async def create_intent(db: AsyncSession, data: PaymentCreate, gateway: MercadoPagoClient) -> dict:
        order = await OrderRepository.get_order(db, data.order_id)
        if not order:
            raise NotFoundError("Order not found")

        payment = await PaymentRepository.get_by_order_id(db, order.id)
        if payment and payment.status == PaymentStatus.APPROVED:
            raise ConflictError("Order has already been paid")

        # Nothing is written until the gateway accepted the preference
        try:
            preference = await gateway.create_preference(
                order, payer_email=data.payer_email, payer_name=data.payer_name
            )
        except PaymentGatewayError as e:
            shopdesk_payment_intents_total.labels(result="gateway_error").inc()
            logger.error("payment_preference_failed", order_id=order.id, error_code=e.error_code, error=e.error_message)
            raise GatewayError("Could not create payment with the payment gateway") from e

        if payment is None:
            payment = Payment(order_id=order.id)
            db.add(payment)
        else:
            _supersede_gateway_payment(payment)
        payment.amount = order.total
        payment.method = PaymentMethod.PIX
        payment.status = PaymentStatus.PENDING
        payment.gateway_status = None
        payment.preference_id = preference.get("preference_id")
        payment.payer_email = data.payer_email.lower()
        payment.payer_name = data.payer_name
        payment.payer_document = data.payer_document
        payment.webhook_data = None

        order.status = OrderStatus.PAYMENT_PENDING
        await db.commit()
        await db.refresh(payment)

        shopdesk_payment_intents_total.labels(result="created").inc()
        logger.info(
            "payment_intent_created",
            order_id=order.id,
            payment_id=payment.id,
            preference_id=payment.preference_id,
        )
        return {
            "payment": payment,
            "init_point": preference.get("init_point"),
            "sandbox_init_point": preference.get("sandbox_init_point"),
        }

    @staticmethod
    async def _find_payment(
        db: AsyncSession, gateway_payment_id: str, gateway_payment: dict[str, Any]
    ) -> Optional[Payment]:
        payment = await PaymentRepository.get_by_gateway_payment_id(db, gateway_payment_id)
        if payment:
            return payment
        reference = str(gateway_payment.get("external_reference") or "")
        if reference.isdigit():
            return await PaymentRepository.get_by_order_id(db, int(reference))
        return None

    @staticmethod
    async def handle_webhook(
        db: AsyncSession,
        payload: WebhookPayload,
        signature: Optional[str],
        request_id: Optional[str],
        gateway: MercadoPagoClient,
        recipients: list[int],
    ) -> WebhookResult:
        notification_type = payload.get_notification_type()
        if notification_type != "payment":
            logger.info("webhook_ignored", type=notification_type)
            return WebhookResult("ignored")

        gateway_payment_id = payload.get_payment_id()
        if not gateway_payment_id:
            logger.warning("webhook_missing_payment_id")
            return WebhookResult("ignored")

        if not verify_webhook_signature(settings.MERCADO_PAGO_WEBHOOK_SECRET, signature, request_id, gateway_payment_id):
            logger.warning("webhook_invalid_signature", gateway_payment_id=gateway_payment_id, request_id=request_id)
            return WebhookResult("invalid_signature")

        try:
            gateway_payment = await gateway.get_payment(gateway_payment_id)
        except PaymentGatewayError as e:
            logger.error("webhook_gateway_error", gateway_payment_id=gateway_payment_id, error=e.error_message)
            return WebhookResult("gateway_error")

        payment = await PaymentService._find_payment(db, gateway_payment_id, gateway_payment)
        if not payment:
            logger.warning(
                "webhook_unknown_payment",
                gateway_payment_id=gateway_payment_id,
                external_reference=gateway_payment.get("external_reference"),
            )
            return WebhookResult("unknown_payment")

        gateway_status = gateway_payment.get("status")
        target = map_gateway_status(gateway_status)
        log = logger.bind(
            payment_id=payment.id,
            order_id=payment.order_id,
            gateway_payment_id=gateway_payment_id,
            gateway_status=gateway_status,
        )

        current = payment.status
        if payment.gateway_payment_id == gateway_payment_id:
            if current == PaymentStatus.APPROVED and target == PaymentStatus.APPROVED:
                log.info("webhook_duplicate_approval")
                return WebhookResult("duplicate")
        else:
            # Matched through the order reference: a different gateway payment than the one on the row
            reason = _adopt_decision(payment, gateway_payment_id, target)
            if reason is not None:
                log.warning(
                    "webhook_stale_gateway_payment",
                    reason=reason,
                    current=current.value,
                    target=target.value,
                    row_gateway_payment_id=payment.gateway_payment_id,
                )
                return WebhookResult("stale")
            current = PaymentStatus.PENDING

        if not can_transition(current, target):
            log.warning(
                "webhook_transition_rejected",
                current=current.value,
                target=target.value,
                terminal=is_terminal(current),
            )
            return WebhookResult("invalid_transition")

        if payment.gateway_payment_id != gateway_payment_id:
            log.info("webhook_gateway_payment_adopted", previous_gateway_payment_id=payment.gateway_payment_id)
            _supersede_gateway_payment(payment, gateway_payment_id)
            payment.status = PaymentStatus.PENDING
        webhook_data = {"notification": payload.model_dump(exclude_none=True), "payment": gateway_payment}

        if target != PaymentStatus.APPROVED:
            payment.status = target
            payment.gateway_status = gateway_status
            payment.webhook_data = webhook_data
            await db.commit()
            log.info("webhook_payment_updated", status=target.value)
            return WebhookResult("updated")

        order = await OrderRepository.get_order(db, payment.order_id)
        if not order:
            log.error("webhook_order_missing")
            return WebhookResult("unknown_payment")

        paid = gateway_payment.get("transaction_amount")
        if paid is not None and abs(float(paid) - order.total) > AMOUNT_TOLERANCE:
            log.warning("webhook_amount_mismatch", transaction_amount=paid, order_total=order.total)

        created = await apply_payment_approval(db, payment, order, gateway_payment, webhook_data, recipients)
        await db.commit()
        await db.refresh(order)

        if created:
            shopdesk_purchases_recorded_total.labels(source="payment_approval").inc(len(created))
        log.info("webhook_payment_approved", status=PaymentStatus.APPROVED.value, purchases=len(created))
        return WebhookResult("approved", order)

    @staticmethod
    async def get_status(db: AsyncSession, order_id: int) -> dict:
        payment = await PaymentRepository.get_by_order_id(db, order_id)
        if not payment:
            raise NotFoundError("Payment not found")
        order = await OrderRepository.get_order(db, order_id)
        return {
            "payment_id": payment.id,
            "status": payment.status,
            "method": payment.method,
            "amount": payment.amount,
            "approved_at": payment.approved_at,
            "order": order,
        }

    @staticmethod
    async def list_payments(
        db: AsyncSession,
        status: Optional[PaymentStatus],
        method: Optional[PaymentMethod],
        page: int,
        limit: int,
    ) -> dict:
        rows, pagination = await PaymentRepository.list_with_orders(db, status, method, page, limit)
        payments = []
        for payment, order in rows:
            item = {column: getattr(payment, column) for column in Payment.__table__.columns.keys()}
            item["order"] = order
            payments.append(item)
        return {"payments": payments, "pagination": pagination}

    @staticmethod
    async def get_payment(db: AsyncSession, payment_id: int) -> Payment:
        payment = await PaymentRepository.get(db, payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    @staticmethod
    async def stats(db: AsyncSession) -> dict:
        month_start = datetime.now(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return {
            "overview": {
                "total_payments": await PaymentRepository.count(db),
                "pending_payments": await PaymentRepository.count(db, PaymentStatus.PENDING),
                "approved_payments": await PaymentRepository.count(db, PaymentStatus.APPROVED),
                "month_revenue": await PaymentRepository.approved_revenue_since(db, month_start),
            },
            "payments_by_method": await PaymentRepository.approved_totals_by_method(db),
        }

    @staticmethod
    async def refund(
        db: AsyncSession,
        payment_id: int,
        reason: Optional[str],
        admin: User,
        gateway: MercadoPagoClient,
    ) -> Payment:
        payment = await PaymentService.get_payment(db, payment_id)
        if payment.status != PaymentStatus.APPROVED:
            raise AppError("Only approved payments can be refunded")

        if payment.gateway_payment_id:
            try:
                await gateway.refund_payment(payment.gateway_payment_id)
            except PaymentGatewayError as e:
                logger.error(
                    "payment_refund_gateway_failed",
                    payment_id=payment.id,
                    gateway_payment_id=payment.gateway_payment_id,
                    error=e.error_message,
                )

        order = await OrderRepository.get_order(db, payment.order_id)
        payment.status = PaymentStatus.REFUNDED
        payment.refunded_at = utcnow()
        if order:
            order.status = OrderStatus.REFUNDED
            order.notes = reason or "Refund requested"

        NotificationService.fan_out(
            db,
            [admin.id],
            NotificationType.PAYMENT_REFUNDED,
            title="Payment refunded",
            message=f"Payment for order #{order.order_number if order else payment.order_id} was refunded",
            data={"order_id": payment.order_id, "payment_id": payment.id, "amount": payment.amount},
        )
        await db.commit()
        await db.refresh(payment)

        logger.info("payment_refunded", payment_id=payment.id, order_id=payment.order_id, admin_id=admin.id)
        return payment
