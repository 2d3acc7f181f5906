import hashlib
import hmac

from sqlalchemy import select

from shopdesk.services.notification_service.models import Notification, NotificationType
from shopdesk.services.notification_service.service import NotificationService
from shopdesk.services.order_service.models import Order
from shopdesk.services.payment_service.models import Payment, PaymentMethod, PaymentStatus
from shopdesk.services.payment_service.service import apply_payment_approval
from shopdesk.services.purchase_service.models import PurchaseHistory
from shopdesk.shared.config import settings

from .conftest import count_rows

GATEWAY_PAYMENT_ID = "1319998877"


async def place_order_with_intent(client, order_payload) -> dict:
    order = (await client.post("/api/orders", json=order_payload)).json()
    response = await client.post(
        "/api/payments/create",
        json={"order_id": order["id"], "payer_email": "maria@example.com", "payer_name": "Maria Silva"},
    )
    assert response.status_code == 201
    return order


async def load(session_factory, model, row_id):
    async with session_factory() as session:
        return await session.get(model, row_id)


async def payment_for_order(session_factory, order_id) -> Payment:
    async with session_factory() as session:
        result = await session.execute(select(Payment).where(Payment.order_id == order_id))
        return result.scalars().one()


def webhook_body(payment_id: str = GATEWAY_PAYMENT_ID) -> dict:
    return {"type": "payment", "action": "payment.updated", "data": {"id": payment_id}}


async def test_create_payment_intent(client, session_factory, gateway, order_payload):
    order = (await client.post("/api/orders", json=order_payload)).json()

    response = await client.post(
        "/api/payments/create",
        json={"order_id": order["id"], "payer_email": "Maria@Example.com", "payer_name": "Maria Silva"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["init_point"] == f"https://checkout.test/{order['id']}"
    assert body["payment"]["status"] == "PENDING"
    assert body["payment"]["amount"] == 65.0
    assert body["payment"]["preference_id"] == f"pref-{order['id']}"
    assert body["payment"]["payer_email"] == "maria@example.com"
    assert gateway.preferences == [order["id"]]
    assert (await load(session_factory, Order, order["id"])).status.value == "PAYMENT_PENDING"


async def test_create_payment_for_missing_order(client):
    response = await client.post(
        "/api/payments/create",
        json={"order_id": 404, "payer_email": "maria@example.com", "payer_name": "Maria"},
    )

    assert response.status_code == 404


async def test_gateway_failure_writes_nothing(client, session_factory, gateway, order_payload):
    gateway.fail_preference = True
    order = (await client.post("/api/orders", json=order_payload)).json()

    response = await client.post(
        "/api/payments/create",
        json={"order_id": order["id"], "payer_email": "maria@example.com", "payer_name": "Maria"},
    )

    assert response.status_code == 502
    assert "error" in response.json()
    assert await count_rows(session_factory, Payment) == 0
    assert (await load(session_factory, Order, order["id"])).status.value == "PENDING"


async def test_retrying_intent_reuses_payment_row(client, session_factory, order_payload):
    order = await place_order_with_intent(client, order_payload)

    response = await client.post(
        "/api/payments/create",
        json={"order_id": order["id"], "payer_email": "maria@example.com", "payer_name": "Maria Silva"},
    )

    assert response.status_code == 201
    assert await count_rows(session_factory, Payment, Payment.order_id == order["id"]) == 1


async def test_approved_webhook_completes_order(client, session_factory, gateway, admin, order_payload, email_service):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="approved", amount=65.0)

    response = await client.post("/api/payments/webhook", json=webhook_body())

    assert response.status_code == 200
    assert response.json() == {"received": True}

    stored_order = await load(session_factory, Order, order["id"])
    payment = await payment_for_order(session_factory, order["id"])
    assert stored_order.status.value == "PAID"
    assert payment.status == PaymentStatus.APPROVED
    assert payment.gateway_payment_id == GATEWAY_PAYMENT_ID
    assert payment.gateway_status == "approved"
    assert payment.method == PaymentMethod.PIX
    assert payment.approved_at is not None
    assert payment.net_amount == 64.35
    assert await count_rows(session_factory, PurchaseHistory, PurchaseHistory.order_id == order["id"]) == 2
    assert await count_rows(
        session_factory,
        Notification,
        Notification.user_id == admin.id,
        Notification.type == NotificationType.PAYMENT_APPROVED,
    ) == 1
    assert email_service.payment_confirmations == [order["id"]]


async def test_duplicate_approved_webhook_is_a_noop(client, session_factory, gateway, admin, order_payload, email_service):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="approved", amount=65.0)

    for _ in range(2):
        response = await client.post("/api/payments/webhook", json=webhook_body())
        assert response.status_code == 200

    assert await count_rows(session_factory, PurchaseHistory) == 2
    assert await count_rows(
        session_factory, Notification, Notification.type == NotificationType.PAYMENT_APPROVED
    ) == 1
    assert email_service.payment_confirmations == [order["id"]]


async def test_rejected_webhook_only_updates_payment(client, session_factory, gateway, admin, order_payload):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="rejected", amount=65.0)

    response = await client.post("/api/payments/webhook", json=webhook_body())

    assert response.status_code == 200
    payment = await payment_for_order(session_factory, order["id"])
    assert payment.status == PaymentStatus.REJECTED
    assert payment.gateway_status == "rejected"
    assert (await load(session_factory, Order, order["id"])).status.value == "PAYMENT_PENDING"
    assert await count_rows(session_factory, PurchaseHistory) == 0


async def test_rejected_payment_cannot_be_approved_later(client, session_factory, gateway, admin, order_payload):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="rejected", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body())

    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="approved", amount=65.0)
    response = await client.post("/api/payments/webhook", json=webhook_body())

    assert response.status_code == 200
    assert (await payment_for_order(session_factory, order["id"])).status == PaymentStatus.REJECTED
    assert await count_rows(session_factory, PurchaseHistory) == 0


async def test_legacy_topic_notification(client, session_factory, gateway, admin, order_payload):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="in_process", amount=65.0)

    response = await client.post(
        "/api/payments/webhook",
        json={"topic": "payment", "resource": f"/v1/payments/{GATEWAY_PAYMENT_ID}"},
    )

    assert response.status_code == 200
    assert (await payment_for_order(session_factory, order["id"])).status == PaymentStatus.PROCESSING


async def test_webhook_always_acknowledges(client, session_factory, gateway, order_payload):
    order = await place_order_with_intent(client, order_payload)

    unknown_type = await client.post("/api/payments/webhook", json={"type": "merchant_order", "data": {"id": "1"}})
    invalid_body = await client.post(
        "/api/payments/webhook", content=b"not json", headers={"Content-Type": "application/json"}
    )
    unknown_payment = await client.post("/api/payments/webhook", json=webhook_body("555"))
    gateway.fail_get_payment = True
    gateway_down = await client.post("/api/payments/webhook", json=webhook_body())

    for response in (unknown_type, invalid_body, unknown_payment, gateway_down):
        assert response.status_code == 200
        assert response.json() == {"received": True}
    assert (await payment_for_order(session_factory, order["id"])).status == PaymentStatus.PENDING


async def test_webhook_with_unmatched_reference_is_dropped(client, session_factory, gateway, order_payload):
    await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, 9999, status="approved", amount=65.0)

    response = await client.post("/api/payments/webhook", json=webhook_body())

    assert response.status_code == 200
    assert await count_rows(session_factory, PurchaseHistory) == 0


async def test_webhook_signature_is_enforced(client, session_factory, gateway, admin, order_payload, monkeypatch):
    secret = "webhook-secret"
    monkeypatch.setattr(settings, "MERCADO_PAGO_WEBHOOK_SECRET", secret)
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="approved", amount=65.0)

    forged = await client.post(
        "/api/payments/webhook",
        json=webhook_body(),
        headers={"x-signature": "ts=1700000000,v1=deadbeef", "x-request-id": "req-1"},
    )
    assert forged.status_code == 200
    assert (await payment_for_order(session_factory, order["id"])).status == PaymentStatus.PENDING

    manifest = f"id:{GATEWAY_PAYMENT_ID};request-id:req-1;ts:1700000000;"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    signed = await client.post(
        "/api/payments/webhook",
        json=webhook_body(),
        headers={"x-signature": f"ts=1700000000,v1={digest}", "x-request-id": "req-1"},
    )
    assert signed.status_code == 200
    assert (await payment_for_order(session_factory, order["id"])).status == PaymentStatus.APPROVED


async def test_already_paid_order_rejects_new_intent(client, gateway, admin, order_payload):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="approved", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body())

    response = await client.post(
        "/api/payments/create",
        json={"order_id": order["id"], "payer_email": "maria@example.com", "payer_name": "Maria"},
    )

    assert response.status_code == 409
    assert response.json() == {"error": "Order has already been paid"}


async def test_apply_payment_approval_notifies_given_recipients(session_factory, products):
    ebook = products["ebook"]
    async with session_factory() as session:
        order = Order(
            customer_name="Ana",
            customer_email="ana@example.com",
            items=[{"product_id": ebook.id, "title": ebook.title, "price": 20.0, "quantity": 2}],
            subtotal=40.0,
            shipping=0.0,
            total=40.0,
        )
        session.add(order)
        await session.flush()
        payment = Payment(order_id=order.id, amount=40.0)
        session.add(payment)
        await session.flush()

        gateway_payment = {"status": "approved", "transaction_amount": 40.0, "payment_type_id": "credit_card"}
        created = await apply_payment_approval(session, payment, order, gateway_payment, gateway_payment, [7, 8])
        again = await apply_payment_approval(session, payment, order, gateway_payment, gateway_payment, [7, 8])
        await session.commit()

        assert [p.price_paid for p in created] == [40.0]
        assert again == []
        assert payment.method == PaymentMethod.CREDIT_CARD

    assert await count_rows(session_factory, Notification, Notification.user_id.in_([7, 8])) == 4


async def test_payment_status_lookup(client, order_payload):
    order = await place_order_with_intent(client, order_payload)

    response = await client.get(f"/api/payments/status/{order['id']}")
    missing = await client.get("/api/payments/status/999")

    body = response.json()
    assert body["status"] == "PENDING"
    assert body["order"]["id"] == order["id"]
    assert body["order"]["status"] == "PAYMENT_PENDING"
    assert missing.status_code == 404


async def test_refund_approved_payment(client, session_factory, gateway, admin, admin_headers, order_payload):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="approved", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body())
    payment = await payment_for_order(session_factory, order["id"])

    response = await client.post(
        f"/api/payments/{payment.id}/refund", json={"reason": "Customer request"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["status"] == "REFUNDED"
    assert gateway.refunds == [GATEWAY_PAYMENT_ID]
    stored_order = await load(session_factory, Order, order["id"])
    assert stored_order.status.value == "REFUNDED"
    assert stored_order.notes == "Customer request"
    assert await count_rows(
        session_factory, Notification, Notification.type == NotificationType.PAYMENT_REFUNDED
    ) == 1


async def test_refund_requires_approved_payment(client, session_factory, admin_headers, order_payload):
    order = await place_order_with_intent(client, order_payload)
    payment = await payment_for_order(session_factory, order["id"])

    response = await client.post(f"/api/payments/{payment.id}/refund", headers=admin_headers)

    assert response.status_code == 400


async def test_list_and_stats(client, gateway, session_factory, admin_headers, order_payload):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="approved", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body())
    await place_order_with_intent(client, order_payload)

    listing = await client.get("/api/payments", params={"status": "APPROVED"}, headers=admin_headers)
    stats = await client.get("/api/payments/stats/overview", headers=admin_headers)

    assert listing.status_code == 200
    assert listing.json()["pagination"]["total"] == 1
    assert listing.json()["payments"][0]["order"]["order_number"] == order["order_number"]
    overview = stats.json()["overview"]
    assert overview == {"total_payments": 2, "pending_payments": 1, "approved_payments": 1, "month_revenue": 65.0}
    assert stats.json()["payments_by_method"] == [{"method": "PIX", "count": 1, "total": 65.0}]


async def test_payment_admin_routes_require_auth(client):
    assert (await client.get("/api/payments")).status_code == 401
    assert (await client.get("/api/payments/stats/overview")).status_code == 401


async def test_retry_after_rejection_is_approved(client, session_factory, gateway, admin, order_payload, email_service):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment("111", order["id"], status="rejected", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body("111"))

    # Second card attempt inside the same checkout gets a new gateway id
    gateway.add_payment("222", order["id"], status="approved", amount=65.0)
    response = await client.post("/api/payments/webhook", json=webhook_body("222"))

    assert response.json() == {"received": True}
    payment = await payment_for_order(session_factory, order["id"])
    assert payment.status == PaymentStatus.APPROVED
    assert payment.gateway_payment_id == "222"
    assert payment.superseded_gateway_ids == ["111"]
    assert (await load(session_factory, Order, order["id"])).status.value == "PAID"
    assert await count_rows(session_factory, PurchaseHistory, PurchaseHistory.order_id == order["id"]) == 2
    assert email_service.payment_confirmations == [order["id"]]

    # A late redelivery of the rejected attempt changes nothing
    await client.post("/api/payments/webhook", json=webhook_body("111"))
    payment = await payment_for_order(session_factory, order["id"])
    assert payment.status == PaymentStatus.APPROVED
    assert payment.gateway_payment_id == "222"


async def test_old_rejection_does_not_touch_new_intent(client, session_factory, gateway, admin, order_payload):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment("111", order["id"], status="rejected", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body("111"))
    await client.post(
        "/api/payments/create",
        json={"order_id": order["id"], "payer_email": "maria@example.com", "payer_name": "Maria Silva"},
    )

    await client.post("/api/payments/webhook", json=webhook_body("111"))

    payment = await payment_for_order(session_factory, order["id"])
    assert payment.status == PaymentStatus.PENDING
    assert payment.gateway_payment_id is None
    assert payment.superseded_gateway_ids == ["111"]

    gateway.add_payment("222", order["id"], status="approved", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body("222"))

    assert (await payment_for_order(session_factory, order["id"])).status == PaymentStatus.APPROVED
    assert (await load(session_factory, Order, order["id"])).status.value == "PAID"


async def test_other_attempt_does_not_replace_payment_in_flight(client, session_factory, gateway, admin, order_payload):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment("111", order["id"], status="in_process", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body("111"))

    gateway.add_payment("222", order["id"], status="rejected", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body("222"))

    payment = await payment_for_order(session_factory, order["id"])
    assert payment.status == PaymentStatus.PROCESSING
    assert payment.gateway_payment_id == "111"

    gateway.add_payment("111", order["id"], status="approved", amount=65.0)
    await client.post("/api/payments/webhook", json=webhook_body("111"))

    assert (await payment_for_order(session_factory, order["id"])).status == PaymentStatus.APPROVED


async def test_failure_during_approval_rolls_back_and_acknowledges(
    client, session_factory, gateway, admin, order_payload, email_service, monkeypatch
):
    order = await place_order_with_intent(client, order_payload)
    gateway.add_payment(GATEWAY_PAYMENT_ID, order["id"], status="approved", amount=65.0)

    def failing_fan_out(*args, **kwargs):
        raise RuntimeError("notification store unavailable")

    # Purchase rows are already flushed when the notification step fails
    monkeypatch.setattr(NotificationService, "fan_out", staticmethod(failing_fan_out))
    response = await client.post("/api/payments/webhook", json=webhook_body())

    assert response.status_code == 200
    assert response.json() == {"received": True}
    payment = await payment_for_order(session_factory, order["id"])
    assert payment.status == PaymentStatus.PENDING
    assert payment.gateway_payment_id is None
    assert (await load(session_factory, Order, order["id"])).status.value == "PAYMENT_PENDING"
    assert await count_rows(session_factory, PurchaseHistory) == 0
    assert await count_rows(
        session_factory, Notification, Notification.type == NotificationType.PAYMENT_APPROVED
    ) == 0
    assert email_service.payment_confirmations == []
