from sqlalchemy import select

from shopdesk.services.auth_service.models import UserRole
from shopdesk.services.notification_service.models import Notification, NotificationType
from shopdesk.services.order_service.models import Order, OrderStatus
from shopdesk.services.purchase_service.models import PurchaseHistory

from .conftest import auth_headers, count_rows, create_user


async def test_create_order_is_pending_and_notifies_admins(client, session_factory, admin, order_payload, email_service):
    second_admin = await create_user(session_factory, "owner@shop.test")
    order_payload["status"] = "PAID"

    response = await client.post("/api/orders", json=order_payload)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["order_number"] == f"{body['id']:06d}"
    assert body["customer_email"] == "maria@example.com"
    assert body["customer_phone"] == "(11) 98765-4321"
    assert body["total"] == 65.0

    for user in (admin, second_admin):
        assert await count_rows(
            session_factory,
            Notification,
            Notification.user_id == user.id,
            Notification.type == NotificationType.NEW_ORDER,
        ) == 1
    assert email_service.order_confirmations == [body["id"]]


async def test_create_order_by_admin_notifies_only_that_admin(client, session_factory, admin, admin_headers, order_payload):
    other_admin = await create_user(session_factory, "owner@shop.test")

    response = await client.post("/api/orders", json=order_payload, headers=admin_headers)

    assert response.status_code == 201
    assert await count_rows(session_factory, Notification, Notification.user_id == admin.id) == 1
    assert await count_rows(session_factory, Notification, Notification.user_id == other_admin.id) == 0


async def test_create_order_rejects_invalid_phone(client, order_payload):
    order_payload["customer_phone"] = "1234-5678"

    response = await client.post("/api/orders", json=order_payload)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid phone number. Use the format (XX) 9XXXX-XXXX"


async def test_create_order_rejects_total_mismatch(client, session_factory, order_payload):
    order_payload["total"] = 60.0

    response = await client.post("/api/orders", json=order_payload)

    assert response.status_code == 400
    assert "subtotal plus shipping" in response.json()["error"]
    assert await count_rows(session_factory, Order) == 0


async def test_create_order_requires_items(client, order_payload):
    order_payload["items"] = []

    response = await client.post("/api/orders", json=order_payload)

    assert response.status_code == 400


async def test_status_change_notification_only_when_status_differs(client, session_factory, admin, admin_headers, order_payload):
    order = (await client.post("/api/orders", json=order_payload, headers=admin_headers)).json()
    updates = (Notification.user_id == admin.id, Notification.type == NotificationType.ORDER_UPDATE)

    response = await client.put(f"/api/orders/{order['id']}", json={"status": "PROCESSING"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "PROCESSING"
    assert await count_rows(session_factory, Notification, *updates) == 1

    response = await client.put(
        f"/api/orders/{order['id']}",
        json={"status": "PROCESSING", "tracking_code": "BR123456789"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["tracking_code"] == "BR123456789"
    assert await count_rows(session_factory, Notification, *updates) == 1


async def test_manual_delivery_records_purchases_once(client, session_factory, admin_headers, order_payload):
    order = (await client.post("/api/orders", json=order_payload)).json()

    for _ in range(2):
        response = await client.put(f"/api/orders/{order['id']}", json={"status": "DELIVERED"}, headers=admin_headers)
        assert response.status_code == 200

    assert await count_rows(session_factory, PurchaseHistory, PurchaseHistory.order_id == order["id"]) == 2
    async with session_factory() as session:
        result = await session.execute(select(PurchaseHistory).order_by(PurchaseHistory.product_id))
        purchases = result.scalars().all()
    assert {p.customer_email for p in purchases} == {"maria@example.com"}
    assert sorted(p.price_paid for p in purchases) == [20.0, 30.0]


async def test_update_missing_order_returns_404(client, admin_headers):
    response = await client.put("/api/orders/999", json={"status": "SHIPPED"}, headers=admin_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "Order not found"}


async def test_update_requires_admin(client, session_factory, order_payload):
    staff = await create_user(session_factory, "staff@shop.test", role=UserRole.STAFF)
    order = (await client.post("/api/orders", json=order_payload)).json()

    anonymous = await client.put(f"/api/orders/{order['id']}", json={"status": "SHIPPED"})
    as_staff = await client.put(f"/api/orders/{order['id']}", json={"status": "SHIPPED"}, headers=auth_headers(staff))

    assert anonymous.status_code == 401
    assert as_staff.status_code == 403


async def test_list_orders_with_search_and_status_counts(client, admin_headers, order_payload):
    await client.post("/api/orders", json=order_payload)
    other = dict(order_payload, customer_name="Joao Souza", customer_email="joao@example.com")
    second = (await client.post("/api/orders", json=other)).json()
    await client.put(f"/api/orders/{second['id']}", json={"status": "SHIPPED"}, headers=admin_headers)

    response = await client.get("/api/orders", params={"search": "joao"}, headers=admin_headers)
    body = response.json()
    assert response.status_code == 200
    assert body["total"] == 1
    assert body["orders"][0]["customer_name"] == "Joao Souza"
    assert body["status_counts"]["SHIPPED"] == 1
    assert body["status_counts"]["PENDING"] == 0

    response = await client.get("/api/orders", params={"status": "PENDING"}, headers=admin_headers)
    body = response.json()
    assert body["total"] == 1
    assert body["status_counts"]["PENDING"] == 1
    assert body["status_counts"]["SHIPPED"] == 1
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}

    response = await client.get("/api/orders", params={"search": "65"}, headers=admin_headers)
    assert response.json()["total"] == 2


async def test_order_stats(client, admin_headers, order_payload):
    await client.post("/api/orders", json=order_payload)
    cancelled = (await client.post("/api/orders", json=order_payload)).json()
    await client.put(f"/api/orders/{cancelled['id']}", json={"status": "CANCELLED"}, headers=admin_headers)

    response = await client.get("/api/orders/stats", headers=admin_headers)

    body = response.json()
    assert response.status_code == 200
    assert body["total_orders"] == 2
    assert body["by_status"]["CANCELLED"] == 1
    assert body["revenue"]["total"] == 65.0
    assert body["revenue"]["current_month"] == 65.0
    assert len(body["recent_orders"]) == 2


async def test_track_order_requires_matching_email(client, order_payload):
    order = (await client.post("/api/orders", json=order_payload)).json()

    found = await client.get(f"/api/orders/track/{order['id']}", params={"email": "MARIA@example.com"})
    wrong = await client.get(f"/api/orders/track/{order['id']}", params={"email": "other@example.com"})

    assert found.status_code == 200
    assert found.json()["id"] == order["id"]
    assert wrong.status_code == 404


async def test_get_order(client, admin_headers, order_payload):
    order = (await client.post("/api/orders", json=order_payload)).json()

    response = await client.get(f"/api/orders/{order['id']}", headers=admin_headers)
    missing = await client.get("/api/orders/4242", headers=admin_headers)

    assert response.json()["status"] == OrderStatus.PENDING.value
    assert missing.status_code == 404
