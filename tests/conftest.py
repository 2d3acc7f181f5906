"""
Shared fixtures.

The environment is configured before the application is imported: the
settings module reads it once at import time.
"""
import os

os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["OTEL_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["MERCADO_PAGO_WEBHOOK_SECRET"] = ""
os.environ["MERCADO_PAGO_ACCESS_TOKEN"] = "TEST-token"
os.environ["SMTP_HOST"] = ""

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import func, select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from shopdesk.main import app  # noqa: E402
from shopdesk.services.auth_service.models import User, UserRole  # noqa: E402
from shopdesk.services.auth_service.service import AuthService  # noqa: E402
from shopdesk.services.product_service.models import Product, ProductType  # noqa: E402
from shopdesk.shared.config import Base, get_db  # noqa: E402
from shopdesk.shared.gateway import (  # noqa: E402
    PaymentGatewayConnectionError,
    PaymentGatewayNotFoundError,
    get_payment_gateway,
)
from shopdesk.shared.mail import get_email_service  # noqa: E402
from shopdesk.shared.security import create_access_token  # noqa: E402

ADMIN_PASSWORD = "admin-password"


class FakeGateway:
    """Stands in for the Mercado Pago client; payments are served from memory."""

    def __init__(self):
        self.preferences: list[int] = []
        self.refunds: list[str] = []
        self.payments: dict[str, dict] = {}
        self.fail_preference = False
        self.fail_get_payment = False

    async def create_preference(self, order, payer_email=None, payer_name=None):
        if self.fail_preference:
            raise PaymentGatewayConnectionError("gateway unavailable")
        self.preferences.append(order.id)
        return {
            "preference_id": f"pref-{order.id}",
            "init_point": f"https://checkout.test/{order.id}",
            "sandbox_init_point": f"https://sandbox.checkout.test/{order.id}",
        }

    async def get_payment(self, payment_id):
        if self.fail_get_payment:
            raise PaymentGatewayConnectionError("gateway unavailable")
        if payment_id not in self.payments:
            raise PaymentGatewayNotFoundError(f"payment {payment_id} not found")
        return self.payments[payment_id]

    async def refund_payment(self, payment_id, amount=None):
        self.refunds.append(payment_id)
        return {"id": 1, "payment_id": payment_id, "status": "approved"}

    def add_payment(
        self,
        payment_id: str,
        order_id: int,
        status: str = "approved",
        amount: float = 0.0,
        payment_type_id: str = "bank_transfer",
        payment_method_id: str = "pix",
    ) -> dict:
        self.payments[payment_id] = {
            "id": int(payment_id),
            "status": status,
            "status_detail": "accredited" if status == "approved" else status,
            "external_reference": str(order_id),
            "transaction_amount": amount,
            "transaction_details": {"net_received_amount": round(amount * 0.99, 2)},
            "fee_details": [{"type": "mercadopago_fee", "amount": round(amount * 0.01, 2)}],
            "payment_type_id": payment_type_id,
            "payment_method_id": payment_method_id,
        }
        return self.payments[payment_id]


class RecordingEmailService:
    def __init__(self):
        self.order_confirmations: list[int] = []
        self.payment_confirmations: list[int] = []

    async def send_order_confirmation(self, order) -> bool:
        self.order_confirmations.append(order.id)
        return True

    async def send_payment_confirmation(self, order) -> bool:
        self.payment_confirmations.append(order.id)
        return True


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def email_service():
    return RecordingEmailService()


@pytest.fixture
async def client(session_factory, gateway, email_service):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_email_service] = lambda: email_service

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(session_factory, email: str, role: UserRole = UserRole.ADMIN, is_active: bool = True) -> User:
    async with session_factory() as session:
        user = User(
            email=email,
            name=email.split("@")[0],
            hashed_password=AuthService.hash_password(ADMIN_PASSWORD),
            role=role,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def count_rows(session_factory, model, *conditions) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(model.id)).where(*conditions))
        return result.scalar_one()


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin(session_factory):
    return await create_user(session_factory, "admin@shop.test")


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
async def products(session_factory):
    """An ebook (digital) and a mug (physical)."""
    async with session_factory() as session:
        ebook = Product(title="Python Ebook", price=20.0, type=ProductType.DIGITAL)
        mug = Product(title="Coffee Mug", price=30.0, type=ProductType.PHYSICAL)
        session.add_all([ebook, mug])
        await session.commit()
        await session.refresh(ebook)
        await session.refresh(mug)
        return {"ebook": ebook, "mug": mug}


@pytest.fixture
def order_payload(products):
    ebook, mug = products["ebook"], products["mug"]
    return {
        "customer_name": "Maria Silva",
        "customer_email": "Maria@Example.com",
        "customer_phone": "11987654321",
        "items": [
            {"product_id": ebook.id, "title": ebook.title, "price": 20.0, "quantity": 1},
            {"product_id": mug.id, "title": mug.title, "price": 30.0, "quantity": 1},
        ],
        "subtotal": 50.0,
        "shipping": 15.0,
        "total": 65.0,
        "shipping_address": {"city": "Sao Paulo", "zip": "01001-000"},
    }
