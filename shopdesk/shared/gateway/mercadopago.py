"""
Mercado Pago API Client

Async client for the hosted-checkout (Checkout Pro) flow using Bearer Token auth.

Endpoints:
    - POST /checkout/preferences       - Create payment preference (checkout link)
    - GET  /v1/payments/{id}           - Get payment details (source of truth for webhooks)
    - POST /v1/payments/{id}/refunds   - Refund a payment (full or partial)
"""
from __future__ import annotations

import uuid
from typing import Any

import httpx
import structlog

from shopdesk.shared.config import settings
from shopdesk.shared.phone import extract_digits

logger = structlog.get_logger(__name__)


class PaymentGatewayError(Exception):
    """
    Base exception for payment gateway errors.

    Attributes:
        error_code: Machine-readable error code
        error_message: Human-readable error description
    """

    def __init__(self, error_code: str, error_message: str):
        self.error_code = error_code
        self.error_message = error_message
        super().__init__(f"{error_code}: {error_message}")


class PaymentGatewayAuthError(PaymentGatewayError):
    def __init__(self, message: str = "Invalid access token"):
        super().__init__("AUTH_ERROR", message)


class PaymentGatewayConnectionError(PaymentGatewayError):
    def __init__(self, message: str):
        super().__init__("CONNECTION_ERROR", message)


class PaymentGatewayValidationError(PaymentGatewayError):
    def __init__(self, message: str):
        super().__init__("VALIDATION_ERROR", message)


class PaymentGatewayNotFoundError(PaymentGatewayError):
    def __init__(self, message: str):
        super().__init__("NOT_FOUND", message)


class MercadoPagoClient:
    """
    Async HTTP client for the Mercado Pago API.

    Example:
        async with MercadoPagoClient() as client:
            preference = await client.create_preference(order)
            # preference["init_point"] contains the checkout URL
    """

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._access_token = settings.MERCADO_PAGO_ACCESS_TOKEN if access_token is None else access_token
        self._base_url = base_url or settings.MERCADO_PAGO_BASE_URL
        self._timeout = timeout or settings.MERCADO_PAGO_TIMEOUT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not self._access_token:
            logger.warning("mercadopago_not_configured")

    async def __aenter__(self) -> MercadoPagoClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self._access_token)

    def _ensure_ready(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise PaymentGatewayError(
                "NOT_CONFIGURED", "Payment gateway is not configured. Check MERCADO_PAGO_ACCESS_TOKEN."
            )
        if not self._client:
            raise PaymentGatewayError("CLIENT_NOT_INITIALIZED", "Client not initialized. Use 'async with' context.")
        return self._client

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = self._ensure_ready()
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.ConnectError as e:
            logger.error("mercadopago_connection_error", url=url, error=str(e))
            raise PaymentGatewayConnectionError(f"Could not connect to Mercado Pago: {e}") from e
        except httpx.TimeoutException as e:
            logger.error("mercadopago_timeout", url=url, error=str(e))
            raise PaymentGatewayConnectionError(f"Mercado Pago request timed out: {e}") from e

        if response.status_code == 401:
            raise PaymentGatewayAuthError("Invalid or expired access token")
        if response.status_code == 404:
            raise PaymentGatewayNotFoundError(f"Resource not found: {url}")
        if response.status_code == 400:
            raise PaymentGatewayValidationError(_error_message(response))
        if response.is_error:
            raise PaymentGatewayError(f"HTTP_{response.status_code}", _error_message(response))
        return response

    @staticmethod
    def build_preference_payload(
        order: Any, payer_email: str | None = None, payer_name: str | None = None
    ) -> dict[str, Any]:
        """Translate an order snapshot into a checkout preference request."""
        items = []
        for index, item in enumerate(order.items or []):
            title = item.get("title") or item.get("name") or f"Product {index + 1}"
            items.append(
                {
                    "id": str(item.get("product_id", f"item-{index}")),
                    "title": title,
                    "description": title,
                    "quantity": int(item.get("quantity") or 1),
                    "unit_price": float(item.get("price") or 0),
                    "currency_id": settings.CURRENCY_ID,
                }
            )

        payer: dict[str, Any] = {"name": payer_name or order.customer_name}
        email = payer_email or order.customer_email
        if email:
            payer["email"] = email
        phone_digits = extract_digits(order.customer_phone or "")
        if phone_digits:
            payer["phone"] = {"area_code": phone_digits[:2], "number": phone_digits[2:]}

        return {
            "items": items,
            "payer": payer,
            "back_urls": {
                "success": f"{settings.FRONTEND_URL}/payment/success",
                "failure": f"{settings.FRONTEND_URL}/payment/failure",
                "pending": f"{settings.FRONTEND_URL}/payment/pending",
            },
            "auto_return": "approved",
            "external_reference": str(order.id),
            "notification_url": f"{settings.BACKEND_PUBLIC_URL}/api/payments/webhook",
            "statement_descriptor": settings.STATEMENT_DESCRIPTOR,
            "payment_methods": {
                "excluded_payment_methods": [],
                "excluded_payment_types": [],
                "installments": settings.MAX_INSTALLMENTS,
            },
            "shipments": {"cost": float(order.shipping or 0), "mode": "not_specified"},
        }

    async def create_preference(
        self, order: Any, payer_email: str | None = None, payer_name: str | None = None
    ) -> dict[str, Any]:
        """
        Create a Checkout Pro preference for an order.

        Returns:
            dict with preference_id, init_point and sandbox_init_point.

        Raises:
            PaymentGatewayError (or a subclass) on any failure.
        """
        payload = self.build_preference_payload(order, payer_email, payer_name)
        logger.info("mercadopago_create_preference", order_id=order.id, items=len(payload["items"]))

        response = await self._request(
            "POST",
            "/checkout/preferences",
            json=payload,
            headers={"X-Idempotency-Key": str(uuid.uuid4())},
        )
        data = response.json()
        logger.info("mercadopago_preference_created", order_id=order.id, preference_id=data.get("id"))

        return {
            "preference_id": data.get("id"),
            "init_point": data.get("init_point"),
            "sandbox_init_point": data.get("sandbox_init_point"),
        }

    async def get_payment(self, payment_id: str) -> dict[str, Any]:
        """
        Get payment details by ID.

        Used to verify payment status after receiving a webhook notification;
        the webhook body itself only carries the id.
        """
        logger.info("mercadopago_get_payment", gateway_payment_id=payment_id)
        response = await self._request("GET", f"/v1/payments/{payment_id}")
        data = response.json()
        logger.info("mercadopago_payment_fetched", gateway_payment_id=payment_id, status=data.get("status"))
        return data

    async def refund_payment(self, payment_id: str, amount: float | None = None) -> dict[str, Any]:
        """Refund a payment. Without an amount the full payment is refunded."""
        body = {"amount": amount} if amount is not None else {}
        logger.info("mercadopago_refund", gateway_payment_id=payment_id, amount=amount)
        response = await self._request(
            "POST",
            f"/v1/payments/{payment_id}/refunds",
            json=body,
            headers={"X-Idempotency-Key": str(uuid.uuid4())},
        )
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message") or response.text
    except ValueError:
        return response.text or f"HTTP {response.status_code}"


async def get_payment_gateway():
    """FastAPI dependency yielding an open gateway client."""
    async with MercadoPagoClient() as client:
        yield client
