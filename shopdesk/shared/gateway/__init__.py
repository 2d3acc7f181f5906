from .mercadopago import (
    MercadoPagoClient,
    PaymentGatewayAuthError,
    PaymentGatewayConnectionError,
    PaymentGatewayError,
    PaymentGatewayNotFoundError,
    PaymentGatewayValidationError,
    get_payment_gateway,
)

__all__ = [
    "MercadoPagoClient",
    "PaymentGatewayError",
    "PaymentGatewayAuthError",
    "PaymentGatewayConnectionError",
    "PaymentGatewayNotFoundError",
    "PaymentGatewayValidationError",
    "get_payment_gateway",
]
