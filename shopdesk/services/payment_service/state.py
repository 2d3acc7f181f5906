"""
Payment status vocabulary.

Translates the gateway's raw status and payment type strings into the
closed enums used locally, and defines which status changes a webhook
is allowed to apply.
"""
from types import MappingProxyType

from .models import PaymentMethod, PaymentStatus

GATEWAY_STATUS_MAP = MappingProxyType(
    {
        "pending": PaymentStatus.PENDING,
        "approved": PaymentStatus.APPROVED,
        "authorized": PaymentStatus.APPROVED,
        "in_process": PaymentStatus.PROCESSING,
        "in_mediation": PaymentStatus.PROCESSING,
        "rejected": PaymentStatus.REJECTED,
        "cancelled": PaymentStatus.CANCELLED,
        "refunded": PaymentStatus.REFUNDED,
        "charged_back": PaymentStatus.REFUNDED,
    }
)

PAYMENT_TYPE_MAP = MappingProxyType(
    {
        "credit_card": PaymentMethod.CREDIT_CARD,
        "debit_card": PaymentMethod.DEBIT_CARD,
        "prepaid_card": PaymentMethod.DEBIT_CARD,
        "ticket": PaymentMethod.BOLETO,
        "account_money": PaymentMethod.ACCOUNT_MONEY,
        "bank_transfer": PaymentMethod.PIX,
    }
)

ALLOWED_TRANSITIONS = MappingProxyType(
    {
        PaymentStatus.PENDING: frozenset(
            {
                PaymentStatus.PENDING,
                PaymentStatus.PROCESSING,
                PaymentStatus.APPROVED,
                PaymentStatus.REJECTED,
                PaymentStatus.CANCELLED,
            }
        ),
        PaymentStatus.PROCESSING: frozenset(
            {
                PaymentStatus.PROCESSING,
                PaymentStatus.APPROVED,
                PaymentStatus.REJECTED,
                PaymentStatus.CANCELLED,
            }
        ),
        PaymentStatus.APPROVED: frozenset({PaymentStatus.REFUNDED}),
        PaymentStatus.REJECTED: frozenset(),
        PaymentStatus.CANCELLED: frozenset(),
        PaymentStatus.REFUNDED: frozenset(),
    }
)


def map_gateway_status(gateway_status: str | None) -> PaymentStatus:
    """Unknown or missing gateway statuses are treated as still pending."""
    return GATEWAY_STATUS_MAP.get((gateway_status or "").lower(), PaymentStatus.PENDING)


def map_payment_method(payment_method_id: str | None, payment_type_id: str | None) -> PaymentMethod:
    if (payment_method_id or "").lower() == "pix":
        return PaymentMethod.PIX
    if (payment_method_id or "").lower() in ("bolbradesco", "pec"):
        return PaymentMethod.BOLETO
    return PAYMENT_TYPE_MAP.get((payment_type_id or "").lower(), PaymentMethod.OTHER)


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def is_terminal(status: PaymentStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]
