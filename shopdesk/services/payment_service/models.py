import enum

from sqlalchemy import JSON, Column, DateTime, Enum, Float, ForeignKey, Integer, String

from shopdesk.shared.config import Base, utcnow


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, enum.Enum):
    PIX = "PIX"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BOLETO = "BOLETO"
    ACCOUNT_MONEY = "ACCOUNT_MONEY"
    OTHER = "OTHER"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    amount = Column(Float, nullable=False)
    # Provisional until the gateway reports how the customer paid
    method = Column(Enum(PaymentMethod, native_enum=False, length=32), nullable=False, default=PaymentMethod.PIX)
    status = Column(Enum(PaymentStatus, native_enum=False, length=32), nullable=False, default=PaymentStatus.PENDING)
    gateway_status = Column(String(64), nullable=True)
    preference_id = Column(String(255), nullable=True)
    gateway_payment_id = Column(String(64), unique=True, nullable=True, index=True)
    # Earlier gateway payments for this order, replaced by a retry or a new intent
    superseded_gateway_ids = Column(JSON, nullable=True)
    payer_email = Column(String(255), nullable=True)
    payer_name = Column(String(255), nullable=True)
    payer_document = Column(String(32), nullable=True)
    transaction_amount = Column(Float, nullable=True)
    net_amount = Column(Float, nullable=True)
    fee_amount = Column(Float, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    webhook_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
