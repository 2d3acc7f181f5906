import enum

from sqlalchemy import JSON, Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text

from shopdesk.shared.config import Base, utcnow


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


# Orders in these states do not count towards revenue
NON_REVENUE_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)

# Orders that count as money a customer actually spent
SPENDING_STATUSES = (OrderStatus.PAID, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=True, index=True)
    customer_phone = Column(String(32), nullable=True)
    items = Column(JSON, nullable=False)  # [{product_id, title, price, quantity}]
    subtotal = Column(Float, nullable=False)
    shipping = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False)
    status = Column(Enum(OrderStatus, native_enum=False, length=32), nullable=False, default=OrderStatus.PENDING)
    tracking_code = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    shipping_address = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
