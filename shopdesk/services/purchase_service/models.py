from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint

from shopdesk.shared.config import Base, utcnow


class PurchaseHistory(Base):
    __tablename__ = "purchase_history"
    __table_args__ = (UniqueConstraint("order_id", "product_id", name="uq_purchase_order_product"),)

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    customer_email = Column(String(255), nullable=False, index=True)  # stored lower-cased
    customer_name = Column(String(255), nullable=False)
    # Snapshot of the ordered item; the product may be removed from the catalog later
    product_id = Column(Integer, nullable=False, index=True)
    product_title = Column(String(255), nullable=False)
    price_paid = Column(Float, nullable=False)
    purchased_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
