import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Float, Integer, String

from shopdesk.shared.config import Base, utcnow


class ProductType(str, enum.Enum):
    PHYSICAL = "PHYSICAL"
    DIGITAL = "DIGITAL"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    type = Column(Enum(ProductType, native_enum=False, length=16), nullable=False, default=ProductType.PHYSICAL)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
