from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from shopdesk.services.product_service.models import ProductType


class PurchaseResponse(BaseModel):
    id: int
    order_id: int
    customer_email: str
    customer_name: str
    product_id: int
    product_title: str
    price_paid: float
    purchased_at: datetime

    class Config:
        from_attributes = True


class PurchasedFile(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None

    class Config:
        from_attributes = True


class PurchasedProduct(BaseModel):
    id: int
    title: str
    type: ProductType
    digital_files: List[PurchasedFile] = []


class PurchaseWithProduct(PurchaseResponse):
    product: Optional[PurchasedProduct] = None


class MyProductsResponse(BaseModel):
    email: str
    purchases: List[PurchaseWithProduct]
    total_purchases: int


class VerifyPurchaseResponse(BaseModel):
    has_purchased: bool
    purchase: Optional[PurchaseResponse] = None
