from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl

from shopdesk.services.product_service.models import ProductType
from shopdesk.services.purchase_service.schemas import PurchaseResponse


class DigitalFileCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    file_url: HttpUrl
    file_size: Optional[int] = Field(default=None, ge=0)
    file_type: Optional[str] = Field(default=None, max_length=128)


class DigitalFileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    active: Optional[bool] = None


class DigitalFileResponse(BaseModel):
    id: int
    product_id: int
    name: str
    description: Optional[str] = None
    file_url: str
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    active: bool
    download_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DownloadableFile(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    download_url: str


class ProductSummary(BaseModel):
    id: int
    title: str
    type: ProductType

    class Config:
        from_attributes = True


class DownloadResponse(BaseModel):
    product: ProductSummary
    purchase: PurchaseResponse
    files: List[DownloadableFile]


class AccessCheckResponse(BaseModel):
    has_access: bool
    purchase: Optional[PurchaseResponse] = None


class DownloadStatsResponse(BaseModel):
    total_files: int
    total_downloads: int
    products_with_files: int


class MessageResponse(BaseModel):
    message: str
