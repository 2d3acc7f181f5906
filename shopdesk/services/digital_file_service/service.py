import posixpath
from urllib.parse import urlparse

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.product_service.models import Product, ProductType
from shopdesk.services.product_service.repository import ProductRepository
from shopdesk.services.purchase_service.repository import PurchaseRepository
from shopdesk.services.purchase_service.service import normalize_email
from shopdesk.shared.config import settings
from shopdesk.shared.errors import AppError, ForbiddenError, NotFoundError
from shopdesk.shared.observability import shopdesk_digital_downloads_total

from .models import DigitalFile
from .repository import DigitalFileRepository
from .schemas import DigitalFileCreate, DigitalFileUpdate

logger = structlog.get_logger(__name__)


def _extension(value: str | None) -> str:
    if not value:
        return ""
    return posixpath.splitext(urlparse(value).path)[1].lower()


def is_allowed_file(digital_file: DigitalFile) -> bool:
    """A file is deliverable when its MIME type or its extension is allow-listed."""
    file_type = (digital_file.file_type or "").strip().lower()
    if file_type and file_type in settings.ALLOWED_DIGITAL_FILE_TYPES:
        return True
    extensions = {_extension(digital_file.file_url), _extension(digital_file.name)}
    return any(ext and ext in settings.ALLOWED_DIGITAL_FILE_EXTENSIONS for ext in extensions)


class DigitalFileService:

    @staticmethod
    async def _get_product(db: AsyncSession, product_id: int) -> Product:
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    @staticmethod
    async def download(db: AsyncSession, product_id: int, email: str | None) -> dict:
        email = normalize_email(email)
        try:
            product = await DigitalFileService._get_product(db, product_id)
        except NotFoundError:
            shopdesk_digital_downloads_total.labels(result="not_found").inc()
            raise

        purchase = await PurchaseRepository.find_for_product(db, email, product_id)
        if not purchase:
            shopdesk_digital_downloads_total.labels(result="forbidden").inc()
            logger.warning("download_denied", product_id=product_id, email=email)
            raise ForbiddenError("No purchase found for this product and email")

        files = []
        if product.type == ProductType.DIGITAL:
            active = await DigitalFileRepository.list_active_for_products(db, [product_id])
            files = [f for f in active if is_allowed_file(f)]
        if not files:
            shopdesk_digital_downloads_total.labels(result="not_found").inc()
            raise NotFoundError("No digital files available for this product")

        await DigitalFileRepository.increment_download_counts(db, [f.id for f in files])
        shopdesk_digital_downloads_total.labels(result="granted").inc()
        logger.info("download_granted", product_id=product_id, purchase_id=purchase.id, files=len(files))

        return {
            "product": product,
            "purchase": purchase,
            "files": [
                {
                    "id": f.id,
                    "name": f.name,
                    "description": f.description,
                    "file_size": f.file_size,
                    "file_type": f.file_type,
                    "download_url": f.file_url,
                }
                for f in files
            ],
        }

    @staticmethod
    async def check_access(db: AsyncSession, product_id: int, email: str | None) -> dict:
        email = normalize_email(email)
        purchase = await PurchaseRepository.find_for_product(db, email, product_id)
        return {"has_access": purchase is not None, "purchase": purchase}

    @staticmethod
    async def create_file(db: AsyncSession, product_id: int, data: DigitalFileCreate) -> DigitalFile:
        product = await DigitalFileService._get_product(db, product_id)
        if product.type != ProductType.DIGITAL:
            raise AppError("Only digital products can have files")
        digital_file = DigitalFile(
            product_id=product_id,
            name=data.name,
            description=data.description,
            file_url=str(data.file_url),
            file_size=data.file_size,
            file_type=data.file_type,
        )
        digital_file = await DigitalFileRepository.create(db, digital_file)
        logger.info("digital_file_created", product_id=product_id, file_id=digital_file.id)
        return digital_file

    @staticmethod
    async def list_files(db: AsyncSession, product_id: int) -> list[DigitalFile]:
        await DigitalFileService._get_product(db, product_id)
        return await DigitalFileRepository.list_for_product(db, product_id)

    @staticmethod
    async def _get_file(db: AsyncSession, file_id: int) -> DigitalFile:
        digital_file = await DigitalFileRepository.get(db, file_id)
        if not digital_file:
            raise NotFoundError("File not found")
        return digital_file

    @staticmethod
    async def update_file(db: AsyncSession, file_id: int, data: DigitalFileUpdate) -> DigitalFile:
        digital_file = await DigitalFileService._get_file(db, file_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(digital_file, field, value)
        return await DigitalFileRepository.save(db, digital_file)

    @staticmethod
    async def delete_file(db: AsyncSession, file_id: int) -> dict:
        digital_file = await DigitalFileService._get_file(db, file_id)
        await DigitalFileRepository.delete(db, digital_file)
        logger.info("digital_file_deleted", file_id=file_id)
        return {"message": "File deleted"}

    @staticmethod
    async def stats(db: AsyncSession) -> dict:
        return await DigitalFileRepository.stats(db)
