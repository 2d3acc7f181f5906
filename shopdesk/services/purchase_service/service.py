import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.services.digital_file_service.repository import DigitalFileRepository
from shopdesk.services.product_service.repository import ProductRepository
from shopdesk.shared.errors import AppError

from .models import PurchaseHistory
from .repository import PurchaseRepository

logger = structlog.get_logger(__name__)


def normalize_email(email: str | None) -> str:
    normalized = (email or "").strip().lower()
    if not normalized:
        raise AppError("Email is required")
    return normalized


async def record_order_purchases(db: AsyncSession, order, fallback_email: str | None = None) -> list[PurchaseHistory]:
    """
    Stage one purchase row per ordered product, skipping products already
    recorded for this order. Runs inside the caller's transaction.
    """
    email = (order.customer_email or fallback_email or "").strip().lower()
    if not email:
        logger.warning("purchase_history_skipped_no_email", order_id=order.id)
        return []

    # One row per product; repeated lines for the same product add up
    lines: dict[int, dict] = {}
    for item in order.items or []:
        product_id = int(item["product_id"])
        line = lines.setdefault(product_id, {"title": item.get("title"), "price_paid": 0.0})
        line["price_paid"] += float(item.get("price") or 0) * int(item.get("quantity") or 1)

    created: list[PurchaseHistory] = []
    for product_id, line in lines.items():
        if await PurchaseRepository.exists_for_order_item(db, order.id, product_id):
            continue

        purchase = PurchaseHistory(
            order_id=order.id,
            customer_email=email,
            customer_name=order.customer_name,
            product_id=product_id,
            product_title=line["title"] or f"Product {product_id}",
            price_paid=round(line["price_paid"], 2),
        )
        db.add(purchase)
        created.append(purchase)

    if created:
        await db.flush()
    logger.info("purchase_history_recorded", order_id=order.id, created=len(created))
    return created


class PurchaseService:

    @staticmethod
    async def my_products(db: AsyncSession, email: str | None) -> dict:
        email = normalize_email(email)
        purchases = await PurchaseRepository.list_by_email(db, email)

        product_ids = list(dict.fromkeys(p.product_id for p in purchases))
        products = await ProductRepository.get_products_by_ids(db, product_ids)
        files_by_product: dict[int, list] = {}
        for digital_file in await DigitalFileRepository.list_active_for_products(db, product_ids):
            files_by_product.setdefault(digital_file.product_id, []).append(digital_file)

        items = []
        for purchase in purchases:
            product = products.get(purchase.product_id)
            items.append(
                {
                    **{column: getattr(purchase, column) for column in PurchaseHistory.__table__.columns.keys()},
                    "product": {
                        "id": product.id,
                        "title": product.title,
                        "type": product.type,
                        "digital_files": files_by_product.get(product.id, []),
                    }
                    if product
                    else None,
                }
            )
        return {"email": email, "purchases": items, "total_purchases": len(items)}

    @staticmethod
    async def verify(db: AsyncSession, email: str | None, product_id: int) -> dict:
        email = normalize_email(email)
        purchase = await PurchaseRepository.find_for_product(db, email, product_id)
        return {"has_purchased": purchase is not None, "purchase": purchase}
