"""Low-stock listing and restock recommendations."""
import logging
from typing import List

from sqlalchemy.orm import Session

from quickmed.core.config import settings
from quickmed.models.product import Product

logger = logging.getLogger(__name__)


def low_stock_products(db: Session, threshold: int = None) -> List[Product]:
    threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
    return (
        db.query(Product)
        .filter(Product.total_stock < threshold)
        .order_by(Product.total_stock.asc(), Product.name.asc())
        .all()
    )


def recommended_quantity(total_stock: int) -> int:
    return max(settings.RESTOCK_TARGET - (total_stock or 0), settings.LOW_STOCK_THRESHOLD)


def restock_recommendations(products: List[Product]) -> List[dict]:
    recommendations = [
        {
            "product_id": p.id,
            "name": p.name,
            "brand": p.brand,
            "category": p.category,
            "current_stock": p.total_stock,
            "recommended_quantity": recommended_quantity(p.total_stock),
        }
        for p in products
    ]
    logger.info(f"Restock recommendations for {len(recommendations)} products")
    return recommendations
