"""Inventory ledger: the only code path allowed to move ``products.stock``.

Both operations are single conditional UPDATE statements committed on their
own, so the database row is the serialization point for concurrent orders.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.errors import InsufficientStock, NotFound, ValidationError
from storefront.models import Product

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog fields copied onto an order line at reservation time."""

    product_id: str
    name: str
    price: int
    image: str


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a positive integer")


def reserve(db: Session, product_id: str, quantity: int) -> ProductSnapshot:
    _check_quantity(quantity)

    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .returning(Product.name, Product.price, Product.image)
        .execution_options(synchronize_session=False)
    )
    row = db.execute(stmt).first()
    db.commit()

    if row is None:
        exists = db.execute(select(Product.id).where(Product.id == product_id)).first()
        if exists is None:
            raise NotFound(f"Product {product_id} not found")
        logger.info("stock_insufficient", product_id=product_id, requested=quantity)
        raise InsufficientStock(f"Insufficient stock for product {product_id}")

    logger.debug("stock_reserved", product_id=product_id, quantity=quantity)
    return ProductSnapshot(
        product_id=product_id,
        name=row.name,
        price=row.price,
        image=row.image or "",
    )


def release(db: Session, product_id: str, quantity: int) -> None:
    """Give back ``quantity`` units taken by an earlier successful reserve."""
    _check_quantity(quantity)

    result = db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount == 0:
        logger.warning("release_product_missing", product_id=product_id, quantity=quantity)
        return
    logger.debug("stock_released", product_id=product_id, quantity=quantity)
