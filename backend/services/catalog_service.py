# backend/services/catalog_service.py
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from models.product import Product, ProductVariant, ProductImage
from models.stock import StockMovement
from utils.errors import Conflict, NotFound

logger = logging.getLogger(__name__)


def get_active_product(db: Session, product_id: int) -> Optional[Product]:
    return (
        db.query(Product)
        .filter(Product.id == product_id, Product.is_active.is_(True), Product.is_deleted.is_(False))
        .first()
    )


def get_active_variant(db: Session, variant_id: int, product_id: int = None) -> Optional[ProductVariant]:
    query = db.query(ProductVariant).filter(
        ProductVariant.id == variant_id, ProductVariant.is_active.is_(True)
    )
    if product_id is not None:
        query = query.filter(ProductVariant.product_id == product_id)
    return query.first()


def set_default_variant(db: Session, product_id: int, variant_id: int) -> ProductVariant:
    """Make ``variant_id`` the only default variant of its product."""
    variant = get_active_variant(db, variant_id, product_id)
    if variant is None:
        raise NotFound("Product variant not found")

    # Clear the old default first so the partial unique index never sees two
    db.execute(
        update(ProductVariant)
        .where(ProductVariant.product_id == product_id, ProductVariant.id != variant_id)
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )
    db.flush()
    variant.is_default = True
    db.flush()
    return variant


def deactivate_variant(db: Session, variant_id: int) -> ProductVariant:
    # Soft delete; historical order items keep pointing at the row
    variant = db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()
    if variant is None:
        raise NotFound("Product variant not found")
    variant.is_active = False
    variant.is_default = False
    db.flush()
    return variant


def adjust_variant_stock(db: Session, variant_id: int, delta: int, reason: str = None, user_id: int = None) -> StockMovement:
    variant = db.query(ProductVariant).filter(ProductVariant.id == variant_id).with_for_update().first()
    if variant is None:
        raise NotFound("Product variant not found")

    new_quantity = variant.stock_quantity + delta
    if new_quantity < 0:
        raise Conflict("Stock quantity cannot go below zero")

    variant.stock_quantity = new_quantity
    movement = StockMovement(variant_id=variant.id, user_id=user_id, qty=delta, reason=reason, type="ADJUSTMENT")
    db.add(movement)
    db.flush()
    logger.info("Stock adjusted: variant=%s delta=%s new=%s", variant_id, delta, new_quantity)
    return movement


def reserve_variant_stock(db: Session, variant_id: int, quantity: int) -> None:
    """Atomically take ``quantity`` units, failing if fewer are left.

    The decrement and the sufficiency check are one conditional UPDATE, so two
    concurrent checkouts cannot both take the last unit.
    """
    result = db.execute(
        update(ProductVariant)
        .where(ProductVariant.id == variant_id, ProductVariant.stock_quantity >= quantity)
        .values(stock_quantity=ProductVariant.stock_quantity - quantity)
    )
    if result.rowcount == 0:
        left = db.query(ProductVariant.stock_quantity).filter(ProductVariant.id == variant_id).scalar() or 0
        raise Conflict(f"Only {left} items left in stock")
    db.add(StockMovement(variant_id=variant_id, qty=-quantity, type="RESERVATION", reason="checkout"))
    db.flush()


def release_variant_stock(db: Session, variant_id: int, quantity: int, reason: str = None) -> None:
    db.execute(
        update(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .values(stock_quantity=ProductVariant.stock_quantity + quantity)
    )
    db.add(StockMovement(variant_id=variant_id, qty=quantity, type="RELEASE", reason=reason))
    db.flush()


def resolve_image(db: Session, product_id: int, variant_id: Optional[int]) -> Optional[str]:
    # Variant image first, then the product's own image (primary preferred)
    if variant_id is not None:
        image = (
            db.query(ProductImage)
            .filter(ProductImage.product_id == product_id, ProductImage.variant_id == variant_id)
            .order_by(ProductImage.is_primary.desc(), ProductImage.id)
            .first()
        )
        if image is not None:
            return image.image_url

    image = (
        db.query(ProductImage)
        .filter(ProductImage.product_id == product_id, ProductImage.variant_id.is_(None))
        .order_by(ProductImage.is_primary.desc(), ProductImage.id)
        .first()
    )
    return image.image_url if image is not None else None
