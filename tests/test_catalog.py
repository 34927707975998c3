"""Catalog store rules: default variant, stock adjustments, images."""

import pytest
from sqlalchemy.exc import IntegrityError

from models.product import ProductImage, ProductVariant
from models.stock import StockMovement
from services import catalog_service
from utils.errors import Conflict, NotFound


def add_variant(db, product, size, **kwargs):
    variant = ProductVariant(product_id=product.id, color="Black", size=size, price=product.price, **kwargs)
    db.add(variant)
    db.commit()
    return variant


class TestDefaultVariant:
    def test_switching_default_keeps_exactly_one(self, db, make_product):
        product, first = make_product()
        second = add_variant(db, product, "L", stock_quantity=1)

        catalog_service.set_default_variant(db, product.id, second.id)
        db.commit()

        defaults = db.query(ProductVariant).filter(
            ProductVariant.product_id == product.id, ProductVariant.is_default.is_(True)
        ).all()
        assert [v.id for v in defaults] == [second.id]

    def test_database_rejects_second_default(self, db, make_product):
        product, _ = make_product()
        with pytest.raises(IntegrityError):
            add_variant(db, product, "XL", is_default=True)
        db.rollback()

    def test_inactive_variant_cannot_become_default(self, db, make_product):
        product, first = make_product()
        second = add_variant(db, product, "L")
        catalog_service.deactivate_variant(db, second.id)
        db.commit()

        with pytest.raises(NotFound):
            catalog_service.set_default_variant(db, product.id, second.id)

    def test_deactivate_clears_default(self, db, make_product):
        _, variant = make_product()
        catalog_service.deactivate_variant(db, variant.id)
        db.commit()
        assert variant.is_active is False
        assert variant.is_default is False


class TestStock:
    def test_adjust_records_movement(self, db, admin, make_product):
        _, variant = make_product(stock=5)
        movement = catalog_service.adjust_variant_stock(db, variant.id, -2, reason="damaged", user_id=admin.id)
        db.commit()

        assert variant.stock_quantity == 3
        assert movement.type == "ADJUSTMENT"
        assert movement.qty == -2

    def test_adjust_below_zero_is_conflict(self, db, make_product):
        _, variant = make_product(stock=1)
        with pytest.raises(Conflict):
            catalog_service.adjust_variant_stock(db, variant.id, -2)
        assert db.query(StockMovement).count() == 0

    def test_reserve_is_conditional(self, db, make_product):
        _, variant = make_product(stock=2)
        catalog_service.reserve_variant_stock(db, variant.id, 2)
        with pytest.raises(Conflict) as excinfo:
            catalog_service.reserve_variant_stock(db, variant.id, 1)
        assert excinfo.value.message == "Only 0 items left in stock"

        catalog_service.release_variant_stock(db, variant.id, 2, reason="cancelled")
        db.commit()
        db.refresh(variant)
        assert variant.stock_quantity == 2


class TestImages:
    def test_variant_image_then_product_image(self, db, make_product):
        product, variant = make_product()
        assert catalog_service.resolve_image(db, product.id, variant.id) is None

        db.add(ProductImage(product_id=product.id, image_url="https://img/side.jpg"))
        db.add(ProductImage(product_id=product.id, image_url="https://img/main.jpg", is_primary=True))
        db.commit()
        assert catalog_service.resolve_image(db, product.id, variant.id) == "https://img/main.jpg"

        db.add(ProductImage(product_id=product.id, variant_id=variant.id, image_url="https://img/black.jpg"))
        db.commit()
        assert catalog_service.resolve_image(db, product.id, variant.id) == "https://img/black.jpg"
        assert catalog_service.resolve_image(db, product.id, None) == "https://img/main.jpg"
