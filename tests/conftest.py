"""Shared fixtures: an in-memory SQLite database rebuilt for every test."""

import os

# Settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["CARRIER_API_KEY"] = "test-key"
os.environ["CARRIER_API_SECRET"] = "test-secret"
os.environ["FRONTEND_URL"] = "http://shop.test"

from decimal import Decimal

import pytest

import models  # noqa: F401
from database import Base, SessionLocal, engine
from models.product import Product, ProductVariant
from models.users import User


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user(db):
    shopper = User(email="shopper@example.com", role="customer", first_name="Asha")
    db.add(shopper)
    db.commit()
    return shopper


@pytest.fixture
def admin(db):
    staff = User(email="admin@example.com", role="admin")
    db.add(staff)
    db.commit()
    return staff


@pytest.fixture
def make_product(db):
    """Factory: one active product with a single default variant."""
    counter = {"n": 0}

    def _make(
        name="Cotton Tee",
        price=50000,
        sale_price=None,
        stock=10,
        tax_rate=Decimal("18"),
        carrier_variant_id="auto",
    ):
        counter["n"] += 1
        n = counter["n"]
        product = Product(name=name, price=price, sale_price=sale_price, stock_quantity=stock)
        db.add(product)
        db.flush()
        variant = ProductVariant(
            product_id=product.id,
            color="Black",
            size="M",
            sku=f"SKU-{n}",
            price=price,
            sale_price=sale_price,
            stock_quantity=stock,
            tax_rate=tax_rate,
            weight=Decimal("0.5"),
            is_default=True,
            carrier_variant_id=f"CV-{n}" if carrier_variant_id == "auto" else carrier_variant_id,
        )
        db.add(variant)
        db.commit()
        return product, variant

    return _make
