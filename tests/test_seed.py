import random

from models.product import Product, ProductVariant
from models.users import User
from populate_db import seed_catalog, seed_users


def test_seed_is_idempotent(db):
    assert seed_users(db) == 2
    assert seed_catalog(db, rng=random.Random(1)) == 4
    db.commit()

    assert seed_users(db) == 0
    assert seed_catalog(db, rng=random.Random(1)) == 0
    assert db.query(User).count() == 2
    assert db.query(Product).count() == 4


def test_seeded_products_have_one_default_variant(db):
    seed_catalog(db, rng=random.Random(2))
    db.commit()
    for product in db.query(Product).all():
        defaults = [v for v in product.variants if v.is_default]
        assert len(defaults) == 1
    assert db.query(ProductVariant).filter(ProductVariant.carrier_variant_id.is_(None)).count() == 0
