import os
import random
import sys
from decimal import Decimal

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

# Database models and setup
from database import SessionLocal, init_db
from models.product import Product, ProductVariant, ProductImage
from models.users import User

# Configuration
COLORS = ["Black", "White", "Navy"]
SIZES = ["S", "M", "L"]
TAX_RATES = [Decimal("5"), Decimal("12"), Decimal("18")]
# End Configuration

CATALOG = [
    # name, category, base price in minor units
    ("Cotton Tee", "T-Shirts", 79900),
    ("Linen Shirt", "Shirts", 189900),
    ("Denim Jacket", "Jackets", 349900),
    ("Chino Shorts", "Shorts", 119900),
]


def seed_users(session):
    """Ensure a demo admin and a demo shopper exist."""
    created = 0
    for email, role in (("admin@example.com", "admin"), ("shopper@example.com", "customer")):
        if session.query(User).filter(User.email == email).first() is None:
            session.add(User(email=email, role=role, first_name=role.title()))
            created += 1
    session.flush()
    return created


def seed_catalog(session, rng=random):
    """Insert the demo catalog: every product gets a color x size variant grid."""
    products = 0
    for name, category, base_price in CATALOG:
        handle = name.lower().replace(" ", "-")
        if session.query(Product).filter(Product.handle == handle).first() is not None:
            continue

        product = Product(
            name=name,
            handle=handle,
            sku=handle.upper(),
            category=category,
            description=f"{name} from the demo catalog",
            price=base_price,
            stock_quantity=0,
        )
        session.add(product)
        session.flush()

        tax_rate = rng.choice(TAX_RATES)
        for i, (color, size) in enumerate((c, s) for c in COLORS for s in SIZES):
            # Every third variant is on sale
            sale_price = base_price - base_price // 10 if i % 3 == 0 else None
            variant = ProductVariant(
                product_id=product.id,
                color=color,
                size=size,
                sku=f"{product.sku}-{color[:3].upper()}-{size}",
                price=base_price,
                sale_price=sale_price,
                stock_quantity=rng.randint(0, 25),
                tax_rate=tax_rate,
                weight=Decimal("0.400"),
                is_default=(i == 0),
                carrier_variant_id=f"CV-{product.id}-{i + 1}",
            )
            session.add(variant)
        session.add(ProductImage(
            product_id=product.id,
            image_url=f"https://images.example.com/{handle}.jpg",
            is_primary=True,
        ))
        session.flush()
        products += 1
    return products


def populate_database():
    """Main execution function to populate database."""
    init_db()
    session = SessionLocal()
    try:
        users = seed_users(session)
        products = seed_catalog(session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    print(f"Seeded {users} user(s) and {products} product(s).")


if __name__ == "__main__":
    populate_database()
