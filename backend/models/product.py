# backend/models/product.py
from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric, ForeignKey, DateTime,
    CheckConstraint, UniqueConstraint, Index, func, text,
)
from sqlalchemy.orm import relationship
from database import Base

# Product
# Catalog entry shown in the shop. Prices are integer minor currency units.
# Purchasable SKUs live in ProductVariant; product-level price and stock are
# only used for lines that carry no variant.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    handle = Column(String, unique=True, nullable=True, index=True)
    sku = Column(String, unique=True, nullable=True, index=True)
    description = Column(String)
    category = Column(String)

    price = Column(Integer, CheckConstraint("price >= 0"), nullable=False)
    sale_price = Column(Integer, nullable=True)
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)

    carrier_product_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")
    images = relationship("ProductImage", back_populates="product", cascade="all, delete-orphan")

    @property
    def is_available(self) -> bool:
        return bool(self.is_active) and not self.is_deleted


# One purchasable SKU (color/size combination) of a product
class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    color = Column(String, nullable=True)
    size = Column(String, nullable=True)
    sku = Column(String, unique=True, nullable=True, index=True)

    price = Column(Integer, CheckConstraint("price >= 0"), nullable=False)
    sale_price = Column(Integer, nullable=True)
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), CheckConstraint("tax_rate >= 0"), nullable=True)
    weight = Column(Numeric(8, 3), nullable=True)  # kg

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_default = Column(Boolean, nullable=False, default=False, index=True)

    # Identifier of this SKU on the carrier platform, set by catalog sync
    carrier_variant_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="variants")
    images = relationship("ProductImage", back_populates="variant")

    __table_args__ = (
        UniqueConstraint("product_id", "color", "size", name="uq_variant_product_color_size"),
        # At most one default variant per product
        Index(
            "uq_variant_one_default",
            "product_id",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default"),
        ),
    )


# Image stored in the blob store; variant_id NULL means a product-level image
class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True, index=True)
    image_url = Column(String(500), nullable=False)
    public_id = Column(String, nullable=True, index=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="images")
    variant = relationship("ProductVariant", back_populates="images")
