# backend/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, CheckConstraint, UniqueConstraint, Index, func, text
from sqlalchemy.orm import relationship
from database import Base

# Represents the user's shopping cart, one per user, created on first mutation
class Cart(Base):
    __tablename__ = "carts" # Table name

    id = Column(Integer, primary_key=True, index=True) # Primary key
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True, nullable=False) # Foreign key to users
    created_at = Column(DateTime, server_default=func.now()) # Creation timestamp
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="cart")
    # One-to-many relationship with cart items
    items = relationship("CartItem", back_populates="cart", cascade="all, delete-orphan", order_by="CartItem.id")


# Represents a single line (product + variant + quantity) within a cart
class CartItem(Base):
    __tablename__ = "cart_items" # Table name

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), index=True, nullable=False) # Foreign key to parent cart
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False) # Foreign key to product
    variant_id = Column(Integer, ForeignKey("product_variants.id"), index=True, nullable=True)
    quantity = Column(Integer, CheckConstraint("quantity >= 1"), nullable=False, default=1)
    price = Column(Integer, nullable=False) # Unit price snapshot in minor units

    # Denormalized for display when the catalog row disappears
    product_name = Column(String, nullable=True)
    sku = Column(String, nullable=True)

    cart = relationship("Cart", back_populates="items") # Relationship back to Cart
    product = relationship("Product") # Relationship to Product
    variant = relationship("ProductVariant")

    __table_args__ = (
        # Unique constraint to prevent duplicate lines in the same cart
        UniqueConstraint("cart_id", "product_id", "variant_id", name="uq_cartitem_cart_product_variant"),
        # At most one product-level line (NULL variant) per product and cart
        Index(
            "uq_cartitem_cart_product_no_variant",
            "cart_id",
            "product_id",
            unique=True,
            sqlite_where=text("variant_id IS NULL"),
            postgresql_where=text("variant_id IS NULL"),
        ),
    )
