# backend/models/order.py
import enum
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum, func
from sqlalchemy.orm import relationship
from database import Base

class OrderStatus(str, enum.Enum):
    CREATED = "created"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"

# Persist enum values ("created"), not member names
def _enum_values(enum_cls):
    return [member.value for member in enum_cls]

# Created once per checkout attempt; money columns are integer minor units
class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_number = Column(String, unique=True, nullable=False, index=True)
    currency = Column(String(3), nullable=False, default="INR")

    subtotal = Column(Integer, nullable=False, default=0)
    tax_amount = Column(Integer, nullable=False, default=0)
    shipping_amount = Column(Integer, nullable=False, default=0)
    discount_amount = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False, default=0)

    order_status = Column(Enum(OrderStatus, name="order_status", values_callable=_enum_values), nullable=False, default=OrderStatus.CREATED, index=True)
    payment_status = Column(Enum(PaymentStatus, name="payment_status", values_callable=_enum_values), nullable=False, default=PaymentStatus.PENDING)

    # Carrier platform identifiers
    carrier_checkout_id = Column(String, nullable=True)
    carrier_order_id = Column(String, unique=True, nullable=True)

    notes = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")

# Immutable snapshot of one purchased line at the moment of checkout
class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True)
    carrier_variant_id = Column(String, nullable=True)

    title = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    product_image = Column(String(500), nullable=True)

    quantity = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Integer, nullable=False, default=0)
    discount_amount = Column(Integer, nullable=False, default=0)
    weight = Column(Numeric(8, 3), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="items")
