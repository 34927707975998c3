from datetime import datetime
from typing import List, Optional

from models.order import OrderStatus, PaymentStatus
from schemas.common import CamelModel, Money


# Output schema for an individual order line item
class OrderItemOut(CamelModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    title: str
    sku: Optional[str] = None
    product_image: Optional[str] = None
    quantity: int
    price: Money
    total: Money
    tax_amount: Money
    discount_amount: Money


# Output schema representing the full order details
class OrderResponse(CamelModel):
    id: int
    order_number: str
    currency: str
    order_status: OrderStatus
    payment_status: PaymentStatus
    subtotal: Money
    tax_amount: Money
    shipping_amount: Money
    discount_amount: Money
    total_amount: Money
    carrier_checkout_id: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut]


# Schema for paginated order lists
class OrdersPage(CamelModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int


# Schema for updating order status
class OrderStatusPatch(CamelModel):
    status: OrderStatus


class PaymentStatusPatch(CamelModel):
    status: PaymentStatus
