from typing import List, Optional

from pydantic import Field

from schemas.common import CamelModel, Money

# Request schema for adding an item to the cart
class CartAddItem(CamelModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(1, ge=1)

# Request schema for updating cart item quantity; values below 1 are rejected by the service
class CartUpdateItem(CamelModel):
    quantity: int

# One anonymous line; incomplete lines are skipped during the merge
class GuestCartItem(CamelModel):
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    quantity: int = 1

class CartMergeRequest(CamelModel):
    guest_items: List[GuestCartItem] = []

# Stored cart line as returned by mutations
class CartItemOut(CamelModel):
    id: int
    cart_id: int
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    price: Money
    product_name: Optional[str] = None
    sku: Optional[str] = None

# Cart line annotated with live stock and pricing
class CartLineOut(CamelModel):
    cart_item_id: int
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    name: str
    sku: Optional[str] = None
    image: Optional[str] = None
    quantity: int
    price: Money
    subtotal: Money
    tax: Money
    savings: Money
    available: bool
    available_stock: int
    in_stock: bool
    stock_warning: bool

class TaxComponentOut(CamelModel):
    name: str
    amount: Money

class CartSummaryOut(CamelModel):
    subtotal: Money
    tax: Money
    tax_breakdown: List[TaxComponentOut]
    discount: Money
    shipping: Money
    savings: Money
    grand_total: Money

# Response schema for the entire cart
class CartOut(CamelModel):
    cart_id: Optional[int] = None
    currency: str
    items: List[CartLineOut]
    summary: CartSummaryOut
    can_checkout: bool

class SkippedLine(CamelModel):
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    reason: str

class MergedLine(CamelModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    clamped: bool

class CartMergeOut(CamelModel):
    merged: List[MergedLine]
    skipped: List[SkippedLine]
