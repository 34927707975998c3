from typing import List, Optional

from schemas.common import CamelModel, Money


class WishlistAddItem(CamelModel):
    product_id: int
    variant_id: int


class GuestWishlistItem(CamelModel):
    product_id: Optional[int] = None
    variant_id: Optional[int] = None


class WishlistMergeRequest(CamelModel):
    guest_items: List[GuestWishlistItem] = []


class WishlistItemOut(CamelModel):
    id: int
    product_id: int
    variant_id: int


class WishlistLineOut(CamelModel):
    wishlist_item_id: int
    product_id: int
    variant_id: int
    name: str
    price: Money
    color: Optional[str] = None
    size: Optional[str] = None
    stock: int
    available: bool
    image: Optional[str] = None


class WishlistOut(CamelModel):
    items: List[WishlistLineOut]


class WishlistMergeOut(CamelModel):
    merged: int
    skipped: int
