# backend/services/wishlist_service.py
import logging
from typing import Any, Dict, Iterable

from sqlalchemy.orm import Session, joinedload

from models.wishlist import Wishlist, WishlistItem
from services import catalog_service
from services.cart_service import CartService, _field
from services.pricing import unit_price
from utils.errors import InvalidArgument, NotFound

logger = logging.getLogger(__name__)


class WishlistService:
    def __init__(self, db: Session):
        self.db = db

    def _get_or_create(self, user_id: int) -> Wishlist:
        wishlist = self.db.query(Wishlist).filter(Wishlist.user_id == user_id).first()
        if wishlist is None:
            wishlist = Wishlist(user_id=user_id)
            self.db.add(wishlist)
            self.db.flush()
        return wishlist

    def _upsert(self, wishlist: Wishlist, product_id: int, variant_id: int) -> WishlistItem:
        item = (
            self.db.query(WishlistItem)
            .filter(
                WishlistItem.wishlist_id == wishlist.id,
                WishlistItem.product_id == product_id,
                WishlistItem.variant_id == variant_id,
            )
            .first()
        )
        if item is None:
            item = WishlistItem(wishlist_id=wishlist.id, product_id=product_id, variant_id=variant_id)
            self.db.add(item)
            self.db.flush()
        return item

    def add_item(self, user_id: int, product_id: int, variant_id: int) -> WishlistItem:
        if variant_id is None:
            raise InvalidArgument("Variant is required")
        if catalog_service.get_active_variant(self.db, variant_id, product_id) is None:
            raise NotFound("Product variant not found")

        try:
            item = self._upsert(self._get_or_create(user_id), product_id, variant_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(item)
        return item

    def _get_item_for_user(self, user_id: int, item_id: int) -> WishlistItem:
        item = (
            self.db.query(WishlistItem)
            .join(Wishlist, Wishlist.id == WishlistItem.wishlist_id)
            .filter(WishlistItem.id == item_id, Wishlist.user_id == user_id)
            .first()
        )
        if item is None:
            raise NotFound("Wishlist item not found")
        return item

    def remove_item(self, user_id: int, item_id: int) -> int:
        item = self._get_item_for_user(user_id, item_id)
        self.db.delete(item)
        self.db.commit()
        return item_id

    def get_wishlist(self, user_id: int) -> Dict[str, Any]:
        wishlist = self.db.query(Wishlist).filter(Wishlist.user_id == user_id).first()
        if wishlist is None:
            return {"items": []}

        items = (
            self.db.query(WishlistItem)
            .options(joinedload(WishlistItem.product), joinedload(WishlistItem.variant))
            .filter(WishlistItem.wishlist_id == wishlist.id)
            .order_by(WishlistItem.id)
            .all()
        )
        formatted = []
        for item in items:
            product, variant = item.product, item.variant
            available = (
                product is not None and product.is_available
                and variant is not None and variant.is_active
            )
            formatted.append({
                "wishlist_item_id": item.id,
                "product_id": item.product_id,
                "variant_id": item.variant_id,
                "name": product.name if product is not None else "Product unavailable",
                "price": unit_price(variant.price, variant.sale_price) if variant is not None else 0,
                "color": variant.color if variant is not None else None,
                "size": variant.size if variant is not None else None,
                "stock": variant.stock_quantity if available else 0,
                "available": available,
                "image": catalog_service.resolve_image(self.db, item.product_id, item.variant_id),
            })
        return {"items": formatted}

    def merge_guest_wishlist(self, user_id: int, guest_items: Iterable) -> Dict[str, int]:
        guest_items = list(guest_items or [])
        merged = skipped = 0
        if not guest_items:
            return {"merged": merged, "skipped": skipped}

        try:
            wishlist = self._get_or_create(user_id)
            for guest in guest_items:
                product_id = _field(guest, "product_id")
                variant_id = _field(guest, "variant_id")
                if product_id is None or variant_id is None or catalog_service.get_active_variant(self.db, variant_id, product_id) is None:
                    skipped += 1
                    continue
                self._upsert(wishlist, product_id, variant_id)
                merged += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Merged guest wishlist for user %s: %d merged, %d skipped", user_id, merged, skipped)
        return {"merged": merged, "skipped": skipped}

    def move_to_cart(self, user_id: int, item_id: int):
        item = self._get_item_for_user(user_id, item_id)
        product_id, variant_id = item.product_id, item.variant_id

        # Cart add commits on its own; the wishlist row goes only once it succeeded
        cart_item = CartService(self.db).add_item(user_id, product_id, variant_id, 1)
        item = self._get_item_for_user(user_id, item_id)
        self.db.delete(item)
        self.db.commit()
        logger.info("Moved wishlist item %s to cart for user %s", item_id, user_id)
        return cart_item
