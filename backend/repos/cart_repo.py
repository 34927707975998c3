# backend/repos/cart_repo.py
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from models.cart import Cart, CartItem


class CartRepo:
    """Data access for the Cart aggregate.

    Writes are flushed, never committed here; the calling service owns the
    transaction boundary.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_user(self, user_id: int) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.user_id == user_id).first()

    def get_or_create_cart(self, user_id: int) -> Cart:
        cart = self.get_cart_by_user(user_id)
        if cart is None:
            cart = Cart(user_id=user_id)
            self.db.add(cart)
            self.db.flush()
        return cart

    def get_items(self, cart_id: int) -> List[CartItem]:
        return (
            self.db.query(CartItem)
            .options(joinedload(CartItem.product), joinedload(CartItem.variant))
            .filter(CartItem.cart_id == cart_id)
            .order_by(CartItem.id)
            .all()
        )

    def find_item(self, cart_id: int, product_id: int, variant_id: Optional[int]) -> Optional[CartItem]:
        query = self.db.query(CartItem).filter(
            CartItem.cart_id == cart_id, CartItem.product_id == product_id
        )
        # NULL never equals NULL in SQL, match product-level lines explicitly
        if variant_id is None:
            query = query.filter(CartItem.variant_id.is_(None))
        else:
            query = query.filter(CartItem.variant_id == variant_id)
        return query.first()

    def get_item_for_user(self, item_id: int, user_id: int) -> Optional[CartItem]:
        return (
            self.db.query(CartItem)
            .join(Cart, Cart.id == CartItem.cart_id)
            .filter(CartItem.id == item_id, Cart.user_id == user_id)
            .first()
        )

    def add_item(self, item: CartItem) -> CartItem:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_item(self, item: CartItem):
        self.db.delete(item)
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
