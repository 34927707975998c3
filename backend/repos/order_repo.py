# backend/repos/order_repo.py
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from models.order import Order, OrderItem


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def add_item(self, item: OrderItem) -> OrderItem:
        self.db.add(item)
        self.db.flush()
        return item

    def get_order(self, order_id: int) -> Optional[Order]:
        return (
            self.db.query(Order)
            .options(joinedload(Order.items))
            .filter(Order.id == order_id)
            .first()
        )

    def list_for_user(self, user_id: int, page: int, page_size: int) -> Tuple[List[Order], int]:
        query = self.db.query(Order).filter(Order.user_id == user_id)
        total = query.count()
        rows = (
            query.options(joinedload(Order.items))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return rows, total
