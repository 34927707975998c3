# backend/services/order_service.py
import logging
import random
import time
from datetime import datetime, timezone
from typing import Dict, Set

from sqlalchemy.orm import Session

from models.order import Order, OrderStatus, PaymentStatus
from models.users import User
from repos.order_repo import OrderRepo
from services import catalog_service
from utils.errors import Conflict, NotFound

logger = logging.getLogger(__name__)

# Forward chain created -> confirmed -> processing -> shipped -> delivered;
# cancelled and refunded are reachable from every non-terminal state.
ORDER_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.CREATED: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}


def generate_order_number(now_ms: int = None, rng=random) -> str:
    # ORD-<epoch_ms>-<3 random digits>; uniqueness is enforced by the index
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"ORD-{now_ms}-{rng.randint(0, 999):03d}"


def can_transition_order(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ORDER_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, new: PaymentStatus) -> bool:
    return new in PAYMENT_TRANSITIONS[current]


class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)

    def get_order(self, order_id: int, user: User) -> Order:
        order = self.repo.get_order(order_id)
        if order is None or (order.user_id != user.id and not user.is_admin):
            raise NotFound("Order not found")
        return order

    def list_orders(self, user: User, page: int = 1, page_size: int = 10):
        return self.repo.list_for_user(user.id, page, page_size)

    def transition_order_status(self, order_id: int, new_status: OrderStatus) -> Order:
        order = self.repo.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")

        old_status = order.order_status
        if not can_transition_order(old_status, new_status):
            raise Conflict(f"Cannot change order status from {old_status.value} to {new_status.value}")

        now = datetime.now(timezone.utc)
        try:
            if new_status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED) and order.shipped_at is None:
                # Goods never left the warehouse, give the reservation back
                for item in order.items:
                    if item.variant_id is not None:
                        catalog_service.release_variant_stock(
                            self.db, item.variant_id, item.quantity, reason=f"{new_status.value} {order.order_number}"
                        )
            if new_status == OrderStatus.SHIPPED:
                order.shipped_at = now
            elif new_status == OrderStatus.DELIVERED:
                order.delivered_at = now
            elif new_status == OrderStatus.CANCELLED:
                order.cancelled_at = now

            order.order_status = new_status
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Order %s status %s -> %s", order.order_number, old_status.value, new_status.value)
        self.db.refresh(order)
        return order

    def transition_payment_status(self, order_id: int, new_status: PaymentStatus) -> Order:
        order = self.repo.get_order(order_id)
        if order is None:
            raise NotFound("Order not found")

        old_status = order.payment_status
        if not can_transition_payment(old_status, new_status):
            raise Conflict(f"Cannot change payment status from {old_status.value} to {new_status.value}")

        try:
            order.payment_status = new_status
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Order %s payment %s -> %s", order.order_number, old_status.value, new_status.value)
        self.db.refresh(order)
        return order
