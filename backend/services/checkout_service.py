# backend/services/checkout_service.py
import logging
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from starlette.concurrency import run_in_threadpool

from config import settings
from models.order import Order, OrderItem, OrderStatus, PaymentStatus
from models.product import ProductVariant
from models.users import User
from repos.order_repo import OrderRepo
from services import catalog_service
from services.cart_service import CartService
from services.order_service import generate_order_number
from services.pricing import PricedLine, price_line
from utils.carrier_client import CarrierClient
from utils.errors import Conflict, InvalidArgument, NotFound

logger = logging.getLogger(__name__)


class CheckoutService:
    """Turns the user's cart into an Order and a carrier checkout session.

    Order row, order items, stock reservations and the carrier session id are
    written in one transaction that is committed only after the carrier has
    answered. Any failure rolls everything back, so a failed attempt leaves
    no order behind and the caller can simply retry.
    """

    def __init__(self, db: Session, carrier: CarrierClient, *, frontend_url: str = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.carrier = carrier
        self.frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")

    def _load_variant(self, variant_id: int) -> ProductVariant:
        variant = (
            self.db.query(ProductVariant)
            .options(joinedload(ProductVariant.product))
            .filter(ProductVariant.id == variant_id)
            .first()
        )
        if variant is None or not variant.is_active or variant.product is None or not variant.product.is_available:
            raise NotFound("Product variant not found")
        return variant

    def _stage_order(self, user_id: int, order_number: str):
        """Write the order, its items and the stock reservations; flush only."""
        items = CartService(self.db).get_cart(user_id)["items"]
        if not items:
            raise InvalidArgument("Cart items are required")
        logger.info("Checkout %s started for user %s with %d line(s)", order_number, user_id, len(items))

        order = self.repo.add_order(Order(
            user_id=user_id,
            order_number=order_number,
            currency=settings.CURRENCY,
            order_status=OrderStatus.CREATED,
            payment_status=PaymentStatus.PENDING,
            subtotal=0,
            tax_amount=0,
            discount_amount=0,
            total_amount=0,
        ))

        subtotal = tax_total = discount_total = 0
        carrier_items = []

        # Serial on purpose: every write shares the one session
        for line in items:
            quantity = line["quantity"]
            if not line["variant_id"] or not quantity:
                raise InvalidArgument("Invalid cart item")

            variant = self._load_variant(line["variant_id"])
            if not variant.carrier_variant_id:
                raise InvalidArgument("Variant not synced with external carrier")
            if variant.stock_quantity < quantity:
                raise Conflict(f"Only {variant.stock_quantity} items left in stock")

            catalog_service.reserve_variant_stock(self.db, variant.id, quantity)

            amounts = price_line(PricedLine(
                quantity=quantity,
                price=variant.price,
                sale_price=variant.sale_price,
                tax_rate=variant.tax_rate,
            ))
            self.repo.add_item(OrderItem(
                order_id=order.id,
                product_id=variant.product_id,
                variant_id=variant.id,
                carrier_variant_id=variant.carrier_variant_id,
                title=line["name"],
                sku=variant.sku,
                product_image=catalog_service.resolve_image(self.db, variant.product_id, variant.id),
                quantity=quantity,
                price=amounts.unit_price,
                total=amounts.subtotal,
                tax_rate=variant.tax_rate or 0,
                tax_amount=amounts.tax,
                discount_amount=amounts.savings,
                weight=variant.weight or 0,
            ))

            subtotal += amounts.subtotal
            tax_total += amounts.tax
            discount_total += amounts.savings
            carrier_items.append({"carrier_variant_id": variant.carrier_variant_id, "quantity": quantity})

        # Savings are already inside subtotal, they are recorded, not subtracted
        order.subtotal = subtotal
        order.tax_amount = tax_total
        order.discount_amount = discount_total
        order.total_amount = subtotal + tax_total
        self.db.flush()
        return order.id, carrier_items

    def _commit_order(self, order_id: int, checkout_session_id: str):
        order = self.repo.get_order(order_id)
        order.carrier_checkout_id = checkout_session_id
        self.db.commit()

    async def create_checkout_session(self, user: User) -> Dict[str, Any]:
        user_id = user.id
        order_number = generate_order_number()

        # Blocking session work runs in the threadpool, only the carrier call stays on the loop
        try:
            order_id, carrier_items = await run_in_threadpool(self._stage_order, user_id, order_number)

            redirect_url = f"{self.frontend_url}/checkout-success?orderId={order_id}"
            session = await self.carrier.create_checkout_session(carrier_items, redirect_url, user)

            await run_in_threadpool(self._commit_order, order_id, session["checkout_session_id"])
        except IntegrityError as e:
            await run_in_threadpool(self.db.rollback)
            logger.error("Checkout %s aborted on a constraint violation: %s", order_number, e)
            raise Conflict("Order could not be created, please retry") from e
        except Exception as e:
            await run_in_threadpool(self.db.rollback)
            logger.warning("Checkout %s aborted: %s", order_number, e)
            raise

        logger.info("Checkout %s committed as order %s", order_number, order_id)
        return {
            "checkout_session_id": session["checkout_session_id"],
            "token": session["token"],
            "expires_at": session["expires_at"],
            "order_id": order_id,
            "order_number": order_number,
        }
