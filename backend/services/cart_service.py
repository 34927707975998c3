# backend/services/cart_service.py
import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from config import settings
from models.cart import CartItem
from models.product import ProductVariant
from repos.cart_repo import CartRepo
from services import catalog_service
from services.pricing import PricedLine, ShippingPolicy, compute_cart_summary, unit_price
from utils.errors import Conflict, InvalidArgument, NotFound

logger = logging.getLogger(__name__)


def _field(item, name):
    # Guest lines arrive either as dicts or as parsed schema objects
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


class CartService:
    """
    Use cases of the cart: add, update, remove and merge mutate the cart,
    get_cart only reads (apart from refreshing stale price snapshots).
    Every mutating call is one transaction: commit on success, rollback on
    any error.
    """

    def __init__(
        self,
        db: Session,
        *,
        tax_policy: str = None,
        flat_tax_rate: int = None,
        shipping: ShippingPolicy = None,
        home_region: str = None,
    ):
        self.db = db
        self.repo = CartRepo(db)
        self.tax_policy = tax_policy or settings.TAX_POLICY
        self.flat_tax_rate = flat_tax_rate if flat_tax_rate is not None else settings.FLAT_TAX_RATE
        self.shipping = shipping or ShippingPolicy(settings.SHIPPING_FEE, settings.FREE_SHIPPING_THRESHOLD)
        self.home_region = (home_region or settings.HOME_REGION).upper()

    def _resolve_purchasable(self, product_id: int, variant_id: Optional[int]):
        """Return (product, variant, stock) or raise NotFound."""
        product = catalog_service.get_active_product(self.db, product_id)
        if product is None:
            raise NotFound("Product not found")

        if variant_id is None:
            return product, None, product.stock_quantity

        variant = catalog_service.get_active_variant(self.db, variant_id, product_id)
        if variant is None:
            raise NotFound("Product variant not found")
        return product, variant, variant.stock_quantity

    # ---------------- QUERY ----------------
    def get_cart(self, user_id: int, region: str = None, coupon_code: str = None) -> Dict[str, Any]:
        domestic = region is None or region.strip().upper() == self.home_region
        cart = self.repo.get_cart_by_user(user_id)
        items = self.repo.get_items(cart.id) if cart is not None else []

        lines, priced = [], []
        refreshed = 0

        for item in items:
            product, variant = item.product, item.variant
            available = (
                product is not None
                and product.is_available
                and (item.variant_id is None or (variant is not None and variant.is_active))
            )

            if not available:
                # Stays visible so the shopper can remove it
                priced.append(PricedLine(quantity=item.quantity, price=None, available=False))
                lines.append({
                    "cart_item_id": item.id,
                    "product_id": item.product_id,
                    "variant_id": item.variant_id,
                    "name": item.product_name or "Product unavailable",
                    "sku": item.sku,
                    "image": None,
                    "quantity": item.quantity,
                    "available": False,
                    "available_stock": 0,
                    "in_stock": False,
                    "stock_warning": False,
                })
                continue

            source = variant if variant is not None else product
            current_price = unit_price(source.price, source.sale_price)
            if item.price != current_price:
                logger.info(
                    "Refreshing price snapshot of cart item %s: %s -> %s", item.id, item.price, current_price
                )
                item.price = current_price
                refreshed += 1

            stock = source.stock_quantity
            stock_warning = item.quantity > stock
            priced.append(PricedLine(
                quantity=item.quantity,
                price=source.price,
                sale_price=source.sale_price,
                tax_rate=variant.tax_rate if variant is not None else None,
            ))
            lines.append({
                "cart_item_id": item.id,
                "product_id": item.product_id,
                "variant_id": item.variant_id,
                "name": product.name,
                "sku": (variant.sku if variant is not None else None) or product.sku,
                "image": catalog_service.resolve_image(self.db, item.product_id, item.variant_id),
                "quantity": item.quantity,
                "available": True,
                "available_stock": stock,
                "in_stock": not stock_warning,
                "stock_warning": stock_warning,
            })

        if refreshed:
            self.repo.commit()

        summary = compute_cart_summary(
            priced,
            shipping=self.shipping,
            tax_policy=self.tax_policy,
            flat_tax_rate=self.flat_tax_rate,
            coupon_code=coupon_code,
            domestic=domestic,
        )
        for line, amounts in zip(lines, summary.lines):
            line["price"] = amounts.unit_price
            line["subtotal"] = amounts.subtotal
            line["tax"] = amounts.tax
            line["savings"] = amounts.savings

        can_checkout = bool(lines) and summary.can_checkout and not any(l["stock_warning"] for l in lines)
        return {
            "cart_id": cart.id if cart is not None else None,
            "currency": settings.CURRENCY,
            "items": lines,
            "summary": {
                "subtotal": summary.subtotal,
                "tax": summary.tax,
                "tax_breakdown": [{"name": c.name, "amount": c.amount} for c in summary.tax_breakdown],
                "discount": summary.discount,
                "shipping": summary.shipping,
                "savings": summary.savings,
                "grand_total": summary.grand_total,
            },
            "can_checkout": can_checkout,
        }

    # ---------------- COMMANDS ----------------
    def add_item(self, user_id: int, product_id: int, variant_id: Optional[int], quantity: int) -> CartItem:
        if quantity is None or quantity < 1:
            raise InvalidArgument("Quantity must be at least 1")

        product, variant, stock = self._resolve_purchasable(product_id, variant_id)
        if quantity > stock:
            raise Conflict(f"Only {stock} item(s) available in stock")

        source = variant if variant is not None else product
        try:
            cart = self.repo.get_or_create_cart(user_id)
            item = self.repo.find_item(cart.id, product_id, variant_id)

            if item is not None:
                new_total = item.quantity + quantity
                # The whole add fails, the existing line keeps its quantity
                if new_total > stock:
                    raise Conflict(f"Cannot add more than {stock} item(s)")
                logger.info(
                    "Cart %s: product %s/%s already present, quantity %s -> %s",
                    cart.id, product_id, variant_id, item.quantity, new_total,
                )
                item.quantity = new_total
                self.db.flush()
            else:
                item = self.repo.add_item(CartItem(
                    cart_id=cart.id,
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=quantity,
                    price=unit_price(source.price, source.sale_price),
                    product_name=product.name,
                    sku=(variant.sku if variant is not None else None) or product.sku,
                ))
                logger.info("Cart %s: added product %s/%s x%s", cart.id, product_id, variant_id, quantity)

            self.repo.commit()
        except IntegrityError as e:
            # A concurrent add inserted the same line first
            self.repo.rollback()
            raise Conflict("Cart was modified concurrently, please retry") from e
        except Exception:
            self.repo.rollback()
            raise

        self.db.refresh(item)
        return item

    def update_quantity(self, user_id: int, cart_item_id: int, quantity: int) -> CartItem:
        if quantity is None or quantity < 1:
            raise InvalidArgument("Quantity must be at least 1")

        item = self.repo.get_item_for_user(cart_item_id, user_id)
        if item is None:
            raise NotFound("Cart item not found")

        if item.variant_id is not None:
            variant = (
                self.db.query(ProductVariant)
                .options(joinedload(ProductVariant.product))
                .filter(ProductVariant.id == item.variant_id)
                .first()
            )
            if variant is None or variant.product is None or variant.product.is_deleted:
                raise NotFound("Product variant not found")
            # A hidden parent takes its variants with it
            if not variant.is_active or not variant.product.is_active:
                raise Conflict("Product variant is no longer available")
            stock = variant.stock_quantity
        else:
            product = item.product
            if product is None or product.is_deleted:
                raise NotFound("Product not found")
            if not product.is_active:
                raise Conflict("Product is no longer available")
            stock = product.stock_quantity

        if quantity > stock:
            raise Conflict(f"Only {stock} item(s) available in stock")

        try:
            item.quantity = quantity
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info("Cart item %s quantity set to %s", cart_item_id, quantity)
        self.db.refresh(item)
        return item

    def remove_item(self, user_id: int, cart_item_id: int) -> int:
        item = self.repo.get_item_for_user(cart_item_id, user_id)
        if item is None:
            raise NotFound("Cart item not found")

        try:
            self.repo.delete_item(item)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info("Cart item %s removed", cart_item_id)
        return cart_item_id

    def merge_guest_cart(self, user_id: int, guest_items: Iterable) -> Dict[str, Any]:
        """Fold an anonymous cart into the user's cart.

        Best effort per line: missing, inactive or sold-out lines are skipped,
        quantities are clamped so no line ends above available stock. Cart
        creation and all upserts commit or roll back together.
        """
        guest_items = list(guest_items or [])
        merged, skipped = [], []
        if not guest_items:
            return {"merged": merged, "skipped": skipped}

        def skip(product_id, variant_id, reason):
            skipped.append({"product_id": product_id, "variant_id": variant_id, "reason": reason})

        try:
            cart = self.repo.get_or_create_cart(user_id)

            for guest in guest_items:
                product_id = _field(guest, "product_id")
                variant_id = _field(guest, "variant_id")
                requested = _field(guest, "quantity") or 0

                if product_id is None or requested < 1:
                    skip(product_id, variant_id, "invalid line")
                    continue
                try:
                    product, variant, stock = self._resolve_purchasable(product_id, variant_id)
                except NotFound as e:
                    skip(product_id, variant_id, e.message)
                    continue

                item = self.repo.find_item(cart.id, product_id, variant_id)
                already = item.quantity if item is not None else 0
                to_add = min(requested, stock - already)
                if to_add < 1:
                    skip(product_id, variant_id, "out of stock")
                    continue

                if item is not None:
                    item.quantity = already + to_add
                    self.db.flush()
                else:
                    source = variant if variant is not None else product
                    item = self.repo.add_item(CartItem(
                        cart_id=cart.id,
                        product_id=product_id,
                        variant_id=variant_id,
                        quantity=to_add,
                        price=unit_price(source.price, source.sale_price),
                        product_name=product.name,
                        sku=(variant.sku if variant is not None else None) or product.sku,
                    ))
                merged.append({
                    "product_id": product_id,
                    "variant_id": variant_id,
                    "quantity": to_add,
                    "clamped": to_add < requested,
                })

            self.repo.commit()
        except Exception:
            self.repo.rollback()
            logger.exception("Guest cart merge for user %s rolled back", user_id)
            raise

        logger.info("Merged guest cart for user %s: %d merged, %d skipped", user_id, len(merged), len(skipped))
        return {"merged": merged, "skipped": skipped}
