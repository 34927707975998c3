"""Checkout orchestration: order snapshot, stock reservation, carrier hand-off."""

import threading

import httpx
import pytest

from models.order import Order, OrderItem, OrderStatus, PaymentStatus
from models.product import ProductVariant
from models.stock import StockMovement
from services.cart_service import CartService
from services.checkout_service import CheckoutService
from utils.carrier_client import CarrierClient
from utils.errors import Conflict, DependencyFailure, InvalidArgument, NotFound

pytestmark = pytest.mark.anyio


class FakeCarrier:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def create_checkout_session(self, items, redirect_url, buyer=None):
        self.calls.append({"items": items, "redirect_url": redirect_url, "buyer": buyer})
        if self.error is not None:
            raise self.error
        return {"checkout_session_id": "chk_42", "token": "tok_42", "expires_at": "2026-10-18T12:00:00Z"}


def fill_cart(db, user, lines):
    service = CartService(db)
    for product, variant, quantity in lines:
        service.add_item(user.id, product.id, variant.id, quantity)


async def test_creates_order_and_session(db, user, make_product):
    tee, tee_v = make_product(name="Tee", price=50000, stock=5)
    shirt, shirt_v = make_product(name="Shirt", price=100000, sale_price=80000, stock=3)
    fill_cart(db, user, [(tee, tee_v, 2), (shirt, shirt_v, 1)])
    carrier = FakeCarrier()

    result = await CheckoutService(db, carrier, frontend_url="http://shop.test/").create_checkout_session(user)

    assert result["checkout_session_id"] == "chk_42"
    assert result["token"] == "tok_42"
    assert result["order_number"].startswith("ORD-")

    order = db.query(Order).one()
    assert order.id == result["order_id"]
    assert order.order_status == OrderStatus.CREATED
    assert order.payment_status == PaymentStatus.PENDING
    assert order.carrier_checkout_id == "chk_42"
    assert order.subtotal == 2 * 50000 + 80000
    assert order.tax_amount == 18000 + 14400
    assert order.discount_amount == 20000
    assert order.total_amount == order.subtotal + order.tax_amount

    items = db.query(OrderItem).order_by(OrderItem.id).all()
    assert [(i.title, i.quantity, i.price, i.total) for i in items] == [
        ("Tee", 2, 50000, 100000),
        ("Shirt", 1, 80000, 80000),
    ]
    assert items[0].carrier_variant_id == tee_v.carrier_variant_id

    call = carrier.calls[0]
    assert call["items"] == [
        {"carrier_variant_id": tee_v.carrier_variant_id, "quantity": 2},
        {"carrier_variant_id": shirt_v.carrier_variant_id, "quantity": 1},
    ]
    assert call["redirect_url"] == f"http://shop.test/checkout-success?orderId={order.id}"

    # Stock is reserved as part of the same transaction
    db.expire_all()
    assert db.get(ProductVariant, tee_v.id).stock_quantity == 3
    assert db.get(ProductVariant, shirt_v.id).stock_quantity == 2
    assert db.query(StockMovement).filter(StockMovement.type == "RESERVATION").count() == 2


async def test_empty_cart(db, user):
    with pytest.raises(InvalidArgument):
        await CheckoutService(db, FakeCarrier()).create_checkout_session(user)


async def test_insufficient_stock_leaves_no_order(db, user, make_product):
    product, variant = make_product(stock=10)
    fill_cart(db, user, [(product, variant, 2)])
    variant.stock_quantity = 1
    db.commit()
    carrier = FakeCarrier()

    with pytest.raises(Conflict) as excinfo:
        await CheckoutService(db, carrier).create_checkout_session(user)

    assert excinfo.value.message == "Only 1 items left in stock"
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    assert carrier.calls == []


async def test_failure_on_later_line_rolls_back_earlier_reservation(db, user, make_product):
    first, first_v = make_product(name="First", stock=5)
    second, second_v = make_product(name="Second", stock=5)
    fill_cart(db, user, [(first, first_v, 2), (second, second_v, 2)])
    second_v.is_active = False
    db.commit()

    with pytest.raises(NotFound):
        await CheckoutService(db, FakeCarrier()).create_checkout_session(user)

    db.expire_all()
    assert db.query(Order).count() == 0
    assert db.get(ProductVariant, first_v.id).stock_quantity == 5
    assert db.query(StockMovement).count() == 0


async def test_unsynced_variant(db, user, make_product):
    product, variant = make_product(carrier_variant_id=None)
    fill_cart(db, user, [(product, variant, 1)])

    with pytest.raises(InvalidArgument) as excinfo:
        await CheckoutService(db, FakeCarrier()).create_checkout_session(user)
    assert excinfo.value.message == "Variant not synced with external carrier"
    assert db.query(Order).count() == 0


async def test_carrier_failure_rolls_back(db, user, make_product):
    product, variant = make_product(stock=4)
    fill_cart(db, user, [(product, variant, 3)])

    def carrier_down(request):
        return httpx.Response(503, text="maintenance")

    carrier = CarrierClient(
        api_url="https://carrier.test",
        checkout_url="https://carrier.test/checkout",
        api_key="k",
        api_secret="s",
        transport=httpx.MockTransport(carrier_down),
    )
    with pytest.raises(DependencyFailure):
        await CheckoutService(db, carrier).create_checkout_session(user)

    db.expire_all()
    assert db.query(Order).count() == 0
    assert db.get(ProductVariant, variant.id).stock_quantity == 4


async def test_cart_survives_checkout(db, user, make_product):
    product, variant = make_product()
    fill_cart(db, user, [(product, variant, 1)])

    await CheckoutService(db, FakeCarrier()).create_checkout_session(user)

    assert len(CartService(db).get_cart(user.id)["items"]) == 1


async def test_database_work_runs_off_the_event_loop(db, user, make_product, monkeypatch):
    product, variant = make_product()
    fill_cart(db, user, [(product, variant, 1)])
    service = CheckoutService(db, FakeCarrier())
    threads = {}

    stage = service._stage_order

    def recording_stage(*args):
        threads["stage"] = threading.get_ident()
        return stage(*args)

    monkeypatch.setattr(service, "_stage_order", recording_stage)
    await service.create_checkout_session(user)

    assert threads["stage"] != threading.get_ident()
    assert db.query(Order).one().carrier_checkout_id == "chk_42"
