"""Wishlist use cases, including the hand-off to the cart."""

import pytest

from models.cart import CartItem
from models.product import ProductImage
from models.wishlist import WishlistItem
from services.wishlist_service import WishlistService
from utils.errors import Conflict, InvalidArgument, NotFound


@pytest.fixture
def service(db):
    return WishlistService(db)


def test_adding_twice_keeps_one_row(db, service, user, make_product):
    product, variant = make_product()
    first = service.add_item(user.id, product.id, variant.id)
    second = service.add_item(user.id, product.id, variant.id)

    assert first.id == second.id
    assert db.query(WishlistItem).count() == 1


def test_variant_is_required_and_must_be_active(db, service, user, make_product):
    product, variant = make_product()
    with pytest.raises(InvalidArgument):
        service.add_item(user.id, product.id, None)

    variant.is_active = False
    db.commit()
    with pytest.raises(NotFound):
        service.add_item(user.id, product.id, variant.id)


def test_listing_is_annotated(db, service, user, make_product):
    product, variant = make_product(price=50000, sale_price=45000, stock=7)
    db.add(ProductImage(product_id=product.id, image_url="https://img/tee.jpg", is_primary=True))
    db.commit()
    service.add_item(user.id, product.id, variant.id)

    items = service.get_wishlist(user.id)["items"]
    assert len(items) == 1
    line = items[0]
    assert line["price"] == 45000
    assert line["stock"] == 7
    assert line["available"] is True
    assert line["image"] == "https://img/tee.jpg"


def test_empty_wishlist(service, user):
    assert service.get_wishlist(user.id) == {"items": []}


def test_remove_is_scoped_to_owner(db, service, user, admin, make_product):
    product, variant = make_product()
    item_id = service.add_item(user.id, product.id, variant.id).id

    with pytest.raises(NotFound):
        service.remove_item(admin.id, item_id)
    assert service.remove_item(user.id, item_id) == item_id
    assert db.query(WishlistItem).count() == 0


def test_merge_skips_invalid_lines(db, service, user, make_product):
    product, variant = make_product()
    report = service.merge_guest_wishlist(user.id, [
        {"product_id": product.id, "variant_id": variant.id},
        {"product_id": product.id, "variant_id": variant.id},
        {"product_id": product.id, "variant_id": 999},
        {"product_id": None, "variant_id": variant.id},
    ])
    assert report == {"merged": 2, "skipped": 2}
    assert db.query(WishlistItem).count() == 1


def test_move_to_cart(db, service, user, make_product):
    product, variant = make_product(stock=3)
    item_id = service.add_item(user.id, product.id, variant.id).id

    cart_item = service.move_to_cart(user.id, item_id)

    assert cart_item.quantity == 1
    assert cart_item.variant_id == variant.id
    assert db.query(WishlistItem).count() == 0


def test_failed_move_keeps_wishlist_row(db, service, user, make_product):
    product, variant = make_product(stock=0)
    item_id = service.add_item(user.id, product.id, variant.id).id

    with pytest.raises(Conflict):
        service.move_to_cart(user.id, item_id)

    assert db.query(WishlistItem).count() == 1
    assert db.query(CartItem).count() == 0
