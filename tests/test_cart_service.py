"""Cart use cases against a real (in-memory) database."""

import pytest
from sqlalchemy.exc import IntegrityError

from models.cart import Cart, CartItem
from services.cart_service import CartService
from utils.errors import Conflict, InvalidArgument, NotFound


@pytest.fixture
def service(db):
    return CartService(db, tax_policy="variant", flat_tax_rate=18, home_region="IN")


class TestAddItem:
    def test_creates_cart_lazily(self, db, service, user, make_product):
        product, variant = make_product()
        item = service.add_item(user.id, product.id, variant.id, 2)

        assert item.quantity == 2
        assert item.price == 50000
        assert item.product_name == "Cotton Tee"
        assert item.cart.user_id == user.id

    def test_same_line_twice_merges_quantity(self, db, service, user, make_product):
        product, variant = make_product(stock=5)
        service.add_item(user.id, product.id, variant.id, 2)
        service.add_item(user.id, product.id, variant.id, 3)

        rows = db.query(CartItem).all()
        assert len(rows) == 1
        assert rows[0].quantity == 5

    def test_merge_above_stock_keeps_existing_quantity(self, db, service, user, make_product):
        product, variant = make_product(stock=5)
        service.add_item(user.id, product.id, variant.id, 4)

        with pytest.raises(Conflict):
            service.add_item(user.id, product.id, variant.id, 2)
        assert db.query(CartItem).one().quantity == 4

    def test_quantity_above_stock_is_conflict(self, service, user, make_product):
        product, variant = make_product(stock=1)
        with pytest.raises(Conflict):
            service.add_item(user.id, product.id, variant.id, 2)

    @pytest.mark.parametrize("quantity", [0, -1, None])
    def test_bad_quantity(self, service, user, make_product, quantity):
        product, variant = make_product()
        with pytest.raises(InvalidArgument):
            service.add_item(user.id, product.id, variant.id, quantity)

    def test_unknown_or_inactive_catalog_rows(self, db, service, user, make_product):
        product, variant = make_product()
        with pytest.raises(NotFound):
            service.add_item(user.id, 999, None, 1)
        with pytest.raises(NotFound):
            service.add_item(user.id, product.id, 999, 1)

        variant.is_active = False
        db.commit()
        with pytest.raises(NotFound):
            service.add_item(user.id, product.id, variant.id, 1)

    def test_product_level_line_uses_product_stock(self, db, service, user, make_product):
        product, _ = make_product(stock=3)
        item = service.add_item(user.id, product.id, None, 3)
        assert item.variant_id is None
        with pytest.raises(Conflict):
            service.add_item(user.id, product.id, None, 1)


class TestConcurrentAdd:
    """Another request inserted the same line between lookup and insert."""

    @staticmethod
    def seed_line(db, user, product, variant_id, quantity=1):
        cart = Cart(user_id=user.id)
        db.add(cart)
        db.flush()
        db.add(CartItem(cart_id=cart.id, product_id=product.id, variant_id=variant_id, quantity=quantity, price=50000))
        db.commit()

    @pytest.mark.parametrize("with_variant", [True, False])
    def test_duplicate_insert_is_conflict(self, db, service, user, make_product, monkeypatch, with_variant):
        product, variant = make_product(stock=5)
        variant_id = variant.id if with_variant else None
        self.seed_line(db, user, product, variant_id, quantity=2)
        # The lookup misses, as it would before the other insert committed
        monkeypatch.setattr(service.repo, "find_item", lambda *args: None)

        with pytest.raises(Conflict, match="modified concurrently"):
            service.add_item(user.id, product.id, variant_id, 1)

        # Rolled back and still usable
        rows = db.query(CartItem).all()
        assert len(rows) == 1
        assert rows[0].quantity == 2

    def test_product_level_lines_are_unique(self, db, user, make_product):
        product, _ = make_product()
        self.seed_line(db, user, product, None)
        cart = db.query(Cart).one()

        db.add(CartItem(cart_id=cart.id, product_id=product.id, variant_id=None, quantity=1, price=50000))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
        assert db.query(CartItem).count() == 1


class TestGetCart:
    def test_empty_cart(self, service, user):
        cart = service.get_cart(user.id)
        assert cart["items"] == []
        assert cart["cart_id"] is None
        assert cart["can_checkout"] is False
        assert cart["summary"]["grand_total"] == 0

    def test_totals_and_domestic_split(self, service, user, make_product):
        product, variant = make_product(price=50000)
        service.add_item(user.id, product.id, variant.id, 2)

        cart = service.get_cart(user.id)
        summary = cart["summary"]
        assert summary["subtotal"] == 100000
        assert summary["tax"] == 18000
        assert summary["shipping"] == 0
        assert summary["grand_total"] == 118000
        assert summary["tax_breakdown"] == [
            {"name": "CGST", "amount": 9000},
            {"name": "SGST", "amount": 9000},
        ]
        assert cart["can_checkout"] is True

    def test_other_region_gets_igst(self, service, user, make_product):
        product, variant = make_product()
        service.add_item(user.id, product.id, variant.id, 1)

        cart = service.get_cart(user.id, region="US")
        assert [c["name"] for c in cart["summary"]["tax_breakdown"]] == ["IGST"]

    def test_coupon_applied(self, service, user, make_product):
        product, variant = make_product(price=75000)
        service.add_item(user.id, product.id, variant.id, 2)

        cart = service.get_cart(user.id, coupon_code="save10")
        assert cart["summary"]["discount"] == 10000
        assert cart["summary"]["grand_total"] == 150000 + 27000 - 10000

    def test_price_snapshot_refreshed(self, db, service, user, make_product):
        product, variant = make_product(price=50000)
        item = service.add_item(user.id, product.id, variant.id, 1)

        variant.sale_price = 40000
        db.commit()

        cart = service.get_cart(user.id)
        assert cart["items"][0]["price"] == 40000
        assert cart["items"][0]["savings"] == 10000
        db.refresh(item)
        assert item.price == 40000

    def test_stock_drop_flags_line(self, db, service, user, make_product):
        product, variant = make_product(stock=5)
        service.add_item(user.id, product.id, variant.id, 4)

        variant.stock_quantity = 2
        db.commit()

        cart = service.get_cart(user.id)
        line = cart["items"][0]
        assert line["stock_warning"] is True
        assert line["in_stock"] is False
        assert line["available_stock"] == 2
        assert cart["can_checkout"] is False

    def test_deactivated_product_stays_visible_at_zero(self, db, service, user, make_product):
        product, variant = make_product()
        service.add_item(user.id, product.id, variant.id, 2)

        product.is_active = False
        db.commit()

        cart = service.get_cart(user.id)
        line = cart["items"][0]
        assert line["available"] is False
        assert line["quantity"] == 2
        assert line["subtotal"] == 0
        assert cart["summary"]["subtotal"] == 0
        assert cart["can_checkout"] is False


class TestUpdateAndRemove:
    def test_update_quantity(self, service, user, make_product):
        product, variant = make_product(stock=5)
        item = service.add_item(user.id, product.id, variant.id, 1)

        updated = service.update_quantity(user.id, item.id, 5)
        assert updated.quantity == 5

    def test_update_above_stock(self, service, user, make_product):
        product, variant = make_product(stock=5)
        item = service.add_item(user.id, product.id, variant.id, 1)
        with pytest.raises(Conflict):
            service.update_quantity(user.id, item.id, 6)

    def test_update_below_one(self, service, user, make_product):
        product, variant = make_product()
        item = service.add_item(user.id, product.id, variant.id, 1)
        with pytest.raises(InvalidArgument):
            service.update_quantity(user.id, item.id, 0)

    def test_update_after_product_soft_delete(self, db, service, user, make_product):
        product, variant = make_product(stock=10)
        item_id = service.add_item(user.id, product.id, variant.id, 1).id
        product.is_deleted = True
        db.commit()

        with pytest.raises(NotFound):
            service.update_quantity(user.id, item_id, 5)
        db.expire_all()
        assert db.get(CartItem, item_id).quantity == 1

    def test_update_after_product_hidden(self, db, service, user, make_product):
        product, variant = make_product(stock=10)
        item_id = service.add_item(user.id, product.id, variant.id, 1).id
        product.is_active = False
        db.commit()

        with pytest.raises(Conflict):
            service.update_quantity(user.id, item_id, 5)

    def test_update_product_level_line_after_soft_delete(self, db, service, user, make_product):
        product, _ = make_product(stock=10)
        item_id = service.add_item(user.id, product.id, None, 1).id
        product.is_deleted = True
        db.commit()

        with pytest.raises(NotFound):
            service.update_quantity(user.id, item_id, 2)

    def test_items_are_scoped_to_owner(self, db, service, user, admin, make_product):
        product, variant = make_product()
        item = service.add_item(user.id, product.id, variant.id, 1)

        with pytest.raises(NotFound):
            service.update_quantity(admin.id, item.id, 2)
        with pytest.raises(NotFound):
            service.remove_item(admin.id, item.id)
        assert db.query(CartItem).count() == 1

    def test_remove(self, db, service, user, make_product):
        product, variant = make_product()
        item_id = service.add_item(user.id, product.id, variant.id, 1).id

        assert service.remove_item(user.id, item_id) == item_id
        assert db.query(CartItem).count() == 0
        with pytest.raises(NotFound):
            service.remove_item(user.id, item_id)


class TestMergeGuestCart:
    def test_inactive_variant_is_skipped(self, db, service, user, make_product):
        good_product, good_variant = make_product(name="Tee")
        bad_product, bad_variant = make_product(name="Shirt")
        bad_variant.is_active = False
        db.commit()

        report = service.merge_guest_cart(user.id, [
            {"product_id": good_product.id, "variant_id": good_variant.id, "quantity": 2},
            {"product_id": bad_product.id, "variant_id": bad_variant.id, "quantity": 1},
        ])

        assert [m["variant_id"] for m in report["merged"]] == [good_variant.id]
        assert [s["variant_id"] for s in report["skipped"]] == [bad_variant.id]
        assert db.query(CartItem).count() == 1

    def test_clamps_to_stock_including_existing_line(self, db, service, user, make_product):
        product, variant = make_product(stock=5)
        service.add_item(user.id, product.id, variant.id, 3)

        report = service.merge_guest_cart(user.id, [
            {"product_id": product.id, "variant_id": variant.id, "quantity": 10},
        ])

        assert report["merged"] == [
            {"product_id": product.id, "variant_id": variant.id, "quantity": 2, "clamped": True}
        ]
        assert db.query(CartItem).one().quantity == 5

    def test_invalid_and_sold_out_lines(self, db, service, user, make_product):
        product, variant = make_product(stock=0)
        report = service.merge_guest_cart(user.id, [
            {"product_id": None, "variant_id": 1, "quantity": 1},
            {"product_id": product.id, "variant_id": variant.id, "quantity": 0},
            {"product_id": product.id, "variant_id": variant.id, "quantity": 1},
        ])
        assert report["merged"] == []
        assert [s["reason"] for s in report["skipped"]] == ["invalid line", "invalid line", "out of stock"]

    def test_empty_guest_cart(self, service, user):
        assert service.merge_guest_cart(user.id, []) == {"merged": [], "skipped": []}
