"""
Cart tests.

Verifies:
- Quantity ceiling is the stock captured when the product was scanned
- Out-of-stock products cannot be added
- Quantity below 1 removes the line
- Client payload parsing rejects malformed lines
"""

from types import SimpleNamespace

import pytest

from shopflow.services.cart_service import Cart, CartItem, cart_items_from_payload
from shopflow.services.errors import CartValidationError


def _product(pid="p1", name="Soap", quantity=3, purchase=80, selling=150, barcode="111"):
    return SimpleNamespace(
        id=pid,
        name=name,
        quantity=quantity,
        purchase_price_cents=purchase,
        selling_price_cents=selling,
        barcode=barcode,
    )


class TestAddProduct:

    def test_first_scan_creates_line_with_snapshot(self):
        cart = Cart()
        item = cart.add_product(_product(quantity=3))

        assert item.quantity_in_cart == 1
        assert item.stock_at_add == 3
        assert item.selling_price_cents == 150
        assert len(cart) == 1

    def test_repeat_scan_bumps_quantity(self):
        cart = Cart()
        product = _product(quantity=3)
        cart.add_product(product)
        cart.add_product(product)

        assert cart.get("p1").quantity_in_cart == 2
        assert cart.total_cents == 300

    def test_out_of_stock_rejected(self):
        cart = Cart()
        with pytest.raises(CartValidationError) as exc:
            cart.add_product(_product(quantity=0))
        assert exc.value.kind == "OUT_OF_STOCK"
        assert len(cart) == 0

    def test_ceiling_is_stock_at_add_not_live_stock(self):
        cart = Cart()
        product = _product(quantity=2)
        cart.add_product(product)
        cart.add_product(product)

        # Live stock grows after the scan; the cart still caps at the snapshot
        product.quantity = 50
        with pytest.raises(CartValidationError) as exc:
            cart.add_product(product)
        assert exc.value.kind == "STOCK_LIMIT_REACHED"
        assert exc.value.message == "You can't add more than the available stock of 2"

    def test_single_unit_message(self):
        cart = Cart()
        product = _product(quantity=1)
        cart.add_product(product)
        with pytest.raises(CartValidationError) as exc:
            cart.add_product(product)
        assert exc.value.message == "Only 1 item left in stock"


class TestUpdateQuantity:

    def test_set_within_ceiling(self):
        cart = Cart()
        cart.add_product(_product(quantity=5))
        item = cart.update_quantity("p1", 4)
        assert item.quantity_in_cart == 4

    def test_above_ceiling_rejected_and_unchanged(self):
        cart = Cart()
        cart.add_product(_product(quantity=5))
        with pytest.raises(CartValidationError):
            cart.update_quantity("p1", 6)
        assert cart.get("p1").quantity_in_cart == 1

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_below_one_removes_line(self, quantity):
        cart = Cart()
        cart.add_product(_product())
        assert cart.update_quantity("p1", quantity) is None
        assert cart.get("p1") is None

    def test_unknown_line_is_ignored(self):
        assert Cart().update_quantity("missing", 2) is None


class TestPayloadParsing:

    def test_parses_lines_in_order(self):
        items = cart_items_from_payload([
            {"product_id": "a", "name": "Soap", "selling_price_cents": 150, "quantity_in_cart": 2, "stock_at_add": 10},
            {"product_id": "b", "name": "Rice", "selling_price_cents": 900, "quantity_in_cart": 1},
        ])

        assert [i.product_id for i in items] == ["a", "b"]
        assert items[0].line_total_cents == 300
        # stock_at_add defaults to the requested quantity
        assert items[1].stock_at_add == 1

    @pytest.mark.parametrize(
        "line",
        [
            {"name": "no id", "selling_price_cents": 1, "quantity_in_cart": 1},
            {"product_id": "a", "selling_price_cents": 1, "quantity_in_cart": 0},
            {"product_id": "a", "selling_price_cents": 1, "quantity_in_cart": 1.5},
            {"product_id": "a", "selling_price_cents": -1, "quantity_in_cart": 1},
            {"product_id": "a", "selling_price_cents": 1, "quantity_in_cart": True},
        ],
    )
    def test_rejects_malformed_line(self, line):
        with pytest.raises(CartValidationError):
            cart_items_from_payload([line])

    def test_rejects_non_list(self):
        with pytest.raises(CartValidationError):
            cart_items_from_payload({"product_id": "a"})

    def test_cart_item_to_dict_includes_line_total(self):
        item = CartItem(
            product_id="a", name="Soap", selling_price_cents=150,
            purchase_price_cents=80, stock_at_add=3, quantity_in_cart=2,
        )
        assert item.to_dict()["line_total_cents"] == 300
