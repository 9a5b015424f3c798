# Overview: Client-side cart model; never persisted, only handed to checkout.

"""
Cart

WHY: The cart lives with the cashier, not in the database. Each item carries
a snapshot of the product as it was when scanned, including the stock level
at that moment (stock_at_add).

STOCK CEILING:
In-cart quantity edits are bounded by stock_at_add, not by live stock. This
is a convenience check for the cashier only; checkout re-reads stock inside
its transaction and is the sole guard against overselling.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict

from .errors import CartValidationError


def _stock_limit_message(ceiling: int) -> str:
    if ceiling == 1:
        return "Only 1 item left in stock"
    return f"You can't add more than the available stock of {ceiling}"


@dataclass
class CartItem:
    product_id: str
    name: str
    selling_price_cents: int
    purchase_price_cents: int
    stock_at_add: int
    quantity_in_cart: int = 1
    barcode: str | None = None

    @classmethod
    def from_product(cls, product, quantity_in_cart: int = 1) -> "CartItem":
        return cls(
            product_id=product.id,
            name=product.name,
            barcode=product.barcode,
            selling_price_cents=product.selling_price_cents,
            purchase_price_cents=product.purchase_price_cents or 0,
            stock_at_add=product.quantity,
            quantity_in_cart=quantity_in_cart,
        )

    @property
    def line_total_cents(self) -> int:
        return self.selling_price_cents * self.quantity_in_cart

    def to_dict(self) -> dict:
        data = asdict(self)
        data["line_total_cents"] = self.line_total_cents
        return data


class Cart:
    """Ordered cart keyed by product id."""

    def __init__(self, items: list[CartItem] | None = None):
        self._items: dict[str, CartItem] = {}
        for item in items or []:
            self._items[item.product_id] = item

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items.values())

    @property
    def items(self) -> list[CartItem]:
        return list(self._items.values())

    @property
    def total_cents(self) -> int:
        return sum(item.line_total_cents for item in self._items.values())

    def get(self, product_id: str) -> CartItem | None:
        return self._items.get(product_id)

    def add_product(self, product) -> CartItem:
        """Add one unit of product, or bump the existing line by one."""
        existing = self._items.get(product.id)

        if existing is None:
            if product.quantity <= 0:
                raise CartValidationError(
                    f"{product.name} is currently out of stock.",
                    kind="OUT_OF_STOCK",
                    details={"product_id": product.id},
                )
            item = CartItem.from_product(product)
            self._items[product.id] = item
            return item

        if existing.quantity_in_cart >= existing.stock_at_add:
            raise CartValidationError(
                _stock_limit_message(existing.stock_at_add),
                kind="STOCK_LIMIT_REACHED",
                details={"product_id": product.id, "available": existing.stock_at_add},
            )
        existing.quantity_in_cart += 1
        return existing

    def update_quantity(self, product_id: str, new_quantity: int) -> CartItem | None:
        """
        Set the quantity of a line. Anything below 1 removes the line.

        Returns the updated item, or None if the line was removed or absent.
        """
        item = self._items.get(product_id)
        if item is None:
            return None

        if new_quantity < 1:
            self.remove(product_id)
            return None

        if new_quantity > item.stock_at_add:
            raise CartValidationError(
                _stock_limit_message(item.stock_at_add),
                kind="STOCK_LIMIT_REACHED",
                details={"product_id": product_id, "available": item.stock_at_add},
            )

        item.quantity_in_cart = new_quantity
        return item

    def remove(self, product_id: str) -> None:
        self._items.pop(product_id, None)

    def clear(self) -> None:
        self._items.clear()

    def to_payload(self) -> list[dict]:
        return [item.to_dict() for item in self._items.values()]


def _require_int(line: dict, key: str, *, minimum: int) -> int:
    value = line.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise CartValidationError(f"{key} must be an integer", details={"field": key})
    if value < minimum:
        raise CartValidationError(f"{key} must be >= {minimum}", details={"field": key})
    return value


def cart_items_from_payload(lines) -> list[CartItem]:
    """
    Parse the JSON cart sent by a client into CartItems.

    Lines are kept in order and are not merged: checkout sums duplicates
    when it checks stock.
    """
    if not isinstance(lines, list):
        raise CartValidationError("items must be a list")

    items: list[CartItem] = []
    for line in lines:
        if not isinstance(line, dict):
            raise CartValidationError("Each cart item must be an object")

        product_id = line.get("product_id")
        if not product_id or not isinstance(product_id, str):
            raise CartValidationError("product_id is required", details={"field": "product_id"})

        quantity = _require_int(line, "quantity_in_cart", minimum=1)
        selling = _require_int(line, "selling_price_cents", minimum=0)
        purchase = line.get("purchase_price_cents", 0) or 0
        if isinstance(purchase, bool) or not isinstance(purchase, int) or purchase < 0:
            raise CartValidationError(
                "purchase_price_cents must be a non-negative integer",
                details={"field": "purchase_price_cents"},
            )

        stock_at_add = line.get("stock_at_add", quantity)
        if isinstance(stock_at_add, bool) or not isinstance(stock_at_add, int):
            raise CartValidationError("stock_at_add must be an integer", details={"field": "stock_at_add"})

        items.append(
            CartItem(
                product_id=product_id,
                name=str(line.get("name") or product_id),
                barcode=line.get("barcode"),
                selling_price_cents=selling,
                purchase_price_cents=purchase,
                stock_at_add=stock_at_add,
                quantity_in_cart=quantity,
            )
        )
    return items
