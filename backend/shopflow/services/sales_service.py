"""
Checkout Service - cart to sale, atomically

WHY: Checkout is the only path that decrements stock. Stock is read and
validated inside the same transaction that writes the decrement and the sale,
never from a value fetched earlier while browsing.

GUARANTEES:
- All stock checks finish before the first write (fail-fast, no partial
  decrement).
- Every decrement and the sale insert commit together or not at all.
- Concurrent checkouts on the same product are serialized; the loser re-reads
  the reduced stock and fails with InsufficientStock instead of overwriting.
- The customer pays the price shown in the cart; the catalog price is not
  re-read for the total.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Sale, SaleItem, Product
from ..events import sale_recorded, product_changed
from shopflow.time_utils import utcnow
from .auth_service import Actor
from .cart_service import CartItem
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import CartValidationError, InsufficientStock, ProductNotFound
from .ledger_service import record_change

logger = logging.getLogger(__name__)


def _validate_request(cart: list[CartItem], actor: Actor | None) -> None:
    if not cart:
        raise CartValidationError("Cart is empty.", kind="EMPTY_CART")

    if actor is None or not actor.id or not actor.role:
        raise CartValidationError("A signed-in user is required to check out.", kind="MISSING_ACTOR")

    for item in cart:
        if item.quantity_in_cart < 1:
            raise CartValidationError(
                f"Quantity for {item.name} must be at least 1.",
                details={"product_id": item.product_id},
            )


def _requested_by_product(cart: list[CartItem]) -> dict[str, int]:
    requested: dict[str, int] = {}
    for item in cart:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity_in_cart
    return requested


def _load_products_locked(product_ids) -> dict[str, Product]:
    rows = lock_for_update(
        db.session.query(Product).filter(Product.id.in_(list(product_ids)))
    ).populate_existing().all()
    return {product.id: product for product in rows}


def _check_stock(cart: list[CartItem], products: dict[str, Product]) -> dict[str, int]:
    """
    Verify every cart line against live stock. No writes happen here.

    Duplicate lines for one product are checked against their combined
    quantity.
    """
    requested = _requested_by_product(cart)

    for item in cart:
        product = products.get(item.product_id)
        if product is None:
            raise ProductNotFound(item.product_id, name=item.name)

        wanted = requested[item.product_id]
        if product.quantity < wanted:
            raise InsufficientStock(
                item.product_id,
                available=product.quantity,
                requested=wanted,
                name=product.name,
            )

    return requested


def _checkout_locked(cart: list[CartItem], actor: Actor) -> Sale:
    products = _load_products_locked({item.product_id for item in cart})
    requested = _check_stock(cart, products)

    # All checks passed: stage writes
    for product_id, qty in requested.items():
        products[product_id].quantity = products[product_id].quantity - qty

    now = utcnow()
    sale = Sale(
        total_amount_cents=sum(item.line_total_cents for item in cart),
        created_by=actor.id,
        created_by_name=actor.display_name,
        created_by_role=actor.role,
        created_at=now,
    )
    db.session.add(sale)

    for position, item in enumerate(cart):
        sale.items.append(
            SaleItem(
                position=position,
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity_in_cart,
                selling_price_cents=item.selling_price_cents,
                # Cost comes from the catalog row read in this transaction
                purchase_price_cents=products[item.product_id].purchase_price_cents or 0,
                returned=False,
            )
        )

    db.session.flush()

    for product_id, qty in requested.items():
        record_change(
            collection="products",
            document_id=product_id,
            event_type="product.stock_decremented",
            actor_user_id=actor.id,
            occurred_at=now,
            payload={"quantity_delta": -qty, "quantity": products[product_id].quantity, "sale_id": sale.id},
        )
    record_change(
        collection="sales",
        document_id=sale.id,
        event_type="sale.recorded",
        actor_user_id=actor.id,
        occurred_at=now,
        payload={"total_amount_cents": sale.total_amount_cents, "item_count": len(cart)},
    )

    return sale


def checkout(cart: list[CartItem], actor: Actor | None) -> str:
    """
    Convert a cart into a sale and decrement stock, as one transaction.

    Returns the new sale id.

    Raises:
        CartValidationError: empty cart, missing actor, bad quantity
        ProductNotFound: a cart product no longer exists
        InsufficientStock: live stock is below the requested quantity
        TransientStoreError: contention persisted through all retries
    """
    _validate_request(cart, actor)

    def _op():
        begin_write()
        sale = _checkout_locked(cart, actor)
        db.session.commit()
        return sale

    sale = run_with_retry(_op, operation="checkout")

    logger.info(
        "Checkout committed sale %s by %s (%d lines, %d cents)",
        sale.id, actor.id, len(cart), sale.total_amount_cents,
    )
    sale_recorded.send(sale.id, sale_id=sale.id, actor_id=actor.id)
    for product_id in _requested_by_product(cart):
        product_changed.send(product_id, product_id=product_id, change="stock")

    return sale.id


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: str) -> Sale | None:
    return db.session.get(Sale, sale_id)


def list_sales(
    *,
    start=None,
    end=None,
    created_by: str | None = None,
    created_by_role: str | None = None,
    newest_first: bool = True,
) -> list[Sale]:
    """Sales with created_at in [start, end], optionally filtered by seller or seller role."""
    query = db.session.query(Sale)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at <= end)
    if created_by:
        query = query.filter(Sale.created_by == created_by)
    if created_by_role:
        query = query.filter(Sale.created_by_role == created_by_role)

    order = Sale.created_at.desc() if newest_first else Sale.created_at.asc()
    return query.order_by(order, Sale.id.asc()).all()
