"""
Return Processing Service

WHY: A return reverses exactly one sold line: the line is flagged returned
and its stock goes back on the shelf, in one transaction. Reports then drop
the line from revenue and profit while still listing it for audit.

DESIGN PRINCIPLES:
- returned is a one-way flag; a second return of the same line is rejected
  with AlreadyReturned and credits no stock.
- The quantity restored is the quantity recorded on the sale line, which is
  fixed forever at checkout.
- A product deleted since the sale does not block the return: the line is
  still flagged, the missing stock credit is logged.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Sale, SaleItem, Product
from ..events import sale_item_returned, product_changed
from shopflow.time_utils import utcnow
from .auth_service import Actor
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import (
    AlreadyReturned,
    CartValidationError,
    ReturnMismatch,
    SaleItemNotFound,
    SaleNotFound,
)
from .ledger_service import record_change

logger = logging.getLogger(__name__)


def _return_locked(
    sale_id: str,
    item_index: int,
    product_id: str | None,
    quantity: int | None,
    actor: Actor,
) -> tuple[SaleItem, bool]:
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).populate_existing().first()
    if not sale:
        raise SaleNotFound(sale_id)

    item = lock_for_update(
        db.session.query(SaleItem).filter_by(sale_id=sale_id, position=item_index)
    ).populate_existing().first()
    if not item:
        raise SaleItemNotFound(sale_id, item_index)

    if item.returned:
        raise AlreadyReturned(sale_id, item_index, name=item.name)

    if product_id is not None and product_id != item.product_id:
        raise ReturnMismatch(
            f"Item {item_index} on sale {sale_id} is {item.name}, not product {product_id}.",
            {"sale_id": sale_id, "item_index": item_index, "product_id": item.product_id},
        )
    if quantity is not None and quantity != item.quantity:
        raise ReturnMismatch(
            f"Item {item_index} on sale {sale_id} was sold with quantity {item.quantity}, not {quantity}.",
            {"sale_id": sale_id, "item_index": item_index, "quantity": item.quantity},
        )

    now = utcnow()
    item.returned = True
    item.returned_at = now
    item.returned_by = actor.id
    item.returned_by_role = actor.role

    product = lock_for_update(
        db.session.query(Product).filter_by(id=item.product_id)
    ).populate_existing().first()

    stock_restored = False
    if product is None:
        logger.warning(
            "Return of sale %s item %d: product %s no longer exists, stock not restored",
            sale_id, item_index, item.product_id,
        )
    else:
        product.quantity = product.quantity + item.quantity
        stock_restored = True
        record_change(
            collection="products",
            document_id=product.id,
            event_type="product.stock_restored",
            actor_user_id=actor.id,
            occurred_at=now,
            payload={"quantity_delta": item.quantity, "quantity": product.quantity, "sale_id": sale_id},
        )

    record_change(
        collection="sales",
        document_id=sale_id,
        event_type="sale.item_returned",
        actor_user_id=actor.id,
        occurred_at=now,
        payload={"item_index": item_index, "product_id": item.product_id, "quantity": item.quantity},
    )

    return item, stock_restored


def return_item(
    sale_id: str,
    item_index: int,
    product_id: str | None = None,
    quantity: int | None = None,
    *,
    actor: Actor | None,
) -> SaleItem:
    """
    Mark one sale line returned and restore its stock, atomically.

    product_id and quantity, when given, must match the stored line; they
    guard against a client acting on a stale view of the sale.

    Raises:
        CartValidationError: missing actor or bad index
        SaleNotFound / SaleItemNotFound: nothing to return
        AlreadyReturned: line was returned before (no stock credited)
        ReturnMismatch: product_id/quantity disagree with the stored line
        TransientStoreError: contention persisted through all retries
    """
    if actor is None or not actor.id or not actor.role:
        raise CartValidationError("A signed-in user is required to process a return.", kind="MISSING_ACTOR")
    if isinstance(item_index, bool) or not isinstance(item_index, int) or item_index < 0:
        raise CartValidationError("item_index must be a non-negative integer")

    def _op():
        begin_write()
        item, restored = _return_locked(sale_id, item_index, product_id, quantity, actor)
        db.session.commit()
        return item, restored

    item, restored = run_with_retry(_op, operation="return")

    logger.info(
        "Returned sale %s item %d (%s x%d) by %s",
        sale_id, item_index, item.product_id, item.quantity, actor.id,
    )
    sale_item_returned.send(sale_id, sale_id=sale_id, item_index=item_index, actor_id=actor.id)
    if restored:
        product_changed.send(item.product_id, product_id=item.product_id, change="stock")

    return item
