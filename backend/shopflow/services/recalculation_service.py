# Overview: Retroactive price correction across historical sale lines.

"""
Price Recalculation Service

WHY: When an admin corrects a product's cost or price, profit reports for
past sales should use the corrected numbers. Every historical line for the
product gets the new purchase/selling price written in place.

INVARIANTS:
- Only purchase_price_cents and selling_price_cents are ever written.
  quantity, returned state and other products' lines are left alone, which
  is what lets this run alongside checkouts and returns without conflicting.
- Idempotent: lines already at the new prices are skipped, so a second run
  with the same prices updates nothing.
- Sale.total_amount_cents is what the customer paid and is not touched.

CONSISTENCY:
Weaker than checkout/return on purpose. Sales are committed in batches of
RECALC_BATCH_SIZE; if a batch fails, the batches before it stay applied and
the failure is reported with the committed counts. Rerunning finishes the
job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleItem
from ..events import sales_repriced
from .errors import CartValidationError, RecalculationError
from .ledger_service import record_change

logger = logging.getLogger(__name__)


@dataclass
class RecalculationResult:
    product_id: str
    updated_sales: int = 0
    updated_items: int = 0
    batches: int = 0

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "updated_sales": self.updated_sales,
            "updated_items": self.updated_items,
            "batches": self.batches,
        }


def _validate_prices(purchase_price_cents, selling_price_cents) -> None:
    for key, value in (
        ("purchase_price_cents", purchase_price_cents),
        ("selling_price_cents", selling_price_cents),
    ):
        if isinstance(value, bool) or not isinstance(value, int):
            raise CartValidationError(f"{key} must be an integer", details={"field": key})
        if value < 0:
            raise CartValidationError(f"{key} must be >= 0", details={"field": key})


def _sale_ids_for_product(product_id: str) -> list[str]:
    """
    Sales that contain the product, oldest first.

    Uses the sale_items.product_id index instead of walking every sale; the
    set of sales visited is the same as a full ledger scan would find.
    """
    containing = select(SaleItem.sale_id).where(SaleItem.product_id == product_id)
    rows = (
        db.session.query(Sale.id)
        .filter(Sale.id.in_(containing))
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )
    return [row.id for row in rows]


def _reprice_sale(sale_id: str, product_id: str, purchase: int, selling: int) -> int:
    """Rewrite price fields on one sale's matching lines. Returns lines changed."""
    items = (
        db.session.query(SaleItem)
        .filter(SaleItem.sale_id == sale_id, SaleItem.product_id == product_id)
        .populate_existing()
        .all()
    )
    changed = 0
    for item in items:
        if item.purchase_price_cents != purchase or item.selling_price_cents != selling:
            item.purchase_price_cents = purchase
            item.selling_price_cents = selling
            changed += 1
    return changed


def _chunks(values: list, size: int):
    for start in range(0, len(values), size):
        yield values[start:start + size]


def recalculate(
    product_id: str,
    new_purchase_price_cents: int,
    new_selling_price_cents: int,
    *,
    actor_user_id: str | None = None,
    batch_size: int | None = None,
) -> RecalculationResult:
    """
    Rewrite purchase/selling price on every historical line for product_id.

    Returns counts of sales and lines updated. Raises RecalculationError if a
    batch fails after earlier batches committed.
    """
    _validate_prices(new_purchase_price_cents, new_selling_price_cents)
    if batch_size is None:
        batch_size = current_app.config.get("RECALC_BATCH_SIZE", 500)
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    logger.info(
        "Starting price recalculation for product %s (purchase=%d, selling=%d)",
        product_id, new_purchase_price_cents, new_selling_price_cents,
    )

    result = RecalculationResult(product_id=product_id)
    sale_ids = _sale_ids_for_product(product_id)
    db.session.commit()

    if not sale_ids:
        logger.info("No sales found for product %s. No recalculation needed.", product_id)
        return result

    for batch in _chunks(sale_ids, batch_size):
        batch_sales = 0
        batch_items = 0
        try:
            for sale_id in batch:
                changed = _reprice_sale(
                    sale_id, product_id, new_purchase_price_cents, new_selling_price_cents
                )
                if changed:
                    batch_sales += 1
                    batch_items += changed
                    record_change(
                        collection="sales",
                        document_id=sale_id,
                        event_type="sale.repriced",
                        actor_user_id=actor_user_id,
                        payload={
                            "product_id": product_id,
                            "purchase_price_cents": new_purchase_price_cents,
                            "selling_price_cents": new_selling_price_cents,
                        },
                    )
            if batch_sales:
                db.session.commit()
                result.batches += 1
            else:
                db.session.rollback()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(
                "Price recalculation for product %s failed after %d sales: %s",
                product_id, result.updated_sales, exc,
            )
            raise RecalculationError(
                "Could not update all historical sales. Already updated sales were kept; "
                "run the recalculation again to finish.",
                details={
                    "product_id": product_id,
                    "committed_sales": result.updated_sales,
                    "committed_items": result.updated_items,
                    "committed_batches": result.batches,
                },
            ) from exc

        result.updated_sales += batch_sales
        result.updated_items += batch_items

    if result.updated_sales:
        logger.info(
            "Successfully updated prices for %s in %d sales records.",
            product_id, result.updated_sales,
        )
        sales_repriced.send(product_id, product_id=product_id, updated_sales=result.updated_sales)
    else:
        logger.info(
            "All historical sales for product %s already had the correct prices. "
            "No updates were necessary.",
            product_id,
        )

    return result
