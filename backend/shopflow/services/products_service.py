# backend/shopflow/services/products_service.py
"""
Products Service

ROLE RULES:
- Shopkeepers may create and edit products but never set or see
  purchase_price_cents; a shopkeeper-created product costs 0 until an admin
  fills it in.
- Only admins delete products.
- An admin edit that changes either price triggers a retroactive price
  recalculation across historical sales once the edit has committed. A
  recalculation failure is reported but does not undo the edit.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product
from ..events import product_changed
from .auth_service import Actor
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import OperationError, PermissionDenied, ProductNotFound
from .ledger_service import record_change
from . import recalculation_service

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "barcode", "purchase_price_cents", "selling_price_cents", "quantity"}
SHOPKEEPER_HIDDEN_FIELDS = {"purchase_price_cents"}


def apply_product_patch(p: Product, patch: dict) -> dict:
    """Apply allowed fields; returns {field: (old, new)} for fields that changed."""
    changes = {}
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        old = getattr(p, k)
        if old != v:
            changes[k] = (old, v)
            setattr(p, k, v)
    return changes


def _strip_restricted(patch: dict, actor: Actor) -> dict:
    if actor.is_admin:
        return dict(patch)
    if SHOPKEEPER_HIDDEN_FIELDS & set(patch):
        raise PermissionDenied("Only admins can set the purchase price.")
    return dict(patch)


def get_product(product_id: str) -> Product | None:
    return db.session.get(Product, product_id)


def list_products() -> list[Product]:
    return (
        db.session.query(Product)
        .order_by(Product.created_at.desc(), Product.name.asc())
        .all()
    )


def search_products(term: str, limit: int = 25) -> dict:
    """
    Barcode equality matches first, then name prefix matches, de-duplicated.

    exact_barcode_match is set when the search found exactly one product and
    its barcode equals the term: a scanner hit the cart can add directly.
    """
    term = (term or "").strip()
    if not term:
        return {"items": [], "count": 0, "exact_barcode_match": False}

    by_barcode = (
        db.session.query(Product)
        .filter(Product.barcode == term)
        .order_by(Product.name.asc())
        .limit(limit)
        .all()
    )
    # Prefix range, like name >= term AND name < term + U+F8FF
    by_name = (
        db.session.query(Product)
        .filter(Product.name >= term, Product.name <= term + "\uf8ff")
        .order_by(Product.name.asc())
        .limit(limit)
        .all()
    )

    results: list[Product] = []
    seen: set[str] = set()
    for product in by_barcode + by_name:
        if product.id in seen:
            continue
        seen.add(product.id)
        results.append(product)

    exact = len(results) == 1 and results[0].barcode == term
    return {"items": results, "count": len(results), "exact_barcode_match": exact}


def create_product(*, patch: dict, actor: Actor) -> Product:
    """Create a product from a validated patch dict."""
    patch = _strip_restricted(patch, actor)
    if not actor.is_admin:
        patch["purchase_price_cents"] = 0

    product = Product(
        name=patch["name"],
        barcode=patch.get("barcode") or None,
        purchase_price_cents=patch.get("purchase_price_cents", 0) or 0,
        selling_price_cents=patch.get("selling_price_cents", 0) or 0,
        quantity=patch.get("quantity", 0) or 0,
    )
    db.session.add(product)
    db.session.flush()

    record_change(
        collection="products",
        document_id=product.id,
        event_type="product.created",
        actor_user_id=actor.id,
        payload={"name": product.name, "quantity": product.quantity},
    )
    db.session.commit()

    logger.info("Product %s (%s) created by %s", product.id, product.name, actor.id)
    product_changed.send(product.id, product_id=product.id, change="created")
    return product


def _load_product_locked(product_id: str) -> Product:
    product = (
        lock_for_update(db.session.query(Product).filter(Product.id == product_id))
        .populate_existing()
        .one_or_none()
    )
    if not product:
        raise ProductNotFound(product_id)
    return product


def update_product(product_id: str, *, patch: dict, actor: Actor) -> dict:
    """
    Apply a partial update; run price recalculation when an admin changed a price.

    The edit re-reads the product under the write lock, so a checkout or
    return that committed in between is seen instead of overwritten.

    Returns {"product": Product, "recalculation": dict | None}. The
    recalculation entry carries either the result counts or an error outcome.
    """
    patch = _strip_restricted(patch, actor)
    if "barcode" in patch and not patch["barcode"]:
        patch["barcode"] = None

    def _op():
        begin_write()
        product = _load_product_locked(product_id)
        changes = apply_product_patch(product, patch)
        if not changes:
            db.session.rollback()
            return product, changes

        record_change(
            collection="products",
            document_id=product.id,
            event_type="product.updated",
            actor_user_id=actor.id,
            payload={k: new for k, (_, new) in changes.items()},
        )
        db.session.commit()
        return product, changes

    product, changes = run_with_retry(_op, operation="product update")
    if not changes:
        return {"product": product, "recalculation": None}

    product_changed.send(product.id, product_id=product.id, change="updated")

    price_changed = "purchase_price_cents" in changes or "selling_price_cents" in changes
    if not (actor.is_admin and price_changed):
        return {"product": product, "recalculation": None}

    try:
        result = recalculation_service.recalculate(
            product.id,
            product.purchase_price_cents,
            product.selling_price_cents,
            actor_user_id=actor.id,
        )
        recalculation = result.to_dict()
    except OperationError as exc:
        logger.error("Profit recalculation failed for product %s: %s", product.id, exc)
        recalculation = {"product_id": product.id, "error": exc.to_dict()}

    return {"product": product, "recalculation": recalculation}


def delete_product(product_id: str, *, actor: Actor) -> None:
    """
    Delete a product. Admin only.

    Historical sale lines keep their copied name and prices; a later return
    of such a line simply skips the stock credit.
    """
    if not actor.is_admin:
        raise PermissionDenied("Only admins can delete products.")

    def _op():
        begin_write()
        product = _load_product_locked(product_id)
        db.session.delete(product)
        record_change(
            collection="products",
            document_id=product_id,
            event_type="product.deleted",
            actor_user_id=actor.id,
        )
        db.session.commit()

    run_with_retry(_op, operation="product delete")

    logger.info("Product %s deleted by %s", product_id, actor.id)
    product_changed.send(product_id, product_id=product_id, change="deleted")
