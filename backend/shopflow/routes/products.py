# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopflow/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Write operations require MANAGE_PRODUCTS permission
- Delete requires DELETE_PRODUCTS, recalculation RECALCULATE_PRICES (admin)
- purchase_price_cents is only serialized for callers holding VIEW_COSTS
"""
from flask import Blueprint, request, g, current_app
from ..services import products_service
from ..services import recalculation_service
from ..services.errors import OperationError
from ..models import Product
from ..validation import (
    PRODUCT_POLICY,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)
from ..decorators import require_auth, require_permission, can

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _serialize(product: Product) -> dict:
    return product.to_dict(include_costs=can("VIEW_COSTS"))


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """List all products, newest first."""
    products = products_service.list_products()
    return {"items": [_serialize(p) for p in products], "count": len(products)}


@products_bp.get("/search")
@require_auth
@require_permission("VIEW_PRODUCTS")
def search_products():
    """
    Query params:
    - q: barcode or the start of a product name
    """
    result = products_service.search_products(request.args.get("q", ""))
    return {
        "items": [_serialize(p) for p in result["items"]],
        "count": result["count"],
        "exact_barcode_match": result["exact_barcode_match"],
    }


@products_bp.get("/<product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product(product_id: str):
    product = products_service.get_product(product_id)
    if not product:
        return {"error": "PRODUCT_NOT_FOUND", "message": "Product not found", "details": {"product_id": product_id}}, 404
    return _serialize(product)


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product.

    A shopkeeper-created product gets purchase_price_cents = 0.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch, is_admin=g.actor.is_admin)
    except ValidationError as e:
        return {"error": "VALIDATION_ERROR", "message": str(e), "details": {}}, 400

    try:
        created = products_service.create_product(patch=patch, actor=g.actor)
    except OperationError as e:
        return e.to_dict(), e.status_code

    return _serialize(created), 201


@products_bp.patch("/<product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: str):
    """
    Partially update a product.

    When an admin changes a price, historical sale lines are repriced after
    the edit commits. The outcome is returned under "recalculation"; a
    failed recalculation leaves the product edit in place.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch, is_admin=g.actor.is_admin)
    except ValidationError as e:
        return {"error": "VALIDATION_ERROR", "message": str(e), "details": {}}, 400

    try:
        result = products_service.update_product(product_id, patch=patch, actor=g.actor)
    except OperationError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Product update failed for %s", product_id)
        return {"error": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}, 500

    return {
        "product": _serialize(result["product"]),
        "recalculation": result["recalculation"],
    }, 200


@products_bp.delete("/<product_id>")
@require_auth
@require_permission("DELETE_PRODUCTS")
def delete_product_route(product_id: str):
    try:
        products_service.delete_product(product_id, actor=g.actor)
    except OperationError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Product delete failed for %s", product_id)
        return {"error": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}, 500

    return {"ok": True}, 200


@products_bp.post("/<product_id>/recalculate")
@require_auth
@require_permission("RECALCULATE_PRICES")
def recalculate_route(product_id: str):
    """
    Rewrite prices on every historical line for the product.

    Body (optional): purchase_price_cents, selling_price_cents. Missing
    values default to the product's current prices.
    """
    payload = request.get_json(silent=True) or {}
    product = products_service.get_product(product_id)

    purchase = payload.get("purchase_price_cents")
    selling = payload.get("selling_price_cents")
    if purchase is None or selling is None:
        if not product:
            return {"error": "PRODUCT_NOT_FOUND", "message": "Product not found", "details": {"product_id": product_id}}, 404
        purchase = product.purchase_price_cents if purchase is None else purchase
        selling = product.selling_price_cents if selling is None else selling

    try:
        result = recalculation_service.recalculate(
            product_id,
            purchase,
            selling,
            actor_user_id=g.actor.id,
        )
    except OperationError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Recalculation failed for product %s", product_id)
        return {"error": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}, 500

    return result.to_dict(), 200
