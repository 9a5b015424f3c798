# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopflow/routes/sales.py
"""
Sales routes: checkout, history, receipt data and returns.

SECURITY:
- Checkout requires CREATE_SALE, returns PROCESS_RETURN.
- Without VIEW_ALL_SALES a caller sees only their own sales.
- Without VIEW_COSTS purchase prices and profit are left out.
"""
from flask import Blueprint, request, g, current_app
from ..services import sales_service, return_service, reporting_service
from ..services.cart_service import cart_items_from_payload
from ..services.errors import OperationError
from ..services.reporting_service import ReportError
from ..decorators import require_auth, require_permission, can

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_not_found(sale_id: str):
    return {"error": "SALE_NOT_FOUND", "message": f"Sale {sale_id} not found.", "details": {"sale_id": sale_id}}, 404


@sales_bp.post("/checkout")
@require_auth
@require_permission("CREATE_SALE")
def checkout_route():
    """
    Convert the posted cart into a sale.

    Body:
    {
      "items": [
        {"product_id": "...", "name": "Soap", "selling_price_cents": 150,
         "quantity_in_cart": 2, "stock_at_add": 10}
      ]
    }

    Returns 201 with the recorded sale.
    """
    payload = request.get_json(silent=True) or {}

    try:
        cart = cart_items_from_payload(payload.get("items", []))
        sale_id = sales_service.checkout(cart, g.actor)
    except OperationError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Checkout failed")
        return {"error": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}, 500

    sale = sales_service.get_sale(sale_id)
    return {"sale_id": sale_id, "sale": reporting_service.enrich_sale(sale, include_costs=can("VIEW_COSTS"))}, 201


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Sales history, newest first.

    Query params:
    - start, end: ISO date (YYYY-MM-DD, whole local day) or datetime
    - created_by_role: admin | shopkeeper (only with VIEW_ALL_SALES)
    """
    tz_name = current_app.config.get("SHOP_TIMEZONE", "UTC")
    try:
        start, end = reporting_service.parse_range(
            request.args.get("start"), request.args.get("end"), tz_name
        )
    except ReportError as e:
        return {"error": "VALIDATION_ERROR", "message": str(e), "details": {}}, 400

    if can("VIEW_ALL_SALES"):
        created_by = request.args.get("created_by") or None
        created_by_role = request.args.get("created_by_role") or None
    else:
        created_by = g.actor.id
        created_by_role = None

    sales = sales_service.list_sales(
        start=start,
        end=end,
        created_by=created_by,
        created_by_role=created_by_role,
    )
    include_costs = can("VIEW_COSTS")
    return {
        "items": [reporting_service.enrich_sale(s, include_costs=include_costs) for s in sales],
        "count": len(sales),
    }


@sales_bp.get("/<sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: str):
    sale = sales_service.get_sale(sale_id)
    if not sale:
        return _sale_not_found(sale_id)
    if not can("VIEW_ALL_SALES") and sale.created_by != g.actor.id:
        return _sale_not_found(sale_id)
    return reporting_service.enrich_sale(sale, include_costs=can("VIEW_COSTS"))


@sales_bp.post("/<sale_id>/items/<int:item_index>/return")
@require_auth
@require_permission("PROCESS_RETURN")
def return_item_route(sale_id: str, item_index: int):
    """
    Return one sold line and restore its stock.

    Body (optional): product_id, quantity; when present they must match
    the stored line.
    """
    payload = request.get_json(silent=True) or {}

    try:
        item = return_service.return_item(
            sale_id,
            item_index,
            payload.get("product_id"),
            payload.get("quantity"),
            actor=g.actor,
        )
    except OperationError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Return failed for sale %s item %s", sale_id, item_index)
        return {"error": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}, 500

    return {"item": item.to_dict(include_costs=can("VIEW_COSTS"))}, 200
