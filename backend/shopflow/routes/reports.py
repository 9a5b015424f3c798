from flask import Blueprint, jsonify, request, current_app

from shopflow.decorators import require_auth, require_permission
from shopflow.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/stock")
@require_auth
@require_permission("VIEW_REPORTS")
def stock_report():
    return jsonify(reporting_service.stock_report()), 200


@reports_bp.get("/profit")
@require_auth
@require_permission("VIEW_REPORTS")
def profit_report():
    start = request.args.get("start")
    end = request.args.get("end")
    created_by_role = request.args.get("created_by_role") or None
    tz_name = request.args.get("tz") or current_app.config.get("SHOP_TIMEZONE", "UTC")

    try:
        report = reporting_service.profit_report(
            start=start,
            end=end,
            tz_name=tz_name,
            created_by_role=created_by_role,
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": "VALIDATION_ERROR", "message": str(exc), "details": {}}), 400
