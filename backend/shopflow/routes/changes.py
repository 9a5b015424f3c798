# Overview: Flask API routes for the change feed; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_permission, can
from ..services import ledger_service

"""
Polling semantics:
- after is the last event id the client has seen (0 for everything).
- The response cursor is the id to send as after on the next poll.
- Cost fields are removed from payloads for callers without VIEW_COSTS.
"""

changes_bp = Blueprint("changes", __name__, url_prefix="/api/changes")

COST_PAYLOAD_KEYS = {"purchase_price_cents"}


@changes_bp.get("")
@require_auth
@require_permission("VIEW_CHANGES")
def list_changes_route():
    after = request.args.get("after", default=0, type=int)
    if after < 0:
        return jsonify({"error": "VALIDATION_ERROR", "message": "after must be >= 0", "details": {}}), 400

    collection = request.args.get("collection") or None
    if collection and collection not in ledger_service.COLLECTIONS:
        return jsonify({
            "error": "VALIDATION_ERROR",
            "message": f"collection must be one of: {', '.join(sorted(ledger_service.COLLECTIONS))}",
            "details": {"collection": collection},
        }), 400

    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, 500))

    feed = ledger_service.changes_since(after_id=after, collection=collection, limit=limit)

    if not can("VIEW_COSTS"):
        for event in feed["events"]:
            payload = event.get("payload")
            if payload:
                event["payload"] = {k: v for k, v in payload.items() if k not in COST_PAYLOAD_KEYS}

    return jsonify(feed), 200
