# backend/outlet_ledger/routes/inventory.py
"""
Stock routes.

Stock is never written directly: manual corrections go through the stock
ledger's set_absolute and always leave a StockAdjustment behind.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import inventory_service
from ..services.errors import LedgerError
from ..validation import ValidationError, optional_int
from .common import bad_request, ledger_error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/products/<int:product_id>/stock")
def get_stock_route(product_id: int):
    try:
        return jsonify(inventory_service.get_stock(product_id))
    except LedgerError as e:
        return ledger_error_response(e)


@inventory_bp.post("/products/<int:product_id>/adjust-stock")
@require_actor
def adjust_stock_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        new_quantity = optional_int(payload, "quantity")
    except ValidationError as e:
        return bad_request(str(e))
    if new_quantity is None:
        return bad_request("quantity required")

    reason = (payload.get("reason") or "").strip()
    if not reason:
        return bad_request("reason required")

    try:
        adjustment = inventory_service.adjust_stock(
            product_id,
            new_quantity,
            reason=reason,
            reference=payload.get("reference"),
            actor=g.actor,
        )
        return jsonify({"adjustment": adjustment.to_dict()}), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except ValueError as e:
        return bad_request(str(e))
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/stock-adjustments")
def list_stock_adjustments_route():
    product_id = request.args.get("product_id", type=int)
    reference = request.args.get("reference") or None
    limit = request.args.get("limit", default=200, type=int)
    offset = request.args.get("offset", default=0, type=int)

    rows, total = inventory_service.list_stock_adjustments(
        product_id=product_id,
        reference=reference,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [row.to_dict() for row in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })
