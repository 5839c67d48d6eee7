# Overview: Flask API routes for invoices and quotes; parses input and returns JSON responses.

"""
Documents Routes

Thin adapter over the ledger engine. Every write takes the actor from the
X-Actor header; totals in request bodies are ignored.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import invoice_engine
from ..services.activity_service import list_activity
from ..services.errors import LedgerError
from ..validation import ValidationError, optional_int, require_fields
from .common import bad_request, ledger_error_response


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


def _line_items(payload: dict):
    # "lines" is accepted as an alias
    if "line_items" in payload:
        return payload.get("line_items")
    return payload.get("lines")


@documents_bp.post("")
@require_actor
def create_document_route():
    payload = request.get_json(silent=True) or {}

    try:
        require_fields(payload, {"outlet_id", "kind"})
        outlet_id = optional_int(payload, "outlet_id")
        customer_id = optional_int(payload, "customer_id")
    except ValidationError as e:
        return bad_request(str(e))

    try:
        document = invoice_engine.create_document(
            customer_id=customer_id,
            outlet_id=outlet_id,
            kind=payload.get("kind"),
            line_items=_line_items(payload),
            actor=g.actor,
        )
        return jsonify({"document": document.to_dict()}), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except ValueError as e:
        return bad_request(str(e))
    except Exception:
        current_app.logger.exception("Failed to create document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("")
def list_documents_route():
    kind = request.args.get("kind") or None
    status = request.args.get("status") or None
    customer_id = request.args.get("customer_id", type=int)
    limit = request.args.get("limit", default=100, type=int)

    try:
        documents = invoice_engine.list_documents(
            kind=kind,
            status=status,
            customer_id=customer_id,
            limit=limit,
        )
    except ValidationError as e:
        return bad_request(str(e))

    return jsonify({
        "items": [d.to_dict(include_lines=False) for d in documents],
        "count": len(documents),
    })


@documents_bp.get("/<int:document_id>")
def get_document_route(document_id: int):
    try:
        document = invoice_engine.get_document(document_id)
    except LedgerError as e:
        return ledger_error_response(e)
    return jsonify({"document": document.to_dict()})


@documents_bp.get("/<int:document_id>/activity")
def document_activity_route(document_id: int):
    limit = request.args.get("limit", default=100, type=int)
    events = list_activity(
        entity_type="document",
        entity_id=document_id,
        limit=max(1, min(limit, 500)),
    )
    return jsonify({"items": [e.to_dict() for e in events], "count": len(events)})


@documents_bp.put("/<int:document_id>")
@require_actor
def edit_document_route(document_id: int):
    payload = request.get_json(silent=True) or {}
    line_items = _line_items(payload)
    if line_items is None:
        return bad_request("line_items required")

    try:
        document = invoice_engine.edit_document(document_id, line_items, actor=g.actor)
        return jsonify({"document": document.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except ValueError as e:
        return bad_request(str(e))
    except Exception:
        current_app.logger.exception("Failed to edit document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.put("/<int:document_id>/status")
@require_actor
def transition_status_route(document_id: int):
    payload = request.get_json(silent=True) or {}
    new_status = payload.get("status")
    if not new_status or not isinstance(new_status, str):
        return bad_request("status required")

    try:
        document = invoice_engine.transition_status(document_id, new_status, actor=g.actor)
        return jsonify({"document": document.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change document status")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.put("/<int:document_id>/convert")
@require_actor
def convert_document_route(document_id: int):
    try:
        document = invoice_engine.convert_quote_to_invoice(document_id, actor=g.actor)
        return jsonify({"document": document.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to convert quote")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.delete("/<int:document_id>")
@require_actor
def delete_document_route(document_id: int):
    try:
        snapshot = invoice_engine.delete_document(document_id, actor=g.actor)
        return jsonify({"deleted": True, "document": snapshot})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete document")
        return jsonify({"error": "Internal server error"}), 500
