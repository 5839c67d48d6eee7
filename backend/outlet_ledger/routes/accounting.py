# Overview: Flask API routes for the chart of accounts, journal and trial balance (read-only).

from flask import Blueprint, request, jsonify

from ..services import accounts_service, journal_service
from ..services.errors import LedgerError
from .common import ledger_error_response


accounting_bp = Blueprint("accounting", __name__, url_prefix="/api/accounting")


@accounting_bp.get("/accounts")
def list_accounts_route():
    account_type = request.args.get("type") or None
    accounts = accounts_service.list_accounts(account_type)
    return jsonify({"items": [a.to_dict() for a in accounts], "count": len(accounts)})


@accounting_bp.get("/journal-entries")
def list_journal_entries_route():
    reference = request.args.get("reference") or None
    source_document_id = request.args.get("source_document_id", type=int)
    limit = request.args.get("limit", default=100, type=int)

    entries = journal_service.list_journal_entries(
        reference=reference,
        source_document_id=source_document_id,
        limit=limit,
    )
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)})


@accounting_bp.get("/journal-entries/<int:entry_id>")
def get_journal_entry_route(entry_id: int):
    try:
        entry = journal_service.get_journal_entry(entry_id)
    except LedgerError as e:
        return ledger_error_response(e)
    return jsonify({"entry": entry.to_dict()})


@accounting_bp.get("/trial-balance")
def trial_balance_route():
    return jsonify(journal_service.get_trial_balance())
