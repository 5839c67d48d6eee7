# Overview: Shared helpers for API routes; maps engine errors onto HTTP responses.

from flask import current_app, jsonify

from ..services.errors import (
    ChartOfAccountsIncompleteError,
    CustomerRequiredError,
    EmptyDocumentError,
    InsufficientStockError,
    InvalidLineItemError,
    InvalidQuantityError,
    InvalidTransitionError,
    LedgerError,
    NotFoundError,
    StorageUnavailableError,
)

# Checked in order; first isinstance match wins.
STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (InsufficientStockError, 409),
    (InvalidTransitionError, 409),
    (InvalidQuantityError, 400),
    (InvalidLineItemError, 400),
    (EmptyDocumentError, 400),
    (CustomerRequiredError, 400),
    (ChartOfAccountsIncompleteError, 500),
    (StorageUnavailableError, 503),
)


def status_for(exc: LedgerError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


def ledger_error_response(exc: LedgerError):
    status = status_for(exc)
    if status >= 500:
        current_app.logger.error("%s: %s", exc.code, exc.message)
    return jsonify(exc.to_dict()), status


def bad_request(message: str):
    return jsonify({"error": message}), 400
