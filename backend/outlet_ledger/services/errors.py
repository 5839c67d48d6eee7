# Overview: Domain error taxonomy raised by the ledger engine and its components.

"""
Every error here is terminal for the operation that raised it: the unit of
work rolls back and nothing is retried by the engine. ``details`` carries the
context a caller needs to render an actionable message (product id, requested
vs available quantity, current vs requested status).
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all engine errors."""

    code = "ledger_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class NotFoundError(LedgerError):
    code = "not_found"

    def __init__(self, entity: str, entity_id):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStockError(LedgerError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            details={"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidQuantityError(LedgerError):
    code = "invalid_quantity"


class InvalidLineItemError(LedgerError):
    code = "invalid_line_item"


class EmptyDocumentError(LedgerError):
    code = "empty_document"

    def __init__(self, message: str = "Document must contain at least one line with quantity > 0"):
        super().__init__(message)


class CustomerRequiredError(LedgerError):
    code = "customer_required"

    def __init__(self, message: str = "An invoice requires a customer"):
        super().__init__(message)


class InvalidTransitionError(LedgerError):
    code = "invalid_transition"

    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(
            message or f"Cannot move document from '{current}' to '{requested}'",
            details={"current": current, "requested": requested},
        )
        self.current = current
        self.requested = requested


class ChartOfAccountsIncompleteError(LedgerError):
    code = "chart_of_accounts_incomplete"

    def __init__(self, missing_codes: list[str]):
        super().__init__(
            f"Chart of accounts is missing required account(s): {', '.join(missing_codes)}",
            details={"missing_codes": list(missing_codes)},
        )
        self.missing_codes = list(missing_codes)


class StorageUnavailableError(LedgerError):
    """Storage failed or timed out. The underlying cause is logged, not returned."""

    code = "storage_unavailable"

    def __init__(self, message: str = "Storage is temporarily unavailable"):
        super().__init__(message)
