# Overview: Invoice aggregate helpers; line normalization, pricing and document numbering.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, InvoiceDocument, InvoiceLine, Product, KIND_INVOICE, KIND_QUOTE
from ..validation import MAX_LINE_QUANTITY, MAX_PRICE_CENTS, NotAnInteger, coerce_int
from .errors import (
    EmptyDocumentError,
    InvalidLineItemError,
    InvalidQuantityError,
    NotFoundError,
)


DOCUMENT_PREFIXES = {
    KIND_INVOICE: "INV",
    KIND_QUOTE: "QUO",
}


@dataclass
class NormalizedLine:
    position: int
    product_id: int | None
    quantity: int
    unit_price_cents: int | None
    description: str | None = None

    @property
    def line_total_cents(self) -> int:
        return self.quantity * (self.unit_price_cents or 0)


# =============================================================================
# Document numbers
# =============================================================================

def next_document_number(
    *,
    outlet_id: int,
    document_type: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next document number for an outlet/type inside the current
    transaction.

    The UPDATE takes the row lock on (outlet_id, document_type); the first
    allocation inserts the sequence row under a savepoint so a concurrent
    first insert falls back to the UPDATE path.
    """
    if not outlet_id:
        raise ValueError("outlet_id is required")
    if not document_type:
        raise ValueError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.outlet_id == outlet_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _claim_existing() -> int | None:
        result = db.session.execute(stmt)
        if not result.rowcount:
            return None
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(outlet_id=outlet_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    next_num = _claim_existing()
    if next_num is None:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(outlet_id=outlet_id, document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            next_num = _claim_existing()
            if next_num is None:
                raise

    return f"{prefix}-{outlet_id:03d}-{next_num:0{pad}d}"


def allocate_number(outlet_id: int, kind: str) -> str:
    return next_document_number(
        outlet_id=outlet_id,
        document_type=kind.upper(),
        prefix=DOCUMENT_PREFIXES[kind],
    )


# =============================================================================
# Line normalization
# =============================================================================

def _first_present(raw: dict, *keys):
    for key in keys:
        if raw.get(key) is not None:
            return raw.get(key)
    return None


def normalize_lines(raw_lines) -> list[NormalizedLine]:
    """
    Validate and normalize client line items.

    - quantity must be a whole, finite, non-negative number
    - unit price (unit_price_cents / price_cents / price) must be a whole, finite,
      non-negative number of cents; it may be omitted when product_id is
      given, and is then captured from the product at resolve time
    - lines with quantity 0 are dropped
    - at least one line must survive, else EmptyDocumentError

    Any client-supplied totals on the lines are ignored.
    """
    if raw_lines is None:
        raise EmptyDocumentError()
    if not isinstance(raw_lines, (list, tuple)):
        raise InvalidLineItemError("line items must be a list")

    lines: list[NormalizedLine] = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise InvalidLineItemError(
                f"line {index + 1} must be an object",
                details={"line": index + 1},
            )

        try:
            quantity = coerce_int(raw.get("quantity"), "quantity")
        except NotAnInteger as e:
            raise InvalidQuantityError(str(e), details={"line": index + 1, "quantity": raw.get("quantity")}) from e
        if quantity < 0:
            raise InvalidQuantityError(
                "quantity cannot be negative",
                details={"line": index + 1, "quantity": quantity},
            )
        if quantity > MAX_LINE_QUANTITY:
            raise InvalidQuantityError(
                f"quantity cannot exceed {MAX_LINE_QUANTITY}",
                details={"line": index + 1, "quantity": quantity},
            )

        raw_product_id = _first_present(raw, "product_id", "id")
        product_id = None
        if raw_product_id is not None:
            try:
                product_id = coerce_int(raw_product_id, "product_id")
            except NotAnInteger as e:
                raise InvalidLineItemError(str(e), details={"line": index + 1}) from e

        raw_price = _first_present(raw, "unit_price_cents", "price_cents", "price")
        unit_price_cents = None
        if raw_price is not None:
            try:
                unit_price_cents = coerce_int(raw_price, "unit_price_cents")
            except NotAnInteger as e:
                raise InvalidLineItemError(str(e), details={"line": index + 1, "unit_price_cents": raw_price}) from e
            if unit_price_cents < 0:
                raise InvalidLineItemError(
                    "unit price cannot be negative",
                    details={"line": index + 1, "unit_price_cents": unit_price_cents},
                )
            if unit_price_cents > MAX_PRICE_CENTS:
                raise InvalidLineItemError(
                    f"unit price cannot exceed {MAX_PRICE_CENTS} cents",
                    details={"line": index + 1, "unit_price_cents": unit_price_cents},
                )
        elif product_id is None:
            raise InvalidLineItemError(
                "unit_price_cents is required for lines without a product",
                details={"line": index + 1},
            )

        if quantity == 0:
            continue

        description = _first_present(raw, "description", "name")
        lines.append(NormalizedLine(
            position=len(lines),
            product_id=product_id,
            quantity=quantity,
            unit_price_cents=unit_price_cents,
            description=str(description)[:255] if description is not None else None,
        ))

    if not lines:
        raise EmptyDocumentError()
    return lines


def resolve_lines(lines: list[NormalizedLine]) -> list[NormalizedLine]:
    """
    Check referenced products exist and fill in what the client left out:
    the unit price (captured from the product now) and the description.
    """
    for line in lines:
        if line.product_id is None:
            continue
        product = db.session.get(Product, line.product_id)
        if product is None:
            raise NotFoundError("Product", line.product_id)
        if line.unit_price_cents is None:
            line.unit_price_cents = product.price_cents or 0
        if not line.description:
            line.description = product.name
    return lines


# =============================================================================
# Totals
# =============================================================================

def compute_tax_cents(subtotal_cents: int, tax_rate_bps: int) -> int:
    # nearest-cent rounding (half-up)
    return (subtotal_cents * tax_rate_bps + 5000) // 10000


def compute_totals(lines, tax_rate_bps: int) -> tuple[int, int, int]:
    """Return (subtotal, tax, total) in cents. Works on NormalizedLine or InvoiceLine."""
    subtotal = sum(line.quantity * line.unit_price_cents for line in lines)
    tax = compute_tax_cents(subtotal, tax_rate_bps or 0)
    return subtotal, tax, subtotal + tax


def apply_lines(document: InvoiceDocument, lines: list[NormalizedLine], tax_rate_bps: int) -> InvoiceDocument:
    """
    Replace the document's whole line set and recompute its totals.

    The old InvoiceLine rows are removed by the delete-orphan cascade.
    """
    document.lines = [
        InvoiceLine(
            position=line.position,
            product_id=line.product_id,
            description=line.description,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            line_total_cents=line.line_total_cents,
        )
        for line in lines
    ]
    subtotal, tax, total = compute_totals(lines, tax_rate_bps)
    document.subtotal_cents = subtotal
    document.tax_cents = tax
    document.total_cents = total
    document.tax_rate_bps = tax_rate_bps or 0
    return document


def quantities_by_product(lines) -> dict[int, int]:
    """productId -> total quantity across lines; lines without a product are skipped."""
    totals: dict[int, int] = {}
    for line in lines:
        if line.product_id is None:
            continue
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def totals_consistent(document: InvoiceDocument) -> bool:
    subtotal = sum(line.quantity * line.unit_price_cents for line in document.lines)
    return (
        document.subtotal_cents == subtotal
        and document.total_cents == document.subtotal_cents + document.tax_cents
    )
