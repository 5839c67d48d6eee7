# Overview: Ledger engine; create, edit, convert, transition and delete invoices/quotes as single units of work.

"""
Ledger Engine

Every public write operation here runs as exactly one UnitOfWork:

    create_document          normalize -> price -> persist -> (invoice) reserve -> post journal
    edit_document            lock doc -> diff quantities -> reserve/release deltas -> replace lines
    convert_quote_to_invoice pre-flight stock -> reserve -> flip kind/status -> post journal
    transition_status        state machine only; never touches stock or the journal
    delete_document          (invoice) release stock -> remove document + lines

If any step raises, the unit of work rolls back and nothing is persisted:
no document, no lines, no stock adjustments, no journal entry, no activity.
Boundary events go out only after commit. Products are locked in ascending
id order.

Journal entries are posted once, when an invoice comes into existence (create
or convert). Edits and deletes leave posted entries as they are.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Customer, InvoiceDocument, Outlet, DOCUMENT_KINDS, KIND_INVOICE
from ..validation import ValidationError
from outlet_ledger.time_utils import utcnow
from .activity_service import append_activity
from .concurrency import UnitOfWork, lock_for_update, run_in_unit_of_work
from .document_service import (
    allocate_number,
    apply_lines,
    normalize_lines,
    quantities_by_product,
    resolve_lines,
)
from .errors import CustomerRequiredError, NotFoundError
from .event_service import DOCUMENT_CHANGED, document_changed_payload
from .inventory_service import check_available, release, reserve
from .journal_service import post_sale_entry
from .lifecycle_service import (
    INVOICE_ISSUED,
    assert_convertible,
    assert_transition,
    initial_status,
)

logger = logging.getLogger(__name__)


def _load_document(document_id: int, *, lock: bool = False) -> InvoiceDocument:
    query = db.session.query(InvoiceDocument).filter_by(id=document_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    document = query.first()
    if document is None:
        raise NotFoundError("Document", document_id)
    return document


def _customer_name(document: InvoiceDocument) -> str | None:
    return document.customer.name if document.customer is not None else None


def _record(uow: UnitOfWork, document: InvoiceDocument, action: str, payload: dict | None = None) -> None:
    append_activity(
        entity_type="document",
        entity_id=document.id,
        action=action,
        actor=uow.actor,
        payload=payload,
    )
    uow.queue_event(DOCUMENT_CHANGED, document_changed_payload(document, action=action))


def create_document(
    customer_id: int | None,
    outlet_id: int,
    kind: str,
    line_items,
    actor: str | None = None,
) -> InvoiceDocument:
    """
    Create an invoice or quote from raw line items.

    Invoices reserve stock for every tracked product (one reservation per
    product, quantities aggregated across lines) and post one sale entry.
    Quotes touch neither stock nor the journal.
    """
    if kind not in DOCUMENT_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(DOCUMENT_KINDS)}")
    if kind == KIND_INVOICE and customer_id is None:
        raise CustomerRequiredError()

    lines = normalize_lines(line_items)

    def _op(uow: UnitOfWork) -> InvoiceDocument:
        outlet = db.session.get(Outlet, outlet_id)
        if outlet is None:
            raise NotFoundError("Outlet", outlet_id)

        customer = None
        if customer_id is not None:
            customer = db.session.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError("Customer", customer_id)

        resolve_lines(lines)

        document = InvoiceDocument(
            document_number=allocate_number(outlet.id, kind),
            customer_id=customer.id if customer is not None else None,
            outlet_id=outlet.id,
            kind=kind,
            status=initial_status(kind),
            created_by=actor,
        )
        apply_lines(document, lines, outlet.tax_rate_bps)
        db.session.add(document)
        db.session.flush()

        if kind == KIND_INVOICE:
            for product_id, quantity in sorted(quantities_by_product(lines).items()):
                reserve(
                    uow,
                    product_id,
                    quantity,
                    reason="sale",
                    reference=document.document_number,
                )
            post_sale_entry(uow, document, customer.name if customer is not None else None)

        _record(uow, document, "create", {
            "document_number": document.document_number,
            "total_cents": document.total_cents,
            "line_count": len(lines),
        })
        return document

    document = run_in_unit_of_work(_op, actor=actor)
    logger.info("Created %s %s (total %s cents)", kind, document.document_number, document.total_cents)
    return document


def edit_document(document_id: int, new_line_items, actor: str | None = None) -> InvoiceDocument:
    """
    Replace a document's line set.

    For invoices the stock ledger sees only the per-product difference
    between the old and new lines: positive deltas are reserved, negative
    deltas released. Totals are recomputed with the outlet's current tax
    rate. The journal is not re-posted.
    """
    lines = normalize_lines(new_line_items)

    def _op(uow: UnitOfWork) -> InvoiceDocument:
        document = _load_document(document_id, lock=True)
        resolve_lines(lines)

        before = quantities_by_product(document.lines)
        after = quantities_by_product(lines)

        if document.kind == KIND_INVOICE:
            deltas = {
                product_id: after.get(product_id, 0) - before.get(product_id, 0)
                for product_id in sorted(set(before) | set(after))
            }
            for product_id, delta in deltas.items():
                if delta < 0:
                    release(
                        uow,
                        product_id,
                        -delta,
                        reason="invoice edit",
                        reference=document.document_number,
                    )
            for product_id, delta in deltas.items():
                if delta > 0:
                    reserve(
                        uow,
                        product_id,
                        delta,
                        reason="invoice edit",
                        reference=document.document_number,
                    )

        previous_total = document.total_cents
        apply_lines(document, lines, document.outlet.tax_rate_bps)
        document.updated_at = utcnow()
        db.session.flush()

        _record(uow, document, "update", {
            "previous_total_cents": previous_total,
            "total_cents": document.total_cents,
            "line_count": len(lines),
        })
        return document

    return run_in_unit_of_work(_op, actor=actor)


def convert_quote_to_invoice(document_id: int, actor: str | None = None) -> InvoiceDocument:
    """
    Turn a non-terminal quote into an issued invoice in place.

    All tracked lines are checked against stock before anything is written;
    a shortage leaves the quote exactly as it was.
    """
    def _op(uow: UnitOfWork) -> InvoiceDocument:
        document = _load_document(document_id, lock=True)
        assert_convertible(document.kind, document.status)
        if document.customer_id is None:
            raise CustomerRequiredError("A quote needs a customer before it can become an invoice")

        quantities = sorted(quantities_by_product(document.lines).items())
        for product_id, quantity in quantities:
            check_available(product_id, quantity)

        quote_number = document.document_number
        document.document_number = allocate_number(document.outlet_id, KIND_INVOICE)
        document.kind = KIND_INVOICE
        document.status = INVOICE_ISSUED
        document.created_at = utcnow()
        document.updated_at = document.created_at
        db.session.flush()

        for product_id, quantity in quantities:
            reserve(
                uow,
                product_id,
                quantity,
                reason="quote converted",
                reference=document.document_number,
            )
        post_sale_entry(uow, document, _customer_name(document))

        _record(uow, document, "convert", {
            "quote_number": quote_number,
            "document_number": document.document_number,
            "total_cents": document.total_cents,
        })
        return document

    document = run_in_unit_of_work(_op, actor=actor)
    logger.info("Converted document %s to invoice %s", document_id, document.document_number)
    return document


def transition_status(document_id: int, new_status: str, actor: str | None = None) -> InvoiceDocument:
    """Move a document along its state machine. Requesting the current status changes nothing."""
    def _op(uow: UnitOfWork) -> InvoiceDocument:
        document = _load_document(document_id, lock=True)
        current = document.status
        if new_status == current:
            return document

        assert_transition(document.kind, current, new_status)
        document.status = new_status
        document.updated_at = utcnow()
        db.session.flush()

        _record(uow, document, "status", {"from": current, "to": new_status})
        return document

    return run_in_unit_of_work(_op, actor=actor)


def delete_document(document_id: int, actor: str | None = None) -> dict:
    """
    Administrative delete. Invoices give their stock back; quotes never held any.

    Posted journal entries are left in place. Returns a snapshot of the
    deleted document.
    """
    def _op(uow: UnitOfWork) -> dict:
        document = _load_document(document_id, lock=True)
        snapshot = document.to_dict()

        if document.kind == KIND_INVOICE:
            for product_id, quantity in sorted(quantities_by_product(document.lines).items()):
                release(
                    uow,
                    product_id,
                    quantity,
                    reason="invoice deleted",
                    reference=document.document_number,
                )

        _record(uow, document, "delete", {
            "document_number": document.document_number,
            "kind": document.kind,
            "total_cents": document.total_cents,
        })
        db.session.delete(document)
        db.session.flush()
        return snapshot

    snapshot = run_in_unit_of_work(_op, actor=actor)
    logger.info("Deleted %s %s", snapshot["kind"], snapshot["document_number"])
    return snapshot


def get_document(document_id: int) -> InvoiceDocument:
    return _load_document(document_id)


def list_documents(
    *,
    kind: str | None = None,
    status: str | None = None,
    customer_id: int | None = None,
    limit: int = 100,
) -> list[InvoiceDocument]:
    if kind is not None and kind not in DOCUMENT_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(DOCUMENT_KINDS)}")

    q = InvoiceDocument.query
    if kind:
        q = q.filter(InvoiceDocument.kind == kind)
    if status:
        q = q.filter(InvoiceDocument.status == status)
    if customer_id is not None:
        q = q.filter(InvoiceDocument.customer_id == customer_id)
    return (
        q.order_by(InvoiceDocument.created_at.desc(), InvoiceDocument.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
