import json

import pytest

from outlet_ledger.extensions import db
from outlet_ledger.models import (
    Account,
    ActivityEvent,
    InvoiceDocument,
    InvoiceLine,
    JournalEntry,
    Outlet,
    Product,
    StockAdjustment,
)
from outlet_ledger.services import event_service, invoice_engine
from outlet_ledger.services.document_service import totals_consistent
from outlet_ledger.services.errors import (
    ChartOfAccountsIncompleteError,
    CustomerRequiredError,
    EmptyDocumentError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
)
from outlet_ledger.validation import ValidationError


def _stock(product):
    return db.session.get(Product, product.id).stock


def _entries():
    return db.session.query(JournalEntry).order_by(JournalEntry.id).all()


def _invoice(ledger, lines, actor="tester"):
    return invoice_engine.create_document(
        ledger["customer"].id, ledger["outlet"].id, "invoice", lines, actor=actor
    )


def _quote(ledger, lines, customer=True):
    return invoice_engine.create_document(
        ledger["customer"].id if customer else None, ledger["outlet"].id, "quote", lines, actor="tester"
    )


def _nothing_persisted():
    return (
        db.session.query(InvoiceDocument).count() == 0
        and db.session.query(InvoiceLine).count() == 0
        and db.session.query(StockAdjustment).count() == 0
        and db.session.query(JournalEntry).count() == 0
        and db.session.query(ActivityEvent).count() == 0
    )


# =============================================================================
# Create
# =============================================================================

def test_invoice_edit_convert_scenario(db_session, ledger):
    widget = ledger["widget"]

    document = _invoice(ledger, [{"product_id": widget.id, "quantity": 3, "unit_price_cents": 10000}])

    assert _stock(widget) == 7
    assert (document.subtotal_cents, document.tax_cents, document.total_cents) == (30000, 1500, 31500)
    assert document.status == "issued"

    entries = _entries()
    assert len(entries) == 1
    assert entries[0].total_debit_cents == 31500
    assert sorted((l.debit_cents, l.credit_cents) for l in entries[0].lines) == [
        (0, 1500), (0, 30000), (31500, 0),
    ]

    document = invoice_engine.edit_document(
        document.id, [{"product_id": widget.id, "quantity": 5, "unit_price_cents": 10000}]
    )

    assert _stock(widget) == 5
    assert (document.subtotal_cents, document.tax_cents, document.total_cents) == (50000, 2500, 52500)
    assert len(_entries()) == 1

    with pytest.raises(InvalidTransitionError):
        invoice_engine.convert_quote_to_invoice(document.id)


def test_create_invoice_records_everything(db_session, ledger):
    widget = ledger["widget"]
    document = _invoice(ledger, [{"product_id": widget.id, "quantity": 2}], actor="alice")

    outlet_id = ledger["outlet"].id
    assert document.document_number == f"INV-{outlet_id:03d}-0001"
    assert document.created_by == "alice"
    assert document.lines[0].unit_price_cents == 10000
    assert document.lines[0].description == "Widget"
    assert totals_consistent(document)

    adjustment = db.session.query(StockAdjustment).one()
    assert (adjustment.delta, adjustment.reference, adjustment.actor) == (-2, document.document_number, "alice")

    entry = _entries()[0]
    assert entry.source_document_id == document.id
    assert entry.reference == document.document_number

    activity = db.session.query(ActivityEvent).filter_by(entity_type="document").one()
    assert activity.action == "create"
    assert json.loads(activity.payload)["total_cents"] == document.total_cents


def test_create_invoice_aggregates_reservations_per_product(db_session, ledger):
    widget = ledger["widget"]
    _invoice(ledger, [
        {"product_id": widget.id, "quantity": 2},
        {"quantity": 1, "unit_price_cents": 999, "description": "Delivery"},
        {"product_id": widget.id, "quantity": 3},
    ])

    assert _stock(widget) == 5
    assert [a.delta for a in db.session.query(StockAdjustment).all()] == [-5]


def test_products_are_reserved_and_released_in_id_order(db_session, ledger):
    widget, gadget = ledger["widget"], ledger["gadget"]
    descending = sorted([widget.id, gadget.id], reverse=True)
    document = _invoice(ledger, [{"product_id": pid, "quantity": 1} for pid in descending])
    invoice_engine.delete_document(document.id, actor="tester")

    adjustments = db.session.query(StockAdjustment).order_by(StockAdjustment.id).all()
    reserved = [a.product_id for a in adjustments if a.delta < 0]
    released = [a.product_id for a in adjustments if a.delta > 0]
    assert reserved == sorted(descending)
    assert released == sorted(descending)


def test_create_invoice_with_untracked_product(db_session, ledger):
    service = ledger["installation"]
    document = _invoice(ledger, [{"product_id": service.id, "quantity": 4}])

    assert document.subtotal_cents == 20000
    assert _stock(service) == 0
    assert db.session.query(StockAdjustment).count() == 0
    assert len(_entries()) == 1


def test_create_quote_touches_neither_stock_nor_journal(db_session, ledger):
    widget = ledger["widget"]
    document = _quote(ledger, [{"product_id": widget.id, "quantity": 50}])

    assert document.kind == "quote"
    assert document.status == "draft"
    assert document.document_number.startswith("QUO-")
    assert _stock(widget) == 10
    assert db.session.query(StockAdjustment).count() == 0
    assert _entries() == []


def test_quote_without_customer_is_allowed(db_session, ledger):
    document = _quote(ledger, [{"quantity": 1, "unit_price_cents": 100}], customer=False)
    assert document.customer_id is None


def test_invoice_requires_customer(db_session, ledger):
    with pytest.raises(CustomerRequiredError):
        invoice_engine.create_document(None, ledger["outlet"].id, "invoice", [{"quantity": 1, "unit_price_cents": 1}])
    assert _nothing_persisted()


def test_unknown_kind_is_rejected(db_session, ledger):
    with pytest.raises(ValidationError):
        invoice_engine.create_document(ledger["customer"].id, ledger["outlet"].id, "receipt", [])


def test_unknown_references_raise_not_found(db_session, ledger):
    lines = [{"quantity": 1, "unit_price_cents": 100}]
    with pytest.raises(NotFoundError):
        invoice_engine.create_document(ledger["customer"].id, 99999, "invoice", lines)
    with pytest.raises(NotFoundError):
        invoice_engine.create_document(99999, ledger["outlet"].id, "invoice", lines)
    with pytest.raises(NotFoundError):
        _invoice(ledger, [{"product_id": 99999, "quantity": 1}])
    assert _nothing_persisted()


def test_empty_document_rejected(db_session, ledger):
    with pytest.raises(EmptyDocumentError):
        _invoice(ledger, [{"product_id": ledger["widget"].id, "quantity": 0}])
    assert _nothing_persisted()


def test_insufficient_stock_rolls_back_whole_invoice(db_session, ledger):
    widget, gadget = ledger["widget"], ledger["gadget"]

    with pytest.raises(InsufficientStockError) as excinfo:
        _invoice(ledger, [
            {"product_id": widget.id, "quantity": 2},
            {"product_id": gadget.id, "quantity": 4},
        ])

    assert excinfo.value.details == {"product_id": gadget.id, "requested": 4, "available": 3}
    assert _stock(widget) == 10
    assert _stock(gadget) == 3
    assert _nothing_persisted()


def test_failed_journal_posting_leaves_nothing_behind(db_session, ledger):
    db.session.query(Account).filter_by(code="4000").delete()
    db.session.commit()

    widget = ledger["widget"]
    with pytest.raises(ChartOfAccountsIncompleteError) as excinfo:
        _invoice(ledger, [{"product_id": widget.id, "quantity": 3}])

    assert excinfo.value.missing_codes == ["4000"]
    assert _stock(widget) == 10
    assert _nothing_persisted()


def test_tax_uses_outlet_rate(db_session, ledger):
    outlet = db.session.get(Outlet, ledger["outlet"].id)
    outlet.tax_rate_bps = 0
    db.session.commit()

    document = _invoice(ledger, [{"quantity": 2, "unit_price_cents": 1234}])
    assert (document.subtotal_cents, document.tax_cents, document.total_cents) == (2468, 0, 2468)
    assert len(_entries()[0].lines) == 2


def test_invoice_bills_caller_price(db_session, ledger):
    widget = ledger["widget"]
    document = _invoice(ledger, [{"product_id": widget.id, "quantity": 3, "price": 100}])

    assert document.lines[0].unit_price_cents == 100
    assert (document.subtotal_cents, document.tax_cents, document.total_cents) == (300, 15, 315)
    assert _entries()[0].total_debit_cents == 315
    assert _stock(widget) == 7


# =============================================================================
# Edit
# =============================================================================

def test_edit_a_to_b_to_a_nets_zero(db_session, ledger):
    widget, gadget = ledger["widget"], ledger["gadget"]
    lines_a = [{"product_id": widget.id, "quantity": 3}]
    lines_b = [{"product_id": gadget.id, "quantity": 2}]

    document = _invoice(ledger, lines_a)
    assert (_stock(widget), _stock(gadget)) == (7, 3)

    invoice_engine.edit_document(document.id, lines_b)
    assert (_stock(widget), _stock(gadget)) == (10, 1)

    invoice_engine.edit_document(document.id, lines_a)
    assert (_stock(widget), _stock(gadget)) == (7, 3)

    assert len(_entries()) == 1


def test_edit_beyond_stock_leaves_document_untouched(db_session, ledger):
    widget = ledger["widget"]
    document = _invoice(ledger, [{"product_id": widget.id, "quantity": 3}])
    document_id = document.id

    with pytest.raises(InsufficientStockError):
        invoice_engine.edit_document(document_id, [{"product_id": widget.id, "quantity": 11}])

    document = invoice_engine.get_document(document_id)
    assert [l.quantity for l in document.lines] == [3]
    assert document.total_cents == 31500
    assert _stock(widget) == 7


def test_edit_quote_does_not_touch_stock(db_session, ledger):
    widget = ledger["widget"]
    document = _quote(ledger, [{"product_id": widget.id, "quantity": 2}])
    document = invoice_engine.edit_document(document.id, [{"product_id": widget.id, "quantity": 9}])

    assert document.subtotal_cents == 90000
    assert _stock(widget) == 10
    assert db.session.query(StockAdjustment).count() == 0


def test_edit_recomputes_with_current_tax_rate(db_session, ledger):
    document = _quote(ledger, [{"quantity": 1, "unit_price_cents": 10000}])
    assert document.tax_cents == 500

    outlet = db.session.get(Outlet, ledger["outlet"].id)
    outlet.tax_rate_bps = 1000
    db.session.commit()

    document = invoice_engine.edit_document(document.id, [{"quantity": 1, "unit_price_cents": 10000}])
    assert (document.tax_rate_bps, document.tax_cents, document.total_cents) == (1000, 1000, 11000)


def test_edit_replaces_line_order(db_session, ledger):
    document = _quote(ledger, [
        {"quantity": 1, "unit_price_cents": 100, "description": "first"},
        {"quantity": 1, "unit_price_cents": 200, "description": "second"},
    ])
    document = invoice_engine.edit_document(document.id, [
        {"quantity": 1, "unit_price_cents": 200, "description": "second"},
        {"quantity": 0, "unit_price_cents": 999, "description": "dropped"},
        {"quantity": 2, "unit_price_cents": 100, "description": "first"},
    ])

    assert [(l.position, l.description) for l in document.lines] == [(0, "second"), (1, "first")]
    assert db.session.query(InvoiceLine).count() == 2


def test_edit_unknown_document(db_session, ledger):
    with pytest.raises(NotFoundError):
        invoice_engine.edit_document(424242, [{"quantity": 1, "unit_price_cents": 1}])


# =============================================================================
# Convert
# =============================================================================

def test_convert_quote_to_invoice(db_session, ledger):
    widget = ledger["widget"]
    quote = _quote(ledger, [{"product_id": widget.id, "quantity": 4}])
    quote_id, quote_number = quote.id, quote.document_number

    invoice = invoice_engine.convert_quote_to_invoice(quote_id, actor="sam")

    assert invoice.id == quote_id
    assert invoice.kind == "invoice"
    assert invoice.status == "issued"
    assert invoice.document_number.startswith("INV-")
    assert _stock(widget) == 6

    entry = _entries()[0]
    assert entry.total_debit_cents == invoice.total_cents == 42000
    assert entry.reference == invoice.document_number
    assert entry.created_by == "sam"

    activity = db.session.query(ActivityEvent).filter_by(action="convert").one()
    assert json.loads(activity.payload)["quote_number"] == quote_number


def test_convert_sent_quote(db_session, ledger):
    quote = _quote(ledger, [{"quantity": 1, "unit_price_cents": 100}])
    invoice_engine.transition_status(quote.id, "sent")
    assert invoice_engine.convert_quote_to_invoice(quote.id).status == "issued"


def test_convert_preflight_shortage_leaves_quote_untouched(db_session, ledger):
    widget, gadget = ledger["widget"], ledger["gadget"]
    quote = _quote(ledger, [
        {"product_id": widget.id, "quantity": 2},
        {"product_id": gadget.id, "quantity": 20},
    ])
    quote_id, quote_number = quote.id, quote.document_number

    with pytest.raises(InsufficientStockError):
        invoice_engine.convert_quote_to_invoice(quote_id)

    quote = invoice_engine.get_document(quote_id)
    assert (quote.kind, quote.status, quote.document_number) == ("quote", "draft", quote_number)
    assert (_stock(widget), _stock(gadget)) == (10, 3)
    assert _entries() == []
    assert db.session.query(StockAdjustment).count() == 0


@pytest.mark.parametrize("path", [["sent", "accepted"], ["cancelled"]])
def test_convert_terminal_quote_rejected(db_session, ledger, path):
    quote = _quote(ledger, [{"quantity": 1, "unit_price_cents": 100}])
    for status in path:
        invoice_engine.transition_status(quote.id, status)

    with pytest.raises(InvalidTransitionError) as excinfo:
        invoice_engine.convert_quote_to_invoice(quote.id)
    assert excinfo.value.details == {"current": path[-1], "requested": "converted"}


def test_convert_quote_without_customer(db_session, ledger):
    quote = _quote(ledger, [{"quantity": 1, "unit_price_cents": 100}], customer=False)
    with pytest.raises(CustomerRequiredError):
        invoice_engine.convert_quote_to_invoice(quote.id)
    assert invoice_engine.get_document(quote.id).kind == "quote"


# =============================================================================
# Status
# =============================================================================

def test_transition_status(db_session, ledger):
    invoice = _invoice(ledger, [{"quantity": 1, "unit_price_cents": 100}])
    invoice = invoice_engine.transition_status(invoice.id, "paid", actor="kim")
    assert invoice.status == "paid"

    with pytest.raises(InvalidTransitionError) as excinfo:
        invoice_engine.transition_status(invoice.id, "issued")
    assert excinfo.value.details == {"current": "paid", "requested": "issued"}


def test_transition_to_current_status_is_noop(db_session, ledger):
    invoice = _invoice(ledger, [{"quantity": 1, "unit_price_cents": 100}])
    version = invoice.version_id

    invoice = invoice_engine.transition_status(invoice.id, "issued")

    assert invoice.version_id == version
    assert db.session.query(ActivityEvent).filter_by(action="status").count() == 0


def test_status_changes_never_touch_stock_or_journal(db_session, ledger):
    widget = ledger["widget"]
    invoice = _invoice(ledger, [{"product_id": widget.id, "quantity": 2}])
    invoice_engine.transition_status(invoice.id, "cancelled")

    assert _stock(widget) == 8
    assert len(_entries()) == 1


# =============================================================================
# Delete
# =============================================================================

def test_delete_invoice_releases_stock_and_keeps_journal(db_session, ledger):
    widget, gadget = ledger["widget"], ledger["gadget"]
    invoice = _invoice(ledger, [
        {"product_id": widget.id, "quantity": 3},
        {"product_id": gadget.id, "quantity": 1},
    ])
    invoice_id = invoice.id

    snapshot = invoice_engine.delete_document(invoice_id, actor="admin")

    assert snapshot["id"] == invoice_id
    assert (_stock(widget), _stock(gadget)) == (10, 3)
    assert db.session.get(InvoiceDocument, invoice_id) is None
    assert db.session.query(InvoiceLine).count() == 0

    entries = _entries()
    assert len(entries) == 1
    assert entries[0].source_document_id == invoice_id

    with pytest.raises(NotFoundError):
        invoice_engine.get_document(invoice_id)


def test_delete_quote_does_not_touch_stock(db_session, ledger):
    widget = ledger["widget"]
    quote = _quote(ledger, [{"product_id": widget.id, "quantity": 2}])
    invoice_engine.delete_document(quote.id)

    assert _stock(widget) == 10
    assert db.session.query(StockAdjustment).count() == 0


# =============================================================================
# Reads and events
# =============================================================================

def test_list_documents_filters(db_session, ledger):
    _invoice(ledger, [{"quantity": 1, "unit_price_cents": 100}])
    quote = _quote(ledger, [{"quantity": 1, "unit_price_cents": 100}], customer=False)
    invoice_engine.transition_status(quote.id, "sent")

    assert len(invoice_engine.list_documents()) == 2
    assert [d.kind for d in invoice_engine.list_documents(kind="quote")] == ["quote"]
    assert [d.status for d in invoice_engine.list_documents(status="sent")] == ["sent"]
    assert len(invoice_engine.list_documents(customer_id=ledger["customer"].id)) == 1

    with pytest.raises(ValidationError):
        invoice_engine.list_documents(kind="receipt")


def test_document_and_stock_events_follow_commit(db_session, ledger, published_events):
    widget = ledger["widget"]

    with pytest.raises(InsufficientStockError):
        _invoice(ledger, [{"product_id": widget.id, "quantity": 99}])
    assert published_events == []

    invoice = _invoice(ledger, [{"product_id": widget.id, "quantity": 1}])

    kinds = [event_type for event_type, _ in published_events]
    assert kinds == [event_service.STOCK_CHANGED, event_service.DOCUMENT_CHANGED]

    document_event = published_events[1][1]
    assert document_event["document_id"] == invoice.id
    assert document_event["action"] == "create"
    assert document_event["total_cents"] == invoice.total_cents
