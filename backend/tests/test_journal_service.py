import pytest

from outlet_ledger.extensions import db
from outlet_ledger.models import Account, InvoiceDocument, JournalEntry, JournalLine, Product
from outlet_ledger.services import journal_service
from outlet_ledger.services.concurrency import UnitOfWork
from outlet_ledger.services.errors import ChartOfAccountsIncompleteError, NotFoundError


def _document(outlet, customer, *, subtotal, tax, number="INV-T-0001"):
    document = InvoiceDocument(
        document_number=number,
        customer_id=customer.id,
        outlet_id=outlet.id,
        kind="invoice",
        status="issued",
        subtotal_cents=subtotal,
        tax_cents=tax,
        total_cents=subtotal + tax,
        tax_rate_bps=outlet.tax_rate_bps,
    )
    db.session.add(document)
    db.session.flush()
    return document


def _legs(entry):
    return [(line.account.code, line.debit_cents, line.credit_cents) for line in entry.lines]


def test_sale_entry_with_tax_balances(db_session, outlet, chart, customer):
    with UnitOfWork(actor="poster") as uow:
        document = _document(outlet, customer, subtotal=30000, tax=1500)
        entry = journal_service.post_sale_entry(uow, document, customer.name)
        entry_id = entry.id

    entry = db.session.get(JournalEntry, entry_id)
    assert entry.total_debit_cents == entry.total_credit_cents == 31500
    assert entry.reference == "INV-T-0001"
    assert entry.description == "Sale Invoice INV-T-0001"
    assert entry.created_by == "poster"
    assert _legs(entry) == [
        ("1200", 31500, 0),
        ("4000", 0, 30000),
        ("2200", 0, 1500),
    ]
    assert entry.lines[0].description == "Invoice INV-T-0001 - Acme Ltd"


def test_sale_entry_without_tax_omits_tax_leg(db_session, outlet, chart, customer):
    with UnitOfWork() as uow:
        document = _document(outlet, customer, subtotal=5000, tax=0)
        entry = journal_service.post_sale_entry(uow, document)
        entry_id = entry.id

    entry = db.session.get(JournalEntry, entry_id)
    assert _legs(entry) == [("1200", 5000, 0), ("4000", 0, 5000)]
    assert entry.lines[0].description.endswith(journal_service.WALK_IN_CUSTOMER)


def test_missing_revenue_account_fails_closed(db_session, outlet, chart, customer):
    db.session.query(Account).filter_by(code="4000").delete()
    db.session.commit()

    with pytest.raises(ChartOfAccountsIncompleteError) as excinfo:
        with UnitOfWork() as uow:
            document = _document(outlet, customer, subtotal=1000, tax=50)
            journal_service.post_sale_entry(uow, document)

    assert excinfo.value.missing_codes == ["4000"]
    assert db.session.query(JournalEntry).count() == 0
    assert db.session.query(JournalLine).count() == 0
    assert db.session.query(InvoiceDocument).count() == 0


def test_missing_tax_account_only_matters_when_tax_is_charged(db_session, outlet, chart, customer):
    db.session.query(Account).filter_by(code="2200").delete()
    db.session.commit()

    with UnitOfWork() as uow:
        document = _document(outlet, customer, subtotal=1000, tax=0, number="INV-T-0002")
        journal_service.post_sale_entry(uow, document)

    with pytest.raises(ChartOfAccountsIncompleteError) as excinfo:
        with UnitOfWork() as uow:
            document = _document(outlet, customer, subtotal=1000, tax=50, number="INV-T-0003")
            journal_service.post_sale_entry(uow, document)

    assert excinfo.value.missing_codes == ["2200"]


def test_inactive_account_counts_as_missing(db_session, outlet, chart, customer):
    account = db.session.query(Account).filter_by(code="1200").one()
    account.is_active = False
    db.session.commit()

    with pytest.raises(ChartOfAccountsIncompleteError):
        with UnitOfWork() as uow:
            document = _document(outlet, customer, subtotal=1000, tax=50)
            journal_service.post_sale_entry(uow, document)


def test_outlet_account_mapping_is_used(db_session, outlet, chart, customer):
    outlet.revenue_account_code = "4100"
    db.session.commit()

    with UnitOfWork() as uow:
        document = _document(outlet, customer, subtotal=2000, tax=100)
        entry_id = journal_service.post_sale_entry(uow, document).id

    assert ("4100", 0, 2000) in _legs(db.session.get(JournalEntry, entry_id))


def test_posting_never_touches_stock(db_session, outlet, chart, customer, widget):
    with UnitOfWork() as uow:
        document = _document(outlet, customer, subtotal=10000, tax=500)
        journal_service.post_sale_entry(uow, document)

    assert db.session.get(Product, widget.id).stock == 10


def test_get_and_list_journal_entries(db_session, outlet, chart, customer):
    with UnitOfWork() as uow:
        first = journal_service.post_sale_entry(uow, _document(outlet, customer, subtotal=100, tax=5, number="INV-A"))
        second = journal_service.post_sale_entry(uow, _document(outlet, customer, subtotal=200, tax=10, number="INV-B"))
        first_id, second_id = first.id, second.id

    assert journal_service.get_journal_entry(first_id).reference == "INV-A"
    assert [e.id for e in journal_service.list_journal_entries()] == [second_id, first_id]
    assert [e.id for e in journal_service.list_journal_entries(reference="INV-B")] == [second_id]

    with pytest.raises(NotFoundError):
        journal_service.get_journal_entry(987654)


def test_trial_balance_balances(db_session, outlet, chart, customer):
    with UnitOfWork() as uow:
        journal_service.post_sale_entry(uow, _document(outlet, customer, subtotal=30000, tax=1500, number="INV-A"))
        journal_service.post_sale_entry(uow, _document(outlet, customer, subtotal=1000, tax=0, number="INV-B"))

    report = journal_service.get_trial_balance()
    by_code = {row["code"]: row for row in report["accounts"]}

    assert report["balanced"] is True
    assert report["total_debit_cents"] == report["total_credit_cents"] == 32500
    assert by_code["1200"]["balance_cents"] == 32500
    assert by_code["4000"]["credit_cents"] == 31000
    assert by_code["2200"]["credit_cents"] == 1500


def test_empty_trial_balance(db_session, chart):
    report = journal_service.get_trial_balance()
    assert report == {
        "accounts": [],
        "total_debit_cents": 0,
        "total_credit_cents": 0,
        "balanced": True,
    }
