# Overview: Journal poster; maps finalized sales onto balanced double-entry journal entries.

"""
POSTING RULES (sale invoice)

    Dr  Accounts Receivable   total
        Cr  Sales Revenue         subtotal
        Cr  Taxes Payable         tax        (omitted when tax == 0)

Hard rules:
- Accounts are resolved from the outlet's account-code mapping before anything
  is written. A missing account fails closed with
  ChartOfAccountsIncompleteError; no partial entry is ever flushed.
- sum(debits) == sum(credits) == document total is checked before the entry
  is added to the session.
- Entries are append-only. Nothing in this module updates or deletes them.
- This module never reads or writes stock.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import Account, JournalEntry, JournalLine, JOURNAL_STATUS_POSTED
from outlet_ledger.time_utils import today_utc
from .accounts_service import (
    RECEIVABLES_CODE,
    SALES_REVENUE_CODE,
    TAXES_PAYABLE_CODE,
    resolve_accounts,
)
from .concurrency import UnitOfWork
from .errors import ChartOfAccountsIncompleteError, LedgerError, NotFoundError

logger = logging.getLogger(__name__)

WALK_IN_CUSTOMER = "Walk-in customer"


class UnbalancedEntryError(LedgerError):
    """Internal guard: a posting rule produced debits != credits."""

    code = "unbalanced_entry"


def _account_codes_for(document) -> tuple[str, str, str]:
    outlet = document.outlet
    if outlet is None:
        return RECEIVABLES_CODE, SALES_REVENUE_CODE, TAXES_PAYABLE_CODE
    return (
        outlet.receivables_account_code or RECEIVABLES_CODE,
        outlet.revenue_account_code or SALES_REVENUE_CODE,
        outlet.taxes_payable_account_code or TAXES_PAYABLE_CODE,
    )


def build_sale_postings(document, customer_name: str | None = None) -> list[dict]:
    """
    Resolve accounts and build the posting legs for a sale.

    Returns a list of {account, debit_cents, credit_cents, description}.
    Raises ChartOfAccountsIncompleteError before returning anything partial.
    """
    receivables_code, revenue_code, taxes_code = _account_codes_for(document)

    required = [receivables_code, revenue_code]
    if document.tax_cents:
        required.append(taxes_code)

    accounts, missing = resolve_accounts(required)
    if missing:
        logger.error(
            "Cannot post %s: chart of accounts missing %s",
            document.document_number, ", ".join(missing),
        )
        raise ChartOfAccountsIncompleteError(missing)

    label = document.document_number
    who = customer_name or WALK_IN_CUSTOMER

    postings = [
        {
            "account": accounts[receivables_code],
            "debit_cents": document.total_cents,
            "credit_cents": 0,
            "description": f"Invoice {label} - {who}",
        },
        {
            "account": accounts[revenue_code],
            "debit_cents": 0,
            "credit_cents": document.subtotal_cents,
            "description": f"Sales revenue from invoice {label}",
        },
    ]
    if document.tax_cents:
        postings.append({
            "account": accounts[taxes_code],
            "debit_cents": 0,
            "credit_cents": document.tax_cents,
            "description": f"Tax on invoice {label}",
        })
    return postings


def post_sale_entry(uow: UnitOfWork, document, customer_name: str | None = None) -> JournalEntry:
    """Post exactly one balanced JournalEntry for a finalized invoice."""
    postings = build_sale_postings(document, customer_name)

    total_debit = sum(p["debit_cents"] for p in postings)
    total_credit = sum(p["credit_cents"] for p in postings)
    if total_debit != total_credit or total_debit != document.total_cents:
        raise UnbalancedEntryError(
            "Journal entry does not balance",
            details={
                "total_debit_cents": total_debit,
                "total_credit_cents": total_credit,
                "document_total_cents": document.total_cents,
            },
        )

    entry = JournalEntry(
        entry_date=today_utc(),
        description=f"Sale Invoice {document.document_number}",
        reference=document.document_number,
        source_document_id=document.id,
        total_debit_cents=total_debit,
        total_credit_cents=total_credit,
        status=JOURNAL_STATUS_POSTED,
        created_by=uow.actor,
    )
    for p in postings:
        entry.lines.append(JournalLine(
            account_id=p["account"].id,
            description=p["description"],
            debit_cents=p["debit_cents"],
            credit_cents=p["credit_cents"],
        ))

    db.session.add(entry)
    db.session.flush()
    logger.info(
        "Posted journal entry %s for %s (total %s cents)",
        entry.id, document.document_number, total_debit,
    )
    return entry


def get_journal_entry(entry_id: int) -> JournalEntry:
    entry = db.session.get(JournalEntry, entry_id)
    if entry is None:
        raise NotFoundError("Journal entry", entry_id)
    return entry


def list_journal_entries(
    *,
    reference: str | None = None,
    source_document_id: int | None = None,
    limit: int = 100,
) -> list[JournalEntry]:
    q = JournalEntry.query
    if reference:
        q = q.filter(JournalEntry.reference == reference)
    if source_document_id is not None:
        q = q.filter(JournalEntry.source_document_id == source_document_id)
    return q.order_by(JournalEntry.id.desc()).limit(max(1, min(limit, 500))).all()


def get_trial_balance() -> dict:
    """
    Sum posted journal lines per account.

    balanced is True when total debits equal total credits across the books.
    """
    rows = (
        db.session.query(
            Account.code,
            Account.name,
            Account.type,
            func.coalesce(func.sum(JournalLine.debit_cents), 0).label("debit"),
            func.coalesce(func.sum(JournalLine.credit_cents), 0).label("credit"),
        )
        .join(JournalLine, JournalLine.account_id == Account.id)
        .join(JournalEntry, JournalEntry.id == JournalLine.entry_id)
        .filter(JournalEntry.status == JOURNAL_STATUS_POSTED)
        .group_by(Account.id, Account.code, Account.name, Account.type)
        .order_by(Account.code)
        .all()
    )

    accounts = []
    total_debit = 0
    total_credit = 0
    for code, name, account_type, debit, credit in rows:
        debit = int(debit or 0)
        credit = int(credit or 0)
        total_debit += debit
        total_credit += credit
        accounts.append({
            "code": code,
            "name": name,
            "type": account_type,
            "debit_cents": debit,
            "credit_cents": credit,
            "balance_cents": debit - credit,
        })

    return {
        "accounts": accounts,
        "total_debit_cents": total_debit,
        "total_credit_cents": total_credit,
        "balanced": total_debit == total_credit,
    }
