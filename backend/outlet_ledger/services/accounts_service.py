# Overview: Chart-of-accounts registry; seeding and lookup by account code.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Account, Outlet, ACCOUNT_TYPES

logger = logging.getLogger(__name__)

RECEIVABLES_CODE = "1200"
SALES_REVENUE_CODE = "4000"
TAXES_PAYABLE_CODE = "2200"

# (code, name, type, category)
DEFAULT_CHART_OF_ACCOUNTS = [
    ("1000", "Cash", "Asset", "Current Assets"),
    ("1100", "Bank Account", "Asset", "Current Assets"),
    (RECEIVABLES_CODE, "Accounts Receivable", "Asset", "Current Assets"),
    ("1300", "Inventory", "Asset", "Current Assets"),
    ("1400", "Prepaid Expenses", "Asset", "Current Assets"),
    ("1500", "Fixed Assets", "Asset", "Fixed Assets"),
    ("2000", "Accounts Payable", "Liability", "Current Liabilities"),
    ("2100", "Loans Payable", "Liability", "Current Liabilities"),
    (TAXES_PAYABLE_CODE, "Taxes Payable", "Liability", "Current Liabilities"),
    ("2300", "Accrued Expenses", "Liability", "Current Liabilities"),
    ("3000", "Owner's Equity", "Equity", "Equity"),
    ("3100", "Retained Earnings", "Equity", "Equity"),
    (SALES_REVENUE_CODE, "Sales Revenue", "Revenue", "Revenue"),
    ("4100", "Service Revenue", "Revenue", "Revenue"),
    ("4200", "Other Income", "Revenue", "Revenue"),
    ("5000", "Cost of Goods Sold", "Expense", "Cost of Sales"),
    ("5100", "Operating Expenses", "Expense", "Operating Expenses"),
]


def ensure_chart_of_accounts(rows=None) -> int:
    """
    Seed the chart of accounts.

    Safe to call repeatedly (idempotent): existing codes are left alone.
    Returns the number of accounts created. Does not commit.
    """
    created = 0
    for code, name, account_type, category in (rows or DEFAULT_CHART_OF_ACCOUNTS):
        if account_type not in ACCOUNT_TYPES:
            raise ValueError(f"Invalid account type '{account_type}' for account {code}")
        if db.session.query(Account).filter_by(code=code).first() is not None:
            continue
        db.session.add(Account(code=code, name=name, type=account_type, category=category))
        created += 1
    db.session.flush()
    if created:
        logger.info("Seeded %d chart-of-accounts entries", created)
    return created


def ensure_default_outlet(name: str = "Main Outlet", code: str = "MAIN", tax_rate_bps: int = 0) -> Outlet:
    outlet = db.session.query(Outlet).filter_by(code=code).first()
    if outlet:
        return outlet
    outlet = Outlet(name=name, code=code, tax_rate_bps=tax_rate_bps)
    db.session.add(outlet)
    db.session.flush()
    return outlet


def get_account_by_code(code: str) -> Account | None:
    return db.session.query(Account).filter_by(code=code, is_active=True).first()


def resolve_accounts(codes: list[str]) -> tuple[dict[str, Account], list[str]]:
    """Look up active accounts by code. Returns (found by code, missing codes)."""
    found: dict[str, Account] = {}
    missing: list[str] = []
    for code in codes:
        account = get_account_by_code(code)
        if account is None:
            missing.append(code)
        else:
            found[code] = account
    return found, missing


def list_accounts(account_type: str | None = None) -> list[Account]:
    q = db.session.query(Account)
    if account_type:
        q = q.filter(Account.type == account_type)
    return q.order_by(Account.code).all()
