from __future__ import annotations

from ..extensions import db
from outlet_ledger.time_utils import to_utc_z, to_iso_date


ACCOUNT_TYPES = ("Asset", "Liability", "Equity", "Revenue", "Expense")

JOURNAL_STATUS_POSTED = "posted"


class Account(db.Model):
    """Chart-of-accounts entry. Reference data: seeded once, read at runtime."""
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_accounts_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False)  # Asset, Liability, Equity, Revenue, Expense
    category = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Account code={self.code!r} name={self.name!r} type={self.type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "category": self.category,
            "is_active": self.is_active,
        }


class JournalEntry(db.Model):
    """
    Posted journal entry.

    IMMUTABLE: total_debit_cents == total_credit_cents at creation and forever
    after. Corrections are new entries, never edits.

    source_document_id is a plain integer, not a foreign key; entries outlive
    deleted documents.
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        db.CheckConstraint("total_debit_cents = total_credit_cents", name="ck_journal_entries_balanced"),
        db.Index("ix_journal_entries_reference", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_date = db.Column(db.Date, nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(64), nullable=True)
    source_document_id = db.Column(db.Integer, nullable=True, index=True)

    total_debit_cents = db.Column(db.Integer, nullable=False)
    total_credit_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=JOURNAL_STATUS_POSTED)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "JournalLine",
        back_populates="entry",
        order_by="JournalLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_date": to_iso_date(self.entry_date),
            "description": self.description,
            "reference": self.reference,
            "source_document_id": self.source_document_id,
            "total_debit_cents": self.total_debit_cents,
            "total_credit_cents": self.total_credit_cents,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class JournalLine(db.Model):
    """One debit or credit leg of a journal entry."""
    __tablename__ = "journal_lines"
    __table_args__ = (
        db.CheckConstraint("debit_cents >= 0 AND credit_cents >= 0", name="ck_journal_lines_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)

    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)

    entry = db.relationship("JournalEntry", back_populates="lines")
    account = db.relationship("Account")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_id": self.entry_id,
            "account_id": self.account_id,
            "account_code": self.account.code if self.account is not None else None,
            "description": self.description,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
        }
