from __future__ import annotations

from ..extensions import db
from outlet_ledger.time_utils import to_utc_z


class Outlet(db.Model):
    """
    Selling location.

    Carries the flat tax rate applied to every document priced at this outlet
    and the account-code mapping the journal poster resolves against the
    chart of accounts. Both are read at the moment of each operation, so a
    rate change only affects documents created or edited afterwards.
    """
    __tablename__ = "outlets"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_outlets_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (e.g., 500 = 5%)

    receivables_account_code = db.Column(db.String(16), nullable=False, default="1200")
    revenue_account_code = db.Column(db.String(16), nullable=False, default="4000")
    taxes_payable_account_code = db.Column(db.String(16), nullable=False, default="2200")

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Outlet id={self.id} name={self.name!r} tax_rate_bps={self.tax_rate_bps}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "tax_rate_bps": self.tax_rate_bps,
            "receivables_account_code": self.receivables_account_code,
            "revenue_account_code": self.revenue_account_code,
            "taxes_payable_account_code": self.taxes_payable_account_code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
