from __future__ import annotations

from ..extensions import db
from outlet_ledger.time_utils import to_utc_z


KIND_INVOICE = "invoice"
KIND_QUOTE = "quote"
DOCUMENT_KINDS = (KIND_INVOICE, KIND_QUOTE)


class InvoiceDocument(db.Model):
    """
    Invoice or quote header.

    Quotes and invoices share this table; convert turns a quote into an
    invoice in place, keeping its id and line items.

    Totals are derived: subtotal_cents = sum(line_total_cents),
    total_cents = subtotal_cents + tax_cents. They are recomputed on every
    create/edit and never accepted from clients.
    """
    __tablename__ = "invoice_documents"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "document_number", name="uq_documents_outlet_docnum"),
        db.Index("ix_documents_kind_status_created", "kind", "status", "created_at"),
        db.CheckConstraint("total_cents = subtotal_cents + tax_cents", name="ck_documents_total"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "INV-001-0007")
    document_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Rate the current totals were computed with
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    outlet = db.relationship("Outlet")
    lines = db.relationship(
        "InvoiceLine",
        back_populates="document",
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InvoiceDocument id={self.id} number={self.document_number!r} "
            f"kind={self.kind} status={self.status} total_cents={self.total_cents}>"
        )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "document_number": self.document_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer is not None else None,
            "outlet_id": self.outlet_id,
            "kind": self.kind,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """
    Individual line on a document.

    unit_price_cents is captured at the time of sale; it is not a live
    reference to Product.price_cents. product_id becomes NULL when the product
    is deleted, description keeps the name for rendering.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("invoice_documents.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    description = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    document = db.relationship("InvoiceDocument", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "position": self.position,
            "product_id": self.product_id,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class DocumentSequence(db.Model):
    """Next document number per (outlet, document type)."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "document_type", name="uq_document_sequences_outlet_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)


class ActivityEvent(db.Model):
    """
    Append-only activity log.

    Written inside the same unit of work as the change it records, so a
    rolled-back operation leaves no activity behind.
    """
    __tablename__ = "activity_events"
    __table_args__ = (
        db.Index("ix_activity_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(32), nullable=False, index=True)
    actor = db.Column(db.String(128), nullable=True)
    payload = db.Column(db.Text, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "payload": self.payload,
            "occurred_at": to_utc_z(self.occurred_at),
        }
