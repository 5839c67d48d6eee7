# Overview: Stock ledger; the only code allowed to change Product.stock.

# backend/outlet_ledger/services/inventory_service.py

import logging

from ..extensions import db
from ..models import Product, StockAdjustment
from .concurrency import UnitOfWork, lock_for_update, run_in_unit_of_work
from .errors import InsufficientStockError, InvalidQuantityError, NotFoundError
from .event_service import STOCK_CHANGED, stock_changed_payload
from .activity_service import append_activity
"""
Stock Ledger Invariants (authoritative)

Stock model:
- Product.stock holds the current quantity on hand.
- Every mutation (reserve, release, set_absolute) writes exactly one
  StockAdjustment row carrying actor, reason, reference, signed delta and the
  resulting stock, inside the caller's unit of work.
- StockAdjustment is append-only (no updates/deletes).

Business invariants:
- A tracked product's stock is never negative after a successful call.
- reserve() on a product with tracks_inventory=False is a no-op: no stock
  change, no record. release() mirrors it.
- release() never fails for a known product; returning stock is always legal.
- set_absolute() rejects negative targets.

Concurrency:
- The product row is read with SELECT ... FOR UPDATE (and the unit of work
  holds the SQLite write lock), so check-then-write is a single critical
  section per product. Product.version_id catches anything that slips past.
"""

logger = logging.getLogger(__name__)


def _require_positive_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(
            "quantity must be a whole number of units",
            details={"quantity": quantity},
        )
    if quantity <= 0:
        raise InvalidQuantityError(
            "quantity must be greater than zero",
            details={"quantity": quantity},
        )
    return quantity


def _load_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    product = query.first()
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


def _write_adjustment(
    uow: UnitOfWork,
    product: Product,
    *,
    new_stock: int,
    actor: str | None,
    reason: str,
    reference: str | None,
) -> StockAdjustment:
    previous = product.stock
    product.stock = new_stock

    adjustment = StockAdjustment(
        product_id=product.id,
        actor=actor,
        delta=new_stock - previous,
        resulting_stock=new_stock,
        reason=reason,
        reference=reference,
    )
    db.session.add(adjustment)
    db.session.flush()

    uow.queue_event(
        STOCK_CHANGED,
        stock_changed_payload(
            product_id=product.id,
            previous_stock=previous,
            new_stock=new_stock,
            reason=reason,
            actor=actor,
        ),
    )
    return adjustment


def check_available(product_id: int, quantity: int) -> None:
    """Raise InsufficientStockError if a tracked product cannot cover ``quantity``. Read-only."""
    _require_positive_quantity(quantity)
    product = _load_product(product_id, lock=True)
    if product.tracks_inventory and product.stock < quantity:
        raise InsufficientStockError(product.id, quantity, product.stock)


def reserve(
    uow: UnitOfWork,
    product_id: int,
    quantity: int,
    *,
    reason: str,
    reference: str | None = None,
    actor: str | None = None,
) -> StockAdjustment | None:
    """
    Decrement stock for a committed sale.

    Returns the StockAdjustment, or None when the product does not track
    inventory. Raises InsufficientStockError without mutating anything when
    stock is short.
    """
    _require_positive_quantity(quantity)
    product = _load_product(product_id, lock=True)

    if not product.tracks_inventory:
        return None

    if product.stock < quantity:
        logger.info(
            "Reservation refused for product %s: requested %s, available %s",
            product.id, quantity, product.stock,
        )
        raise InsufficientStockError(product.id, quantity, product.stock)

    return _write_adjustment(
        uow,
        product,
        new_stock=product.stock - quantity,
        actor=actor if actor is not None else uow.actor,
        reason=reason,
        reference=reference,
    )


def release(
    uow: UnitOfWork,
    product_id: int,
    quantity: int,
    *,
    reason: str,
    reference: str | None = None,
    actor: str | None = None,
) -> StockAdjustment | None:
    """Return stock (edit down, delete). Untracked products are a no-op."""
    _require_positive_quantity(quantity)
    product = _load_product(product_id, lock=True)

    if not product.tracks_inventory:
        return None

    return _write_adjustment(
        uow,
        product,
        new_stock=product.stock + quantity,
        actor=actor if actor is not None else uow.actor,
        reason=reason,
        reference=reference,
    )


def set_absolute(
    uow: UnitOfWork,
    product_id: int,
    new_quantity: int,
    *,
    reason: str,
    reference: str | None = None,
    actor: str | None = None,
) -> StockAdjustment:
    """Manual stock correction. The delta is computed here; one record is always written."""
    if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
        raise InvalidQuantityError(
            "new quantity must be a whole number of units",
            details={"quantity": new_quantity},
        )
    if new_quantity < 0:
        raise InvalidQuantityError(
            "stock cannot be set below zero",
            details={"quantity": new_quantity},
        )
    if not reason or not str(reason).strip():
        raise ValueError("reason is required for audit")

    product = _load_product(product_id, lock=True)
    return _write_adjustment(
        uow,
        product,
        new_stock=new_quantity,
        actor=actor if actor is not None else uow.actor,
        reason=str(reason).strip(),
        reference=reference,
    )


def adjust_stock(
    product_id: int,
    new_quantity: int,
    *,
    reason: str,
    reference: str | None = None,
    actor: str | None = None,
) -> StockAdjustment:
    """Standalone manual correction in its own unit of work."""
    def _op(uow: UnitOfWork) -> StockAdjustment:
        adjustment = set_absolute(
            uow,
            product_id,
            new_quantity,
            reason=reason,
            reference=reference,
            actor=actor,
        )
        append_activity(
            entity_type="product",
            entity_id=product_id,
            action="adjust_stock",
            actor=actor,
            payload={
                "delta": adjustment.delta,
                "resulting_stock": adjustment.resulting_stock,
                "reason": adjustment.reason,
            },
        )
        return adjustment

    return run_in_unit_of_work(_op, actor=actor)


def get_stock(product_id: int) -> dict:
    product = _load_product(product_id)
    return {
        "product_id": product.id,
        "name": product.name,
        "stock": product.stock,
        "tracks_inventory": product.tracks_inventory,
    }


def list_stock_adjustments(
    *,
    product_id: int | None = None,
    reference: str | None = None,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[StockAdjustment], int]:
    q = StockAdjustment.query
    if product_id is not None:
        q = q.filter(StockAdjustment.product_id == product_id)
    if reference:
        q = q.filter(StockAdjustment.reference == reference)

    total = q.count()
    rows = (
        q.order_by(StockAdjustment.id.desc())
        .offset(max(offset, 0))
        .limit(max(1, min(limit, 500)))
        .all()
    )
    return rows, total
