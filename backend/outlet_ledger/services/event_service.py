# Overview: Post-commit boundary events consumed by notification and alerting collaborators.

"""
Boundary events (published only after the unit of work commits):

    stock.changed     {product_id, previous_stock, new_stock, delta, reason, actor}
    document.changed  {document_id, kind, status, total_cents, customer_id, action}

Subscribers are fire-and-forget: a failing subscriber is logged and never
affects the financially committed transaction or the other subscribers.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

STOCK_CHANGED = "stock.changed"
DOCUMENT_CHANGED = "document.changed"

EVENT_TYPES = (STOCK_CHANGED, DOCUMENT_CHANGED)

Handler = Callable[[dict], None]

_subscribers: dict[str, list[Handler]] = defaultdict(list)


def subscribe(event_type: str, handler: Handler) -> Handler:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type '{event_type}'")
    if handler not in _subscribers[event_type]:
        _subscribers[event_type].append(handler)
    return handler


def unsubscribe(event_type: str, handler: Handler) -> None:
    handlers = _subscribers.get(event_type, [])
    if handler in handlers:
        handlers.remove(handler)


def publish(event_type: str, payload: dict) -> None:
    for handler in list(_subscribers.get(event_type, [])):
        try:
            handler(dict(payload))
        except Exception:
            logger.exception("Subscriber %r failed for %s", handler, event_type)


def stock_changed_payload(
    *,
    product_id: int,
    previous_stock: int,
    new_stock: int,
    reason: str,
    actor: str | None,
) -> dict:
    return {
        "product_id": product_id,
        "previous_stock": previous_stock,
        "new_stock": new_stock,
        "delta": new_stock - previous_stock,
        "reason": reason,
        "actor": actor,
    }


def document_changed_payload(document, *, action: str) -> dict:
    return {
        "document_id": document.id,
        "kind": document.kind,
        "status": document.status,
        "total_cents": document.total_cents,
        "customer_id": document.customer_id,
        "action": action,
    }


def low_stock_alert(payload: dict) -> None:
    """Warn when a stock decrease leaves a product at LOW_STOCK_THRESHOLD or below."""
    if payload["delta"] >= 0:
        return
    threshold = 5
    if has_app_context():
        threshold = int(current_app.config.get("LOW_STOCK_THRESHOLD", threshold))
    if payload["new_stock"] <= threshold:
        logger.warning(
            "Low stock: product %s fell to %s units (%s)",
            payload["product_id"],
            payload["new_stock"],
            payload["reason"],
        )
