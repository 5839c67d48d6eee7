# Overview: Document state machine for quotes and invoices.

"""
Document Lifecycle

================================================================================
STATE MACHINE (per document kind)
================================================================================

    Quote:    draft -> sent -> accepted
              draft -> cancelled
              sent  -> cancelled
              terminal: accepted, cancelled

    Invoice:  issued -> paid
              issued -> cancelled
              terminal: paid, cancelled

CONVERSION (cross-kind):
    Any non-terminal quote (draft, sent) may be converted to an invoice. The
    document keeps its id and lines; kind becomes 'invoice', status resets to
    'issued'. Converting a terminal quote is rejected.

RULES:
1. Only the edges above are legal; anything else raises InvalidTransitionError
   naming the current and requested states.
2. Terminal states have no outgoing edges.
3. Requesting the current state is a no-op (callers skip the write).
4. Status changes never touch stock or the journal.
================================================================================
"""

from __future__ import annotations

from ..models import KIND_INVOICE, KIND_QUOTE
from .errors import InvalidTransitionError


QUOTE_DRAFT = "draft"
QUOTE_SENT = "sent"
QUOTE_ACCEPTED = "accepted"
QUOTE_CANCELLED = "cancelled"

INVOICE_ISSUED = "issued"
INVOICE_PAID = "paid"
INVOICE_CANCELLED = "cancelled"

CONVERTED = "converted"

INITIAL_STATUS = {
    KIND_QUOTE: QUOTE_DRAFT,
    KIND_INVOICE: INVOICE_ISSUED,
}

TRANSITIONS: dict[str, dict[str, set[str]]] = {
    KIND_QUOTE: {
        QUOTE_DRAFT: {QUOTE_SENT, QUOTE_CANCELLED},
        QUOTE_SENT: {QUOTE_ACCEPTED, QUOTE_CANCELLED},
        QUOTE_ACCEPTED: set(),
        QUOTE_CANCELLED: set(),
    },
    KIND_INVOICE: {
        INVOICE_ISSUED: {INVOICE_PAID, INVOICE_CANCELLED},
        INVOICE_PAID: set(),
        INVOICE_CANCELLED: set(),
    },
}


def statuses_for(kind: str) -> set[str]:
    if kind not in TRANSITIONS:
        raise ValueError(f"Unknown document kind '{kind}'")
    return set(TRANSITIONS[kind])


def initial_status(kind: str) -> str:
    if kind not in INITIAL_STATUS:
        raise ValueError(f"Unknown document kind '{kind}'")
    return INITIAL_STATUS[kind]


def is_terminal(kind: str, status: str) -> bool:
    return not TRANSITIONS.get(kind, {}).get(status)


def can_transition(kind: str, from_status: str, to_status: str) -> bool:
    states = TRANSITIONS.get(kind)
    if states is None or from_status not in states or to_status not in states:
        return False
    if from_status == to_status:
        return True
    return to_status in states[from_status]


def assert_transition(kind: str, from_status: str, to_status: str) -> None:
    if not can_transition(kind, from_status, to_status):
        raise InvalidTransitionError(from_status, to_status)


def assert_convertible(kind: str, status: str) -> None:
    """A quote in a non-terminal state can be converted; anything else cannot."""
    if kind != KIND_QUOTE:
        raise InvalidTransitionError(
            status,
            CONVERTED,
            message=f"Only quotes can be converted to invoices (document is an {kind} in '{status}')",
        )
    if is_terminal(kind, status):
        raise InvalidTransitionError(
            status,
            CONVERTED,
            message=f"Cannot convert a quote in terminal state '{status}'",
        )
