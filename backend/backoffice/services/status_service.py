# Overview: One transition table shared by every document lifecycle.

from __future__ import annotations

from ..errors import StateError, ValidationError


# Dispatch notes
DISPATCH_PENDING = "pending"
DISPATCH_DISPATCHED = "dispatched"
DISPATCH_RECEIVED = "received"
DISPATCH_CANCELLED = "cancelled"

# Payment status of GRNs and sales invoices
PAYMENT_UNPAID = "unpaid"
PAYMENT_PARTIAL = "partially_paid"
PAYMENT_PAID = "paid"

# Quotations
QUOTATION_ACTIVE = "active"
QUOTATION_CONVERTED = "converted"
QUOTATION_EXPIRED = "expired"
QUOTATION_CANCELLED = "cancelled"

# Purchase orders
PO_PENDING = "pending"
PO_SENT = "sent"
PO_PARTIAL = "partial"
PO_RECEIVED = "received"
PO_CANCELLED = "cancelled"


TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    "dispatch": {
        DISPATCH_PENDING: frozenset({DISPATCH_DISPATCHED, DISPATCH_CANCELLED}),
        DISPATCH_DISPATCHED: frozenset({DISPATCH_RECEIVED, DISPATCH_CANCELLED}),
        DISPATCH_RECEIVED: frozenset(),
        DISPATCH_CANCELLED: frozenset(),
    },
    "payment": {
        PAYMENT_UNPAID: frozenset({PAYMENT_PARTIAL, PAYMENT_PAID}),
        PAYMENT_PARTIAL: frozenset({PAYMENT_PAID}),
        PAYMENT_PAID: frozenset(),
    },
    "quotation": {
        QUOTATION_ACTIVE: frozenset({QUOTATION_CONVERTED, QUOTATION_EXPIRED, QUOTATION_CANCELLED}),
        QUOTATION_CONVERTED: frozenset(),
        QUOTATION_EXPIRED: frozenset(),
        QUOTATION_CANCELLED: frozenset(),
    },
    "purchase_order": {
        PO_PENDING: frozenset({PO_SENT, PO_CANCELLED}),
        PO_SENT: frozenset({PO_PARTIAL, PO_RECEIVED, PO_CANCELLED}),
        PO_PARTIAL: frozenset({PO_RECEIVED, PO_CANCELLED}),
        PO_RECEIVED: frozenset(),
        PO_CANCELLED: frozenset(),
    },
}


def _table(kind: str) -> dict[str, frozenset[str]]:
    table = TRANSITIONS.get(kind)
    if table is None:
        raise ValueError(f"Unknown document kind: {kind}")
    return table


def statuses(kind: str) -> tuple[str, ...]:
    return tuple(_table(kind))


def allowed(kind: str, current: str) -> frozenset[str]:
    """Statuses reachable from current in one step (empty for terminal)."""
    table = _table(kind)
    if current not in table:
        raise ValidationError(f"Unknown {kind} status: {current}")
    return table[current]


def is_terminal(kind: str, current: str) -> bool:
    return not allowed(kind, current)


def require_transition(kind: str, current: str, target: str) -> None:
    """
    Raise unless current -> target is a legal move.

    Unknown target statuses are validation errors; known but unreachable
    ones are state errors. Both surface as HTTP 400.
    """
    table = _table(kind)
    if target not in table:
        raise ValidationError(
            f"Invalid status: {target}. Must be one of: {', '.join(table)}"
        )
    if target not in allowed(kind, current):
        raise StateError(f"Cannot transition from {current} to {target}")


def payment_status_for(total, paid) -> str:
    """Derive the payment status implied by the amount paid so far."""
    if paid <= 0:
        return PAYMENT_UNPAID
    if paid >= total:
        return PAYMENT_PAID
    return PAYMENT_PARTIAL


def advance_payment_status(current: str, total, paid) -> str:
    """
    Move a document's payment status forward to match paid.

    Staying in the same status is not a transition and always allowed.
    """
    target = payment_status_for(total, paid)
    if target != current:
        require_transition("payment", current, target)
    return target
