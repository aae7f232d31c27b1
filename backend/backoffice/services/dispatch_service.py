# backend/backoffice/services/dispatch_service.py
"""
Inter-store dispatch notes.

LIFECYCLE (see status_service.TRANSITIONS["dispatch"]):
1. pending: created, lines fixed, no stock effect
2. dispatched: goods left the source store; line quantities are reserved
   there so they cannot be sold twice
3. received: reservation released, then 'dispatch_out' (-qty) at the
   source and 'dispatch_in' (+qty) at the destination, in one transaction
4. cancelled: any reservation released, no stock movement

received and cancelled are terminal. A rejected transition changes nothing.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import InsufficientStockError, StateError, ValidationError
from ..extensions import db
from ..models import DispatchNote, DispatchNoteItem, Store
from ..models.common import quantize
from ..time_utils import today, utcnow
from ..validation import (
    ModelValidationPolicy,
    optional_text,
    require_fields,
    require_items,
    to_date,
    to_int,
    to_non_negative_decimal,
    to_positive_int,
)
from .audit_service import record_audit
from .document_service import apply_header_patch, filter_documents, get_document, load_items
from .masters_service import require_active
from .numbering_service import next_document_number
from .status_service import (
    DISPATCH_CANCELLED,
    DISPATCH_DISPATCHED,
    DISPATCH_PENDING,
    DISPATCH_RECEIVED,
    require_transition,
)
from .stock_service import get_available_quantity, post_stock_movement, release_reservation, reserve_stock

REFERENCE_TYPE = "dispatch"

DISPATCH_PATCH_POLICY = ModelValidationPolicy(writable_fields={"description"})

DELETABLE_STATUSES = frozenset({DISPATCH_PENDING, DISPATCH_CANCELLED})


def create_dispatch(payload: dict, *, created_by: str | None = None) -> DispatchNote:
    """
    Create a pending dispatch note after checking the source has the stock.

    payload: from_store_id, to_store_id, items[] (item_id, quantity,
    batch_number, batch_expiry, cost_price), dispatch_date, description
    """
    require_fields(payload, ("from_store_id", "to_store_id"))
    lines_in = require_items(payload)

    if str(payload["from_store_id"]) == str(payload["to_store_id"]):
        raise ValidationError("Source and destination stores must be different")
    from_store = require_active(Store, payload["from_store_id"], "Source store")
    to_store = require_active(Store, payload["to_store_id"], "Destination store")

    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "quantity"), context=f"item {idx}")
    items = load_items(raw["item_id"] for raw in lines_in)

    note = DispatchNote(
        dispatch_number=next_document_number("dispatch"),
        from_store_id=from_store.id,
        to_store_id=to_store.id,
        dispatch_date=to_date(payload.get("dispatch_date"), "dispatch_date", required=False) or today(),
        status=DISPATCH_PENDING,
        description=optional_text(payload.get("description")),
        created_by=created_by,
    )

    requested: dict[int, int] = {}
    total_value = Decimal("0")
    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_positive_int(raw["quantity"], "quantity")
        requested[item.id] = requested.get(item.id, 0) + qty
        cost = to_non_negative_decimal(raw.get("cost_price"), "cost_price", default=item.cost_price or Decimal("0"))
        value = quantize(Decimal(qty) * cost)
        total_value += value
        note.items.append(
            DispatchNoteItem(
                item_id=item.id,
                quantity=qty,
                batch_number=optional_text(raw.get("batch_number") or raw.get("batch_no")),
                batch_expiry=to_date(raw.get("batch_expiry"), "batch_expiry", required=False),
                cost_price=cost,
                retail_price=item.retail_price,
                wholesale_price=item.wholesale_price,
                unit_of_measure=item.unit_of_measure,
                dispatch_value=value,
            )
        )

    if not current_app.config.get("ALLOW_NEGATIVE_STOCK"):
        for item_id, qty in requested.items():
            available = get_available_quantity(item_id, from_store.id)
            if available < qty:
                raise InsufficientStockError(item_id, from_store.id, available, qty)

    note.total_items = len(note.items)
    note.total_quantity = sum(requested.values())
    note.total_value = quantize(total_value)

    db.session.add(note)
    db.session.flush()
    record_audit(
        action="CREATE",
        table_name=DispatchNote.__tablename__,
        record_id=note.id,
        new_values={
            "dispatch_number": note.dispatch_number,
            "from_store_id": note.from_store_id,
            "to_store_id": note.to_store_id,
            "total_quantity": note.total_quantity,
        },
        user_name=created_by,
    )
    return note


def get_dispatch(dispatch_id: int) -> DispatchNote:
    return get_document(DispatchNote, dispatch_id, "Dispatch note")


def list_dispatches_query(**filters):
    return filter_documents(
        db.session.query(DispatchNote),
        DispatchNote,
        number_field="dispatch_number",
        date_field="dispatch_date",
        store_fields=("from_store_id", "to_store_id"),
        **filters,
    )


def _mark_dispatched(note: DispatchNote) -> None:
    for line in note.items:
        reserve_stock(line.item_id, note.from_store_id, line.quantity)
    note.dispatched_at = utcnow()


def _mark_received(note: DispatchNote, actor: str | None) -> None:
    for line in note.items:
        release_reservation(line.item_id, note.from_store_id, line.quantity)
        post_stock_movement(
            item_id=line.item_id,
            store_id=note.from_store_id,
            quantity=-line.quantity,
            transaction_type="dispatch_out",
            reference_type=REFERENCE_TYPE,
            reference_id=note.id,
            batch_number=line.batch_number,
            batch_expiry=line.batch_expiry,
            notes=f"Dispatch {note.dispatch_number} to store {note.to_store_id}",
            created_by=actor,
        )
        post_stock_movement(
            item_id=line.item_id,
            store_id=note.to_store_id,
            quantity=line.quantity,
            transaction_type="dispatch_in",
            reference_type=REFERENCE_TYPE,
            reference_id=note.id,
            batch_number=line.batch_number,
            batch_expiry=line.batch_expiry,
            notes=f"Dispatch {note.dispatch_number} from store {note.from_store_id}",
            created_by=actor,
        )
    note.received_at = utcnow()


def _mark_cancelled(note: DispatchNote, previous: str) -> None:
    if previous == DISPATCH_DISPATCHED:
        for line in note.items:
            release_reservation(line.item_id, note.from_store_id, line.quantity)
    note.cancelled_at = utcnow()


def transition_dispatch(dispatch_id: int, target: str, *, actor: str | None = None) -> DispatchNote:
    """Move a dispatch note along its lifecycle, applying the stock side effects."""
    note = get_document(DispatchNote, dispatch_id, "Dispatch note", for_update=True)
    current = note.status
    require_transition("dispatch", current, target)

    if target == DISPATCH_DISPATCHED:
        _mark_dispatched(note)
    elif target == DISPATCH_RECEIVED:
        _mark_received(note, actor)
    elif target == DISPATCH_CANCELLED:
        _mark_cancelled(note, current)

    note.status = target
    db.session.flush()
    record_audit(
        action="STATUS_CHANGE",
        table_name=DispatchNote.__tablename__,
        record_id=note.id,
        old_values={"status": current},
        new_values={"status": target},
        user_name=actor,
    )
    current_app.logger.info("Dispatch %s: %s -> %s", note.dispatch_number, current, target)
    return note


def update_dispatch(dispatch_id: int, payload: dict, *, actor: str | None = None) -> DispatchNote:
    """PATCH: either {"status": ...} alone, or header fields while pending."""
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("No updatable fields supplied")
    if "status" in payload:
        if len(payload) > 1:
            raise ValidationError("status must be updated on its own")
        return transition_dispatch(dispatch_id, payload["status"], actor=actor)

    note = get_document(DispatchNote, dispatch_id, "Dispatch note", for_update=True)
    if note.status != DISPATCH_PENDING:
        raise StateError(f"Cannot edit dispatch note in {note.status} status")
    old, new = apply_header_patch(note, payload, DISPATCH_PATCH_POLICY)
    record_audit(
        action="UPDATE",
        table_name=DispatchNote.__tablename__,
        record_id=note.id,
        old_values=old,
        new_values=new,
        user_name=actor,
    )
    return note


def delete_dispatch(dispatch_id: int, *, actor: str | None = None) -> DispatchNote:
    note = get_document(DispatchNote, dispatch_id, "Dispatch note", for_update=True)
    if note.status not in DELETABLE_STATUSES:
        raise StateError(f"Cannot delete dispatch note in {note.status} status")
    note.is_active = False
    db.session.flush()
    record_audit(
        action="DELETE",
        table_name=DispatchNote.__tablename__,
        record_id=note.id,
        old_values={"dispatch_number": note.dispatch_number, "status": note.status},
        user_name=actor,
    )
    return note
