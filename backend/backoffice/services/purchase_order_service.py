# backend/backoffice/services/purchase_order_service.py
"""
Purchase orders placed with suppliers.

LIFECYCLE (status_service.TRANSITIONS["purchase_order"]):
  pending -> sent -> partial -> received; cancelled from any
  non-terminal status. received and cancelled are terminal.

An order never touches stock. The goods are booked when a GRN is posted,
and the order status is moved along by hand.
"""
from __future__ import annotations

from decimal import Decimal

from ..errors import StateError, ValidationError
from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderItem, Store, Supplier
from ..models.common import quantize
from ..time_utils import today
from ..validation import (
    optional_text,
    require_fields,
    require_items,
    to_date,
    to_int,
    to_non_negative_decimal,
    to_percent,
    to_positive_decimal,
    to_positive_int,
)
from .audit_service import record_audit
from .document_service import filter_documents, get_document, line_amounts, load_items
from .masters_service import require_active
from .numbering_service import next_document_number
from .status_service import PO_CANCELLED, PO_PENDING, is_terminal, require_transition

PATCHABLE_FIELDS = ("status", "expected_delivery_date")


def _build_lines(order: PurchaseOrder, lines_in: list[dict]) -> None:
    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "quantity", "unit_cost"), context=f"item {idx}")
    items = load_items(raw["item_id"] for raw in lines_in)

    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_positive_int(raw["quantity"], "quantity")
        cost = to_positive_decimal(raw["unit_cost"], "unit_cost")
        pct = to_percent(raw.get("discount_percent"))
        amounts = line_amounts(qty, cost, pct)
        order.items.append(
            PurchaseOrderItem(
                item_id=item.id,
                quantity=qty,
                unit_cost=cost,
                discount_percent=pct,
                discount_value=amounts.discount,
                net_value=amounts.net,
            )
        )


def _recalculate(order: PurchaseOrder) -> None:
    """subtotal is the gross line value; total = subtotal - discount + tax"""
    gross = sum((line.net_value + line.discount_value for line in order.items), Decimal("0"))
    discount = sum((line.discount_value for line in order.items), Decimal("0"))
    order.subtotal = quantize(gross)
    order.discount = quantize(discount)
    order.total_amount = quantize(gross - discount + (order.tax or 0))


def _check_delivery_date(order: PurchaseOrder) -> None:
    if order.expected_delivery_date < order.po_date:
        raise ValidationError("expected_delivery_date cannot be before the order date")


def create_purchase_order(payload: dict, *, created_by: str | None = None) -> PurchaseOrder:
    require_fields(payload, ("supplier_id", "store_id", "expected_delivery_date"))
    lines_in = require_items(payload)

    supplier = require_active(Supplier, payload["supplier_id"], "Supplier")
    store = require_active(Store, payload["store_id"], "Store")

    order = PurchaseOrder(
        po_number=next_document_number("purchase_order"),
        supplier_id=supplier.id,
        store_id=store.id,
        po_date=to_date(payload.get("po_date"), "po_date", required=False) or today(),
        expected_delivery_date=to_date(payload["expected_delivery_date"], "expected_delivery_date"),
        tax=to_non_negative_decimal(payload.get("tax"), "tax"),
        status=PO_PENDING,
        notes=optional_text(payload.get("notes")),
        created_by=created_by,
    )
    _check_delivery_date(order)
    _build_lines(order, lines_in)
    _recalculate(order)

    db.session.add(order)
    db.session.flush()
    record_audit(
        action="CREATE",
        table_name=PurchaseOrder.__tablename__,
        record_id=order.id,
        new_values={"po_number": order.po_number, "total_amount": order.total_amount},
        user_name=created_by,
    )
    return order


def get_purchase_order(order_id: int) -> PurchaseOrder:
    return get_document(PurchaseOrder, order_id, "Purchase order")


def list_purchase_orders_query(*, supplier_id: int | None = None, status: str | None = None, **filters):
    """status="all" is the same as no status filter."""
    q = db.session.query(PurchaseOrder)
    if supplier_id:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)
    if status == "all":
        status = None
    return filter_documents(
        q, PurchaseOrder, number_field="po_number", date_field="po_date", status=status, **filters
    )


def update_purchase_order(order_id: int, payload: dict, *, actor: str | None = None) -> PurchaseOrder:
    """
    PATCH {"status": ..., "expected_delivery_date": "YYYY-MM-DD"}, either
    or both. Neither can change once the order is received or cancelled.
    """
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("No updatable fields supplied")
    unknown = sorted(set(payload) - set(PATCHABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Field(s) not updatable: {', '.join(unknown)}")

    order = get_document(PurchaseOrder, order_id, "Purchase order", for_update=True)
    if is_terminal("purchase_order", order.status):
        raise StateError(f"Cannot update purchase order in {order.status} status")

    old: dict = {}
    new: dict = {}
    if "expected_delivery_date" in payload:
        old["expected_delivery_date"] = order.expected_delivery_date
        order.expected_delivery_date = to_date(payload["expected_delivery_date"], "expected_delivery_date")
        _check_delivery_date(order)
        new["expected_delivery_date"] = order.expected_delivery_date
    if "status" in payload:
        require_transition("purchase_order", order.status, payload["status"])
        old["status"] = order.status
        order.status = payload["status"]
        new["status"] = order.status
    db.session.flush()

    record_audit(
        action="STATUS_CHANGE" if "status" in new else "UPDATE",
        table_name=PurchaseOrder.__tablename__,
        record_id=order.id,
        old_values=old,
        new_values=new,
        user_name=actor,
    )
    return order


def delete_purchase_order(order_id: int, *, actor: str | None = None) -> PurchaseOrder:
    """Only pending and cancelled orders can be deleted."""
    order = get_document(PurchaseOrder, order_id, "Purchase order", for_update=True)
    if order.status not in (PO_PENDING, PO_CANCELLED):
        raise StateError(f"Cannot delete purchase order in {order.status} status")
    order.is_active = False
    db.session.flush()
    record_audit(
        action="DELETE",
        table_name=PurchaseOrder.__tablename__,
        record_id=order.id,
        old_values={"po_number": order.po_number, "status": order.status},
        user_name=actor,
    )
    return order
