# backend/backoffice/services/purchase_return_service.py
"""
Purchase returns: stock sent back to a supplier.

Each line posts a 'purchase_return' movement of -return_qty at the
returning store. An optional GRN reference must belong to the same
supplier and store, and the returns against one GRN cannot send back
more of an item than it received.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import PurchaseGrn, PurchaseReturn, PurchaseReturnItem, Store, Supplier
from ..models.common import quantize
from ..time_utils import today
from ..validation import (
    ModelValidationPolicy,
    optional_text,
    require_fields,
    require_items,
    to_date,
    to_int,
    to_non_negative_decimal,
    to_percent,
    to_positive_int,
)
from .audit_service import record_audit
from .document_service import apply_header_patch, filter_documents, get_document, line_amounts, load_items
from .masters_service import require_active
from .numbering_service import next_document_number
from .stock_service import post_stock_movement, reverse_reference

REFERENCE_TYPE = "purchase_return"

PURCHASE_RETURN_PATCH_POLICY = ModelValidationPolicy(writable_fields={"return_reason", "notes"})


def returned_quantities(grn_id: int) -> dict[int, int]:
    """Quantity already sent back per item against a GRN (active returns only)."""
    rows = (
        db.session.query(PurchaseReturnItem.item_id, func.sum(PurchaseReturnItem.return_qty))
        .join(PurchaseReturn, PurchaseReturn.id == PurchaseReturnItem.return_id)
        .filter(PurchaseReturn.grn_id == grn_id, PurchaseReturn.is_active.is_(True))
        .group_by(PurchaseReturnItem.item_id)
        .all()
    )
    return {item_id: int(qty or 0) for item_id, qty in rows}


def _returnable(grn: PurchaseGrn) -> dict[int, int]:
    remaining: dict[int, int] = {}
    for line in grn.items:
        remaining[line.item_id] = remaining.get(line.item_id, 0) + line.received_qty
    for item_id, qty in returned_quantities(grn.id).items():
        remaining[item_id] = remaining.get(item_id, 0) - qty
    return remaining


def create_purchase_return(payload: dict, *, created_by: str | None = None) -> PurchaseReturn:
    require_fields(payload, ("supplier_id", "store_id", "return_reason"))
    lines_in = require_items(payload)

    supplier = require_active(Supplier, payload["supplier_id"], "Supplier")
    store = require_active(Store, payload["store_id"], "Store")

    grn = None
    remaining: dict[int, int] = {}
    grn_id = payload.get("grn_reference_id") or payload.get("grn_id")
    if grn_id:
        grn = get_document(PurchaseGrn, grn_id, "GRN", for_update=True)
        if grn.supplier_id != supplier.id:
            raise ValidationError("GRN does not belong to this supplier")
        if grn.store_id != store.id:
            raise ValidationError("GRN was received at a different store")
        remaining = _returnable(grn)

    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "return_qty"), context=f"item {idx}")
    items = load_items(raw["item_id"] for raw in lines_in)

    doc = PurchaseReturn(
        return_number=next_document_number("purchase_return"),
        supplier_id=supplier.id,
        store_id=store.id,
        grn_id=grn.id if grn else None,
        return_date=to_date(payload.get("return_date"), "return_date", required=False) or today(),
        return_reason=str(payload["return_reason"]).strip(),
        notes=optional_text(payload.get("notes")),
        created_by=created_by,
    )

    total = Decimal("0")
    returning: dict[int, int] = {}
    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_positive_int(raw["return_qty"], "return_qty")
        returning[item.id] = returning.get(item.id, 0) + qty
        if grn is not None and returning[item.id] > remaining.get(item.id, 0):
            raise ValidationError(
                f"Cannot return {returning[item.id]} of item {item.id}; only "
                f"{max(remaining.get(item.id, 0), 0)} of GRN {grn.grn_number} remain returnable"
            )
        cost = to_non_negative_decimal(raw.get("cost_price"), "cost_price", default=item.cost_price or Decimal("0"))
        pct = to_percent(raw.get("discount_percent"))
        amounts = line_amounts(qty, cost, pct)
        total += amounts.net
        doc.items.append(
            PurchaseReturnItem(
                item_id=item.id,
                return_qty=qty,
                batch_number=optional_text(raw.get("batch_number") or raw.get("batch_no")),
                cost_price=cost,
                discount_percent=pct,
                net_value=amounts.net,
            )
        )
    doc.total_amount = quantize(total)

    db.session.add(doc)
    db.session.flush()

    for line in doc.items:
        post_stock_movement(
            item_id=line.item_id,
            store_id=doc.store_id,
            quantity=-line.return_qty,
            transaction_type="purchase_return",
            reference_type=REFERENCE_TYPE,
            reference_id=doc.id,
            batch_number=line.batch_number,
            notes=f"Purchase return {doc.return_number}",
            created_by=created_by,
        )

    record_audit(
        action="CREATE",
        table_name=PurchaseReturn.__tablename__,
        record_id=doc.id,
        new_values={"return_number": doc.return_number, "total_amount": doc.total_amount, "grn_id": doc.grn_id},
        user_name=created_by,
    )
    current_app.logger.info("Posted purchase return %s", doc.return_number)
    return doc


def get_purchase_return(return_id: int) -> PurchaseReturn:
    return get_document(PurchaseReturn, return_id, "Purchase return")


def list_purchase_returns_query(*, supplier_id: int | None = None, **filters):
    q = db.session.query(PurchaseReturn)
    if supplier_id:
        q = q.filter(PurchaseReturn.supplier_id == supplier_id)
    return filter_documents(q, PurchaseReturn, number_field="return_number", date_field="return_date", **filters)


def update_purchase_return(return_id: int, payload: dict, *, updated_by: str | None = None) -> PurchaseReturn:
    doc = get_document(PurchaseReturn, return_id, "Purchase return", for_update=True)
    old, new = apply_header_patch(doc, payload, PURCHASE_RETURN_PATCH_POLICY)
    record_audit(
        action="UPDATE",
        table_name=PurchaseReturn.__tablename__,
        record_id=doc.id,
        old_values=old,
        new_values=new,
        user_name=updated_by,
    )
    return doc


def delete_purchase_return(return_id: int, *, deleted_by: str | None = None) -> PurchaseReturn:
    """Soft-delete and put the returned stock back."""
    doc = get_document(PurchaseReturn, return_id, "Purchase return", for_update=True)
    doc.is_active = False
    reverse_reference(REFERENCE_TYPE, doc.id, created_by=deleted_by)
    record_audit(
        action="DELETE",
        table_name=PurchaseReturn.__tablename__,
        record_id=doc.id,
        old_values={"return_number": doc.return_number},
        user_name=deleted_by,
    )
    return doc
