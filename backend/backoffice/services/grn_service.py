# backend/backoffice/services/grn_service.py
"""
Goods-received notes (purchase GRNs).

Posting a GRN adds every line's received_qty to the receiving store as a
'grn' movement. Deleting it posts 'grn_reversal' movements that bring the
balance back to where it was, which fails with InsufficientStockError if
the received stock has already been consumed.

Payment status is not set by clients: it moves unpaid -> partially_paid
-> paid as supplier payments are allocated (see payment_service).
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import StateError
from ..extensions import db
from ..models import PurchaseGrn, PurchaseGrnItem, PurchaseReturn, Store, Supplier, SupplierPaymentAllocation
from ..models.common import quantize, money
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
from .status_service import PAYMENT_UNPAID
from .stock_service import post_stock_movement, reverse_reference

REFERENCE_TYPE = "purchase_grn"

GRN_PATCH_POLICY = ModelValidationPolicy(
    writable_fields={"invoice_number", "invoice_date", "invoice_amount", "notes"},
    non_negative_fields={"invoice_amount"},
)


def create_grn(payload: dict, *, created_by: str | None = None) -> PurchaseGrn:
    """
    Create and post a GRN.

    payload:
        supplier_id, store_id, items[] (required)
        grn_date, invoice_number, invoice_date, invoice_amount, notes (optional)
        items[]: item_id, received_qty, cost_price, discount_percent,
                 ordered_qty, batch_number, batch_expiry
    """
    require_fields(payload, ("supplier_id", "store_id"))
    lines_in = require_items(payload)

    supplier = require_active(Supplier, payload["supplier_id"], "Supplier")
    store = require_active(Store, payload["store_id"], "Store")

    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "received_qty"), context=f"item {idx}")
    items = load_items(raw["item_id"] for raw in lines_in)

    grn = PurchaseGrn(
        grn_number=next_document_number("purchase_grn"),
        supplier_id=supplier.id,
        store_id=store.id,
        grn_date=to_date(payload.get("grn_date"), "grn_date", required=False) or today(),
        invoice_number=optional_text(payload.get("invoice_number")),
        invoice_date=to_date(payload.get("invoice_date"), "invoice_date", required=False),
        invoice_amount=(
            to_non_negative_decimal(payload["invoice_amount"], "invoice_amount")
            if payload.get("invoice_amount") not in (None, "") else None
        ),
        payment_status=PAYMENT_UNPAID,
        notes=optional_text(payload.get("notes")),
        created_by=created_by,
    )

    total = Decimal("0")
    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_positive_int(raw["received_qty"], "received_qty")
        ordered = raw.get("ordered_qty")
        cost = to_non_negative_decimal(raw.get("cost_price"), "cost_price", default=item.cost_price or Decimal("0"))
        pct = to_percent(raw.get("discount_percent"))
        amounts = line_amounts(qty, cost, pct)
        total += amounts.net
        grn.items.append(
            PurchaseGrnItem(
                item_id=item.id,
                ordered_qty=to_positive_int(ordered, "ordered_qty") if ordered not in (None, "") else qty,
                received_qty=qty,
                batch_number=optional_text(raw.get("batch_number") or raw.get("batch_no")),
                batch_expiry=to_date(raw.get("batch_expiry"), "batch_expiry", required=False),
                cost_price=cost,
                discount_percent=pct,
                discount_value=amounts.discount,
                net_value=amounts.net,
            )
        )
    grn.total_amount = quantize(total)

    db.session.add(grn)
    db.session.flush()

    for line in grn.items:
        post_stock_movement(
            item_id=line.item_id,
            store_id=grn.store_id,
            quantity=line.received_qty,
            transaction_type="grn",
            reference_type=REFERENCE_TYPE,
            reference_id=grn.id,
            batch_number=line.batch_number,
            batch_expiry=line.batch_expiry,
            notes=f"GRN {grn.grn_number}",
            created_by=created_by,
        )

    record_audit(
        action="CREATE",
        table_name=PurchaseGrn.__tablename__,
        record_id=grn.id,
        new_values={
            "grn_number": grn.grn_number,
            "supplier_id": grn.supplier_id,
            "store_id": grn.store_id,
            "total_amount": grn.total_amount,
            "lines": len(grn.items),
        },
        user_name=created_by,
    )
    current_app.logger.info("Posted %s (%s lines, total %s)", grn.grn_number, len(grn.items), grn.total_amount)
    return grn


def get_grn(grn_id: int) -> PurchaseGrn:
    return get_document(PurchaseGrn, grn_id, "GRN")


def list_grns_query(*, supplier_id: int | None = None, payment_status: str | None = None, **filters):
    q = db.session.query(PurchaseGrn)
    if supplier_id:
        q = q.filter(PurchaseGrn.supplier_id == supplier_id)
    return filter_documents(
        q,
        PurchaseGrn,
        number_field="grn_number",
        date_field="grn_date",
        status=payment_status,
        status_field="payment_status",
        **filters,
    )


def update_grn(grn_id: int, payload: dict, *, updated_by: str | None = None) -> PurchaseGrn:
    """Invoice metadata and notes are editable until the first payment."""
    grn = get_document(PurchaseGrn, grn_id, "GRN", for_update=True)
    if grn.payment_status != PAYMENT_UNPAID:
        raise StateError(f"Cannot edit GRN in {grn.payment_status} status")

    old, new = apply_header_patch(grn, payload, GRN_PATCH_POLICY)
    record_audit(
        action="UPDATE",
        table_name=PurchaseGrn.__tablename__,
        record_id=grn.id,
        old_values=old,
        new_values=new,
        user_name=updated_by,
    )
    return grn


def delete_grn(grn_id: int, *, deleted_by: str | None = None, reason: str | None = None) -> PurchaseGrn:
    """Soft-delete a GRN and take its stock back out of the store."""
    grn = get_document(PurchaseGrn, grn_id, "GRN", for_update=True)
    if allocation_summary(grn.id)[1]:
        raise StateError("Cannot delete a GRN that has payments allocated")
    has_returns = (
        db.session.query(PurchaseReturn.id)
        .filter(PurchaseReturn.grn_id == grn.id, PurchaseReturn.is_active.is_(True))
        .first()
    )
    if has_returns is not None:
        raise StateError("Cannot delete a GRN with active purchase returns; delete the returns first")

    grn.is_active = False
    reverse_reference(REFERENCE_TYPE, grn.id, notes=f"GRN {grn.grn_number} deleted", created_by=deleted_by)
    record_audit(
        action="DELETE",
        table_name=PurchaseGrn.__tablename__,
        record_id=grn.id,
        old_values={"grn_number": grn.grn_number, "total_amount": grn.total_amount},
        user_name=deleted_by,
        reason=reason,
    )
    current_app.logger.info("Deleted %s and reversed its stock", grn.grn_number)
    return grn


def allocation_summary(grn_id: int) -> tuple[Decimal, int]:
    """(sum of allocated amounts, number of allocations) for a GRN."""
    paid, count = (
        db.session.query(
            func.coalesce(func.sum(SupplierPaymentAllocation.allocation_amount), 0),
            func.count(SupplierPaymentAllocation.id),
        )
        .filter(SupplierPaymentAllocation.grn_id == grn_id)
        .one()
    )
    return quantize(paid), int(count)


def grn_outstanding(grn_id: int) -> dict:
    grn = get_grn(grn_id)
    paid, count = allocation_summary(grn.id)
    total = quantize(grn.total_amount)
    outstanding = total - paid
    percentage = (paid / total * 100) if total > 0 else Decimal("0")
    return {
        "grn_id": grn.id,
        "grn_number": grn.grn_number,
        "total_amount": money(total),
        "paid_amount": money(paid),
        "outstanding": money(outstanding),
        "percentage_paid": round(float(percentage), 2),
        "allocation_count": count,
        "payment_status": grn.payment_status,
    }
