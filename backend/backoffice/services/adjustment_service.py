# backend/backoffice/services/adjustment_service.py
"""
Stock adjustments: manual corrections (damage, count variance, found stock).

A line's adjustment_qty is signed; positive lines post 'adjustment_in',
negative ones 'adjustment_out'. The on-hand quantity at posting time is
kept on the line as current_stock.
"""
from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import StockAdjustment, StockAdjustmentItem, Store
from ..validation import ModelValidationPolicy, optional_text, require_fields, require_items, to_date, to_int
from .audit_service import record_audit
from .document_service import apply_header_patch, filter_documents, get_document, load_items
from .masters_service import require_active
from .numbering_service import next_document_number
from .stock_service import get_quantity_on_hand, post_stock_movement, reverse_reference

REFERENCE_TYPE = "stock_adjustment"

ADJUSTMENT_PATCH_POLICY = ModelValidationPolicy(writable_fields={"reason", "description"})


def create_adjustment(payload: dict, *, created_by: str | None = None) -> StockAdjustment:
    require_fields(payload, ("store_id", "adjustment_date", "reason"))
    lines_in = require_items(payload)

    store = require_active(Store, payload["store_id"], "Store")
    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "adjustment_qty"), context=f"item {idx}")
    items = load_items(raw["item_id"] for raw in lines_in)

    adjustment = StockAdjustment(
        adjustment_number=next_document_number("stock_adjustment"),
        store_id=store.id,
        adjustment_date=to_date(payload["adjustment_date"], "adjustment_date"),
        reason=str(payload["reason"]).strip(),
        description=optional_text(payload.get("description")),
        created_by=created_by,
    )
    db.session.add(adjustment)
    db.session.flush()

    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_int(raw["adjustment_qty"], "adjustment_qty")
        if qty == 0:
            raise ValidationError("adjustment_qty cannot be zero")
        txn_type = "adjustment_in" if qty > 0 else "adjustment_out"
        line = StockAdjustmentItem(
            item_id=item.id,
            current_stock=get_quantity_on_hand(item.id, store.id),
            adjustment_qty=qty,
            adjustment_type=txn_type,
            adjustment_reason=optional_text(raw.get("adjustment_reason")),
            batch_number=optional_text(raw.get("batch_number") or raw.get("batch_no")),
            remarks=optional_text(raw.get("remarks")),
        )
        adjustment.items.append(line)
        post_stock_movement(
            item_id=item.id,
            store_id=store.id,
            quantity=qty,
            transaction_type=txn_type,
            reference_type=REFERENCE_TYPE,
            reference_id=adjustment.id,
            batch_number=line.batch_number,
            notes=line.adjustment_reason or adjustment.reason,
            created_by=created_by,
        )

    adjustment.total_items = len(adjustment.items)
    db.session.flush()
    record_audit(
        action="CREATE",
        table_name=StockAdjustment.__tablename__,
        record_id=adjustment.id,
        new_values={
            "adjustment_number": adjustment.adjustment_number,
            "store_id": adjustment.store_id,
            "reason": adjustment.reason,
            "lines": adjustment.total_items,
        },
        user_name=created_by,
    )
    current_app.logger.info("Posted stock adjustment %s", adjustment.adjustment_number)
    return adjustment


def get_adjustment(adjustment_id: int) -> StockAdjustment:
    return get_document(StockAdjustment, adjustment_id, "Stock adjustment")


def list_adjustments_query(**filters):
    return filter_documents(
        db.session.query(StockAdjustment),
        StockAdjustment,
        number_field="adjustment_number",
        date_field="adjustment_date",
        **filters,
    )


def update_adjustment(adjustment_id: int, payload: dict, *, updated_by: str | None = None) -> StockAdjustment:
    adjustment = get_document(StockAdjustment, adjustment_id, "Stock adjustment", for_update=True)
    old, new = apply_header_patch(adjustment, payload, ADJUSTMENT_PATCH_POLICY)
    record_audit(
        action="UPDATE",
        table_name=StockAdjustment.__tablename__,
        record_id=adjustment.id,
        old_values=old,
        new_values=new,
        user_name=updated_by,
    )
    return adjustment


def delete_adjustment(adjustment_id: int, *, deleted_by: str | None = None) -> StockAdjustment:
    adjustment = get_document(StockAdjustment, adjustment_id, "Stock adjustment", for_update=True)
    adjustment.is_active = False
    reverse_reference(REFERENCE_TYPE, adjustment.id, created_by=deleted_by)
    record_audit(
        action="DELETE",
        table_name=StockAdjustment.__tablename__,
        record_id=adjustment.id,
        old_values={"adjustment_number": adjustment.adjustment_number},
        user_name=deleted_by,
    )
    return adjustment
