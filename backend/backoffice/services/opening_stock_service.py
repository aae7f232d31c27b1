# backend/backoffice/services/opening_stock_service.py
"""
Opening stock: quantities carried over from a previous system at go-live.

Numbered per store ("MAIN-OPSTK-001"). An item may appear only once per
entry; every line posts an 'opening_stock' movement.
"""
from __future__ import annotations

from decimal import Decimal

from ..errors import ValidationError
from ..extensions import db
from ..models import OpeningStockEntry, OpeningStockItem, Store, Supplier
from ..models.common import quantize
from ..time_utils import today
from ..validation import (
    ModelValidationPolicy,
    optional_text,
    require_fields,
    require_items,
    to_date,
    to_int,
    to_percent,
    to_positive_decimal,
    to_positive_int,
)
from .audit_service import record_audit
from .document_service import apply_header_patch, filter_documents, get_document, line_amounts, load_items
from .masters_service import require_active
from .numbering_service import next_document_number
from .stock_service import post_stock_movement, reverse_reference

REFERENCE_TYPE = "opening_stock"

OPENING_STOCK_PATCH_POLICY = ModelValidationPolicy(writable_fields={"description"})


def create_opening_stock(payload: dict, *, created_by: str | None = None) -> OpeningStockEntry:
    require_fields(payload, ("store_id",))
    lines_in = require_items(payload)

    store = require_active(Store, payload["store_id"], "Store")
    supplier = None
    if payload.get("supplier_id"):
        supplier = require_active(Supplier, payload["supplier_id"], "Supplier")

    seen: set[int] = set()
    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "quantity", "cost_price"), context=f"item {idx}")
        item_id = to_int(raw["item_id"], "item_id")
        if item_id in seen:
            raise ValidationError(f"Item {item_id} appears more than once")
        seen.add(item_id)
    items = load_items(seen)

    entry = OpeningStockEntry(
        entry_number=next_document_number("opening_stock", store_id=store.id),
        store_id=store.id,
        supplier_id=supplier.id if supplier else None,
        entry_date=to_date(payload.get("entry_date"), "entry_date", required=False) or today(),
        description=optional_text(payload.get("description")),
        created_by=created_by,
    )

    total_value = Decimal("0")
    total_discount = Decimal("0")
    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_positive_int(raw["quantity"], "quantity")
        cost = to_positive_decimal(raw["cost_price"], "cost_price")
        pct = to_percent(raw.get("discount_percent"))
        amounts = line_amounts(qty, cost, pct)
        total_value += amounts.gross
        total_discount += amounts.discount
        entry.items.append(
            OpeningStockItem(
                item_id=item.id,
                quantity=qty,
                cost_price=cost,
                discount_percent=pct,
                discount_value=amounts.discount,
                net_value=amounts.net,
                batch_number=optional_text(raw.get("batch_number") or raw.get("batch_no")),
                batch_expiry=to_date(raw.get("batch_expiry"), "batch_expiry", required=False),
            )
        )
    entry.total_value = quantize(total_value)
    entry.total_discount = quantize(total_discount)
    entry.net_total = quantize(total_value - total_discount)

    db.session.add(entry)
    db.session.flush()

    for line in entry.items:
        post_stock_movement(
            item_id=line.item_id,
            store_id=entry.store_id,
            quantity=line.quantity,
            transaction_type="opening_stock",
            reference_type=REFERENCE_TYPE,
            reference_id=entry.id,
            batch_number=line.batch_number,
            batch_expiry=line.batch_expiry,
            notes=f"Opening stock {entry.entry_number}",
            created_by=created_by,
        )

    record_audit(
        action="CREATE",
        table_name=OpeningStockEntry.__tablename__,
        record_id=entry.id,
        new_values={"entry_number": entry.entry_number, "net_total": entry.net_total},
        user_name=created_by,
    )
    return entry


def get_opening_stock(entry_id: int) -> OpeningStockEntry:
    return get_document(OpeningStockEntry, entry_id, "Opening stock entry")


def list_opening_stock_query(**filters):
    return filter_documents(
        db.session.query(OpeningStockEntry),
        OpeningStockEntry,
        number_field="entry_number",
        date_field="entry_date",
        **filters,
    )


def update_opening_stock(entry_id: int, payload: dict, *, updated_by: str | None = None) -> OpeningStockEntry:
    entry = get_document(OpeningStockEntry, entry_id, "Opening stock entry", for_update=True)
    old, new = apply_header_patch(entry, payload, OPENING_STOCK_PATCH_POLICY)
    record_audit(
        action="UPDATE",
        table_name=OpeningStockEntry.__tablename__,
        record_id=entry.id,
        old_values=old,
        new_values=new,
        user_name=updated_by,
    )
    return entry


def delete_opening_stock(entry_id: int, *, deleted_by: str | None = None) -> OpeningStockEntry:
    entry = get_document(OpeningStockEntry, entry_id, "Opening stock entry", for_update=True)
    entry.is_active = False
    reverse_reference(REFERENCE_TYPE, entry.id, created_by=deleted_by)
    record_audit(
        action="DELETE",
        table_name=OpeningStockEntry.__tablename__,
        record_id=entry.id,
        old_values={"entry_number": entry.entry_number},
        user_name=deleted_by,
    )
    return entry
