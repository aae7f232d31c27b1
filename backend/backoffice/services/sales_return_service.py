# backend/backoffice/services/sales_return_service.py
"""
Sales returns: goods brought back by a customer.

Every line posts a 'sale_return' movement of +return_qty. When the
return references an invoice, it must be the same store (and customer,
if the invoice had one), and the quantity returned per item across all
active returns cannot exceed what the invoice sold.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Customer, Sale, SalesReturn, SalesReturnItem, Store
from ..models.common import quantize
from ..time_utils import today
from ..validation import (
    ModelValidationPolicy,
    optional_text,
    require_fields,
    require_items,
    to_choice,
    to_date,
    to_int,
    to_non_negative_decimal,
    to_positive_int,
)
from .audit_service import record_audit
from .document_service import apply_header_patch, filter_documents, get_document, load_items
from .masters_service import require_active
from .numbering_service import next_document_number
from .stock_service import post_stock_movement, reverse_reference

REFERENCE_TYPE = "sales_return"
REFUND_METHODS = ("credit_note", "cash", "card", "bank")

SALES_RETURN_PATCH_POLICY = ModelValidationPolicy(writable_fields={"return_reason", "notes"})


def returned_quantities(sale_id: int) -> dict[int, int]:
    """Quantity already returned per item against an invoice (active returns only)."""
    rows = (
        db.session.query(SalesReturnItem.item_id, func.sum(SalesReturnItem.return_qty))
        .join(SalesReturn, SalesReturn.id == SalesReturnItem.return_id)
        .filter(SalesReturn.sale_id == sale_id, SalesReturn.is_active.is_(True))
        .group_by(SalesReturnItem.item_id)
        .all()
    )
    return {item_id: int(qty or 0) for item_id, qty in rows}


def _returnable(sale: Sale) -> dict[int, int]:
    sold: dict[int, int] = {}
    for line in sale.items:
        sold[line.item_id] = sold.get(line.item_id, 0) + line.quantity
    for item_id, qty in returned_quantities(sale.id).items():
        sold[item_id] = sold.get(item_id, 0) - qty
    return sold


def create_sales_return(payload: dict, *, created_by: str | None = None) -> SalesReturn:
    require_fields(payload, ("customer_id", "store_id", "return_reason"))
    lines_in = require_items(payload)

    customer = require_active(Customer, payload["customer_id"], "Customer")
    store = require_active(Store, payload["store_id"], "Store")

    sale = None
    remaining: dict[int, int] = {}
    if payload.get("sale_id"):
        sale = get_document(Sale, payload["sale_id"], "Sale")
        if sale.store_id != store.id:
            raise ValidationError("Invoice was issued by a different store")
        if sale.customer_id and sale.customer_id != customer.id:
            raise ValidationError("Invoice belongs to a different customer")
        remaining = _returnable(sale)

    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "return_qty"), context=f"item {idx}")
    items = load_items(raw["item_id"] for raw in lines_in)

    doc = SalesReturn(
        return_number=next_document_number("sales_return"),
        customer_id=customer.id,
        store_id=store.id,
        sale_id=sale.id if sale else None,
        return_date=to_date(payload.get("return_date"), "return_date", required=False) or today(),
        return_reason=str(payload["return_reason"]).strip(),
        refund_method=to_choice(payload.get("refund_method"), "refund_method", REFUND_METHODS, default="credit_note"),
        notes=optional_text(payload.get("notes")),
        created_by=created_by,
    )

    total = Decimal("0")
    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_positive_int(raw["return_qty"], "return_qty")
        if sale is not None:
            remaining[item.id] = remaining.get(item.id, 0) - qty
            if remaining[item.id] < 0:
                raise ValidationError(
                    f"Return quantity for item {item.id} exceeds what invoice {sale.invoice_number} sold"
                )
        price = to_non_negative_decimal(raw.get("unit_price"), "unit_price", default=item.retail_price or Decimal("0"))
        refund = quantize(Decimal(qty) * price)
        total += refund
        doc.items.append(SalesReturnItem(item_id=item.id, return_qty=qty, unit_price=price, refund_amount=refund))
    doc.total_refund_amount = quantize(total)

    db.session.add(doc)
    db.session.flush()

    for line in doc.items:
        post_stock_movement(
            item_id=line.item_id,
            store_id=doc.store_id,
            quantity=line.return_qty,
            transaction_type="sale_return",
            reference_type=REFERENCE_TYPE,
            reference_id=doc.id,
            notes=f"Sales return {doc.return_number}",
            created_by=created_by,
        )

    record_audit(
        action="CREATE",
        table_name=SalesReturn.__tablename__,
        record_id=doc.id,
        new_values={
            "return_number": doc.return_number,
            "sale_id": doc.sale_id,
            "total_refund_amount": doc.total_refund_amount,
        },
        user_name=created_by,
    )
    return doc


def get_sales_return(return_id: int) -> SalesReturn:
    return get_document(SalesReturn, return_id, "Sales return")


def list_sales_returns_query(*, customer_id: int | None = None, **filters):
    q = db.session.query(SalesReturn)
    if customer_id:
        q = q.filter(SalesReturn.customer_id == customer_id)
    return filter_documents(q, SalesReturn, number_field="return_number", date_field="return_date", **filters)


def update_sales_return(return_id: int, payload: dict, *, updated_by: str | None = None) -> SalesReturn:
    doc = get_document(SalesReturn, return_id, "Sales return", for_update=True)
    old, new = apply_header_patch(doc, payload, SALES_RETURN_PATCH_POLICY)
    record_audit(
        action="UPDATE",
        table_name=SalesReturn.__tablename__,
        record_id=doc.id,
        old_values=old,
        new_values=new,
        user_name=updated_by,
    )
    return doc


def delete_sales_return(return_id: int, *, deleted_by: str | None = None) -> SalesReturn:
    """Soft-delete and take the returned quantities back out of stock."""
    doc = get_document(SalesReturn, return_id, "Sales return", for_update=True)
    doc.is_active = False
    reverse_reference(REFERENCE_TYPE, doc.id, created_by=deleted_by)
    record_audit(
        action="DELETE",
        table_name=SalesReturn.__tablename__,
        record_id=doc.id,
        old_values={"return_number": doc.return_number},
        user_name=deleted_by,
    )
    return doc
