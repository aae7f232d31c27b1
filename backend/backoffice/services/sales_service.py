# backend/backoffice/services/sales_service.py
"""
Retail and wholesale sales invoices.

Each line posts a 'sale' movement of -quantity at the selling store.
Soft-deleting an invoice posts matching 'sale_return' movements
(+quantity), restoring the balance exactly. Invoices with payments
allocated or active sales returns against them cannot be deleted.

Totals: subtotal = sum(qty * unit_price); discount = line discounts plus
an optional header discount; total = subtotal - discount + tax.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import NotFoundError, StateError, ValidationError
from ..extensions import db
from ..models import Customer, CustomerPaymentAllocation, Sale, SaleItem, SalesReturn, Store
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
    to_percent,
    to_positive_decimal,
    to_positive_int,
)
from .audit_service import record_audit
from .document_service import apply_header_patch, filter_documents, get_document, line_amounts, load_items
from .masters_service import require_active
from .numbering_service import next_document_number
from .status_service import PAYMENT_PAID, PAYMENT_UNPAID, require_transition
from .stock_service import post_stock_movement, reverse_reference

SALE_TYPES = ("retail", "wholesale")
PAYMENT_METHODS = ("cash", "card", "bank", "check", "credit")

SALE_PATCH_POLICY = ModelValidationPolicy(writable_fields={"description"})


def reference_type_for(sale_type: str) -> str:
    return f"sales_{sale_type}"


def _label(sale_type: str) -> str:
    return "Retail sale" if sale_type == "retail" else "Wholesale sale"


def create_sale(sale_type: str, payload: dict, *, created_by: str | None = None) -> Sale:
    """
    Create and post a sales invoice.

    payload: store_id, items[] (item_id, quantity, unit_price,
    discount_percent | discount_value, batch_number), customer_id,
    payment_method, payment_status (unpaid | paid), discount, tax,
    sale_date, description
    """
    sale_type = to_choice(sale_type, "sale_type", SALE_TYPES)
    require_fields(payload, ("store_id",))
    lines_in = require_items(payload)

    store = require_active(Store, payload["store_id"], "Store")
    customer = None
    if payload.get("customer_id"):
        customer = require_active(Customer, payload["customer_id"], "Customer")
    elif sale_type == "wholesale":
        raise ValidationError("customer_id is required for wholesale sales")

    payment_method = to_choice(payload.get("payment_method"), "payment_method", PAYMENT_METHODS, default="cash")
    payment_status = to_choice(
        payload.get("payment_status"), "payment_status", (PAYMENT_UNPAID, PAYMENT_PAID), default=PAYMENT_UNPAID
    )

    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "quantity"), context=f"item {idx}")
    items = load_items(raw["item_id"] for raw in lines_in)

    sale = Sale(
        invoice_number=next_document_number(reference_type_for(sale_type), store_id=store.id),
        sale_type=sale_type,
        store_id=store.id,
        customer_id=customer.id if customer else None,
        sale_date=to_date(payload.get("sale_date"), "sale_date", required=False) or today(),
        payment_method=payment_method,
        payment_status=payment_status,
        description=optional_text(payload.get("description")),
        created_by=created_by,
    )

    subtotal = Decimal("0")
    line_discounts = Decimal("0")
    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_positive_int(raw["quantity"], "quantity")
        default_price = item.wholesale_price if sale_type == "wholesale" else item.retail_price
        price = raw.get("unit_price")
        if price in (None, "") and default_price:
            price = default_price
        unit_price = to_positive_decimal(price, "unit_price")
        pct = to_percent(raw.get("discount_percent"))
        fixed = to_non_negative_decimal(raw.get("discount_value"), "discount_value")
        amounts = line_amounts(qty, unit_price, pct, fixed)
        subtotal += amounts.gross
        line_discounts += amounts.discount
        sale.items.append(
            SaleItem(
                item_id=item.id,
                quantity=qty,
                unit_price=unit_price,
                discount_percent=pct,
                discount_value=amounts.discount,
                net_value=amounts.net,
                batch_number=optional_text(raw.get("batch_number") or raw.get("batch_no")),
            )
        )

    header_discount = to_non_negative_decimal(payload.get("discount"), "discount")
    tax = to_non_negative_decimal(payload.get("tax"), "tax")
    discount = quantize(line_discounts + header_discount)
    total = quantize(subtotal - discount + tax)
    if total < 0:
        raise ValidationError("Discount cannot exceed the invoice value")

    sale.subtotal = quantize(subtotal)
    sale.discount = discount
    sale.tax = quantize(tax)
    sale.total = total
    sale.paid_amount = total if payment_status == PAYMENT_PAID else Decimal("0")

    db.session.add(sale)
    db.session.flush()

    for line in sale.items:
        post_stock_movement(
            item_id=line.item_id,
            store_id=sale.store_id,
            quantity=-line.quantity,
            transaction_type="sale",
            reference_type=reference_type_for(sale_type),
            reference_id=sale.id,
            batch_number=line.batch_number,
            notes=f"Sale {sale.invoice_number}",
            created_by=created_by,
        )

    record_audit(
        action="CREATE",
        table_name=Sale.__tablename__,
        record_id=sale.id,
        new_values={
            "invoice_number": sale.invoice_number,
            "sale_type": sale.sale_type,
            "store_id": sale.store_id,
            "customer_id": sale.customer_id,
            "total": sale.total,
            "payment_status": sale.payment_status,
        },
        user_name=created_by,
    )
    current_app.logger.info("Posted %s (total %s)", sale.invoice_number, sale.total)
    return sale


def get_sale(sale_type: str, sale_id: int) -> Sale:
    sale = get_document(Sale, sale_id, _label(sale_type))
    if sale.sale_type != sale_type:
        raise NotFoundError(f"{_label(sale_type)} {sale_id} not found")
    return sale


def list_sales_query(sale_type: str, *, customer_id: int | None = None, payment_status: str | None = None, **filters):
    q = db.session.query(Sale).filter(Sale.sale_type == sale_type)
    if customer_id:
        q = q.filter(Sale.customer_id == customer_id)
    return filter_documents(
        q,
        Sale,
        number_field="invoice_number",
        date_field="sale_date",
        status=payment_status,
        status_field="payment_status",
        **filters,
    )


def update_sale(sale_type: str, sale_id: int, payload: dict, *, updated_by: str | None = None) -> Sale:
    """PATCH payment_method, payment_status (guarded) and description."""
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("No updatable fields supplied")
    sale = get_sale(sale_type, sale_id)
    sale = get_document(Sale, sale.id, _label(sale_type), for_update=True)

    payload = dict(payload)
    old: dict = {}
    new: dict = {}

    if "payment_method" in payload:
        method = to_choice(payload.pop("payment_method"), "payment_method", PAYMENT_METHODS)
        old["payment_method"], new["payment_method"] = sale.payment_method, method
        sale.payment_method = method

    if "payment_status" in payload:
        target = payload.pop("payment_status")
        if target != sale.payment_status:
            require_transition("payment", sale.payment_status, target)
            old["payment_status"], new["payment_status"] = sale.payment_status, target
            sale.payment_status = target
            if target == PAYMENT_PAID:
                sale.paid_amount = sale.total

    if payload:
        o, n = apply_header_patch(sale, payload, SALE_PATCH_POLICY)
        old.update(o)
        new.update(n)

    db.session.flush()
    record_audit(
        action="UPDATE",
        table_name=Sale.__tablename__,
        record_id=sale.id,
        old_values=old,
        new_values=new,
        user_name=updated_by,
    )
    return sale


def delete_sale(sale_type: str, sale_id: int, *, deleted_by: str | None = None, reason: str | None = None) -> Sale:
    """Soft-delete an invoice and return its quantities to stock."""
    sale = get_sale(sale_type, sale_id)
    sale = get_document(Sale, sale.id, _label(sale_type), for_update=True)
    has_allocations = (
        db.session.query(CustomerPaymentAllocation.id)
        .filter(CustomerPaymentAllocation.sale_id == sale.id)
        .first()
    )
    if has_allocations is not None:
        raise StateError("Cannot delete an invoice that has payments allocated")
    has_returns = (
        db.session.query(SalesReturn.id)
        .filter(SalesReturn.sale_id == sale.id, SalesReturn.is_active.is_(True))
        .first()
    )
    if has_returns is not None:
        raise StateError("Cannot delete an invoice with active sales returns; delete the returns first")

    sale.is_active = False
    reverse_reference(
        reference_type_for(sale.sale_type),
        sale.id,
        notes=f"Sale {sale.invoice_number} deleted",
        created_by=deleted_by,
    )
    record_audit(
        action="DELETE",
        table_name=Sale.__tablename__,
        record_id=sale.id,
        old_values={"invoice_number": sale.invoice_number, "total": sale.total},
        user_name=deleted_by,
        reason=reason,
    )
    current_app.logger.info("Deleted %s and restored its stock", sale.invoice_number)
    return sale
