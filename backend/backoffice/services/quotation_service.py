# backend/backoffice/services/quotation_service.py
"""
Customer quotations.

LIFECYCLE (status_service.TRANSITIONS["quotation"]):
  active -> converted | expired | cancelled; all three are terminal.

A quotation has no stock effect. Converting it creates a retail or
wholesale invoice through sales_service (which deducts the stock) for
all or some of its lines; the header discount and tax are prorated by
the share of lines converted.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import StateError, ValidationError
from ..extensions import db
from ..models import Customer, Quotation, QuotationItem, Sale, Store
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
    to_positive_decimal,
    to_positive_int,
)
from . import sales_service
from .audit_service import record_audit
from .document_service import apply_header_patch, filter_documents, get_document, line_amounts, load_items
from .masters_service import require_active
from .numbering_service import next_document_number
from .status_service import (
    QUOTATION_ACTIVE,
    QUOTATION_CONVERTED,
    QUOTATION_EXPIRED,
    require_transition,
)

QUOTATION_PATCH_POLICY = ModelValidationPolicy(
    writable_fields={"valid_until", "discount", "tax", "terms_conditions", "notes"},
    non_negative_fields={"discount", "tax"},
)


def _build_lines(quotation: Quotation, lines_in: list[dict]) -> None:
    for idx, raw in enumerate(lines_in, start=1):
        require_fields(raw, ("item_id", "quantity", "unit_price"), context=f"item {idx}")
    items = load_items(raw["item_id"] for raw in lines_in)

    quotation.items.clear()
    for raw in lines_in:
        item = items[to_int(raw["item_id"], "item_id")]
        qty = to_positive_int(raw["quantity"], "quantity")
        price = to_positive_decimal(raw["unit_price"], "unit_price")
        pct = to_percent(raw.get("discount_percent"))
        quotation.items.append(
            QuotationItem(
                item_id=item.id,
                quantity=qty,
                unit_price=price,
                discount_percent=pct,
                net_value=line_amounts(qty, price, pct).net,
            )
        )


def _recalculate(quotation: Quotation) -> None:
    """total = max(0, sum(line net) + tax - discount)"""
    subtotal = sum((line.net_value for line in quotation.items), Decimal("0"))
    quotation.subtotal = quantize(subtotal)
    total = quantize(subtotal + (quotation.tax or 0) - (quotation.discount or 0))
    quotation.total = total if total > 0 else Decimal("0.00")


def _check_validity(quotation: Quotation) -> None:
    if quotation.valid_until and quotation.valid_until < quotation.quotation_date:
        raise ValidationError("valid_until cannot be before the quotation date")


def create_quotation(payload: dict, *, created_by: str | None = None) -> Quotation:
    require_fields(payload, ("store_id", "customer_id"))
    lines_in = require_items(payload)

    store = require_active(Store, payload["store_id"], "Store")
    customer = require_active(Customer, payload["customer_id"], "Customer")

    quotation = Quotation(
        quotation_number=next_document_number("quotation", store_id=store.id),
        store_id=store.id,
        customer_id=customer.id,
        quotation_date=to_date(payload.get("quotation_date"), "quotation_date", required=False) or today(),
        valid_until=to_date(payload.get("valid_until"), "valid_until", required=False),
        discount=to_non_negative_decimal(payload.get("discount"), "discount"),
        tax=to_non_negative_decimal(payload.get("tax"), "tax"),
        status=QUOTATION_ACTIVE,
        terms_conditions=optional_text(payload.get("terms_conditions")),
        notes=optional_text(payload.get("notes")),
        created_by=created_by,
    )
    _check_validity(quotation)
    _build_lines(quotation, lines_in)
    _recalculate(quotation)

    db.session.add(quotation)
    db.session.flush()
    record_audit(
        action="CREATE",
        table_name=Quotation.__tablename__,
        record_id=quotation.id,
        new_values={"quotation_number": quotation.quotation_number, "total": quotation.total},
        user_name=created_by,
    )
    return quotation


def get_quotation(quotation_id: int) -> Quotation:
    return get_document(Quotation, quotation_id, "Quotation")


def list_quotations_query(*, customer_id: int | None = None, **filters):
    q = db.session.query(Quotation)
    if customer_id:
        q = q.filter(Quotation.customer_id == customer_id)
    return filter_documents(
        q, Quotation, number_field="quotation_number", date_field="quotation_date", **filters
    )


def _transition(quotation: Quotation, target: str, actor: str | None) -> None:
    current = quotation.status
    require_transition("quotation", current, target)
    quotation.status = target
    db.session.flush()
    record_audit(
        action="STATUS_CHANGE",
        table_name=Quotation.__tablename__,
        record_id=quotation.id,
        old_values={"status": current},
        new_values={"status": target},
        user_name=actor,
    )


def update_quotation(quotation_id: int, payload: dict, *, actor: str | None = None) -> Quotation:
    """
    PATCH {"status": "expired" | "cancelled"} on its own, or header
    fields and/or a replacement items[] while the quotation is active.
    """
    if not isinstance(payload, dict) or not payload:
        raise ValidationError("No updatable fields supplied")
    quotation = get_document(Quotation, quotation_id, "Quotation", for_update=True)

    if "status" in payload:
        if len(payload) > 1:
            raise ValidationError("status must be updated on its own")
        if payload["status"] == QUOTATION_CONVERTED:
            raise ValidationError("Use the convert endpoint to convert a quotation")
        _transition(quotation, payload["status"], actor)
        return quotation

    if quotation.status != QUOTATION_ACTIVE:
        raise StateError(f"Cannot edit quotation in {quotation.status} status")

    payload = dict(payload)
    lines_in = payload.pop("items", None)
    old: dict = {}
    new: dict = {}
    if payload:
        old, new = apply_header_patch(quotation, payload, QUOTATION_PATCH_POLICY)
        _check_validity(quotation)
    if lines_in is not None:
        _build_lines(quotation, require_items({"items": lines_in}))
        new["items"] = len(quotation.items)
    _recalculate(quotation)
    db.session.flush()

    record_audit(
        action="UPDATE",
        table_name=Quotation.__tablename__,
        record_id=quotation.id,
        old_values=old,
        new_values=new,
        user_name=actor,
    )
    return quotation


def convert_quotation(quotation_id: int, payload: dict, *, actor: str | None = None) -> tuple[Quotation, Sale]:
    """
    Turn an active quotation into a sales invoice.

    payload: sale_type (retail | wholesale, default retail), payment_method,
    payment_status, item_ids (quotation line ids; default all lines)
    """
    payload = payload or {}
    sale_type = payload.get("sale_type") or "retail"
    quotation = get_document(Quotation, quotation_id, "Quotation", for_update=True)
    if quotation.status != QUOTATION_ACTIVE:
        raise StateError(f"Cannot convert quotation in {quotation.status} status")
    if quotation.valid_until and quotation.valid_until < today():
        raise StateError(f"Quotation {quotation.quotation_number} expired on {quotation.valid_until}")

    lines = list(quotation.items)
    item_ids = payload.get("item_ids")
    if item_ids:
        wanted = {to_int(i, "item_ids") for i in item_ids}
        lines = [line for line in lines if line.id in wanted]
        if len(lines) != len(wanted):
            raise ValidationError("item_ids must reference lines of this quotation")
    if not lines:
        raise ValidationError("Quotation has no lines to convert")

    ratio = Decimal(len(lines)) / Decimal(len(quotation.items))
    sale = sales_service.create_sale(
        sale_type,
        {
            "store_id": quotation.store_id,
            "customer_id": quotation.customer_id,
            "payment_method": payload.get("payment_method"),
            "payment_status": payload.get("payment_status"),
            "discount": quantize((quotation.discount or 0) * ratio),
            "tax": quantize((quotation.tax or 0) * ratio),
            "description": f"Converted from quotation {quotation.quotation_number}",
            "items": [
                {
                    "item_id": line.item_id,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "discount_percent": line.discount_percent,
                }
                for line in lines
            ],
        },
        created_by=actor,
    )

    require_transition("quotation", quotation.status, QUOTATION_CONVERTED)
    quotation.status = QUOTATION_CONVERTED
    quotation.converted_sale_id = sale.id
    db.session.flush()
    record_audit(
        action="CONVERSION",
        table_name=Quotation.__tablename__,
        record_id=quotation.id,
        old_values={"status": QUOTATION_ACTIVE},
        new_values={"status": QUOTATION_CONVERTED, "sale_id": sale.id, "invoice_number": sale.invoice_number},
        user_name=actor,
    )
    current_app.logger.info("Converted %s into %s", quotation.quotation_number, sale.invoice_number)
    return quotation, sale


def expire_overdue(*, as_of=None) -> int:
    """Move active quotations past valid_until to expired; returns the count."""
    as_of = as_of or today()
    overdue = (
        db.session.query(Quotation)
        .filter(
            Quotation.is_active.is_(True),
            Quotation.status == QUOTATION_ACTIVE,
            Quotation.valid_until.isnot(None),
            Quotation.valid_until < as_of,
        )
        .all()
    )
    for quotation in overdue:
        _transition(quotation, QUOTATION_EXPIRED, "system")
    return len(overdue)


def delete_quotation(quotation_id: int, *, actor: str | None = None) -> Quotation:
    quotation = get_document(Quotation, quotation_id, "Quotation", for_update=True)
    if quotation.status == QUOTATION_CONVERTED:
        raise StateError("Cannot delete a converted quotation")
    quotation.is_active = False
    db.session.flush()
    record_audit(
        action="DELETE",
        table_name=Quotation.__tablename__,
        record_id=quotation.id,
        old_values={"quotation_number": quotation.quotation_number, "status": quotation.status},
        user_name=actor,
    )
    return quotation
