# Overview: Helpers shared by the document services: line maths, list filters, header patches.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Item
from ..models.common import quantize
from ..validation import ModelValidationPolicy, to_int, validate_payload
from .concurrency import lock_for_update

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineAmounts:
    gross: Decimal
    discount: Decimal
    net: Decimal


def line_amounts(
    quantity: int,
    unit_price: Decimal,
    discount_percent: Decimal = Decimal("0"),
    discount_value: Decimal | None = None,
) -> LineAmounts:
    """
    gross = qty * price; a fixed discount_value wins over discount_percent.

    >>> line_amounts(5, Decimal("100"), Decimal("10")).net
    Decimal('450.00')
    """
    gross = quantize(Decimal(quantity) * unit_price)
    if discount_value is not None and discount_value > 0:
        discount = quantize(discount_value)
    else:
        discount = quantize(gross * discount_percent / HUNDRED)
    if discount > gross:
        raise ValidationError("Line discount cannot exceed the line value")
    return LineAmounts(gross=gross, discount=discount, net=quantize(gross - discount))


def load_items(item_ids) -> dict[int, Item]:
    """Fetch every referenced item in one query; all must be active."""
    ids = {to_int(i, "item_id") for i in item_ids}
    rows = db.session.query(Item).filter(Item.id.in_(ids)).all() if ids else []
    found = {row.id: row for row in rows if row.is_active}
    missing = sorted(ids - set(found))
    if missing:
        raise NotFoundError(f"Item {missing[0]} not found")
    return found


def get_document(model, document_id: int, label: str, *, for_update: bool = False):
    document_id = to_int(document_id, f"{label} id")
    q = db.session.query(model).filter(model.id == document_id)
    if for_update:
        q = lock_for_update(q)
    doc = q.first()
    if doc is None or not doc.is_active:
        raise NotFoundError(f"{label} {document_id} not found")
    return doc


def apply_header_patch(doc, payload: dict, policy: ModelValidationPolicy) -> tuple[dict, dict]:
    """Validate an allowlisted header patch and apply it; returns (old, new)."""
    patch = validate_payload(model=type(doc), payload=payload, policy=policy, partial=True)
    if not patch:
        raise ValidationError("No updatable fields supplied")
    old = {k: getattr(doc, k) for k in patch}
    for k, v in patch.items():
        setattr(doc, k, v)
    db.session.flush()
    return old, patch


def filter_documents(
    query,
    model,
    *,
    number_field: str,
    date_field: str,
    search: str | None = None,
    status: str | None = None,
    status_field: str = "status",
    store_id: int | None = None,
    store_fields: tuple[str, ...] = ("store_id",),
    date_from: date | None = None,
    date_to: date | None = None,
    include_inactive: bool = False,
):
    """Apply the filters every document list endpoint accepts."""
    if not include_inactive:
        query = query.filter(model.is_active.is_(True))
    if search:
        query = query.filter(getattr(model, number_field).ilike(f"%{search.strip()}%"))
    if status:
        query = query.filter(getattr(model, status_field) == status)
    if store_id:
        conditions = [getattr(model, f) == store_id for f in store_fields]
        query = query.filter(db.or_(*conditions))
    if date_from:
        query = query.filter(getattr(model, date_field) >= date_from)
    if date_to:
        query = query.filter(getattr(model, date_field) <= date_to)
    return query.order_by(model.id.desc())
