# backend/backoffice/services/payment_service.py
"""
Supplier and customer payments with allocations.

A payment is split across open documents (GRNs for suppliers, sales
invoices for customers):
- allocations must sum exactly to the payment amount
- each allocation is > 0 and <= the document's outstanding amount
- each document must belong to the paying supplier / customer
- the document's paid_amount and payment_status move forward together
  (unpaid -> partially_paid -> paid) through the shared transition table

Payments are immutable once posted.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Customer,
    CustomerPayment,
    CustomerPaymentAllocation,
    PurchaseGrn,
    Sale,
    Supplier,
    SupplierPayment,
    SupplierPaymentAllocation,
)
from ..models.common import quantize
from ..time_utils import today
from ..validation import (
    optional_text,
    require_fields,
    to_choice,
    to_date,
    to_int,
    to_positive_decimal,
)
from .audit_service import record_audit
from .document_service import get_document
from .masters_service import require_active
from .numbering_service import next_document_number
from .status_service import advance_payment_status

PAYMENT_METHODS = ("cash", "card", "bank", "check")


@dataclass(frozen=True)
class PaymentKind:
    payment_model: type
    allocation_model: type
    party_model: type
    party_field: str
    party_label: str
    document_model: type
    document_field: str
    document_label: str
    document_number_attr: str
    document_total_attr: str
    numbering: str


SUPPLIER = PaymentKind(
    payment_model=SupplierPayment,
    allocation_model=SupplierPaymentAllocation,
    party_model=Supplier,
    party_field="supplier_id",
    party_label="Supplier",
    document_model=PurchaseGrn,
    document_field="grn_id",
    document_label="GRN",
    document_number_attr="grn_number",
    document_total_attr="total_amount",
    numbering="supplier_payment",
)

CUSTOMER = PaymentKind(
    payment_model=CustomerPayment,
    allocation_model=CustomerPaymentAllocation,
    party_model=Customer,
    party_field="customer_id",
    party_label="Customer",
    document_model=Sale,
    document_field="sale_id",
    document_label="Invoice",
    document_number_attr="invoice_number",
    document_total_attr="total",
    numbering="customer_payment",
)


def _document_id(raw: dict, kind: PaymentKind):
    # Customer allocations may name the invoice as invoice_id.
    value = raw.get(kind.document_field)
    if value in (None, "") and kind is CUSTOMER:
        value = raw.get("invoice_id")
    if value in (None, ""):
        raise ValidationError(f"Each allocation requires {kind.document_field}")
    return to_int(value, kind.document_field)


def _create_payment(kind: PaymentKind, payload: dict, created_by: str | None):
    require_fields(payload, (kind.party_field, "payment_method", "amount"))
    party = require_active(kind.party_model, payload[kind.party_field], kind.party_label)
    method = to_choice(payload["payment_method"], "payment_method", PAYMENT_METHODS)
    amount = quantize(to_positive_decimal(payload["amount"], "amount"))

    allocations_in = payload.get("allocations")
    if not isinstance(allocations_in, list) or not allocations_in:
        raise ValidationError("At least one allocation is required")

    parsed: list[tuple[int, Decimal]] = []
    seen: set[int] = set()
    for raw in allocations_in:
        if not isinstance(raw, dict):
            raise ValidationError("Each allocation must be an object")
        doc_id = _document_id(raw, kind)
        if doc_id in seen:
            raise ValidationError(f"{kind.document_label} {doc_id} is allocated more than once")
        seen.add(doc_id)
        parsed.append((doc_id, quantize(to_positive_decimal(raw.get("allocation_amount"), "allocation_amount"))))

    allocated = sum((a for _, a in parsed), Decimal("0"))
    if allocated != amount:
        raise ValidationError(f"Total allocations ({allocated}) must equal payment amount ({amount})")

    payment = kind.payment_model(
        payment_number=next_document_number(kind.numbering),
        payment_date=to_date(payload.get("payment_date"), "payment_date", required=False) or today(),
        payment_method=method,
        amount=amount,
        reference_number=optional_text(payload.get("reference_number")),
        notes=optional_text(payload.get("notes")),
        created_by=created_by,
    )
    setattr(payment, kind.party_field, party.id)
    db.session.add(payment)
    db.session.flush()

    for doc_id, alloc in parsed:
        doc = get_document(kind.document_model, doc_id, kind.document_label, for_update=True)
        number = getattr(doc, kind.document_number_attr)
        if getattr(doc, kind.party_field) != party.id:
            raise ValidationError(f"{kind.document_label} {number} does not belong to this {kind.party_label.lower()}")

        total = quantize(getattr(doc, kind.document_total_attr))
        paid = quantize(doc.paid_amount)
        outstanding = total - paid
        if alloc > outstanding:
            raise ValidationError(
                f"Allocation {alloc} exceeds outstanding {outstanding} on {kind.document_label} {number}"
            )

        allocation = kind.allocation_model(payment_id=payment.id, allocation_amount=alloc)
        setattr(allocation, kind.document_field, doc.id)
        db.session.add(allocation)

        previous = doc.payment_status
        doc.paid_amount = paid + alloc
        doc.payment_status = advance_payment_status(previous, total, doc.paid_amount)
        if doc.payment_status != previous:
            record_audit(
                action="STATUS_CHANGE",
                table_name=kind.document_model.__tablename__,
                record_id=doc.id,
                old_values={"payment_status": previous},
                new_values={"payment_status": doc.payment_status},
                user_name=created_by,
            )

    db.session.flush()
    record_audit(
        action="PAYMENT",
        table_name=kind.payment_model.__tablename__,
        record_id=payment.id,
        new_values={
            "payment_number": payment.payment_number,
            kind.party_field: party.id,
            "amount": amount,
            "allocations": [{kind.document_field: d, "amount": a} for d, a in parsed],
        },
        user_name=created_by,
    )
    current_app.logger.info(
        "Posted %s of %s across %s %s(s)", payment.payment_number, amount, len(parsed), kind.document_label
    )
    return payment


def create_supplier_payment(payload: dict, *, created_by: str | None = None) -> SupplierPayment:
    return _create_payment(SUPPLIER, payload, created_by)


def create_customer_payment(payload: dict, *, created_by: str | None = None) -> CustomerPayment:
    return _create_payment(CUSTOMER, payload, created_by)


def _get_payment(kind: PaymentKind, payment_id: int):
    payment = db.session.get(kind.payment_model, payment_id)
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def get_supplier_payment(payment_id: int) -> SupplierPayment:
    return _get_payment(SUPPLIER, payment_id)


def get_customer_payment(payment_id: int) -> CustomerPayment:
    return _get_payment(CUSTOMER, payment_id)


def _list_query(kind: PaymentKind, *, party_id=None, search=None, date_from=None, date_to=None):
    model = kind.payment_model
    q = db.session.query(model)
    if party_id:
        q = q.filter(getattr(model, kind.party_field) == party_id)
    if search:
        q = q.filter(model.payment_number.ilike(f"%{search.strip()}%"))
    if date_from:
        q = q.filter(model.payment_date >= date_from)
    if date_to:
        q = q.filter(model.payment_date <= date_to)
    return q.order_by(model.id.desc())


def list_supplier_payments_query(*, supplier_id=None, **filters):
    return _list_query(SUPPLIER, party_id=supplier_id, **filters)


def list_customer_payments_query(*, customer_id=None, **filters):
    return _list_query(CUSTOMER, party_id=customer_id, **filters)


def open_documents(kind_name: str, party_id: int) -> list[dict]:
    """Documents of a supplier/customer that still have an outstanding balance."""
    kind = SUPPLIER if kind_name == "supplier" else CUSTOMER
    model = kind.document_model
    rows = (
        db.session.query(model)
        .filter(
            getattr(model, kind.party_field) == party_id,
            model.is_active.is_(True),
            model.payment_status != "paid",
        )
        .order_by(model.id.asc())
        .all()
    )
    return [
        {
            "id": doc.id,
            "document_number": getattr(doc, kind.document_number_attr),
            "total": float(quantize(getattr(doc, kind.document_total_attr))),
            "paid_amount": float(quantize(doc.paid_amount)),
            "outstanding": float(quantize(getattr(doc, kind.document_total_attr)) - quantize(doc.paid_amount)),
            "payment_status": doc.payment_status,
        }
        for doc in rows
    ]
