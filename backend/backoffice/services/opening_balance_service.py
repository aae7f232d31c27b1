# backend/backoffice/services/opening_balance_service.py
"""
Supplier / customer opening balances carried over at go-live.

supplier: balance_type payable | advance, numbered SOPB-000001
customer: balance_type receivable | advance, numbered COPB-000001
"""
from __future__ import annotations

from dataclasses import dataclass

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, CustomerOpeningBalance, Supplier, SupplierOpeningBalance
from ..validation import (
    ModelValidationPolicy,
    optional_text,
    require_fields,
    to_choice,
    to_date,
    to_positive_decimal,
    validate_payload,
)
from .audit_service import record_audit
from .document_service import filter_documents, get_document
from .masters_service import require_active
from .numbering_service import next_document_number


@dataclass(frozen=True)
class BalanceKind:
    model: type
    party_model: type
    party_field: str
    party_label: str
    balance_types: tuple[str, ...]
    numbering: str
    label: str


KINDS = {
    "supplier": BalanceKind(
        model=SupplierOpeningBalance,
        party_model=Supplier,
        party_field="supplier_id",
        party_label="Supplier",
        balance_types=("payable", "advance"),
        numbering="supplier_opening_balance",
        label="Supplier opening balance",
    ),
    "customer": BalanceKind(
        model=CustomerOpeningBalance,
        party_model=Customer,
        party_field="customer_id",
        party_label="Customer",
        balance_types=("receivable", "advance"),
        numbering="customer_opening_balance",
        label="Customer opening balance",
    ),
}

PATCH_POLICY = ModelValidationPolicy(writable_fields={"entry_date", "amount", "balance_type", "notes"})


def _kind(name: str) -> BalanceKind:
    kind = KINDS.get(name)
    if kind is None:
        raise NotFoundError(f"Unknown opening balance kind: {name}")
    return kind


def create_opening_balance(kind_name: str, payload: dict, *, created_by: str | None = None):
    kind = _kind(kind_name)
    require_fields(payload, (kind.party_field, "amount", "entry_date"))
    party = require_active(kind.party_model, payload[kind.party_field], kind.party_label)

    entry = kind.model(
        entry_number=next_document_number(kind.numbering),
        entry_date=to_date(payload["entry_date"], "entry_date"),
        amount=to_positive_decimal(payload["amount"], "amount"),
        balance_type=to_choice(
            payload.get("balance_type"), "balance_type", kind.balance_types, default=kind.balance_types[0]
        ),
        notes=optional_text(payload.get("notes")),
        created_by=created_by,
    )
    setattr(entry, kind.party_field, party.id)
    db.session.add(entry)
    db.session.flush()
    record_audit(
        action="CREATE",
        table_name=kind.model.__tablename__,
        record_id=entry.id,
        new_values={"entry_number": entry.entry_number, "amount": entry.amount, "balance_type": entry.balance_type},
        user_name=created_by,
    )
    return entry


def get_opening_balance(kind_name: str, entry_id: int):
    kind = _kind(kind_name)
    return get_document(kind.model, entry_id, kind.label)


def list_opening_balances_query(kind_name: str, *, party_id: int | None = None, balance_type: str | None = None, **filters):
    kind = _kind(kind_name)
    q = db.session.query(kind.model)
    if party_id:
        q = q.filter(getattr(kind.model, kind.party_field) == party_id)
    return filter_documents(
        q,
        kind.model,
        number_field="entry_number",
        date_field="entry_date",
        status=balance_type,
        status_field="balance_type",
        **filters,
    )


def update_opening_balance(kind_name: str, entry_id: int, payload: dict, *, updated_by: str | None = None):
    kind = _kind(kind_name)
    entry = get_document(kind.model, entry_id, kind.label, for_update=True)
    patch = validate_payload(model=kind.model, payload=payload, policy=PATCH_POLICY, partial=True)
    if not patch:
        raise ValidationError("No updatable fields supplied")
    if "amount" in patch:
        patch["amount"] = to_positive_decimal(patch["amount"], "amount")
    if "balance_type" in patch:
        to_choice(patch["balance_type"], "balance_type", kind.balance_types)

    old = {k: getattr(entry, k) for k in patch}
    for k, v in patch.items():
        setattr(entry, k, v)
    db.session.flush()
    record_audit(
        action="UPDATE",
        table_name=kind.model.__tablename__,
        record_id=entry.id,
        old_values=old,
        new_values=patch,
        user_name=updated_by,
    )
    return entry


def delete_opening_balance(kind_name: str, entry_id: int, *, deleted_by: str | None = None):
    kind = _kind(kind_name)
    entry = get_document(kind.model, entry_id, kind.label, for_update=True)
    entry.is_active = False
    db.session.flush()
    record_audit(
        action="DELETE",
        table_name=kind.model.__tablename__,
        record_id=entry.id,
        old_values={"entry_number": entry.entry_number, "amount": entry.amount},
        user_name=deleted_by,
    )
    return entry
