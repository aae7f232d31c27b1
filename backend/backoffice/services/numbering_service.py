# Overview: Atomic document numbering per (document type, scope).

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import DocumentSequence, Store


@dataclass(frozen=True)
class NumberingScheme:
    prefix: str
    pad: int = 6
    store_scoped: bool = False


NUMBERING_SCHEMES: dict[str, NumberingScheme] = {
    "purchase_grn": NumberingScheme("GRN"),
    "purchase_return": NumberingScheme("PRET"),
    "purchase_order": NumberingScheme("PO"),
    "dispatch": NumberingScheme("DISP"),
    "stock_adjustment": NumberingScheme("STADJ"),
    "sales_return": NumberingScheme("SRET"),
    "supplier_opening_balance": NumberingScheme("SOPB"),
    "customer_opening_balance": NumberingScheme("COPB"),
    "supplier_payment": NumberingScheme("SPAY"),
    "customer_payment": NumberingScheme("CPAY"),
    "opening_stock": NumberingScheme("OPSTK", pad=3, store_scoped=True),
    "sales_retail": NumberingScheme("SINV", store_scoped=True),
    "sales_wholesale": NumberingScheme("WINV", store_scoped=True),
    "quotation": NumberingScheme("QUOT", store_scoped=True),
}


def _allocate(document_type: str, scope_key: str) -> int:
    """
    Reserve the next value of one sequence inside the caller's transaction.

    The UPDATE ... SET next_number = next_number + 1 is a single statement,
    so two writers on the same row serialize on the row lock instead of
    both reading the same value.
    """
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.scope_key == scope_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(
                    DocumentSequence(document_type=document_type, scope_key=scope_key, next_number=2)
                )
            return 1
        except IntegrityError:
            # Another transaction created the row first; fall through to increment it.
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, scope_key=scope_key)
        .scalar()
    )
    return current - 1


def next_document_number(document_type: str, *, store_id: int | None = None) -> str:
    """
    Allocate the next human-readable number for a document type.

    Global types render as "GRN-000001"; store-scoped types embed the
    store code, e.g. "MAIN-SINV-000001" or "MAIN-OPSTK-001". Numbers are
    never reused once committed, even when the document is later
    soft-deleted.
    """
    scheme = NUMBERING_SCHEMES.get(document_type)
    if scheme is None:
        raise ValidationError(f"Unknown document type: {document_type}")

    if scheme.store_scoped:
        if not store_id:
            raise ValidationError("store_id is required")
        store = db.session.get(Store, store_id)
        if store is None:
            raise NotFoundError(f"Store {store_id} not found")
        number = _allocate(document_type, str(store_id))
        return f"{store.code}-{scheme.prefix}-{number:0{scheme.pad}d}"

    number = _allocate(document_type, "")
    return f"{scheme.prefix}-{number:0{scheme.pad}d}"

