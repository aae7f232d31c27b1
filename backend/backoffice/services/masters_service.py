# Overview: Master data (categories, stores, items, suppliers, customers) with soft delete.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Customer, Item, Store, Supplier
from ..validation import ModelValidationPolicy, to_int, validate_payload
from .audit_service import record_audit


@dataclass(frozen=True)
class MasterResource:
    model: type
    label: str
    policy: ModelValidationPolicy
    unique_fields: tuple[str, ...] = ()
    search_fields: tuple[str, ...] = ("name",)
    order_by: str = "name"
    # unique values stay reserved after soft delete
    unique_includes_inactive: bool = False


MASTER_RESOURCES: dict[str, MasterResource] = {
    "categories": MasterResource(
        model=Category,
        label="Category",
        policy=ModelValidationPolicy(
            writable_fields={"name", "description"},
            required_on_create={"name"},
        ),
        unique_fields=("name",),
    ),
    "stores": MasterResource(
        model=Store,
        label="Store",
        policy=ModelValidationPolicy(
            writable_fields={"code", "name", "address", "email", "phone"},
            required_on_create={"code", "name"},
        ),
        unique_fields=("code",),
        search_fields=("name", "code"),
        unique_includes_inactive=True,
    ),
    "items": MasterResource(
        model=Item,
        label="Item",
        policy=ModelValidationPolicy(
            writable_fields={
                "code", "barcode", "name", "description", "category_id",
                "cost_price", "retail_price", "wholesale_price",
                "unit_of_measure", "reorder_level", "tax_rate", "tax_inclusive",
            },
            required_on_create={"code", "name"},
            non_negative_fields={
                "cost_price", "retail_price", "wholesale_price", "reorder_level", "tax_rate",
            },
        ),
        unique_fields=("code", "barcode"),
        search_fields=("name", "code", "barcode"),
    ),
    "suppliers": MasterResource(
        model=Supplier,
        label="Supplier",
        policy=ModelValidationPolicy(
            writable_fields={"name", "contact_person", "email", "phone", "address"},
            required_on_create={"name"},
        ),
        unique_fields=("name",),
        search_fields=("name", "phone", "email"),
    ),
    "customers": MasterResource(
        model=Customer,
        label="Customer",
        policy=ModelValidationPolicy(
            writable_fields={"name", "customer_type", "email", "phone", "address", "credit_limit"},
            required_on_create={"name"},
            non_negative_fields={"credit_limit"},
        ),
        search_fields=("name", "phone", "email"),
    ),
}


def require_active(model, record_id, label: str | None = None):
    """Load an active row or raise NotFoundError."""
    label = label or model.__name__
    if record_id is None:
        raise NotFoundError(f"{label} not found")
    record_id = to_int(record_id, f"{label} id")
    row = db.session.get(model, record_id)
    if row is None or not getattr(row, "is_active", True):
        raise NotFoundError(f"{label} {record_id} not found")
    return row


def _resource(kind: str) -> MasterResource:
    resource = MASTER_RESOURCES.get(kind)
    if resource is None:
        raise NotFoundError(f"Unknown resource: {kind}")
    return resource


def _check_unique(resource: MasterResource, patch: dict, exclude_id: int | None = None) -> None:
    model = resource.model
    for field in resource.unique_fields:
        value = patch.get(field)
        if value in (None, ""):
            continue
        q = db.session.query(model.id).filter(getattr(model, field) == value)
        if not resource.unique_includes_inactive:
            q = q.filter(model.is_active.is_(True))
        if exclude_id is not None:
            q = q.filter(model.id != exclude_id)
        if q.first() is not None:
            raise ConflictError(f"{resource.label} with {field} '{value}' already exists")


def _check_references(kind: str, patch: dict) -> None:
    if kind == "items" and patch.get("category_id") is not None:
        require_active(Category, patch["category_id"], "Category")
    if kind == "customers" and patch.get("customer_type") not in (None, "retail", "wholesale"):
        raise ValidationError("customer_type must be retail or wholesale")


def list_query(kind: str, *, search: str | None = None, include_inactive: bool = False):
    resource = _resource(kind)
    model = resource.model
    q = db.session.query(model)
    if not include_inactive:
        q = q.filter(model.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(*[getattr(model, f).ilike(pattern) for f in resource.search_fields]))
    return q.order_by(getattr(model, resource.order_by).asc(), model.id.asc())


def get_record(kind: str, record_id: int):
    resource = _resource(kind)
    return require_active(resource.model, record_id, resource.label)


def create_record(kind: str, payload: dict):
    resource = _resource(kind)
    patch = validate_payload(model=resource.model, payload=payload, policy=resource.policy, partial=False)
    _check_references(kind, patch)
    _check_unique(resource, patch)

    row = resource.model(**patch)
    db.session.add(row)
    db.session.flush()
    record_audit(action="CREATE", table_name=resource.model.__tablename__, record_id=row.id, new_values=patch)
    return row


def update_record(kind: str, record_id: int, payload: dict):
    resource = _resource(kind)
    row = require_active(resource.model, record_id, resource.label)
    patch = validate_payload(model=resource.model, payload=payload, policy=resource.policy, partial=True)
    _check_references(kind, patch)
    _check_unique(resource, patch, exclude_id=row.id)

    old = {k: getattr(row, k) for k in patch}
    for k, v in patch.items():
        setattr(row, k, v)
    db.session.flush()
    record_audit(
        action="UPDATE",
        table_name=resource.model.__tablename__,
        record_id=row.id,
        old_values=old,
        new_values=patch,
    )
    return row


def deactivate_record(kind: str, record_id: int):
    resource = _resource(kind)
    row = require_active(resource.model, record_id, resource.label)
    row.is_active = False
    db.session.flush()
    record_audit(action="DELETE", table_name=resource.model.__tablename__, record_id=row.id)
    return row
