from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from backoffice.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import SchemaValidationError, ValidationError


# Maximum money value accepted on any column: 999,999,999,999.99
MAX_AMOUNT = Decimal("999999999999.99")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set
    - required_on_create: fields required for POST
    - non_negative_fields: numeric columns that must be >= 0
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    non_negative_fields: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false", "1", "0"}:
            return value.strip().lower() in {"true", "1"}
        raise ValidationError("must be a boolean")

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or "e" in stripped.lower() or "." in stripped:
                raise ValidationError("must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError("must be an integer")
        raise ValidationError("must be an integer")

    # Money / decimals
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError("must be a number")
        try:
            dec = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError("must be a number")
        if not dec.is_finite():
            raise ValidationError("must be a finite number")
        if abs(dec) > MAX_AMOUNT:
            raise ValidationError(f"cannot exceed {MAX_AMOUNT}")
        return dec

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError("must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError("must be an ISO-8601 datetime")
            return dt
        raise ValidationError("must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        try:
            d = parse_iso_date(str(value))
        except ValueError:
            raise ValidationError("must be a date (YYYY-MM-DD)")
        if d is None:
            raise ValidationError("must be a date (YYYY-MM-DD)")
        return d

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Every problem is collected; the whole set is raised as one
    SchemaValidationError (HTTP 422).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise SchemaValidationError([{"field": "_body", "message": "Invalid JSON payload"}])

    errors: list[dict] = []
    cols = _columns_by_key(model)

    if not partial:
        for f in sorted(policy.required_on_create):
            if f not in payload:
                errors.append({"field": f, "message": "is required"})

    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            errors.append({"field": k, "message": "field not allowed"})
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                errors.append({"field": k, "message": "cannot be null"})
            else:
                patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as exc:
            errors.append({"field": k, "message": exc.message})
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            errors.append({"field": k, "message": "cannot be blank"})
            continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.append({"field": k, "message": f"exceeds max length {col.type.length}"})
                continue

        if k in policy.non_negative_fields and val is not None and val < 0:
            errors.append({"field": k, "message": "must be >= 0"})
            continue

        patch[k] = val

    if errors:
        raise SchemaValidationError(errors)
    return patch


# ---------------------------------------------------------------------------
# Inline checks for document payloads (header fields and nested items[])
# ---------------------------------------------------------------------------

def require_fields(data: dict, names: Iterable[str], *, context: str | None = None) -> None:
    missing = [n for n in names if data.get(n) in (None, "")]
    if missing:
        where = f" ({context})" if context else ""
        raise ValidationError(f"Missing required fields{where}: {', '.join(missing)}")


def require_items(data: dict, key: str = "items") -> list[dict]:
    items = data.get(key)
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {idx + 1} must be an object")
    return items


def to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{name} must be an integer")


def to_positive_int(value: Any, name: str) -> int:
    n = to_int(value, name)
    if n <= 0:
        raise ValidationError(f"{name} must be greater than 0")
    return n


def to_decimal(value: Any, name: str, *, default: Decimal | None = None) -> Decimal:
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{name} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        dec = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not dec.is_finite() or abs(dec) > MAX_AMOUNT:
        raise ValidationError(f"{name} is out of range")
    return dec


def to_positive_decimal(value: Any, name: str) -> Decimal:
    dec = to_decimal(value, name)
    if dec <= 0:
        raise ValidationError(f"{name} must be greater than 0")
    return dec


def to_non_negative_decimal(value: Any, name: str, *, default: Decimal = Decimal("0")) -> Decimal:
    dec = to_decimal(value, name, default=default)
    if dec < 0:
        raise ValidationError(f"{name} cannot be negative")
    return dec


def to_percent(value: Any, name: str = "discount_percent") -> Decimal:
    dec = to_non_negative_decimal(value, name)
    if dec > 100:
        raise ValidationError(f"{name} must be between 0 and 100")
    return dec


def to_choice(value: Any, name: str, choices: Iterable[str], *, default: str | None = None) -> str:
    allowed = tuple(choices)
    if value in (None, "") and default is not None:
        return default
    if value not in allowed:
        raise ValidationError(f"Invalid {name}. Must be one of: {', '.join(allowed)}")
    return value


def to_date(value: Any, name: str, *, required: bool = True) -> date | None:
    if value in (None, ""):
        if required:
            raise ValidationError(f"{name} is required")
        return None
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
