from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db

CENT = Decimal("0.01")


def Money(**kwargs):
    """Monetary column: fixed-point, two decimal places."""
    kwargs.setdefault("nullable", False)
    kwargs.setdefault("default", Decimal("0"))
    return db.Column(db.Numeric(14, 2), **kwargs)


def quantize(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money(value) -> float | None:
    """JSON-friendly view of a Numeric column."""
    if value is None:
        return None
    return float(quantize(value))
