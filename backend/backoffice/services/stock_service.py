# Overview: Stock ledger: atomic balance updates plus the immutable movement log.

"""
Stock ledger invariants

- StockBalance.quantity_on_hand for (item, store) equals the signed sum of
  InventoryTransaction.quantity for the same pair.
- The only way stock changes is post_stock_movement(), which updates the
  balance and appends the transaction inside the caller's DB transaction.
- Balances are changed with a single UPDATE ... SET qty = qty + delta, never
  read-modify-write.
- Negative on-hand is rejected on every path unless ALLOW_NEGATIVE_STOCK is
  enabled; there is no clamping.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import InsufficientStockError, StateError, ValidationError
from ..extensions import db
from ..models import InventoryTransaction, Item, StockBalance
from ..time_utils import today
from .audit_service import record_audit


TRANSACTION_TYPES = (
    "grn",
    "grn_reversal",
    "sale",
    "sale_return",
    "sale_return_reversal",
    "purchase_return",
    "purchase_return_reversal",
    "dispatch_out",
    "dispatch_in",
    "adjustment_in",
    "adjustment_out",
    "opening_stock",
    "opening_stock_reversal",
)

# Movement type -> type of the movement that undoes it.
REVERSAL_TYPES = {
    "grn": "grn_reversal",
    "sale": "sale_return",
    "purchase_return": "purchase_return_reversal",
    "sale_return": "sale_return_reversal",
    "opening_stock": "opening_stock_reversal",
    "adjustment_in": "adjustment_out",
    "adjustment_out": "adjustment_in",
}

REVERSAL_SUFFIX = "_reversal"


def _negative_allowed(override: bool | None) -> bool:
    if override is not None:
        return override
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", False))


def get_quantity_on_hand(item_id: int, store_id: int) -> int:
    qty = (
        db.session.query(StockBalance.quantity_on_hand)
        .filter_by(item_id=item_id, store_id=store_id)
        .scalar()
    )
    return qty or 0


def get_available_quantity(item_id: int, store_id: int) -> int:
    """On-hand minus quantity reserved by dispatch notes in transit."""
    row = (
        db.session.query(StockBalance.quantity_on_hand, StockBalance.reserved_quantity)
        .filter_by(item_id=item_id, store_id=store_id)
        .first()
    )
    if row is None:
        return 0
    return (row[0] or 0) - (row[1] or 0)


def apply_stock_delta(
    item_id: int,
    store_id: int,
    delta: int,
    *,
    allow_negative: bool | None = None,
) -> int:
    """
    Atomically add delta to the on-hand quantity of (item, store).

    Decrements are guarded in the same statement
    (on_hand - reserved + delta >= 0), so concurrent writers cannot drive
    available stock below zero. Creates the balance row on first receipt.

    Returns the new on-hand quantity.
    """
    if delta == 0:
        return get_quantity_on_hand(item_id, store_id)

    negative_ok = _negative_allowed(allow_negative)

    values = {"quantity_on_hand": StockBalance.quantity_on_hand + delta}
    if delta > 0:
        values["last_restock_date"] = today()

    stmt = (
        update(StockBalance)
        .where(StockBalance.item_id == item_id, StockBalance.store_id == store_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if delta < 0 and not negative_ok:
        stmt = stmt.where(
            StockBalance.quantity_on_hand - StockBalance.reserved_quantity + delta >= 0
        )

    if db.session.execute(stmt).rowcount:
        return get_quantity_on_hand(item_id, store_id)

    exists = (
        db.session.query(StockBalance.id)
        .filter_by(item_id=item_id, store_id=store_id)
        .first()
    )
    if exists is not None:
        raise InsufficientStockError(
            item_id, store_id, get_available_quantity(item_id, store_id), -delta
        )

    if delta < 0 and not negative_ok:
        raise InsufficientStockError(item_id, store_id, 0, -delta)

    try:
        with db.session.begin_nested():
            db.session.add(
                StockBalance(
                    item_id=item_id,
                    store_id=store_id,
                    quantity_on_hand=delta,
                    reserved_quantity=0,
                    last_restock_date=today() if delta > 0 else None,
                )
            )
    except IntegrityError:
        # Row created concurrently; apply the delta to it instead.
        if not db.session.execute(stmt).rowcount:
            raise InsufficientStockError(
                item_id, store_id, get_available_quantity(item_id, store_id), -delta
            )
    return get_quantity_on_hand(item_id, store_id)


def _change_reservation(item_id: int, store_id: int, delta: int) -> None:
    stmt = (
        update(StockBalance)
        .where(StockBalance.item_id == item_id, StockBalance.store_id == store_id)
        .values(reserved_quantity=StockBalance.reserved_quantity + delta)
        .execution_options(synchronize_session=False)
    )
    if delta > 0:
        if not _negative_allowed(None):
            stmt = stmt.where(
                StockBalance.quantity_on_hand - StockBalance.reserved_quantity - delta >= 0
            )
    else:
        stmt = stmt.where(StockBalance.reserved_quantity + delta >= 0)

    if db.session.execute(stmt).rowcount:
        return
    if delta < 0:
        raise StateError(f"No reserved stock to release for item {item_id} at store {store_id}")

    exists = (
        db.session.query(StockBalance.id)
        .filter_by(item_id=item_id, store_id=store_id)
        .first()
    )
    if exists is not None or not _negative_allowed(None):
        raise InsufficientStockError(
            item_id, store_id, get_available_quantity(item_id, store_id), delta
        )

    # Negative stock allowed and the source has never held the item: open a balance row
    try:
        with db.session.begin_nested():
            db.session.add(
                StockBalance(item_id=item_id, store_id=store_id, quantity_on_hand=0, reserved_quantity=delta)
            )
    except IntegrityError:
        db.session.execute(stmt)


def reserve_stock(item_id: int, store_id: int, quantity: int) -> None:
    """Hold quantity for a dispatch in transit; fails if not available."""
    _change_reservation(item_id, store_id, quantity)


def release_reservation(item_id: int, store_id: int, quantity: int) -> None:
    _change_reservation(item_id, store_id, -quantity)


def log_transaction(
    *,
    item_id: int,
    store_id: int,
    quantity: int,
    transaction_type: str,
    reference_type: str | None,
    reference_id: int | None,
    batch_number: str | None = None,
    batch_expiry: date | None = None,
    notes: str | None = None,
    created_by: str | None = None,
) -> InventoryTransaction:
    """Append one immutable ledger row (no balance change)."""
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type: {transaction_type}")
    txn = InventoryTransaction(
        item_id=item_id,
        store_id=store_id,
        transaction_type=transaction_type,
        quantity=quantity,
        batch_number=batch_number,
        batch_expiry=batch_expiry,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        created_by=created_by,
    )
    db.session.add(txn)
    return txn


def post_stock_movement(
    *,
    item_id: int,
    store_id: int,
    quantity: int,
    transaction_type: str,
    reference_type: str,
    reference_id: int,
    batch_number: str | None = None,
    batch_expiry: date | None = None,
    notes: str | None = None,
    created_by: str | None = None,
    allow_negative: bool | None = None,
) -> InventoryTransaction:
    """
    Change stock and record why, as one unit of work.

    quantity is the signed delta. Nothing is committed here; the caller's
    transaction makes the balance update and the ledger row atomic.
    """
    if quantity == 0:
        raise ValidationError("Stock movement quantity cannot be zero")
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type: {transaction_type}")

    apply_stock_delta(item_id, store_id, quantity, allow_negative=allow_negative)
    txn = log_transaction(
        item_id=item_id,
        store_id=store_id,
        quantity=quantity,
        transaction_type=transaction_type,
        reference_type=reference_type,
        reference_id=reference_id,
        batch_number=batch_number,
        batch_expiry=batch_expiry,
        notes=notes,
        created_by=created_by,
    )
    db.session.flush()
    return txn


def movements_for_reference(reference_type: str, reference_id: int) -> list[InventoryTransaction]:
    return (
        db.session.query(InventoryTransaction)
        .filter_by(reference_type=reference_type, reference_id=reference_id)
        .order_by(InventoryTransaction.id.asc())
        .all()
    )


def reverse_reference(
    reference_type: str,
    reference_id: int,
    *,
    notes: str | None = None,
    created_by: str | None = None,
) -> list[InventoryTransaction]:
    """
    Post the exact inverse of every movement recorded against a document.

    Reversal rows carry reference_type "<reference_type>_reversal" and the
    same reference_id, so a document can only be reversed once.
    """
    reversal_ref = f"{reference_type}{REVERSAL_SUFFIX}"
    already = (
        db.session.query(InventoryTransaction.id)
        .filter_by(reference_type=reversal_ref, reference_id=reference_id)
        .first()
    )
    if already is not None:
        raise StateError(f"Stock for {reference_type} {reference_id} has already been reversed")

    reversed_rows = []
    for txn in movements_for_reference(reference_type, reference_id):
        reversal_type = REVERSAL_TYPES.get(txn.transaction_type)
        if reversal_type is None:
            raise StateError(f"{txn.transaction_type} movements cannot be reversed")
        reversed_rows.append(
            post_stock_movement(
                item_id=txn.item_id,
                store_id=txn.store_id,
                quantity=-txn.quantity,
                transaction_type=reversal_type,
                reference_type=reversal_ref,
                reference_id=reference_id,
                batch_number=txn.batch_number,
                batch_expiry=txn.batch_expiry,
                notes=notes or f"Reversal of {reference_type} {reference_id}",
                created_by=created_by,
            )
        )
    record_audit(
        action="REVERSAL",
        table_name=InventoryTransaction.__tablename__,
        record_id=reference_id,
        new_values={
            "reference_type": reversal_ref,
            "movements": [
                {"item_id": r.item_id, "store_id": r.store_id, "quantity": r.quantity} for r in reversed_rows
            ],
        },
        reason=notes,
        user_name=created_by,
    )
    return reversed_rows


def reconcile_balances(*, store_id: int | None = None, fix: bool = False) -> list[dict]:
    """
    Compare every balance with the signed sum of its ledger rows.

    Returns one dict per mismatching (item, store). With fix=True the
    balance is overwritten with the ledger total (missing balance rows are
    created); the caller commits.
    """
    ledger_q = db.session.query(
        InventoryTransaction.item_id,
        InventoryTransaction.store_id,
        func.coalesce(func.sum(InventoryTransaction.quantity), 0),
    ).group_by(InventoryTransaction.item_id, InventoryTransaction.store_id)
    balance_q = db.session.query(StockBalance)
    if store_id is not None:
        ledger_q = ledger_q.filter(InventoryTransaction.store_id == store_id)
        balance_q = balance_q.filter(StockBalance.store_id == store_id)

    ledger = {(item_id, sid): int(total) for item_id, sid, total in ledger_q.all()}
    balances = {(b.item_id, b.store_id): b for b in balance_q.populate_existing().all()}

    mismatches = []
    for key in sorted(set(ledger) | set(balances)):
        expected = ledger.get(key, 0)
        balance = balances.get(key)
        actual = balance.quantity_on_hand if balance is not None else 0
        if expected == actual:
            continue
        mismatches.append({
            "item_id": key[0],
            "store_id": key[1],
            "quantity_on_hand": actual,
            "ledger_quantity": expected,
            "difference": actual - expected,
        })
        if fix:
            if balance is None:
                db.session.add(StockBalance(item_id=key[0], store_id=key[1], quantity_on_hand=expected))
            else:
                balance.quantity_on_hand = expected

    if fix and mismatches:
        db.session.flush()
        current_app.logger.warning("Rebuilt %s stock balances from the ledger", len(mismatches))
    return mismatches


def low_stock_level(item, threshold: int | None = None) -> int:
    """Item reorder level, falling back to LOW_STOCK_THRESHOLD when unset."""
    if item is not None and item.reorder_level:
        return item.reorder_level
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    return threshold


def balance_view(balance: StockBalance) -> dict:
    data = balance.to_dict()
    data["is_low_stock"] = balance.quantity_on_hand <= low_stock_level(balance.item)
    return data


def current_stock_query(
    *,
    store_id: int | None = None,
    item_id: int | None = None,
    search: str | None = None,
    low_stock_only: bool = False,
):
    q = db.session.query(StockBalance).join(Item, Item.id == StockBalance.item_id)
    if store_id:
        q = q.filter(StockBalance.store_id == store_id)
    if item_id:
        q = q.filter(StockBalance.item_id == item_id)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(Item.name.ilike(pattern), Item.code.ilike(pattern)))
    if low_stock_only:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
        level = db.case((Item.reorder_level > 0, Item.reorder_level), else_=threshold)
        q = q.filter(StockBalance.quantity_on_hand <= level)
    return q.order_by(Item.name.asc(), StockBalance.store_id.asc())


def history_query(item_id: int, *, store_id: int | None = None, transaction_type: str | None = None):
    q = db.session.query(InventoryTransaction).filter(InventoryTransaction.item_id == item_id)
    if store_id:
        q = q.filter(InventoryTransaction.store_id == store_id)
    if transaction_type:
        q = q.filter(InventoryTransaction.transaction_type == transaction_type)
    return q.order_by(InventoryTransaction.id.desc())
