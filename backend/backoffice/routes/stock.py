# backend/backoffice/routes/stock.py
"""
Stock routes: inter-store dispatch, adjustments, opening stock and the
stock queries (current balances, movement history).
"""
from flask import Blueprint, request

from ..responses import created, current_actor, json_body, list_filters, ok, page_args, paginate
from ..services import adjustment_service, dispatch_service, opening_stock_service, stock_service
from ..services.concurrency import run_in_transaction
from ..services.masters_service import require_active
from ..models import Item


dispatch_bp = Blueprint("item_dispatch", __name__, url_prefix="/api/item-dispatch")
adjustments_bp = Blueprint("stock_adjustments", __name__, url_prefix="/api/stock-adjustments")
opening_stock_bp = Blueprint("opening_stock", __name__, url_prefix="/api/opening-stock")
stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _without_status(filters: dict) -> dict:
    filters.pop("status")
    return filters


# ---------------------------------------------------------------------------
# Item dispatch
# ---------------------------------------------------------------------------

@dispatch_bp.get("")
def list_dispatches():
    """
    Query parameters: search, status, store_id (matches source or
    destination), date_from, date_to, limit, offset.
    """
    limit, offset = page_args()
    query = dispatch_service.list_dispatches_query(**list_filters())
    return paginate(query, lambda d: d.to_dict(), limit, offset)


@dispatch_bp.get("/<int:dispatch_id>")
def get_dispatch(dispatch_id: int):
    return ok(dispatch_service.get_dispatch(dispatch_id).to_dict(include_items=True))


@dispatch_bp.post("")
def create_dispatch():
    """
    Create a pending dispatch note. No stock moves until it is received.

    Request body:
    {
        "from_store_id": int,
        "to_store_id": int,
        "dispatch_date": "YYYY-MM-DD" (optional),
        "description": str,
        "items": [{"item_id": int, "quantity": int, "cost_price": number, "batch_number": str}]
    }

    Returns:
        201: dispatch note
        400: same source and destination, insufficient stock
    """
    data = json_body()
    actor = current_actor()
    note = run_in_transaction(lambda: dispatch_service.create_dispatch(data, created_by=actor))
    return created(note.to_dict(include_items=True), message=f"Dispatch {note.dispatch_number} created")


@dispatch_bp.patch("/<int:dispatch_id>")
def update_dispatch(dispatch_id: int):
    """
    Request body: {"status": "dispatched" | "received" | "cancelled"} on its own,
    or {"description": str} while the note is pending.

    Returns:
        200: updated note
        400: transition not allowed
    """
    data = json_body()
    actor = current_actor()
    note = run_in_transaction(lambda: dispatch_service.update_dispatch(dispatch_id, data, actor=actor))
    return ok(note.to_dict(include_items=True), message="Dispatch note updated")


@dispatch_bp.delete("/<int:dispatch_id>")
def delete_dispatch(dispatch_id: int):
    actor = current_actor()
    note = run_in_transaction(lambda: dispatch_service.delete_dispatch(dispatch_id, actor=actor))
    return ok({"id": note.id, "dispatch_number": note.dispatch_number}, message="Dispatch note deleted")


# ---------------------------------------------------------------------------
# Stock adjustments
# ---------------------------------------------------------------------------

@adjustments_bp.get("")
def list_adjustments():
    limit, offset = page_args()
    query = adjustment_service.list_adjustments_query(**_without_status(list_filters()))
    return paginate(query, lambda a: a.to_dict(), limit, offset)


@adjustments_bp.get("/<int:adjustment_id>")
def get_adjustment(adjustment_id: int):
    return ok(adjustment_service.get_adjustment(adjustment_id).to_dict(include_items=True))


@adjustments_bp.post("")
def create_adjustment():
    """
    Request body:
    {
        "store_id": int,
        "adjustment_date": "YYYY-MM-DD",
        "reason": str,
        "description": str,
        "items": [{"item_id": int, "adjustment_qty": int (signed), "adjustment_reason": str, "remarks": str}]
    }
    """
    data = json_body()
    actor = current_actor()
    adjustment = run_in_transaction(lambda: adjustment_service.create_adjustment(data, created_by=actor))
    return created(
        adjustment.to_dict(include_items=True),
        message=f"Stock adjustment {adjustment.adjustment_number} created",
    )


@adjustments_bp.patch("/<int:adjustment_id>")
def update_adjustment(adjustment_id: int):
    data = json_body()
    actor = current_actor()
    adjustment = run_in_transaction(
        lambda: adjustment_service.update_adjustment(adjustment_id, data, updated_by=actor)
    )
    return ok(adjustment.to_dict(include_items=True), message="Stock adjustment updated")


@adjustments_bp.delete("/<int:adjustment_id>")
def delete_adjustment(adjustment_id: int):
    actor = current_actor()
    adjustment = run_in_transaction(lambda: adjustment_service.delete_adjustment(adjustment_id, deleted_by=actor))
    return ok(
        {"id": adjustment.id, "adjustment_number": adjustment.adjustment_number},
        message="Stock adjustment deleted and stock reversed",
    )


# ---------------------------------------------------------------------------
# Opening stock
# ---------------------------------------------------------------------------

@opening_stock_bp.get("")
def list_opening_stock():
    limit, offset = page_args()
    query = opening_stock_service.list_opening_stock_query(**_without_status(list_filters()))
    return paginate(query, lambda e: e.to_dict(), limit, offset)


@opening_stock_bp.get("/<int:entry_id>")
def get_opening_stock(entry_id: int):
    return ok(opening_stock_service.get_opening_stock(entry_id).to_dict(include_items=True))


@opening_stock_bp.post("")
def create_opening_stock():
    """
    Request body:
    {
        "store_id": int,
        "supplier_id": int (optional),
        "entry_date": "YYYY-MM-DD" (optional),
        "description": str,
        "items": [{"item_id": int, "quantity": int, "cost_price": number,
                   "discount_percent": number, "batch_number": str, "batch_expiry": "YYYY-MM-DD"}]
    }
    """
    data = json_body()
    actor = current_actor()
    entry = run_in_transaction(lambda: opening_stock_service.create_opening_stock(data, created_by=actor))
    return created(entry.to_dict(include_items=True), message=f"Opening stock {entry.entry_number} created")


@opening_stock_bp.patch("/<int:entry_id>")
def update_opening_stock(entry_id: int):
    data = json_body()
    actor = current_actor()
    entry = run_in_transaction(lambda: opening_stock_service.update_opening_stock(entry_id, data, updated_by=actor))
    return ok(entry.to_dict(include_items=True), message="Opening stock entry updated")


@opening_stock_bp.delete("/<int:entry_id>")
def delete_opening_stock(entry_id: int):
    actor = current_actor()
    entry = run_in_transaction(lambda: opening_stock_service.delete_opening_stock(entry_id, deleted_by=actor))
    return ok({"id": entry.id, "entry_number": entry.entry_number}, message="Opening stock deleted and stock reversed")


# ---------------------------------------------------------------------------
# Stock queries
# ---------------------------------------------------------------------------

@stock_bp.get("/current")
def current_stock():
    """
    Current balances per (item, store).

    Query parameters: store_id, item_id, search (item name/code),
    low_stock=true, limit, offset.
    """
    limit, offset = page_args()
    query = stock_service.current_stock_query(
        store_id=request.args.get("store_id", type=int),
        item_id=request.args.get("item_id", type=int),
        search=request.args.get("search") or None,
        low_stock_only=request.args.get("low_stock", "false").lower() == "true",
    )
    return paginate(query, stock_service.balance_view, limit, offset)


@stock_bp.get("/<int:item_id>/history")
def stock_history(item_id: int):
    """Ledger rows for one item, newest first. Query: store_id, transaction_type."""
    require_active(Item, item_id, "Item")
    limit, offset = page_args()
    query = stock_service.history_query(
        item_id,
        store_id=request.args.get("store_id", type=int),
        transaction_type=request.args.get("transaction_type") or None,
    )
    return paginate(query, lambda t: t.to_dict(), limit, offset)
