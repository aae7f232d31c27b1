# backend/backoffice/routes/purchasing.py
"""
Purchasing routes: purchase orders, goods-received notes and purchase returns.
"""
from flask import Blueprint, request

from ..responses import created, current_actor, json_body, list_filters, ok, page_args, paginate
from ..services import grn_service, purchase_order_service, purchase_return_service
from ..services.concurrency import run_in_transaction


purchase_grns_bp = Blueprint("purchase_grns", __name__, url_prefix="/api/purchase-grns")
purchase_returns_bp = Blueprint("purchase_returns", __name__, url_prefix="/api/purchase-returns")
purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_grns_bp.get("")
def list_grns():
    """
    List GRNs.

    Query parameters:
    - search: GRN number fragment
    - status: payment status (unpaid, partially_paid, paid)
    - store_id, supplier_id
    - date_from / date_to: grn_date range (YYYY-MM-DD)
    - limit (default 100, max 500), offset
    """
    limit, offset = page_args()
    filters = list_filters()
    query = grn_service.list_grns_query(
        supplier_id=request.args.get("supplier_id", type=int),
        payment_status=filters.pop("status"),
        **filters,
    )
    return paginate(query, lambda g: g.to_dict(), limit, offset)


@purchase_grns_bp.get("/<int:grn_id>")
def get_grn(grn_id: int):
    return ok(grn_service.get_grn(grn_id).to_dict(include_items=True))


@purchase_grns_bp.get("/<int:grn_id>/outstanding")
def get_grn_outstanding(grn_id: int):
    """Total, paid and outstanding amounts for one GRN."""
    return ok(grn_service.grn_outstanding(grn_id))


@purchase_grns_bp.post("")
def create_grn():
    """
    Create and post a GRN.

    Request body:
    {
        "supplier_id": int,
        "store_id": int,
        "grn_date": "YYYY-MM-DD" (optional, default today),
        "invoice_number": str, "invoice_date": "YYYY-MM-DD", "invoice_amount": number,
        "notes": str,
        "items": [{"item_id": int, "received_qty": int, "cost_price": number,
                   "discount_percent": number, "ordered_qty": int,
                   "batch_number": str, "batch_expiry": "YYYY-MM-DD"}]
    }

    Returns:
        201: GRN with lines
        400: validation error
        404: supplier, store or item not found
    """
    data = json_body()
    actor = current_actor()
    grn = run_in_transaction(lambda: grn_service.create_grn(data, created_by=actor))
    return created(grn.to_dict(include_items=True), message=f"GRN {grn.grn_number} created")


@purchase_grns_bp.patch("/<int:grn_id>")
def update_grn(grn_id: int):
    data = json_body()
    actor = current_actor()
    grn = run_in_transaction(lambda: grn_service.update_grn(grn_id, data, updated_by=actor))
    return ok(grn.to_dict(include_items=True), message="GRN updated")


@purchase_grns_bp.delete("/<int:grn_id>")
def delete_grn(grn_id: int):
    """Soft-delete and reverse the received stock."""
    actor = current_actor()
    reason = request.args.get("reason")
    grn = run_in_transaction(lambda: grn_service.delete_grn(grn_id, deleted_by=actor, reason=reason))
    return ok({"id": grn.id, "grn_number": grn.grn_number}, message="GRN deleted and stock reversed")


@purchase_returns_bp.get("")
def list_purchase_returns():
    limit, offset = page_args()
    filters = list_filters()
    filters.pop("status")
    query = purchase_return_service.list_purchase_returns_query(
        supplier_id=request.args.get("supplier_id", type=int),
        **filters,
    )
    return paginate(query, lambda r: r.to_dict(), limit, offset)


@purchase_returns_bp.get("/<int:return_id>")
def get_purchase_return(return_id: int):
    return ok(purchase_return_service.get_purchase_return(return_id).to_dict(include_items=True))


@purchase_returns_bp.post("")
def create_purchase_return():
    """
    Request body:
    {
        "supplier_id": int, "store_id": int, "return_reason": str,
        "grn_reference_id": int (optional),
        "items": [{"item_id": int, "return_qty": int, "cost_price": number, "discount_percent": number}]
    }
    """
    data = json_body()
    actor = current_actor()
    doc = run_in_transaction(lambda: purchase_return_service.create_purchase_return(data, created_by=actor))
    return created(doc.to_dict(include_items=True), message=f"Purchase return {doc.return_number} created")


@purchase_returns_bp.patch("/<int:return_id>")
def update_purchase_return(return_id: int):
    data = json_body()
    actor = current_actor()
    doc = run_in_transaction(
        lambda: purchase_return_service.update_purchase_return(return_id, data, updated_by=actor)
    )
    return ok(doc.to_dict(include_items=True), message="Purchase return updated")


@purchase_returns_bp.delete("/<int:return_id>")
def delete_purchase_return(return_id: int):
    actor = current_actor()
    doc = run_in_transaction(lambda: purchase_return_service.delete_purchase_return(return_id, deleted_by=actor))
    return ok({"id": doc.id, "return_number": doc.return_number}, message="Purchase return deleted and stock restored")


@purchase_orders_bp.get("")
def list_purchase_orders():
    """
    List purchase orders.

    Query parameters:
    - status: pending, sent, partial, received, cancelled or all
    - search: PO number fragment
    - store_id, supplier_id
    - date_from / date_to: po_date range (YYYY-MM-DD)
    - limit, offset
    """
    limit, offset = page_args()
    filters = list_filters()
    query = purchase_order_service.list_purchase_orders_query(
        supplier_id=request.args.get("supplier_id", type=int),
        **filters,
    )
    return paginate(query, lambda po: po.to_dict(), limit, offset)


@purchase_orders_bp.get("/<int:order_id>")
def get_purchase_order(order_id: int):
    return ok(purchase_order_service.get_purchase_order(order_id).to_dict(include_items=True))


@purchase_orders_bp.post("")
def create_purchase_order():
    """
    Request body:
    {
        "supplier_id": int, "store_id": int,
        "expected_delivery_date": "YYYY-MM-DD",
        "po_date": "YYYY-MM-DD" (optional, default today),
        "tax": number, "notes": str,
        "items": [{"item_id": int, "quantity": int, "unit_cost": number, "discount_percent": number}]
    }

    Returns:
        201: purchase order in pending status, with lines
        400: validation error
        404: supplier, store or item not found
    """
    data = json_body()
    actor = current_actor()
    order = run_in_transaction(lambda: purchase_order_service.create_purchase_order(data, created_by=actor))
    return created(order.to_dict(include_items=True), message="Purchase order created successfully")


@purchase_orders_bp.patch("/<int:order_id>")
def update_purchase_order(order_id: int):
    """Body: {"status": str, "expected_delivery_date": "YYYY-MM-DD"}, either or both."""
    data = json_body()
    actor = current_actor()
    order = run_in_transaction(
        lambda: purchase_order_service.update_purchase_order(order_id, data, actor=actor)
    )
    return ok(order.to_dict(include_items=True), message="Purchase order updated")


@purchase_orders_bp.delete("/<int:order_id>")
def delete_purchase_order(order_id: int):
    actor = current_actor()
    order = run_in_transaction(lambda: purchase_order_service.delete_purchase_order(order_id, actor=actor))
    return ok({"id": order.id, "po_number": order.po_number}, message="Purchase order deleted")
