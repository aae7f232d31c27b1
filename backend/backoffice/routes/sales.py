# backend/backoffice/routes/sales.py
"""
Sales routes: retail and wholesale invoices, sales returns, quotations.
"""
from flask import Blueprint, request

from ..responses import created, current_actor, json_body, list_filters, ok, page_args, paginate
from ..services import quotation_service, sales_return_service, sales_service
from ..services.concurrency import run_in_transaction


sales_returns_bp = Blueprint("sales_returns", __name__, url_prefix="/api/sales-returns")
quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


def make_sales_blueprint(sale_type: str) -> Blueprint:
    """
    /api/sales-<sale_type> CRUD. Retail and wholesale invoices share one
    table and differ only in numbering, default price and customer rules.
    """
    bp = Blueprint(f"sales_{sale_type}", __name__, url_prefix=f"/api/sales-{sale_type}")

    @bp.get("")
    def list_sales():
        limit, offset = page_args()
        filters = list_filters()
        query = sales_service.list_sales_query(
            sale_type,
            customer_id=request.args.get("customer_id", type=int),
            payment_status=filters.pop("status"),
            **filters,
        )
        return paginate(query, lambda s: s.to_dict(), limit, offset)

    @bp.get("/<int:sale_id>")
    def get_sale(sale_id: int):
        return ok(sales_service.get_sale(sale_type, sale_id).to_dict(include_items=True))

    @bp.post("")
    def create_sale():
        """
        Request body:
        {
            "store_id": int,
            "customer_id": int (required for wholesale),
            "sale_date": "YYYY-MM-DD",
            "payment_method": "cash" | "card" | "bank" | "check" | "credit",
            "payment_status": "unpaid" | "paid",
            "discount": number, "tax": number, "description": str,
            "items": [{"item_id": int, "quantity": int, "unit_price": number,
                       "discount_percent": number, "discount_value": number}]
        }

        Returns:
            201: invoice with lines
            400: validation error or insufficient stock
        """
        data = json_body()
        actor = current_actor()
        sale = run_in_transaction(lambda: sales_service.create_sale(sale_type, data, created_by=actor))
        return created(sale.to_dict(include_items=True), message=f"Invoice {sale.invoice_number} created")

    @bp.patch("/<int:sale_id>")
    def update_sale(sale_id: int):
        data = json_body()
        actor = current_actor()
        sale = run_in_transaction(lambda: sales_service.update_sale(sale_type, sale_id, data, updated_by=actor))
        return ok(sale.to_dict(include_items=True), message="Invoice updated")

    @bp.delete("/<int:sale_id>")
    def delete_sale(sale_id: int):
        actor = current_actor()
        reason = request.args.get("reason")
        sale = run_in_transaction(
            lambda: sales_service.delete_sale(sale_type, sale_id, deleted_by=actor, reason=reason)
        )
        return ok({"id": sale.id, "invoice_number": sale.invoice_number}, message="Invoice deleted and stock restored")

    return bp


sales_blueprints = [make_sales_blueprint(sale_type) for sale_type in sales_service.SALE_TYPES]


# ---------------------------------------------------------------------------
# Sales returns
# ---------------------------------------------------------------------------

@sales_returns_bp.get("")
def list_sales_returns():
    limit, offset = page_args()
    filters = list_filters()
    filters.pop("status")
    query = sales_return_service.list_sales_returns_query(
        customer_id=request.args.get("customer_id", type=int),
        **filters,
    )
    return paginate(query, lambda r: r.to_dict(), limit, offset)


@sales_returns_bp.get("/<int:return_id>")
def get_sales_return(return_id: int):
    return ok(sales_return_service.get_sales_return(return_id).to_dict(include_items=True))


@sales_returns_bp.post("")
def create_sales_return():
    """
    Request body:
    {
        "customer_id": int, "store_id": int, "return_reason": str,
        "sale_id": int (optional), "refund_method": str, "return_date": "YYYY-MM-DD",
        "items": [{"item_id": int, "return_qty": int, "unit_price": number}]
    }
    """
    data = json_body()
    actor = current_actor()
    doc = run_in_transaction(lambda: sales_return_service.create_sales_return(data, created_by=actor))
    return created(doc.to_dict(include_items=True), message=f"Sales return {doc.return_number} created")


@sales_returns_bp.patch("/<int:return_id>")
def update_sales_return(return_id: int):
    data = json_body()
    actor = current_actor()
    doc = run_in_transaction(lambda: sales_return_service.update_sales_return(return_id, data, updated_by=actor))
    return ok(doc.to_dict(include_items=True), message="Sales return updated")


@sales_returns_bp.delete("/<int:return_id>")
def delete_sales_return(return_id: int):
    actor = current_actor()
    doc = run_in_transaction(lambda: sales_return_service.delete_sales_return(return_id, deleted_by=actor))
    return ok({"id": doc.id, "return_number": doc.return_number}, message="Sales return deleted and stock reversed")


# ---------------------------------------------------------------------------
# Quotations
# ---------------------------------------------------------------------------

@quotations_bp.get("")
def list_quotations():
    limit, offset = page_args()
    query = quotation_service.list_quotations_query(
        customer_id=request.args.get("customer_id", type=int),
        **list_filters(),
    )
    return paginate(query, lambda q: q.to_dict(), limit, offset)


@quotations_bp.get("/<int:quotation_id>")
def get_quotation(quotation_id: int):
    return ok(quotation_service.get_quotation(quotation_id).to_dict(include_items=True))


@quotations_bp.post("")
def create_quotation():
    """
    Request body:
    {
        "store_id": int, "customer_id": int,
        "quotation_date": "YYYY-MM-DD", "valid_until": "YYYY-MM-DD",
        "discount": number, "tax": number, "notes": str, "terms_conditions": str,
        "items": [{"item_id": int, "quantity": int, "unit_price": number, "discount_percent": number}]
    }

    No stock moves for quotations.
    """
    data = json_body()
    actor = current_actor()
    quotation = run_in_transaction(lambda: quotation_service.create_quotation(data, created_by=actor))
    return created(
        quotation.to_dict(include_items=True),
        message=f"Quotation {quotation.quotation_number} created",
    )


@quotations_bp.patch("/<int:quotation_id>")
def update_quotation(quotation_id: int):
    data = json_body()
    actor = current_actor()
    quotation = run_in_transaction(lambda: quotation_service.update_quotation(quotation_id, data, actor=actor))
    return ok(quotation.to_dict(include_items=True), message="Quotation updated")


@quotations_bp.post("/<int:quotation_id>/convert")
def convert_quotation(quotation_id: int):
    """
    Convert an active quotation into a sales invoice.

    Request body: {"sale_type": "retail" (default) | "wholesale", "payment_method": str,
                   "payment_status": "unpaid" | "paid", "item_ids": [int] (optional)}

    Returns:
        201: {"quotation": {...}, "sale": {...}}
        400: quotation not active, expired, or insufficient stock
    """
    data = json_body()
    actor = current_actor()
    quotation, sale = run_in_transaction(
        lambda: quotation_service.convert_quotation(quotation_id, data, actor=actor)
    )
    return created(
        {"quotation": quotation.to_dict(), "sale": sale.to_dict(include_items=True)},
        message=f"Quotation {quotation.quotation_number} converted to {sale.invoice_number}",
    )


@quotations_bp.delete("/<int:quotation_id>")
def delete_quotation(quotation_id: int):
    actor = current_actor()
    quotation = run_in_transaction(lambda: quotation_service.delete_quotation(quotation_id, actor=actor))
    return ok({"id": quotation.id, "quotation_number": quotation.quotation_number}, message="Quotation deleted")
