# backend/backoffice/routes/accounts.py
"""
Accounts routes: supplier/customer opening balances and payments with
allocations against GRNs and sales invoices.
"""
from flask import Blueprint, request

from ..responses import created, current_actor, json_body, list_filters, ok, page_args, paginate
from ..services import opening_balance_service, payment_service
from ..services.concurrency import run_in_transaction


def make_opening_balance_blueprint(kind: str) -> Blueprint:
    """/api/<kind>-opening-balance CRUD for kind in ("supplier", "customer")."""
    bp = Blueprint(f"{kind}_opening_balance", __name__, url_prefix=f"/api/{kind}-opening-balance")
    party_field = f"{kind}_id"

    @bp.get("")
    def list_entries():
        limit, offset = page_args()
        filters = list_filters()
        filters.pop("store_id")
        status = filters.pop("status")
        query = opening_balance_service.list_opening_balances_query(
            kind,
            party_id=request.args.get(party_field, type=int),
            balance_type=request.args.get("balance_type") or status,
            **filters,
        )
        return paginate(query, lambda e: e.to_dict(), limit, offset)

    @bp.get("/<int:entry_id>")
    def get_entry(entry_id: int):
        return ok(opening_balance_service.get_opening_balance(kind, entry_id).to_dict())

    @bp.post("")
    def create_entry():
        """
        Request body:
        {"<kind>_id": int, "entry_date": "YYYY-MM-DD", "amount": number,
         "balance_type": "payable" | "receivable" | "advance", "notes": str}
        """
        data = json_body()
        actor = current_actor()
        entry = run_in_transaction(
            lambda: opening_balance_service.create_opening_balance(kind, data, created_by=actor)
        )
        return created(entry.to_dict(), message=f"Opening balance {entry.entry_number} created")

    @bp.patch("/<int:entry_id>")
    def update_entry(entry_id: int):
        data = json_body()
        actor = current_actor()
        entry = run_in_transaction(
            lambda: opening_balance_service.update_opening_balance(kind, entry_id, data, updated_by=actor)
        )
        return ok(entry.to_dict(), message="Opening balance updated")

    @bp.delete("/<int:entry_id>")
    def delete_entry(entry_id: int):
        actor = current_actor()
        entry = run_in_transaction(
            lambda: opening_balance_service.delete_opening_balance(kind, entry_id, deleted_by=actor)
        )
        return ok({"id": entry.id, "entry_number": entry.entry_number}, message="Opening balance deleted")

    return bp


opening_balance_blueprints = [
    make_opening_balance_blueprint(kind) for kind in opening_balance_service.KINDS
]


def _payment_filters() -> dict:
    filters = list_filters()
    return {key: filters[key] for key in ("search", "date_from", "date_to")}


supplier_payments_bp = Blueprint("supplier_payments", __name__, url_prefix="/api/supplier-payments")
customer_payments_bp = Blueprint("customer_payments", __name__, url_prefix="/api/customer-payments")


@supplier_payments_bp.get("")
def list_supplier_payments():
    limit, offset = page_args()
    query = payment_service.list_supplier_payments_query(
        supplier_id=request.args.get("supplier_id", type=int),
        **_payment_filters(),
    )
    return paginate(query, lambda p: p.to_dict(), limit, offset)


@supplier_payments_bp.get("/<int:payment_id>")
def get_supplier_payment(payment_id: int):
    return ok(payment_service.get_supplier_payment(payment_id).to_dict())


@supplier_payments_bp.get("/open-grns/<int:supplier_id>")
def supplier_open_grns(supplier_id: int):
    """GRNs of a supplier that are not fully paid."""
    return ok(payment_service.open_documents("supplier", supplier_id))


@supplier_payments_bp.post("")
def create_supplier_payment():
    """
    Request body:
    {
        "supplier_id": int,
        "payment_method": "cash" | "card" | "bank" | "check",
        "amount": number,
        "payment_date": "YYYY-MM-DD", "reference_number": str, "notes": str,
        "allocations": [{"grn_id": int, "allocation_amount": number}]
    }

    Allocations must sum to amount and none may exceed the GRN's outstanding balance.
    """
    data = json_body()
    actor = current_actor()
    payment = run_in_transaction(lambda: payment_service.create_supplier_payment(data, created_by=actor))
    return created(payment.to_dict(), message=f"Payment {payment.payment_number} recorded")


@customer_payments_bp.get("")
def list_customer_payments():
    limit, offset = page_args()
    query = payment_service.list_customer_payments_query(
        customer_id=request.args.get("customer_id", type=int),
        **_payment_filters(),
    )
    return paginate(query, lambda p: p.to_dict(), limit, offset)


@customer_payments_bp.get("/<int:payment_id>")
def get_customer_payment(payment_id: int):
    return ok(payment_service.get_customer_payment(payment_id).to_dict())


@customer_payments_bp.get("/open-invoices/<int:customer_id>")
def customer_open_invoices(customer_id: int):
    """Sales invoices of a customer that are not fully paid."""
    return ok(payment_service.open_documents("customer", customer_id))


@customer_payments_bp.post("")
def create_customer_payment():
    """
    Request body: as supplier payments, with
    "customer_id" and allocations [{"sale_id" | "invoice_id": int, "allocation_amount": number}].
    """
    data = json_body()
    actor = current_actor()
    payment = run_in_transaction(lambda: payment_service.create_customer_payment(data, created_by=actor))
    return created(payment.to_dict(), message=f"Payment {payment.payment_number} recorded")
