# backend/backoffice/routes/masters.py
"""
Master data routes: /api/categories, /api/stores, /api/items,
/api/suppliers, /api/customers.

All five share one shape:
    GET    /api/<resource>?search=&include_inactive=&limit=&offset=
    GET    /api/<resource>/<id>
    POST   /api/<resource>           201 | 409-style 400 on duplicates | 422 on schema errors
    PATCH  /api/<resource>/<id>
    DELETE /api/<resource>/<id>      soft delete
"""
from flask import Blueprint, request

from ..responses import created, json_body, ok, page_args, paginate
from ..services import masters_service
from ..services.concurrency import run_in_transaction


def _serialize(row) -> dict:
    return row.to_dict()


def make_master_blueprint(kind: str) -> Blueprint:
    bp = Blueprint(kind, __name__, url_prefix=f"/api/{kind}")

    @bp.get("")
    def list_records():
        limit, offset = page_args()
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        query = masters_service.list_query(
            kind,
            search=request.args.get("search") or None,
            include_inactive=include_inactive,
        )
        return paginate(query, _serialize, limit, offset)

    @bp.get("/<int:record_id>")
    def get_record(record_id: int):
        return ok(masters_service.get_record(kind, record_id).to_dict())

    @bp.post("")
    def create_record():
        data = json_body()
        row = run_in_transaction(lambda: masters_service.create_record(kind, data))
        return created(row.to_dict(), message=f"{masters_service.MASTER_RESOURCES[kind].label} created")

    @bp.patch("/<int:record_id>")
    def update_record(record_id: int):
        data = json_body()
        row = run_in_transaction(lambda: masters_service.update_record(kind, record_id, data))
        return ok(row.to_dict(), message=f"{masters_service.MASTER_RESOURCES[kind].label} updated")

    @bp.delete("/<int:record_id>")
    def delete_record(record_id: int):
        run_in_transaction(lambda: masters_service.deactivate_record(kind, record_id))
        return ok({"id": record_id}, message=f"{masters_service.MASTER_RESOURCES[kind].label} deleted")

    return bp


master_blueprints = [make_master_blueprint(kind) for kind in masters_service.MASTER_RESOURCES]
