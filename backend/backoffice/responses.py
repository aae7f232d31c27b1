# Overview: Uniform JSON envelope and the single error-translation boundary.

from __future__ import annotations

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .errors import BackofficeError, SchemaValidationError, ValidationError
from .extensions import db
from .time_utils import parse_iso_date


def ok(data=None, *, status: int = 200, message: str | None = None, pagination: dict | None = None):
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return jsonify(body), status


def created(data=None, *, message: str | None = None):
    return ok(data, status=201, message=message)


def fail(error: str, status: int, *, errors: list[dict] | None = None):
    body = {"success": False, "error": error}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


def page_args() -> tuple[int, int]:
    """Read limit/offset from the query string and clamp them."""
    cfg = current_app.config
    limit = request.args.get("limit", cfg["DEFAULT_PAGE_LIMIT"], type=int)
    offset = request.args.get("offset", 0, type=int)

    if limit < 1:
        limit = 1
    if limit > cfg["MAX_PAGE_LIMIT"]:
        limit = cfg["MAX_PAGE_LIMIT"]
    if offset < 0:
        offset = 0
    return limit, offset


def paginate(query, serializer, limit: int, offset: int):
    total = query.order_by(None).count()
    rows = query.limit(limit).offset(offset).all()
    pagination = {
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + len(rows) < total,
    }
    return ok([serializer(r) for r in rows], pagination=pagination)


def register_error_handlers(app) -> None:
    @app.errorhandler(BackofficeError)
    def handle_backoffice_error(exc: BackofficeError):
        db.session.rollback()
        errors = exc.errors if isinstance(exc, SchemaValidationError) else None
        return fail(exc.message, exc.status_code, errors=errors)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        db.session.rollback()
        return fail(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return fail("Internal server error", 500)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def list_filters() -> dict:
    """search, status, store_id, date_from, date_to from the query string."""
    filters = {
        "search": request.args.get("search") or None,
        "status": request.args.get("status") or None,
        "store_id": request.args.get("store_id", type=int),
        "date_from": None,
        "date_to": None,
    }
    for key in ("date_from", "date_to"):
        raw = request.args.get(key)
        if raw:
            try:
                filters[key] = parse_iso_date(raw)
            except ValueError:
                raise ValidationError(f"Invalid {key} format")
    return filters


def current_actor() -> str | None:
    """Free-text operator name recorded on documents (no authentication here)."""
    return request.headers.get("X-User-Name") or None
