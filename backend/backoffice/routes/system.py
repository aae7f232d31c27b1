# backend/backoffice/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventoryTransaction, Store
from ..responses import fail, ok
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity with two cheap counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        store_count = db.session.query(Store).count()
        movement_count = db.session.query(InventoryTransaction).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "stores": store_count,
                "inventory_transactions": movement_count,
            },
        }
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
        200: {"success": true, "data": {"status": "healthy", ...}}
        503: database unreachable
    """
    database = check_database_health()
    payload = {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    if database["status"] != "healthy":
        return fail("Service unhealthy", 503)
    return ok(payload)


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    return ok({
        "app_name": current_app.config.get("APP_NAME"),
        "api_version": "1.0.0",
        "environment": "production" if not current_app.debug else "development",
        "python_version": sys.version.split()[0],
        "currency": current_app.config.get("CURRENCY"),
        "allow_negative_stock": bool(current_app.config.get("ALLOW_NEGATIVE_STOCK")),
    })
