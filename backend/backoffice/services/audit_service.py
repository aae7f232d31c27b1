# Overview: Append-only audit trail written in the same transaction as the change it records.

from __future__ import annotations

import json
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import AuditLog

AUDIT_ACTIONS = ("CREATE", "UPDATE", "DELETE", "REVERSAL", "STATUS_CHANGE", "CONVERSION", "PAYMENT")


def _dump(values: Any) -> str | None:
    if values is None:
        return None
    return json.dumps(values, default=str, sort_keys=True)


def record_audit(
    *,
    action: str,
    table_name: str,
    record_id: int,
    new_values: dict | None = None,
    old_values: dict | None = None,
    user_name: str | None = None,
    reason: str | None = None,
) -> AuditLog:
    """
    Append an audit row for a document-level change.

    - No domain logic here.
    - No updates or deletes of existing rows.
    - Not committed here; it lands or rolls back with the change itself.
    """
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    entry = AuditLog(
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_values=_dump(old_values),
        new_values=_dump(new_values),
        user_name=user_name,
        reason=reason,
    )
    db.session.add(entry)
    db.session.flush()
    current_app.logger.info("%s %s id=%s", action, table_name, record_id)
    return entry
