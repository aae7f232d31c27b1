from __future__ import annotations

import json

from ..extensions import db
from backoffice.time_utils import to_utc_z, to_iso_date


class StockBalance(db.Model):
    """
    Current quantity of one item at one store.

    INVARIANT: quantity_on_hand equals the signed sum of every
    InventoryTransaction for the same (item_id, store_id). Rows are never
    deleted; they are only changed through stock_service.apply_stock_delta,
    which issues an atomic in-place increment.

    reserved_quantity is stock committed to dispatch notes that left the
    source store but have not been received yet.
    """
    __tablename__ = "stock_balances"
    __table_args__ = (
        db.UniqueConstraint("item_id", "store_id", name="uq_stock_balances_item_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)
    last_restock_date = db.Column(db.Date, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    item = db.relationship("Item")
    store = db.relationship("Store")

    @property
    def available_quantity(self) -> int:
        return (self.quantity_on_hand or 0) - (self.reserved_quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_code": self.item.code if self.item else None,
            "item_name": self.item.name if self.item else None,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "quantity_on_hand": self.quantity_on_hand,
            "reserved_quantity": self.reserved_quantity,
            "available_quantity": self.available_quantity,
            "last_restock_date": to_iso_date(self.last_restock_date),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Immutable stock ledger row: one signed quantity delta for one
    (item, store), tagged with the document that caused it.

    reference_type/reference_id is a polymorphic pointer
    (e.g. "purchase_grn"/17, "dispatch"/4).
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_inventory_txn_item_store", "item_id", "store_id"),
        db.Index("ix_inventory_txn_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)  # signed delta
    batch_number = db.Column(db.String(64), nullable=True)
    batch_expiry = db.Column(db.Date, nullable=True)
    reference_type = db.Column(db.String(48), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    item = db.relationship("Item")
    store = db.relationship("Store")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "batch_number": self.batch_number,
            "batch_expiry": to_iso_date(self.batch_expiry),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Per-(document_type, scope_key) counter backing document numbers.

    scope_key is "" for globally numbered documents and the store id
    for store-scoped ones. next_number is only ever incremented in place.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "scope_key", name="uq_document_sequences_type_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(48), nullable=False)
    scope_key = db.Column(db.String(32), nullable=False, default="")
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())


class AuditLog(db.Model):
    """Append-only record of document-level changes."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_table_record", "table_name", "record_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(32), nullable=False)
    table_name = db.Column(db.String(64), nullable=False)
    record_id = db.Column(db.Integer, nullable=False)
    old_values = db.Column(db.Text, nullable=True)
    new_values = db.Column(db.Text, nullable=True)
    reason = db.Column(db.Text, nullable=True)
    user_name = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "old_values": json.loads(self.old_values) if self.old_values else None,
            "new_values": json.loads(self.new_values) if self.new_values else None,
            "reason": self.reason,
            "user_name": self.user_name,
            "created_at": to_utc_z(self.created_at),
        }
