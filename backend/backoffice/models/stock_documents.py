from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z, to_iso_date
from .common import Money, money


class DispatchNote(db.Model):
    """
    Inter-store stock transfer.

    LIFECYCLE:
    1. pending: created, no stock effect
    2. dispatched: left the source store; quantity reserved at the source
    3. received: reservation released, dispatch_out at source and
       dispatch_in at destination posted together
    4. cancelled: reservation (if any) released, no stock movement

    received and cancelled are terminal.
    """
    __tablename__ = "dispatch_notes"
    __table_args__ = (
        db.Index("ix_dispatch_notes_from_status", "from_store_id", "status"),
        db.Index("ix_dispatch_notes_to_status", "to_store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    dispatch_number = db.Column(db.String(32), nullable=False, unique=True)
    from_store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    to_store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    dispatch_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    description = db.Column(db.Text, nullable=True)
    total_items = db.Column(db.Integer, nullable=False, default=0)
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    total_value = Money()

    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    from_store = db.relationship("Store", foreign_keys=[from_store_id])
    to_store = db.relationship("Store", foreign_keys=[to_store_id])
    items = db.relationship(
        "DispatchNoteItem",
        backref="dispatch_note",
        lazy=True,
        order_by="DispatchNoteItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "dispatch_number": self.dispatch_number,
            "from_store_id": self.from_store_id,
            "from_store_name": self.from_store.name if self.from_store else None,
            "to_store_id": self.to_store_id,
            "to_store_name": self.to_store.name if self.to_store else None,
            "dispatch_date": to_iso_date(self.dispatch_date),
            "status": self.status,
            "description": self.description,
            "total_items": self.total_items,
            "total_quantity": self.total_quantity,
            "total_value": money(self.total_value),
            "dispatched_at": to_utc_z(self.dispatched_at),
            "received_at": to_utc_z(self.received_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class DispatchNoteItem(db.Model):
    __tablename__ = "dispatch_note_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    dispatch_id = db.Column(db.Integer, db.ForeignKey("dispatch_notes.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    batch_number = db.Column(db.String(64), nullable=True)
    batch_expiry = db.Column(db.Date, nullable=True)
    cost_price = Money()
    retail_price = Money()
    wholesale_price = Money()
    unit_of_measure = db.Column(db.String(16), nullable=True)
    dispatch_value = Money()

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dispatch_id": self.dispatch_id,
            "item_id": self.item_id,
            "item_code": self.item.code if self.item else None,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "batch_number": self.batch_number,
            "batch_expiry": to_iso_date(self.batch_expiry),
            "cost_price": money(self.cost_price),
            "retail_price": money(self.retail_price),
            "wholesale_price": money(self.wholesale_price),
            "unit_of_measure": self.unit_of_measure,
            "dispatch_value": money(self.dispatch_value),
        }


class StockAdjustment(db.Model):
    """Manual correction of on-hand stock (damage, count variance, found stock)."""
    __tablename__ = "stock_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    adjustment_number = db.Column(db.String(32), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    adjustment_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    total_items = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store")
    items = db.relationship(
        "StockAdjustmentItem",
        backref="adjustment",
        lazy=True,
        order_by="StockAdjustmentItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "adjustment_number": self.adjustment_number,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "adjustment_date": to_iso_date(self.adjustment_date),
            "reason": self.reason,
            "description": self.description,
            "total_items": self.total_items,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class StockAdjustmentItem(db.Model):
    __tablename__ = "stock_adjustment_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    adjustment_id = db.Column(db.Integer, db.ForeignKey("stock_adjustments.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    current_stock = db.Column(db.Integer, nullable=False, default=0)  # snapshot before the adjustment
    adjustment_qty = db.Column(db.Integer, nullable=False)  # signed
    adjustment_type = db.Column(db.String(16), nullable=False)  # adjustment_in, adjustment_out
    adjustment_reason = db.Column(db.Text, nullable=True)
    batch_number = db.Column(db.String(64), nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "adjustment_id": self.adjustment_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "current_stock": self.current_stock,
            "adjustment_qty": self.adjustment_qty,
            "new_stock": self.current_stock + self.adjustment_qty,
            "adjustment_type": self.adjustment_type,
            "adjustment_reason": self.adjustment_reason,
            "batch_number": self.batch_number,
            "remarks": self.remarks,
        }


class OpeningStockEntry(db.Model):
    """Initial stock brought over from a previous system."""
    __tablename__ = "opening_stock_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    entry_number = db.Column(db.String(48), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)
    entry_date = db.Column(db.Date, nullable=False)
    description = db.Column(db.Text, nullable=True)
    total_value = Money()
    total_discount = Money()
    net_total = Money()

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store")
    supplier = db.relationship("Supplier")
    items = db.relationship(
        "OpeningStockItem",
        backref="entry",
        lazy=True,
        order_by="OpeningStockItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "entry_number": self.entry_number,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "entry_date": to_iso_date(self.entry_date),
            "description": self.description,
            "total_value": money(self.total_value),
            "total_discount": money(self.total_discount),
            "net_total": money(self.net_total),
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class OpeningStockItem(db.Model):
    __tablename__ = "opening_stock_items"
    __table_args__ = (
        db.UniqueConstraint("entry_id", "item_id", name="uq_opening_stock_items_entry_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey("opening_stock_entries.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    cost_price = Money()
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_value = Money()
    net_value = Money()
    batch_number = db.Column(db.String(64), nullable=True)
    batch_expiry = db.Column(db.Date, nullable=True)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_id": self.entry_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "cost_price": money(self.cost_price),
            "discount_percent": money(self.discount_percent),
            "discount_value": money(self.discount_value),
            "net_value": money(self.net_value),
            "batch_number": self.batch_number,
            "batch_expiry": to_iso_date(self.batch_expiry),
        }
