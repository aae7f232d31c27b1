from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z, to_iso_date
from .common import Money, money


class PurchaseGrn(db.Model):
    """
    Goods-received note: stock physically received from a supplier.

    Posting a GRN adds received_qty of every line to the store's stock.
    payment_status follows the payment FSM (unpaid -> partially_paid -> paid)
    and is driven only by supplier payment allocations.
    """
    __tablename__ = "purchase_grns"
    __table_args__ = (
        db.Index("ix_purchase_grns_supplier_status", "supplier_id", "payment_status"),
        db.Index("ix_purchase_grns_store_date", "store_id", "grn_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    grn_number = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    grn_date = db.Column(db.Date, nullable=False)

    invoice_number = db.Column(db.String(64), nullable=True)
    invoice_date = db.Column(db.Date, nullable=True)
    invoice_amount = Money(nullable=True, default=None)

    total_amount = Money()
    paid_amount = Money()
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier")
    store = db.relationship("Store")
    items = db.relationship(
        "PurchaseGrnItem",
        backref="grn",
        lazy=True,
        order_by="PurchaseGrnItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def outstanding_amount(self):
        return (self.total_amount or 0) - (self.paid_amount or 0)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "grn_number": self.grn_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "grn_date": to_iso_date(self.grn_date),
            "invoice_number": self.invoice_number,
            "invoice_date": to_iso_date(self.invoice_date),
            "invoice_amount": money(self.invoice_amount),
            "total_amount": money(self.total_amount),
            "paid_amount": money(self.paid_amount),
            "outstanding_amount": money(self.outstanding_amount),
            "payment_status": self.payment_status,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class PurchaseGrnItem(db.Model):
    __tablename__ = "purchase_grn_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    grn_id = db.Column(db.Integer, db.ForeignKey("purchase_grns.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    ordered_qty = db.Column(db.Integer, nullable=True)
    received_qty = db.Column(db.Integer, nullable=False)
    batch_number = db.Column(db.String(64), nullable=True)
    batch_expiry = db.Column(db.Date, nullable=True)
    cost_price = Money()
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_value = Money()
    net_value = Money()

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "grn_id": self.grn_id,
            "item_id": self.item_id,
            "item_code": self.item.code if self.item else None,
            "item_name": self.item.name if self.item else None,
            "ordered_qty": self.ordered_qty,
            "received_qty": self.received_qty,
            "batch_number": self.batch_number,
            "batch_expiry": to_iso_date(self.batch_expiry),
            "cost_price": money(self.cost_price),
            "discount_percent": money(self.discount_percent),
            "discount_value": money(self.discount_value),
            "net_value": money(self.net_value),
        }


class PurchaseReturn(db.Model):
    """Goods sent back to a supplier; removes stock from the returning store."""
    __tablename__ = "purchase_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_number = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    grn_id = db.Column(db.Integer, db.ForeignKey("purchase_grns.id"), nullable=True, index=True)
    return_date = db.Column(db.Date, nullable=False)
    return_reason = db.Column(db.Text, nullable=False)
    total_amount = Money()
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier")
    store = db.relationship("Store")
    grn = db.relationship("PurchaseGrn")
    items = db.relationship(
        "PurchaseReturnItem",
        backref="purchase_return",
        lazy=True,
        order_by="PurchaseReturnItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "return_number": self.return_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "grn_id": self.grn_id,
            "grn_number": self.grn.grn_number if self.grn else None,
            "return_date": to_iso_date(self.return_date),
            "return_reason": self.return_reason,
            "total_amount": money(self.total_amount),
            "notes": self.notes,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class PurchaseReturnItem(db.Model):
    __tablename__ = "purchase_return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("purchase_returns.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    return_qty = db.Column(db.Integer, nullable=False)
    batch_number = db.Column(db.String(64), nullable=True)
    cost_price = Money()
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    net_value = Money()

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "return_qty": self.return_qty,
            "batch_number": self.batch_number,
            "cost_price": money(self.cost_price),
            "discount_percent": money(self.discount_percent),
            "net_value": money(self.net_value),
        }


class PurchaseOrder(db.Model):
    """
    Order placed with a supplier. No stock effect; goods arrive on a GRN.

    LIFECYCLE: pending -> sent -> partial -> received, with cancelled
    reachable from every non-terminal status.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_supplier_status", "supplier_id", "status"),
        db.Index("ix_purchase_orders_store_date", "store_id", "po_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    po_date = db.Column(db.Date, nullable=False)
    expected_delivery_date = db.Column(db.Date, nullable=False)

    subtotal = Money()
    discount = Money()
    tax = Money()
    total_amount = Money()
    status = db.Column(db.String(16), nullable=False, default="pending")
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier")
    store = db.relationship("Store")
    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        lazy=True,
        order_by="PurchaseOrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "po_number": self.po_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "po_date": to_iso_date(self.po_date),
            "expected_delivery_date": to_iso_date(self.expected_delivery_date),
            "subtotal": money(self.subtotal),
            "discount": money(self.discount),
            "tax": money(self.tax),
            "total_amount": money(self.total_amount),
            "status": self.status,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = Money()
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_value = Money()
    net_value = Money()

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "item_id": self.item_id,
            "item_code": self.item.code if self.item else None,
            "item_name": self.item.name if self.item else None,
            "unit_of_measure": self.item.unit_of_measure if self.item else None,
            "quantity": self.quantity,
            "unit_cost": money(self.unit_cost),
            "discount_percent": money(self.discount_percent),
            "discount_value": money(self.discount_value),
            "net_value": money(self.net_value),
        }
