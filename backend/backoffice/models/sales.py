from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z, to_iso_date
from .common import Money, money


class Sale(db.Model):
    """
    Sales invoice, retail or wholesale.

    Store-scoped invoice numbers: "<STORE>-SINV-000001" for retail,
    "<STORE>-WINV-000001" for wholesale. Posting deducts every line's
    quantity from the store; soft delete puts it back.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_type_date", "store_id", "sale_type", "sale_date"),
        db.Index("ix_sales_customer_status", "customer_id", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(48), nullable=False, unique=True)
    sale_type = db.Column(db.String(16), nullable=False, default="retail")  # retail, wholesale
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    sale_date = db.Column(db.Date, nullable=False)

    subtotal = Money()
    discount = Money()
    tax = Money()
    total = Money()
    paid_amount = Money()
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")
    description = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store")
    customer = db.relationship("Customer")
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def outstanding_amount(self):
        return (self.total or 0) - (self.paid_amount or 0)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "sale_type": self.sale_type,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "sale_date": to_iso_date(self.sale_date),
            "subtotal": money(self.subtotal),
            "discount": money(self.discount),
            "tax": money(self.tax),
            "total": money(self.total),
            "paid_amount": money(self.paid_amount),
            "outstanding_amount": money(self.outstanding_amount),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "description": self.description,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = Money()
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_value = Money()
    net_value = Money()
    batch_number = db.Column(db.String(64), nullable=True)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "item_code": self.item.code if self.item else None,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price": money(self.unit_price),
            "discount_percent": money(self.discount_percent),
            "discount_value": money(self.discount_value),
            "net_value": money(self.net_value),
            "batch_number": self.batch_number,
        }


class SalesReturn(db.Model):
    """Goods returned by a customer; stock goes back into the store."""
    __tablename__ = "sales_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_number = db.Column(db.String(32), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    return_date = db.Column(db.Date, nullable=False)
    return_reason = db.Column(db.Text, nullable=False)
    total_refund_amount = Money()
    refund_method = db.Column(db.String(16), nullable=False, default="credit_note")
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    store = db.relationship("Store")
    sale = db.relationship("Sale")
    items = db.relationship(
        "SalesReturnItem",
        backref="sales_return",
        lazy=True,
        order_by="SalesReturnItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "return_number": self.return_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "sale_id": self.sale_id,
            "invoice_number": self.sale.invoice_number if self.sale else None,
            "return_date": to_iso_date(self.return_date),
            "return_reason": self.return_reason,
            "total_refund_amount": money(self.total_refund_amount),
            "refund_method": self.refund_method,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class SalesReturnItem(db.Model):
    __tablename__ = "sales_return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("sales_returns.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    return_qty = db.Column(db.Integer, nullable=False)
    unit_price = Money()
    refund_amount = Money()

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "return_qty": self.return_qty,
            "unit_price": money(self.unit_price),
            "refund_amount": money(self.refund_amount),
        }


class Quotation(db.Model):
    """
    Price quotation for a customer. No stock effect until converted.

    LIFECYCLE: active -> converted | expired | cancelled (all terminal).
    Header fields and lines are editable only while active.
    """
    __tablename__ = "quotations"
    __table_args__ = (
        db.Index("ix_quotations_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quotation_number = db.Column(db.String(48), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    quotation_date = db.Column(db.Date, nullable=False)
    valid_until = db.Column(db.Date, nullable=True)

    subtotal = Money()
    discount = Money()
    tax = Money()
    total = Money()
    status = db.Column(db.String(16), nullable=False, default="active")
    terms_conditions = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    converted_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store")
    customer = db.relationship("Customer")
    converted_sale = db.relationship("Sale", foreign_keys=[converted_sale_id])
    items = db.relationship(
        "QuotationItem",
        backref="quotation",
        lazy=True,
        order_by="QuotationItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "quotation_number": self.quotation_number,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "quotation_date": to_iso_date(self.quotation_date),
            "valid_until": to_iso_date(self.valid_until),
            "subtotal": money(self.subtotal),
            "discount": money(self.discount),
            "tax": money(self.tax),
            "total": money(self.total),
            "status": self.status,
            "terms_conditions": self.terms_conditions,
            "notes": self.notes,
            "converted_sale_id": self.converted_sale_id,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class QuotationItem(db.Model):
    __tablename__ = "quotation_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = Money()
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    net_value = Money()

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price": money(self.unit_price),
            "discount_percent": money(self.discount_percent),
            "net_value": money(self.net_value),
        }
