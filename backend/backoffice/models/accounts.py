from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z, to_iso_date
from .common import Money, money


class SupplierOpeningBalance(db.Model):
    """Amount owed to (payable) or prepaid to (advance) a supplier at go-live."""
    __tablename__ = "supplier_opening_balances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    entry_number = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    entry_date = db.Column(db.Date, nullable=False)
    amount = Money()
    balance_type = db.Column(db.String(16), nullable=False, default="payable")  # payable, advance
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_number": self.entry_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "entry_date": to_iso_date(self.entry_date),
            "amount": money(self.amount),
            "balance_type": self.balance_type,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerOpeningBalance(db.Model):
    """Amount a customer owes (receivable) or has prepaid (advance) at go-live."""
    __tablename__ = "customer_opening_balances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    entry_number = db.Column(db.String(32), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    entry_date = db.Column(db.Date, nullable=False)
    amount = Money()
    balance_type = db.Column(db.String(16), nullable=False, default="receivable")  # receivable, advance
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_number": self.entry_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "entry_date": to_iso_date(self.entry_date),
            "amount": money(self.amount),
            "balance_type": self.balance_type,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SupplierPayment(db.Model):
    """
    Money paid to a supplier, split across one or more GRNs.

    Immutable once posted: the sum of allocations equals amount.
    """
    __tablename__ = "supplier_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    payment_number = db.Column(db.String(32), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    payment_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    amount = Money()
    reference_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier")
    allocations = db.relationship(
        "SupplierPaymentAllocation",
        backref="payment",
        lazy=True,
        order_by="SupplierPaymentAllocation.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_number": self.payment_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "payment_date": to_iso_date(self.payment_date),
            "payment_method": self.payment_method,
            "amount": money(self.amount),
            "reference_number": self.reference_number,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "allocations": [a.to_dict() for a in self.allocations],
        }


class SupplierPaymentAllocation(db.Model):
    __tablename__ = "supplier_payment_allocations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("supplier_payments.id"), nullable=False, index=True)
    grn_id = db.Column(db.Integer, db.ForeignKey("purchase_grns.id"), nullable=False, index=True)
    allocation_amount = Money()

    grn = db.relationship("PurchaseGrn", backref=db.backref("allocations", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "grn_id": self.grn_id,
            "grn_number": self.grn.grn_number if self.grn else None,
            "allocation_amount": money(self.allocation_amount),
        }


class CustomerPayment(db.Model):
    """Money received from a customer, split across one or more sales invoices."""
    __tablename__ = "customer_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    payment_number = db.Column(db.String(32), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    payment_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    amount = Money()
    reference_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer")
    allocations = db.relationship(
        "CustomerPaymentAllocation",
        backref="payment",
        lazy=True,
        order_by="CustomerPaymentAllocation.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_number": self.payment_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "payment_date": to_iso_date(self.payment_date),
            "payment_method": self.payment_method,
            "amount": money(self.amount),
            "reference_number": self.reference_number,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "allocations": [a.to_dict() for a in self.allocations],
        }


class CustomerPaymentAllocation(db.Model):
    __tablename__ = "customer_payment_allocations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("customer_payments.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    allocation_amount = Money()

    sale = db.relationship("Sale", backref=db.backref("allocations", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "sale_id": self.sale_id,
            "invoice_number": self.sale.invoice_number if self.sale else None,
            "allocation_amount": money(self.allocation_amount),
        }
