"""Initial back-office schema: masters, stock ledger, documents, accounts

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


NOW = sa.text("(CURRENT_TIMESTAMP)")


def _money(name, nullable=False):
    if nullable:
        return sa.Column(name, sa.Numeric(14, 2), nullable=True)
    return sa.Column(name, sa.Numeric(14, 2), nullable=False, server_default=sa.text("0"))


def _percent(name):
    return sa.Column(name, sa.Numeric(5, 2), nullable=False, server_default=sa.text("0"))


def _header_columns(versioned=True):
    """is_active / created_by / timestamps shared by every document header."""
    columns = [
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    ]
    if versioned:
        columns.append(sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")))
    return columns


def _master_columns():
    return [
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    ]


def upgrade():
    # ------------------------------------------------------------------
    # Master data
    # ------------------------------------------------------------------
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_master_columns(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_categories_name", "categories", ["name"], unique=False)

    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        *_master_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        _money("cost_price"),
        _money("retail_price"),
        _money("wholesale_price"),
        sa.Column("unit_of_measure", sa.String(16), nullable=False, server_default="pcs"),
        sa.Column("reorder_level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _percent("tax_rate"),
        sa.Column("tax_inclusive", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        *_master_columns(),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("items", schema=None) as batch_op:
        batch_op.create_index("ix_items_name", ["name"], unique=False)
        batch_op.create_index("ix_items_category_id", ["category_id"], unique=False)
        batch_op.create_index("ix_items_category_active", ["category_id", "is_active"], unique=False)
    for column in ("code", "barcode"):
        op.create_index(
            f"uq_items_{column}_active",
            "items",
            [column],
            unique=True,
            sqlite_where=sa.text("is_active"),
            postgresql_where=sa.text("is_active"),
        )

    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        *_master_columns(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_suppliers_name", "suppliers", ["name"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("customer_type", sa.String(16), nullable=False, server_default="retail"),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        _money("credit_limit"),
        *_master_columns(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customers_name", "customers", ["name"], unique=False)

    # ------------------------------------------------------------------
    # Stock ledger, numbering, audit
    # ------------------------------------------------------------------
    op.create_table(
        "stock_balances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("quantity_on_hand", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reserved_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_restock_date", sa.Date(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("item_id", "store_id", name="uq_stock_balances_item_store"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_balances", schema=None) as batch_op:
        batch_op.create_index("ix_stock_balances_item_id", ["item_id"], unique=False)
        batch_op.create_index("ix_stock_balances_store_id", ["store_id"], unique=False)

    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.Column("batch_expiry", sa.Date(), nullable=True),
        sa.Column("reference_type", sa.String(48), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_txn_item_store", ["item_id", "store_id"], unique=False)
        batch_op.create_index("ix_inventory_txn_reference", ["reference_type", "reference_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_inventory_transactions_created_at", ["created_at"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(48), nullable=False),
        sa.Column("scope_key", sa.String(32), nullable=False, server_default=""),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_type", "scope_key", name="uq_document_sequences_type_scope"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("table_name", sa.String(64), nullable=False),
        sa.Column("record_id", sa.Integer(), nullable=False),
        sa.Column("old_values", sa.Text(), nullable=True),
        sa.Column("new_values", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("user_name", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("audit_logs", schema=None) as batch_op:
        batch_op.create_index("ix_audit_logs_table_record", ["table_name", "record_id"], unique=False)
        batch_op.create_index("ix_audit_logs_created_at", ["created_at"], unique=False)

    # ------------------------------------------------------------------
    # Purchasing
    # ------------------------------------------------------------------
    op.create_table(
        "purchase_grns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("grn_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("grn_date", sa.Date(), nullable=False),
        sa.Column("invoice_number", sa.String(64), nullable=True),
        sa.Column("invoice_date", sa.Date(), nullable=True),
        _money("invoice_amount", nullable=True),
        _money("total_amount"),
        _money("paid_amount"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="unpaid"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_header_columns(),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("grn_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_grns", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_grns_supplier_status", ["supplier_id", "payment_status"], unique=False)
        batch_op.create_index("ix_purchase_grns_store_date", ["store_id", "grn_date"], unique=False)
        batch_op.create_index("ix_purchase_grns_payment_status", ["payment_status"], unique=False)

    op.create_table(
        "purchase_grn_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("grn_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("ordered_qty", sa.Integer(), nullable=True),
        sa.Column("received_qty", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.Column("batch_expiry", sa.Date(), nullable=True),
        _money("cost_price"),
        _percent("discount_percent"),
        _money("discount_value"),
        _money("net_value"),
        sa.ForeignKeyConstraint(["grn_id"], ["purchase_grns.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_purchase_grn_items_grn_id", "purchase_grn_items", ["grn_id"], unique=False)

    op.create_table(
        "purchase_returns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("return_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("grn_id", sa.Integer(), nullable=True),
        sa.Column("return_date", sa.Date(), nullable=False),
        sa.Column("return_reason", sa.Text(), nullable=False),
        _money("total_amount"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_header_columns(),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["grn_id"], ["purchase_grns.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("return_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_returns", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_returns_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_purchase_returns_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_purchase_returns_grn_id", ["grn_id"], unique=False)

    op.create_table(
        "purchase_return_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("return_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("return_qty", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=True),
        _money("cost_price"),
        _percent("discount_percent"),
        _money("net_value"),
        sa.ForeignKeyConstraint(["return_id"], ["purchase_returns.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_purchase_return_items_return_id", "purchase_return_items", ["return_id"], unique=False)

    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("po_number", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("po_date", sa.Date(), nullable=False),
        sa.Column("expected_delivery_date", sa.Date(), nullable=False),
        _money("subtotal"),
        _money("discount"),
        _money("tax"),
        _money("total_amount"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_header_columns(),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("po_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_orders", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_orders_supplier_status", ["supplier_id", "status"], unique=False)
        batch_op.create_index("ix_purchase_orders_store_date", ["store_id", "po_date"], unique=False)

    op.create_table(
        "purchase_order_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("purchase_order_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_cost"),
        _percent("discount_percent"),
        _money("discount_value"),
        _money("net_value"),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "ix_purchase_order_items_purchase_order_id", "purchase_order_items", ["purchase_order_id"], unique=False
    )

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------
    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(48), nullable=False),
        sa.Column("sale_type", sa.String(16), nullable=False, server_default="retail"),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("sale_date", sa.Date(), nullable=False),
        _money("subtotal"),
        _money("discount"),
        _money("tax"),
        _money("total"),
        _money("paid_amount"),
        sa.Column("payment_method", sa.String(16), nullable=False, server_default="cash"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="unpaid"),
        sa.Column("description", sa.Text(), nullable=True),
        *_header_columns(),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_store_type_date", ["store_id", "sale_type", "sale_date"], unique=False)
        batch_op.create_index("ix_sales_customer_status", ["customer_id", "payment_status"], unique=False)

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price"),
        _percent("discount_percent"),
        _money("discount_value"),
        _money("net_value"),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"], unique=False)

    op.create_table(
        "sales_returns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("return_number", sa.String(32), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=True),
        sa.Column("return_date", sa.Date(), nullable=False),
        sa.Column("return_reason", sa.Text(), nullable=False),
        _money("total_refund_amount"),
        sa.Column("refund_method", sa.String(16), nullable=False, server_default="credit_note"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_header_columns(),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("return_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_returns", schema=None) as batch_op:
        batch_op.create_index("ix_sales_returns_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_returns_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_sales_returns_sale_id", ["sale_id"], unique=False)

    op.create_table(
        "sales_return_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("return_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("return_qty", sa.Integer(), nullable=False),
        _money("unit_price"),
        _money("refund_amount"),
        sa.ForeignKeyConstraint(["return_id"], ["sales_returns.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_return_items_return_id", "sales_return_items", ["return_id"], unique=False)

    op.create_table(
        "quotations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("quotation_number", sa.String(48), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("quotation_date", sa.Date(), nullable=False),
        sa.Column("valid_until", sa.Date(), nullable=True),
        _money("subtotal"),
        _money("discount"),
        _money("tax"),
        _money("total"),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("terms_conditions", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("converted_sale_id", sa.Integer(), nullable=True),
        *_header_columns(),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["converted_sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("quotation_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("quotations", schema=None) as batch_op:
        batch_op.create_index("ix_quotations_store_status", ["store_id", "status"], unique=False)
        batch_op.create_index("ix_quotations_customer_id", ["customer_id"], unique=False)

    op.create_table(
        "quotation_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("quotation_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price"),
        _percent("discount_percent"),
        _money("net_value"),
        sa.ForeignKeyConstraint(["quotation_id"], ["quotations.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_quotation_items_quotation_id", "quotation_items", ["quotation_id"], unique=False)

    # ------------------------------------------------------------------
    # Stock documents
    # ------------------------------------------------------------------
    op.create_table(
        "dispatch_notes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("dispatch_number", sa.String(32), nullable=False),
        sa.Column("from_store_id", sa.Integer(), nullable=False),
        sa.Column("to_store_id", sa.Integer(), nullable=False),
        sa.Column("dispatch_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _money("total_value"),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_header_columns(),
        sa.ForeignKeyConstraint(["from_store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["to_store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dispatch_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("dispatch_notes", schema=None) as batch_op:
        batch_op.create_index("ix_dispatch_notes_from_status", ["from_store_id", "status"], unique=False)
        batch_op.create_index("ix_dispatch_notes_to_status", ["to_store_id", "status"], unique=False)

    op.create_table(
        "dispatch_note_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("dispatch_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.Column("batch_expiry", sa.Date(), nullable=True),
        _money("cost_price"),
        _money("retail_price"),
        _money("wholesale_price"),
        sa.Column("unit_of_measure", sa.String(16), nullable=True),
        _money("dispatch_value"),
        sa.ForeignKeyConstraint(["dispatch_id"], ["dispatch_notes.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_dispatch_note_items_dispatch_id", "dispatch_note_items", ["dispatch_id"], unique=False)

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("adjustment_number", sa.String(32), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("adjustment_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_header_columns(),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("adjustment_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_adjustments_store_id", "stock_adjustments", ["store_id"], unique=False)

    op.create_table(
        "stock_adjustment_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("adjustment_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("current_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("adjustment_qty", sa.Integer(), nullable=False),
        sa.Column("adjustment_type", sa.String(16), nullable=False),
        sa.Column("adjustment_reason", sa.Text(), nullable=True),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["adjustment_id"], ["stock_adjustments.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_adjustment_items_adjustment_id", "stock_adjustment_items", ["adjustment_id"], unique=False)

    op.create_table(
        "opening_stock_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entry_number", sa.String(48), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _money("total_value"),
        _money("total_discount"),
        _money("net_total"),
        *_header_columns(),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entry_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_opening_stock_entries_store_id", "opening_stock_entries", ["store_id"], unique=False)

    op.create_table(
        "opening_stock_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entry_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("cost_price"),
        _percent("discount_percent"),
        _money("discount_value"),
        _money("net_value"),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.Column("batch_expiry", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["entry_id"], ["opening_stock_entries.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entry_id", "item_id", name="uq_opening_stock_items_entry_item"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_opening_stock_items_entry_id", "opening_stock_items", ["entry_id"], unique=False)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    for party, table, default_type in (
        ("supplier", "supplier_opening_balances", "payable"),
        ("customer", "customer_opening_balances", "receivable"),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("entry_number", sa.String(32), nullable=False),
            sa.Column(f"{party}_id", sa.Integer(), nullable=False),
            sa.Column("entry_date", sa.Date(), nullable=False),
            _money("amount"),
            sa.Column("balance_type", sa.String(16), nullable=False, server_default=default_type),
            sa.Column("notes", sa.Text(), nullable=True),
            *_header_columns(versioned=False),
            sa.ForeignKeyConstraint([f"{party}_id"], [f"{party}s.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("entry_number"),
            sqlite_autoincrement=True,
        )
        op.create_index(f"ix_{table}_{party}_id", table, [f"{party}_id"], unique=False)

    for party, document_table, document_field in (
        ("supplier", "purchase_grns", "grn_id"),
        ("customer", "sales", "sale_id"),
    ):
        op.create_table(
            f"{party}_payments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("payment_number", sa.String(32), nullable=False),
            sa.Column(f"{party}_id", sa.Integer(), nullable=False),
            sa.Column("payment_date", sa.Date(), nullable=False),
            sa.Column("payment_method", sa.String(16), nullable=False),
            _money("amount"),
            sa.Column("reference_number", sa.String(64), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(128), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
            sa.ForeignKeyConstraint([f"{party}_id"], [f"{party}s.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("payment_number"),
            sqlite_autoincrement=True,
        )
        op.create_index(f"ix_{party}_payments_{party}_id", f"{party}_payments", [f"{party}_id"], unique=False)

        op.create_table(
            f"{party}_payment_allocations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("payment_id", sa.Integer(), nullable=False),
            sa.Column(document_field, sa.Integer(), nullable=False),
            _money("allocation_amount"),
            sa.ForeignKeyConstraint(["payment_id"], [f"{party}_payments.id"]),
            sa.ForeignKeyConstraint([document_field], [f"{document_table}.id"]),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )
        with op.batch_alter_table(f"{party}_payment_allocations", schema=None) as batch_op:
            batch_op.create_index(f"ix_{party}_payment_allocations_payment_id", ["payment_id"], unique=False)
            batch_op.create_index(f"ix_{party}_payment_allocations_{document_field}", [document_field], unique=False)


def downgrade():
    for table in (
        "customer_payment_allocations",
        "customer_payments",
        "supplier_payment_allocations",
        "supplier_payments",
        "customer_opening_balances",
        "supplier_opening_balances",
        "opening_stock_items",
        "opening_stock_entries",
        "stock_adjustment_items",
        "stock_adjustments",
        "dispatch_note_items",
        "dispatch_notes",
        "quotation_items",
        "quotations",
        "sales_return_items",
        "sales_returns",
        "sale_items",
        "sales",
        "purchase_order_items",
        "purchase_orders",
        "purchase_return_items",
        "purchase_returns",
        "purchase_grn_items",
        "purchase_grns",
        "audit_logs",
        "document_sequences",
        "inventory_transactions",
        "stock_balances",
        "customers",
        "suppliers",
        "items",
        "stores",
        "categories",
    ):
        op.drop_table(table)
