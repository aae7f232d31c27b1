# Overview: Flask CLI command groups for bootstrap and stock maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create any missing tables (no data is touched).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Insert demo stores, categories, items, suppliers and customers.
#
# Stock maintenance:
# - python -m flask stock reconcile [--store-id 1] [--fix]
#   Compare every balance with the sum of its ledger rows; --fix rebuilds
#   mismatching balances from the ledger.
#
# Quotations:
# - python -m flask quotations expire [--as-of 2026-01-31]
#   Expire active quotations whose valid_until has passed.

import click
from flask.cli import with_appcontext

from .errors import BackofficeError
from .extensions import db
from .models import Store
from .services import masters_service, quotation_service, stock_service
from .services.concurrency import run_in_transaction
from .time_utils import parse_iso_date


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


DEMO_DATA = {
    "stores": [
        {"code": "MAIN", "name": "Main Store", "address": "1 Main Street"},
        {"code": "WH1", "name": "Central Warehouse", "address": "Industrial Zone"},
    ],
    "categories": [
        {"name": "Beverages"},
        {"name": "Groceries"},
    ],
    "suppliers": [
        {"name": "Acme Distributors", "contact_person": "J. Perera", "phone": "0112000000"},
    ],
    "customers": [
        {"name": "Walk-in Customer", "customer_type": "retail"},
        {"name": "City Mart", "customer_type": "wholesale", "credit_limit": "50000"},
    ],
}

DEMO_ITEMS = [
    {"code": "BEV-001", "name": "Mineral Water 1L", "category": "Beverages",
     "cost_price": "60", "retail_price": "90", "wholesale_price": "80", "reorder_level": 24},
    {"code": "BEV-002", "name": "Orange Juice 500ml", "category": "Beverages",
     "cost_price": "120", "retail_price": "180", "wholesale_price": "160", "reorder_level": 12},
    {"code": "GRO-001", "name": "Basmati Rice 5kg", "category": "Groceries",
     "cost_price": "1500", "retail_price": "1850", "wholesale_price": "1750", "reorder_level": 5},
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Insert demo master data. Skips the run if stores already exist."""
    if db.session.query(Store).count():
        click.echo("WARN  Stores already exist, skipping demo seed.")
        return

    def _seed():
        created = {}
        for kind, rows in DEMO_DATA.items():
            created[kind] = [masters_service.create_record(kind, dict(row)) for row in rows]
        categories = {c.name: c.id for c in created["categories"]}
        created["items"] = []
        for row in DEMO_ITEMS:
            payload = {k: v for k, v in row.items() if k != "category"}
            payload["category_id"] = categories[row["category"]]
            created["items"].append(masters_service.create_record("items", payload))
        return created

    try:
        created = run_in_transaction(_seed)
    except BackofficeError as exc:
        raise click.ClickException(exc.message)

    for kind, rows in created.items():
        click.echo(f"PASS Created {len(rows)} {kind}")


# =============================================================================
# STOCK MAINTENANCE COMMANDS
# =============================================================================

@click.group('stock')
def stock_group():
    """Stock ledger inspection and repair."""


@stock_group.command('reconcile')
@click.option('--store-id', type=int, default=None, help='Limit to one store')
@click.option('--fix', is_flag=True, help='Rebuild mismatching balances from the ledger')
@with_appcontext
def reconcile(store_id, fix):
    """Verify quantity_on_hand equals the sum of ledger movements per item and store."""
    mismatches = run_in_transaction(lambda: stock_service.reconcile_balances(store_id=store_id, fix=fix))

    if not mismatches:
        click.echo("PASS All stock balances match the ledger.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'Item':<8} {'Store':<8} {'On hand':>10} {'Ledger':>10} {'Diff':>10}")
    click.echo("="*70)
    for row in mismatches:
        click.echo(
            f"{row['item_id']:<8} {row['store_id']:<8} {row['quantity_on_hand']:>10} "
            f"{row['ledger_quantity']:>10} {row['difference']:>10}"
        )
    click.echo("="*70)

    if fix:
        click.echo(f"PASS Rebuilt {len(mismatches)} balance(s) from the ledger.")
    else:
        click.echo(f"FAIL {len(mismatches)} balance(s) out of sync. Re-run with --fix to repair.")


# =============================================================================
# QUOTATION COMMANDS
# =============================================================================

@click.group('quotations')
def quotations_group():
    """Quotation housekeeping."""


@quotations_group.command('expire')
@click.option('--as-of', 'as_of', default=None, help='Reference date (YYYY-MM-DD), default today')
@with_appcontext
def expire_quotations(as_of):
    """Expire active quotations whose valid_until date has passed."""
    reference = None
    if as_of:
        try:
            reference = parse_iso_date(as_of)
        except ValueError:
            raise click.BadParameter("Use YYYY-MM-DD", param_hint="--as-of")

    count = run_in_transaction(lambda: quotation_service.expire_overdue(as_of=reference))
    click.echo(f"PASS Expired {count} quotation(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(quotations_group)
