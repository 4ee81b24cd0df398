# Overview: Flask CLI command groups for bootstrap, master data, inspection, and reconciliation checks.

# backend/pos_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Master data:
# - python -m flask tenants create --name "Abarrotes Lupita" --code "LUPITA"
# - python -m flask warehouses create --tenant-id 1 --name "Centro" [--address ...] [--phone ...]
# - python -m flask warehouses list --tenant-id 1
# - python -m flask users create --tenant-id 1 --username ana --role cashier --warehouse-id 1
# - python -m flask products create --tenant-id 1 --name "Combo" --composite --price 99.00
# - python -m flask products add-component --tenant-id 1 --parent-id 3 --component-id 1 --quantity 2
# - python -m flask products components --tenant-id 1 --product-id 3
#
# Stock:
# - python -m flask stock show --tenant-id 1 [--warehouse-id 1] [--product-id 1]
# - python -m flask stock adjust --tenant-id 1 --product-id 1 --warehouse-id 1 --delta 10
#
# Register inspection/reconciliation:
# - python -m flask registers sessions --tenant-id 1 --status open --limit 20
# - python -m flask registers verify [--tenant-id 1]
#   Recompute every closed session from the cash ledger and report mismatches (exit 1 if any).

import click
from flask.cli import with_appcontext

from .errors import PosLedgerError
from .extensions import db
from .models import CashRegisterSession, User
from .models.inventory import UNIT_TYPES
from .models.types import decimal_str
from .services import component_service, products_service, register_service, stock_service, tenant_service
from .services.concurrency import unit_of_work


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (no-op for tables that already exist)."""
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

    click.echo("PASS Database reset complete.")


# =============================================================================
# MASTER DATA
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', help='Short code (unique)')
@with_appcontext
def create_tenant_cli(name, code):
    """Create a new tenant."""
    try:
        tenant = tenant_service.create_tenant(name, code)
    except PosLedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code or '-'})")


@click.group('warehouses')
def warehouses_group():
    """Warehouse management commands."""


@warehouses_group.command('create')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--name', required=True, help='Warehouse name (unique within tenant)')
@click.option('--address', help='Street address')
@click.option('--phone', help='Phone number')
@with_appcontext
def create_warehouse_cli(tenant_id, name, address, phone):
    """Create a warehouse for a tenant."""
    try:
        warehouse = tenant_service.create_warehouse(tenant_id, name, address=address, phone=phone)
    except PosLedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created warehouse: {warehouse.name} (ID: {warehouse.id})")


@warehouses_group.command('list')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def list_warehouses_cli(tenant_id):
    """List a tenant's warehouses."""
    warehouses = tenant_service.list_warehouses(tenant_id)
    if not warehouses:
        click.echo("No warehouses found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Phone':<15} {'Address'}")
    click.echo("="*70)
    for w in warehouses:
        click.echo(f"{w.id:<5} {w.name:<30} {w.phone or '-':<15} {w.address or '-'}")
    click.echo("="*70 + "\n")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--username', required=True, help='Username')
@click.option('--role', type=click.Choice(list(tenant_service.USER_ROLES)), default='cashier', show_default=True)
@click.option('--warehouse-id', type=int, help='Assigned warehouse (sales move its stock)')
@with_appcontext
def create_user_cli(tenant_id, username, role, warehouse_id):
    """Create a user as seen by the ledger (credentials live upstream)."""
    try:
        user = tenant_service.create_user(tenant_id, username, role=role, warehouse_id=warehouse_id)
    except PosLedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, Role: {user.role})")


@users_group.command('assign-warehouse')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--user-id', type=int, required=True, help='User ID')
@click.option('--warehouse-id', type=int, help='Warehouse ID (omit to unassign)')
@with_appcontext
def assign_warehouse_cli(tenant_id, user_id, warehouse_id):
    """Change the warehouse a user's sales move stock in."""
    try:
        user = tenant_service.assign_warehouse(user_id, tenant_id, warehouse_id)
    except PosLedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS User {user.username} warehouse: {user.warehouse_id or 'none'}")


@click.group('products')
def products_group():
    """Product and recipe commands."""


@products_group.command('create')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--name', required=True, help='Product name')
@click.option('--sku', help='SKU')
@click.option('--composite', is_flag=True, help='Product is a bundle of components')
@click.option('--unit-type', type=click.Choice(list(UNIT_TYPES)), default='piece', show_default=True)
@click.option('--fractional', is_flag=True, help='Allow fractional sale quantities')
@click.option('--price', help='Reference price, e.g. 19.90')
@click.option('--cost', help='Reference cost, e.g. 12.00')
@with_appcontext
def create_product_cli(tenant_id, name, sku, composite, unit_type, fractional, price, cost):
    """Create a product."""
    try:
        product = products_service.create_product(
            tenant_id, name, sku,
            is_composite=composite,
            unit_type=unit_type,
            allows_fractional_quantity=fractional,
            price=price,
            cost=cost,
        )
    except PosLedgerError as e:
        click.echo(f"FAIL {e}")
        return
    kind = "composite" if product.is_composite else "simple"
    click.echo(f"PASS Created {kind} product: {product.name} (ID: {product.id})")


@products_group.command('add-component')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--parent-id', type=int, required=True, help='Composite product ID')
@click.option('--component-id', type=int, required=True, help='Component product ID')
@click.option('--quantity', required=True, help='Units of component per parent unit')
@click.option('--cost', help='Cost snapshot')
@with_appcontext
def add_component_cli(tenant_id, parent_id, component_id, quantity, cost):
    """Add a component to a composite product's recipe."""
    try:
        with unit_of_work():
            link = component_service.add_component(parent_id, component_id, quantity, tenant_id, cost=cost)
    except PosLedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(
        f"PASS Linked component {link.component_product_id} x{decimal_str(link.quantity_per_parent_unit)} "
        f"to product {link.parent_product_id}"
    )


@products_group.command('components')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--product-id', type=int, required=True, help='Composite product ID')
@with_appcontext
def list_components_cli(tenant_id, product_id):
    """Show a composite product's recipe."""
    try:
        components = component_service.get_components(product_id, tenant_id)
    except PosLedgerError as e:
        click.echo(f"FAIL {e}")
        return
    if not components:
        click.echo("No components.")
        return
    for c in components:
        click.echo(f"{c['component_product_id']:<6} {c['component']['name']:<30} x{c['quantity_per_parent_unit']}")


# =============================================================================
# STOCK
# =============================================================================

@click.group('stock')
def stock_group():
    """Warehouse stock inspection and adjustment."""


@stock_group.command('show')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--warehouse-id', type=int, help='Filter by warehouse')
@click.option('--product-id', type=int, help='Filter by product')
@with_appcontext
def show_stock_cli(tenant_id, warehouse_id, product_id):
    """List stock rows."""
    rows = stock_service.list_stock(tenant_id, warehouse_id=warehouse_id, product_id=product_id)
    if not rows:
        click.echo("No stock rows found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'Warehouse':<10} {'Product':<8} {'Name':<28} {'Quantity':>12}")
    click.echo("="*60)
    for row in rows:
        click.echo(f"{row.warehouse_id:<10} {row.product_id:<8} {row.product.name[:28]:<28} {decimal_str(row.quantity):>12}")
    click.echo("="*60 + "\n")


@stock_group.command('adjust')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--warehouse-id', type=int, required=True, help='Warehouse ID')
@click.option('--delta', required=True, help='Signed quantity change, e.g. 10 or -2.5')
@with_appcontext
def adjust_stock_cli(tenant_id, product_id, warehouse_id, delta):
    """Apply a signed stock adjustment."""
    try:
        with unit_of_work():
            quantity = stock_service.adjust(product_id, warehouse_id, tenant_id, delta)
    except PosLedgerError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Product {product_id} in warehouse {warehouse_id}: {decimal_str(quantity)}")


# =============================================================================
# REGISTERS
# =============================================================================

@click.group('registers')
def registers_group():
    """Cash register session inspection and reconciliation checks."""


@registers_group.command('sessions')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(tenant_id, status, limit):
    """
    List cash register sessions.

    Example:
        flask registers sessions --tenant-id 1
        flask registers sessions --tenant-id 1 --status open
    """
    query = db.session.query(CashRegisterSession).filter_by(tenant_id=tenant_id)
    if status:
        query = query.filter_by(status=status)

    sessions = query.order_by(CashRegisterSession.opened_at.desc()).limit(limit).all()

    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<20} {'User':<15} {'Status':<8} {'Opened':<20} {'Expected':>12} {'Difference':>12}")
    click.echo("="*100)

    for session in sessions:
        user = db.session.get(User, session.user_id)
        username = user.username if user else "Unknown"
        click.echo(
            f"{session.id:<5} {session.name[:20]:<20} {username:<15} {session.status:<8} "
            f"{str(session.opened_at)[:19]:<20} {decimal_str(session.expected_amount) or '-':>12} "
            f"{decimal_str(session.difference) or '-':>12}"
        )

    click.echo("="*100 + "\n")


@registers_group.command('verify')
@click.option('--tenant-id', type=int, help='Limit the check to one tenant')
@with_appcontext
def verify_sessions_cli(tenant_id):
    """
    Recompute every closed session from cash_transactions and compare with the
    values stored at close. Exits with status 1 when any session disagrees.
    """
    mismatches = register_service.verify_session_totals(tenant_id)
    if not mismatches:
        click.echo("PASS All closed sessions match the cash ledger.")
        return

    for m in mismatches:
        click.echo(
            f"FAIL Session {m['session_id']}: stored expected {m['stored_expected']} vs ledger "
            f"{m['fresh_expected']}, stored difference {m['stored_difference']} vs ledger {m['fresh_difference']}"
        )
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(warehouses_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(registers_group)
