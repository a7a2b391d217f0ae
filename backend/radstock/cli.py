# Overview: Flask CLI command groups for bootstrap, inspection, and stock maintenance.

# backend/radstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to radstock (PowerShell: $env:FLASK_APP="radstock").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--warehouse WH1:"Auckland" ...]
#   Create missing tables and (optionally) seed warehouses. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Warehouses:
# - python -m flask warehouses list
# - python -m flask warehouses create --code WH1 --name "Auckland"
#
# Stock inspection/repair:
# - python -m flask stock show 12
#   Quantity per warehouse for radiator 12.
# - python -m flask stock set 12 WH1 5 --note "Count 2026-10"
#   Manual override through the ledger (writes a MANUAL history row).
# - python -m flask stock reconcile [--radiator-id 12]
#   Compare stock levels with the replayed history; exits 1 on mismatch.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Warehouse
from .services import stock_service
from .services.directory_service import find_warehouse, list_warehouses
from .services.errors import ServiceError


def _parse_warehouse_option(value: str) -> tuple[str, str]:
    code, _, name = value.partition(":")
    code = code.strip().upper()
    if not code:
        raise click.BadParameter(f"invalid warehouse option: {value!r}")
    return code, (name.strip() or code)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--warehouse', 'warehouses', multiple=True,
              help='CODE or CODE:Name; may be given more than once')
@with_appcontext
def init_system(warehouses):
    """Create tables and seed warehouses (safe to re-run)."""
    click.echo("BUILD  Creating missing tables...")
    db.create_all()

    created = 0
    for value in warehouses:
        code, name = _parse_warehouse_option(value)
        if find_warehouse(code=code):
            click.echo(f"  SKIP  warehouse {code} already exists")
            continue
        db.session.add(Warehouse(code=code, name=name))
        created += 1
    db.session.commit()

    click.echo(f"OK  System initialized ({created} warehouse(s) created)")


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

    click.echo("OK  Database reset complete")


@click.group('warehouses')
def warehouses_group():
    """Warehouse inspection and setup."""


@warehouses_group.command('list')
@with_appcontext
def list_warehouses_cmd():
    """List all warehouses."""
    rows = list_warehouses()
    if not rows:
        click.echo("No warehouses found.")
        return

    click.echo("\n" + "=" * 50)
    click.echo(f"{'ID':<5} {'Code':<12} {'Name'}")
    click.echo("=" * 50)
    for warehouse in rows:
        click.echo(f"{warehouse.id:<5} {warehouse.code:<12} {warehouse.name}")
    click.echo("=" * 50 + "\n")


@warehouses_group.command('create')
@click.option('--code', prompt=True, help='Short warehouse code, e.g. WH1')
@click.option('--name', prompt=True, help='Display name')
@with_appcontext
def create_warehouse(code, name):
    """Create a warehouse."""
    code = code.strip().upper()
    if find_warehouse(code=code):
        raise click.ClickException(f"Warehouse {code} already exists")

    warehouse = Warehouse(code=code, name=name.strip())
    db.session.add(warehouse)
    db.session.commit()
    click.echo(f"OK  Created warehouse {warehouse.code} (id={warehouse.id})")


@click.group('stock')
def stock_group():
    """Stock inspection and manual correction."""


@stock_group.command('show')
@click.argument('radiator_id', type=int)
@with_appcontext
def show_stock(radiator_id):
    """Show quantity per warehouse for a radiator."""
    try:
        quantities = stock_service.get_stock(radiator_id)
    except ServiceError as e:
        raise click.ClickException(str(e))

    for code, quantity in quantities.items():
        click.echo(f"{code:<12} {quantity}")


@stock_group.command('set')
@click.argument('radiator_id', type=int)
@click.argument('warehouse_code')
@click.argument('quantity', type=int)
@click.option('--note', default=None, help='Reason recorded in the stock history')
@with_appcontext
def set_stock(radiator_id, warehouse_code, quantity, note):
    """Set the on-hand quantity (MANUAL history entry)."""
    try:
        entry = stock_service.update_stock(radiator_id, warehouse_code, quantity, note=note)
    except ServiceError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"OK  {warehouse_code.upper()}: {entry.old_quantity} -> {entry.new_quantity} "
        f"(change {entry.quantity_change:+d})"
    )


@stock_group.command('reconcile')
@click.option('--radiator-id', type=int, default=None)
@with_appcontext
def reconcile(radiator_id):
    """Check stock levels against the replayed history."""
    result = stock_service.reconcile_stock(radiator_id)
    if result["consistent"]:
        click.echo(f"OK  {result['checked']} pair(s) consistent")
        return

    for row in result["discrepancies"]:
        click.echo(
            f"MISMATCH  radiator={row['radiator_id']} warehouse={row['warehouse_id']} "
            f"quantity={row['quantity']} history={row['history_total']}"
        )
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(warehouses_group)
    app.cli.add_command(stock_group)
