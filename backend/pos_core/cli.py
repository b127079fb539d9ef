# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pos_core/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Reference data:
# - python -m flask outlets create --code DKR-01 --name "Dakar Plateau"
# - python -m flask outlets list [--all]
# - python -m flask products create --name "Huile 1L" --sku HUI-1L --price 1500 [--not-trackable]
# - python -m flask products list [--all]
#
# Inventory:
# - python -m flask inventory receive --outlet-id 1 --product-id 3 --quantity 24 [--reference BL-0042]
# - python -m flask inventory stock --outlet-id 1
#   Ledger quantity vs materialized counter per product.
# - python -m flask inventory low-stock --outlet-id 1 [--threshold 5]
# - python -m flask inventory reconcile [--outlet-id 1] [--repair]
#   Audit stock counters against the movement ledger (and rewrite them with --repair).
#
# Registers:
# - python -m flask registers sessions [--outlet-id 1] [--status OPEN] [--limit 20]
# - python -m flask registers summary SESSION_ID

import click
from flask.cli import with_appcontext

from .errors import SettlementError
from .extensions import db


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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
# OUTLETS / PRODUCTS
# =============================================================================

@click.group('outlets')
def outlets_group():
    """Outlet (point of sale) management."""


@outlets_group.command('create')
@click.option('--code', required=True, help='Short unique code, e.g. DKR-01')
@click.option('--name', required=True, help='Display name')
@with_appcontext
def create_outlet_cli(code, name):
    from .services import catalog_service

    try:
        outlet = catalog_service.create_outlet(code, name)
        click.echo(f"PASS Created outlet {outlet.code} - {outlet.name} (id={outlet.id})")
    except SettlementError as e:
        click.echo(f"FAIL Error: {str(e)}")


@outlets_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive outlets too')
@with_appcontext
def list_outlets_cli(show_all):
    from .services import catalog_service

    outlets = catalog_service.list_outlets(include_inactive=show_all)
    if not outlets:
        click.echo("No outlets found.")
        return

    click.echo("\n" + "=" * 60)
    click.echo(f"{'ID':<5} {'Code':<12} {'Name':<32} {'Active'}")
    click.echo("=" * 60)
    for outlet in outlets:
        click.echo(f"{outlet.id:<5} {outlet.code:<12} {outlet.name[:31]:<32} {'yes' if outlet.is_active else 'no'}")
    click.echo("=" * 60 + "\n")


@click.group('products')
def products_group():
    """Product reference data."""


@products_group.command('create')
@click.option('--name', required=True)
@click.option('--sku', default=None)
@click.option('--price', type=int, default=None, help='Catalog price in minor units')
@click.option('--not-trackable', is_flag=True, help='Service item without physical stock')
@with_appcontext
def create_product_cli(name, sku, price, not_trackable):
    from .services import catalog_service

    try:
        product = catalog_service.create_product(name, sku=sku, price=price, is_trackable=not not_trackable)
        click.echo(f"PASS Created product {product.name} (id={product.id}, sku={product.sku or '-'})")
    except SettlementError as e:
        click.echo(f"FAIL Error: {str(e)}")


@products_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive products too')
@with_appcontext
def list_products_cli(show_all):
    from .services import catalog_service

    products = catalog_service.list_products(include_inactive=show_all)
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'SKU':<14} {'Name':<32} {'Price':>12} {'Tracked'}")
    click.echo("=" * 80)
    for p in products:
        price = p.price if p.price is not None else "-"
        click.echo(f"{p.id:<5} {(p.sku or '-'):<14} {p.name[:31]:<32} {price:>12} {'yes' if p.is_trackable else 'no'}")
    click.echo("=" * 80 + "\n")


# =============================================================================
# INVENTORY
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Inventory ledger inspection and repair."""


@inventory_group.command('receive')
@click.option('--outlet-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--reference', default=None, help='Delivery note / purchase reference')
@click.option('--note', default=None)
@with_appcontext
def receive_cli(outlet_id, product_id, quantity, reference, note):
    from .services import inventory_service

    try:
        movement = inventory_service.receive_stock(
            outlet_id, product_id, quantity, reference_id=reference, note=note,
        )
        on_hand = inventory_service.current_stock(outlet_id, product_id)
        click.echo(f"PASS Received {movement.quantity_delta} (movement {movement.id}); on hand: {on_hand}")
    except SettlementError as e:
        click.echo(f"FAIL Error: {str(e)}")


@inventory_group.command('stock')
@click.option('--outlet-id', type=int, required=True)
@with_appcontext
def stock_cli(outlet_id):
    """Ledger quantity and counter per product for an outlet."""
    from .services import catalog_service, inventory_service

    products = catalog_service.list_products()
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Name':<32} {'Ledger':>10} {'Counter':>10}")
    click.echo("=" * 70)
    for p in products:
        level = inventory_service.get_stock_level(outlet_id, p.id)
        counter = level.quantity if level else "-"
        ledger = inventory_service.current_stock(outlet_id, p.id)
        click.echo(f"{p.id:<5} {p.name[:31]:<32} {ledger:>10} {counter:>10}")
    click.echo("=" * 70 + "\n")


@inventory_group.command('low-stock')
@click.option('--outlet-id', type=int, required=True)
@click.option('--threshold', type=int, default=None)
@with_appcontext
def low_stock_cli(outlet_id, threshold):
    from .services import inventory_service

    items = inventory_service.low_stock(outlet_id, threshold)
    if not items:
        click.echo("PASS No products at or below threshold.")
        return
    for item in items:
        click.echo(f"WARN  {item['product_name']} ({item['sku'] or '-'}): {item['quantity']} <= {item['threshold']}")


@inventory_group.command('reconcile')
@click.option('--outlet-id', type=int, default=None)
@click.option('--repair', is_flag=True, help='Rewrite drifting counters from the ledger')
@with_appcontext
def reconcile_cli(outlet_id, repair):
    from .services import inventory_service

    try:
        discrepancies = inventory_service.reconcile_stock_levels(outlet_id, repair=repair)
    except SettlementError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return

    if not discrepancies:
        click.echo("PASS All stock counters match the ledger.")
        return

    for d in discrepancies:
        click.echo(
            f"{'FIXED' if repair else 'DRIFT'} outlet={d['outlet_id']} product={d['product_id']} "
            f"ledger={d['ledger_quantity']} counter={d['counter_quantity']}"
        )
    if not repair:
        click.echo("Run again with --repair to rewrite the counters.")


# =============================================================================
# REGISTERS
# =============================================================================

@click.group('registers')
def registers_group():
    """Register session inspection."""


@registers_group.command('sessions')
@click.option('--outlet-id', type=int, help='Filter by outlet ID')
@click.option('--status', type=click.Choice(['OPEN', 'CLOSED']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(outlet_id, status, limit):
    """
    List register sessions.

    Example:
        flask registers sessions
        flask registers sessions --outlet-id 1 --status OPEN
    """
    from .services import register_service

    sessions = register_service.list_sessions(outlet_id, status=status, limit=limit)
    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Outlet':<8} {'Date':<12} {'Status':<8} {'Float':>12} {'Theoretical':>14} {'Variance':>12}")
    click.echo("=" * 100)
    for s in sessions:
        theoretical = s.theoretical_balance if s.theoretical_balance is not None else "-"
        variance = s.variance if s.variance is not None else "-"
        click.echo(
            f"{s.id:<5} {s.outlet_id:<8} {s.business_date.isoformat():<12} {s.status:<8} "
            f"{s.opening_float:>12} {theoretical:>14} {variance:>12}"
        )
    click.echo("=" * 100 + "\n")


@registers_group.command('summary')
@click.argument('session_id', type=int)
@with_appcontext
def session_summary_cli(session_id):
    from .services import reporting_service

    try:
        summary = reporting_service.summarize_session(session_id)
    except SettlementError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return

    click.echo(f"Session {summary['session_id']} ({summary['status']}) - {summary['business_date']}")
    click.echo(f"   Sales:          {summary['total_sales']} over {summary['sale_count']} sale(s)")
    click.echo(f"   Average ticket: {summary['average_ticket']}")
    for method, amount in sorted(summary['totals_by_payment_method'].items()):
        click.echo(f"     {method:<14}{amount}")
    click.echo(f"   Manual in/out:  +{summary['total_manual_in']} / -{summary['total_manual_out']}")
    click.echo(f"   Theoretical:    {summary['theoretical_balance_now']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(outlets_group)
    app.cli.add_command(products_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(registers_group)
