# Overview: Flask CLI command groups for bootstrap, stock inspection and transfers.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system seed
#   Create the warehouse, two stores and a handful of demo products (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock:
# - python -m flask stock show --product-id 1
#   Quantity of a product at every location.
# - python -m flask stock purchase --product-id 1 --quantity 50
#   Stock inward into the warehouse.
# - python -m flask stock low
#   Products at or below their warehouse alert level.
#
# Transfers:
# - python -m flask transfers dispatch --product-id 1 --quantity 5 --to 2 [--auto-receive]
# - python -m flask transfers pending
# - python -m flask transfers receive 7
#   Receive as an administrator.

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .identity import Caller, ROLE_ADMIN
from .models import Location, Product
from .models.locations import LOCATION_TYPE_STORE, LOCATION_TYPE_WAREHOUSE
from .services import inventory_service, reporting_service, transfer_service


DEMO_PRODUCTS = [
    # sku, name, category, price, cost, gst, hsn, min alert, size, color, group
    ("FB-001", "Match Football", "Balls", "1299.00", "820.00", "18", "9506", 5, "5", None, None),
    ("CB-ENG-L", "English Willow Bat", "Cricket", "5499.00", "3900.00", "12", "9506", 2, "SH", None, "CB-ENG"),
    ("CB-ENG-M", "English Willow Bat", "Cricket", "5499.00", "3900.00", "12", "9506", 2, "6", None, "CB-ENG"),
    ("JR-BLU-M", "Training Jersey", "Apparel", "799.00", "410.00", "5", "6109", 10, "M", "Blue", "JR-TRN"),
    ("JR-BLU-L", "Training Jersey", "Apparel", "799.00", "410.00", "5", "6109", 10, "L", "Blue", "JR-TRN"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('seed')
@with_appcontext
def seed():
    """Create the warehouse, two stores and demo products (idempotent)."""
    if not db.session.query(Location).filter_by(type=LOCATION_TYPE_WAREHOUSE).first():
        db.session.add(Location(name="Central Godown", type=LOCATION_TYPE_WAREHOUSE))
        click.echo("PASS Created warehouse")

    for name in ("Store A", "Store B"):
        if not db.session.query(Location).filter_by(name=name).first():
            db.session.add(Location(name=name, type=LOCATION_TYPE_STORE))
            click.echo(f"PASS Created store: {name}")

    for sku, name, category, price, cost, gst, hsn, alert, size, color, group in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product {sku} already exists, skipping...")
            continue
        db.session.add(Product(
            sku=sku,
            name=name,
            category=category,
            price=Decimal(price),
            cost_price=Decimal(cost),
            gst_rate=Decimal(gst),
            hsn_code=hsn,
            min_stock_alert=alert,
            size=size,
            color=color,
            group_id=group,
        ))
        click.echo(f"PASS Created product: {sku} {name}")

    db.session.commit()
    click.echo("DONE Seed complete")


@click.group('stock')
def stock_group():
    """Stock inspection and inward commands."""


@stock_group.command('show')
@click.option('--product-id', type=int, required=True)
@with_appcontext
def show_stock(product_id):
    """Quantity of a product at every location."""
    try:
        levels = inventory_service.get_stock_levels(db.session, product_id)
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    for level in levels:
        click.echo(f"{level['location_id']:>4}  {level['location_type']:<9}  {level['location_name']:<24}  {level['quantity']}")


@stock_group.command('purchase')
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@with_appcontext
def purchase(product_id, quantity):
    """Stock inward into the warehouse."""
    try:
        tx = inventory_service.record_purchase(db.session, product_id, quantity)
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Purchase recorded (transaction {tx.id})")


@stock_group.command('low')
@with_appcontext
def low_stock():
    """Products at or below their warehouse alert level."""
    products = reporting_service.get_low_stock_products(db.session)
    if not products:
        click.echo("PASS No products below alert level")
        return
    for p in products:
        click.echo(f"WARN  {p['sku']:<12} {p['name']:<28} stock={p['warehouse_stock']} alert={p['min_stock_alert']}")


@click.group('transfers')
def transfers_group():
    """Warehouse-to-store transfer commands."""


@transfers_group.command('dispatch')
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--to', 'to_location_id', type=int, required=True, help='Destination store id')
@click.option('--auto-receive', is_flag=True, help='Credit the store immediately')
@with_appcontext
def dispatch(product_id, quantity, to_location_id, auto_receive):
    try:
        out_tx = transfer_service.dispatch_transfer(
            db.session, product_id, quantity, to_location_id, auto_receive=auto_receive
        )
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Transfer {out_tx.id} dispatched ({out_tx.status})")


@transfers_group.command('pending')
@with_appcontext
def pending():
    """List transfers awaiting receipt."""
    rows = transfer_service.list_transfers(db.session, pending_only=True)
    if not rows:
        click.echo("PASS No pending transfers")
        return
    for tx in rows:
        click.echo(f"{tx.id:>6}  product={tx.product_id}  qty={tx.quantity}  to={tx.to_location_id}")


@transfers_group.command('receive')
@click.argument('transfer_id', type=int)
@with_appcontext
def receive(transfer_id):
    """Receive a pending transfer as an administrator."""
    try:
        in_tx = transfer_service.receive_transfer(db.session, transfer_id, Caller(role=ROLE_ADMIN))
    except LedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Transfer {transfer_id} received (TRANSFER_IN {in_tx.id})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(transfers_group)
