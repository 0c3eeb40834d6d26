# Overview: Flask CLI command groups for bootstrap, seeding and stock inspection.

# backend/sfa/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to sfa (PowerShell: $env:FLASK_APP="sfa").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask sfa init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask sfa seed --clients 3 --products 5 --reps 2
#   Insert demo clients, products and sales reps.
#
# Stock inspection/repair:
# - python -m flask stock show 1
#   List the ledger rows of client 1.
# - python -m flask stock set 1 2 40
#   Set client 1's stock of product 2 to 40.
# - python -m flask stock low --threshold 5
#   List ledger rows at or below the threshold.

import click
from decimal import Decimal
from flask import current_app
from flask.cli import with_appcontext

from .errors import CoreError
from .extensions import db
from .models import Client, Product, SalesRep
from .services import stock_ledger_service


@click.group('sfa')
def sfa_group():
    """System bootstrap commands."""


@sfa_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables for all models."""
    db.create_all()
    click.echo("PASS Database tables created")


@sfa_group.command('seed')
@click.option('--clients', 'client_count', default=3, show_default=True, help='Number of clients')
@click.option('--products', 'product_count', default=5, show_default=True, help='Number of products')
@click.option('--reps', 'rep_count', default=2, show_default=True, help='Number of sales reps')
@with_appcontext
def seed(client_count, product_count, rep_count):
    """Insert demo reference data."""
    for i in range(1, client_count + 1):
        db.session.add(Client(name=f"Outlet {i}", region="Demo"))
    for i in range(1, product_count + 1):
        db.session.add(Product(name=f"Product {i}", category="Demo", unit_price=Decimal(i) * 10))
    for i in range(1, rep_count + 1):
        db.session.add(SalesRep(name=f"Rep {i}", email=f"rep{i}@sfa.local"))
    db.session.commit()
    click.echo(f"PASS Seeded {client_count} clients, {product_count} products, {rep_count} sales reps")


@click.group('stock')
def stock_group():
    """Client stock inspection and repair commands."""


@stock_group.command('show')
@click.argument('client_id', type=int)
@with_appcontext
def show_stock(client_id):
    """List a client's stock."""
    entries, total = stock_ledger_service.list_client_stock(db.session, client_id=client_id, limit=1000)
    if not total:
        click.echo(f"No stock recorded for client {client_id}")
        return
    click.echo(f"{'PRODUCT':>10}  {'QUANTITY':>10}")
    for entry in sorted(entries, key=lambda e: e.product_id):
        click.echo(f"{entry.product_id:>10}  {entry.quantity:>10}")


@stock_group.command('set')
@click.argument('client_id', type=int)
@click.argument('product_id', type=int)
@click.argument('quantity', type=int)
@with_appcontext
def set_stock(client_id, product_id, quantity):
    """Set a client's stock of one product."""
    try:
        entry = stock_ledger_service.set_client_stock(
            db.session,
            client_id,
            product_id,
            quantity,
            timeout=current_app.config["UNIT_OF_WORK_TIMEOUT_SECONDS"],
            attempts=current_app.config["UNIT_OF_WORK_RETRY_ATTEMPTS"],
        )
    except CoreError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Client {entry.client_id} product {entry.product_id} quantity={entry.quantity}")


@stock_group.command('low')
@click.option('--threshold', type=int, default=None, help='Defaults to LOW_STOCK_THRESHOLD')
@click.option('--client-id', type=int, default=None)
@with_appcontext
def low_stock(threshold, client_id):
    """List low stock rows."""
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    entries = stock_ledger_service.low_stock(db.session, threshold=threshold, client_id=client_id)
    for entry in entries:
        click.echo(f"client={entry.client_id} product={entry.product_id} quantity={entry.quantity}")
    click.echo(f"{len(entries)} row(s) at or below {threshold}")


def register_commands(app):
    app.cli.add_command(sfa_group)
    app.cli.add_command(stock_group)
