# Overview: Flask CLI command groups for database bootstrap and inspection.

# backend/restopos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent). Use "flask db upgrade" for migrations.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inspection:
# - python -m flask materials list [--low-stock]
#   List materials with stock and status.
# - python -m flask sales summary [--range day|week|month|all]
#   Revenue, items sold and payment breakdown for a window.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Material
from .models.inventory import quantity_to_json
from .services import reporting_service
from .services.materials_service import low_stock_materials
from .time_utils import TIME_RANGES


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is ready.")


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


@click.group('materials')
def materials_group():
    """Raw-material inspection commands."""


@materials_group.command('list')
@click.option('--low-stock', is_flag=True, help='Only materials at or below min_stock')
@with_appcontext
def list_materials(low_stock):
    """List materials with current stock."""
    if low_stock:
        materials = low_stock_materials()
    else:
        materials = db.session.query(Material).order_by(Material.name.asc()).all()

    if not materials:
        click.echo("No materials found.")
        return

    factor = current_app.config.get("LOW_STOCK_WARNING_FACTOR", 2)

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Stock':>12} {'Min':>10} {'Unit':<8} {'Status'}")
    click.echo("=" * 80)
    for m in materials:
        min_stock = quantity_to_json(m.min_stock)
        click.echo(
            f"{m.id:<5} {m.name:<30} {quantity_to_json(m.stock):>12} "
            f"{'-' if min_stock is None else min_stock:>10} {m.unit:<8} {m.stock_status(factor)}"
        )
    click.echo("=" * 80 + "\n")


@click.group('sales')
def sales_group():
    """Sales inspection commands."""


@sales_group.command('summary')
@click.option('--range', 'time_range', type=click.Choice(TIME_RANGES), default='day', show_default=True)
@with_appcontext
def sales_summary(time_range):
    """Print revenue and payment breakdown for a window."""
    report = reporting_service.sales_report(time_range=time_range, limit=0)
    summary = report["summary"]

    click.echo(f"Range:       {time_range}")
    click.echo(f"Revenue:     {summary['revenue']}")
    click.echo(f"Items sold:  {summary['items_sold']}")
    click.echo(f"Lines:       {summary['line_count']}")
    for method, bucket in report["payments"].items():
        click.echo(f"  {method:<6} {bucket['count']:>5} sale(s)  {bucket['amount']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(materials_group)
    app.cli.add_command(sales_group)
