# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/outlet_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv and `pip install -e .`
# - Set FLASK_APP to outlet_ledger (PowerShell: $env:FLASK_APP="outlet_ledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--tax-rate-bps 500]
#   Idempotent bootstrap: creates tables, seeds the chart of accounts and a default outlet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inspection:
# - python -m flask accounts list [--type Revenue]
#   Print the chart of accounts.
# - python -m flask ledger trial-balance
#   Print debit/credit totals per account and whether the books balance.
#
# Stock corrections:
# - python -m flask stock set 12 40 --reason "Cycle count" --actor alice
#   Set a product's stock to an absolute quantity (writes a StockAdjustment).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import accounts_service, inventory_service, journal_service
from .services.errors import LedgerError


def _format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--tax-rate-bps', type=int, default=None, help='Tax rate for the default outlet (500 = 5%)')
@with_appcontext
def init_system(tax_rate_bps):
    """
    Initialize the ledger: schema, chart of accounts and default outlet.

    Safe to run repeatedly; existing accounts and outlets are left alone.
    """
    click.echo("START Initializing outlet ledger...")

    db.create_all()

    if tax_rate_bps is None:
        tax_rate_bps = int(current_app.config.get("DEFAULT_TAX_RATE_BPS", 0))
    if tax_rate_bps < 0:
        raise click.BadParameter("tax rate cannot be negative", param_hint="--tax-rate-bps")

    created = accounts_service.ensure_chart_of_accounts()
    outlet = accounts_service.ensure_default_outlet(tax_rate_bps=tax_rate_bps)
    db.session.commit()

    click.echo(f"PASS Chart of accounts ready ({created} account(s) created)")
    click.echo(f"PASS Using outlet: {outlet.name} (ID: {outlet.id}, tax {outlet.tax_rate_bps} bps)")
    click.echo("DONE")


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

    click.echo("DONE  Database reset. Run 'flask system init' to seed accounts.")


@click.group('accounts')
def accounts_group():
    """Chart of accounts inspection."""


@accounts_group.command('list')
@click.option('--type', 'account_type', default=None, help='Filter by account type')
@with_appcontext
def list_accounts(account_type):
    """List the chart of accounts."""
    accounts = accounts_service.list_accounts(account_type)
    if not accounts:
        click.echo("No accounts found. Run 'flask system init'.")
        return

    for account in accounts:
        status = "active" if account.is_active else "inactive"
        click.echo(f"{account.code:<6} {account.name:<28} {account.type:<10} {status}")


@click.group('stock')
def stock_group():
    """Manual stock corrections."""


@stock_group.command('set')
@click.argument('product_id', type=int)
@click.argument('quantity', type=int)
@click.option('--reason', required=True, help='Why the stock is being corrected')
@click.option('--reference', default=None, help='Optional external reference')
@click.option('--actor', default='cli', show_default=True, help='Who is making the correction')
@with_appcontext
def set_stock(product_id, quantity, reason, reference, actor):
    """Set PRODUCT_ID's stock to QUANTITY."""
    try:
        adjustment = inventory_service.adjust_stock(
            product_id,
            quantity,
            reason=reason,
            reference=reference,
            actor=actor,
        )
    except LedgerError as e:
        raise click.ClickException(e.message)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"PASS Product {product_id}: stock {adjustment.resulting_stock} "
        f"(delta {adjustment.delta:+d})"
    )


@click.group('ledger')
def ledger_group():
    """Journal and trial balance reports."""


@ledger_group.command('trial-balance')
@with_appcontext
def trial_balance():
    """Print the trial balance over posted journal entries."""
    report = journal_service.get_trial_balance()

    for row in report["accounts"]:
        click.echo(
            f"{row['code']:<6} {row['name']:<28} "
            f"{_format_cents(row['debit_cents']):>14} {_format_cents(row['credit_cents']):>14}"
        )
    click.echo(
        f"{'':<6} {'TOTAL':<28} "
        f"{_format_cents(report['total_debit_cents']):>14} {_format_cents(report['total_credit_cents']):>14}"
    )

    if report["balanced"]:
        click.echo("PASS Books balance")
    else:
        click.echo("FAIL Books do not balance")
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(ledger_group)
