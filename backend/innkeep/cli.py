# Overview: Flask CLI command groups for operators: catalog, shifts, sales, maintenance.

# backend/innkeep/cli.py
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
# Catalog:
# - python -m flask catalog list [--all]
#   List catalog items with price and stock.
# - python -m flask catalog low-stock
#   Tracked items at or below their low-stock threshold.
# - python -m flask catalog add --name "Tea" --price 1.50 [--track-stock --stock 20 --threshold 5]
#
# Shifts:
# - python -m flask shifts open --operator 1 --start-cash 100.00
# - python -m flask shifts close --shift-id 1 --operator 1 --actual-cash 140.00
# - python -m flask shifts current
# - python -m flask shifts history [--limit 10]
#
# Sales:
# - python -m flask sales show 12
#   Sale header, lines, payments and balance due.
# - python -m flask sales pay 12 --amount 20.00 --method cash

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import EngineError
from .extensions import db
from .money import format_cents, to_cents
from .services import catalog_service, payment_service, sales_service, shift_service


def _fail(exc: EngineError):
    click.echo(f"FAIL [{exc.code}] {exc.message}", err=True)
    raise click.exceptions.Exit(1)


def _run(func, *args, **kwargs):
    """Call a service, turning engine errors into a non-zero exit."""
    try:
        return func(*args, **kwargs)
    except EngineError as exc:
        _fail(exc)
    except Exception:
        current_app.logger.exception("Command failed")
        raise


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System maintenance commands."""


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
# CATALOG
# =============================================================================

@click.group('catalog')
def catalog_group():
    """Catalog inspection and setup."""


@catalog_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Include inactive items')
@with_appcontext
def list_items_cli(show_all):
    items = catalog_service.list_items(active_only=not show_all)
    if not items:
        click.echo("No catalog items found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<35} {'Price':>12} {'Stock':>8} {'Active':<8}")
    click.echo("="*80)
    for item in items:
        stock = str(item.stock_quantity) if item.track_stock else "-"
        click.echo(
            f"{item.id:<5} {item.name[:35]:<35} {format_cents(item.price_cents):>12} {stock:>8} "
            f"{'yes' if item.is_active else 'no':<8}"
        )
    click.echo("="*80 + "\n")


@catalog_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    items = catalog_service.get_low_stock_items()
    if not items:
        click.echo("PASS No items at or below their threshold.")
        return
    for item in items:
        click.echo(f"WARN {item.name}: {item.stock_quantity} on hand (threshold {item.low_stock_threshold})")


@catalog_group.command('add')
@click.option('--name', required=True, help='Item name (unique)')
@click.option('--price', required=True, help='Unit price, e.g. 12.50')
@click.option('--track-stock', is_flag=True, help='Track on-hand quantity')
@click.option('--stock', type=int, default=0, help='Initial stock quantity')
@click.option('--threshold', type=int, default=0, help='Low-stock threshold')
@with_appcontext
def add_item_cli(name, price, track_stock, stock, threshold):
    price_cents = _run(to_cents, price)
    item = _run(
        catalog_service.create_item,
        name, price_cents,
        track_stock=track_stock, stock_quantity=stock, low_stock_threshold=threshold,
    )
    click.echo(f"PASS Created item: {item.name} (ID: {item.id})")


# =============================================================================
# SHIFTS
# =============================================================================

@click.group('shifts')
def shifts_group():
    """Cash drawer shifts."""


@shifts_group.command('open')
@click.option('--operator', 'operator_id', type=int, required=True, help='Operator ID')
@click.option('--start-cash', required=True, help='Starting float, e.g. 100.00')
@click.option('--notes', default=None)
@with_appcontext
def open_shift_cli(operator_id, start_cash, notes):
    start_cents = _run(to_cents, start_cash)
    shift = _run(shift_service.open_shift, operator_id, start_cents, notes=notes)
    click.echo(f"PASS Shift {shift.id} opened with {format_cents(shift.start_cash_cents)}")


@shifts_group.command('close')
@click.option('--shift-id', type=int, required=True)
@click.option('--operator', 'operator_id', type=int, required=True, help='Operator ID')
@click.option('--actual-cash', required=True, help='Counted cash, e.g. 140.00')
@click.option('--notes', default=None)
@with_appcontext
def close_shift_cli(shift_id, operator_id, actual_cash, notes):
    actual_cents = _run(to_cents, actual_cash)
    summary = _run(shift_service.close_shift, shift_id, operator_id, actual_cents, notes=notes)
    click.echo("\n" + "="*50)
    click.echo(f"Shift {summary.shift_id} closed")
    click.echo("="*50)
    click.echo(f"{'Start cash':<20} {format_cents(summary.start_cash_cents):>15}")
    click.echo(f"{'Sales':<20} {format_cents(summary.total_sales_cents):>15}")
    click.echo(f"{'Expenses':<20} {format_cents(summary.total_expenses_cents):>15}")
    click.echo(f"{'Expected':<20} {format_cents(summary.end_cash_expected_cents):>15}")
    click.echo(f"{'Actual':<20} {format_cents(summary.end_cash_actual_cents):>15}")
    click.echo(f"{'Difference':<20} {format_cents(summary.difference_cents):>15}")
    click.echo("="*50 + "\n")


@shifts_group.command('current')
@with_appcontext
def current_shift_cli():
    shift = shift_service.get_current_shift()
    if not shift:
        click.echo("No open shift.")
        return
    preview = shift_service.preview_shift(shift.id)
    click.echo(
        f"Shift {preview.shift_id} open since {preview.opened_at:%Y-%m-%d %H:%M} UTC; "
        f"expected cash so far {format_cents(preview.end_cash_expected_cents)}"
    )


@shifts_group.command('history')
@click.option('--limit', type=int, default=10, help='Max shifts to show')
@with_appcontext
def shift_history_cli(limit):
    shifts = shift_service.get_shift_history(limit=limit)
    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Status':<8} {'Opened':<18} {'Closed':<18} {'Expected':>12} {'Difference':>12}")
    click.echo("="*90)
    for shift in shifts:
        closed = f"{shift.closed_at:%Y-%m-%d %H:%M}" if shift.closed_at else "-"
        click.echo(
            f"{shift.id:<5} {shift.status:<8} {shift.opened_at:%Y-%m-%d %H:%M}  {closed:<18} "
            f"{format_cents(shift.end_cash_expected_cents):>12} {format_cents(shift.difference_cents):>12}"
        )
    click.echo("="*90 + "\n")


# =============================================================================
# SALES
# =============================================================================

@click.group('sales')
def sales_group():
    """Sale inspection and payments."""


@sales_group.command('show')
@click.argument('sale_id', type=int)
@with_appcontext
def show_sale_cli(sale_id):
    details = _run(sales_service.get_sale_details, sale_id)
    sale = details.sale
    click.echo(f"\nSale {sale.id} ({'paid' if sale.paid else 'unpaid'})")
    for line in details.lines:
        click.echo(
            f"  {line.quantity:>4} x {line.name[:30]:<30} {format_cents(line.unit_price_cents):>10} "
            f"{format_cents(line.line_total_cents):>12}"
        )
    click.echo(f"  {'Total':<47} {format_cents(sale.total_cents):>12}")
    for payment in details.payments:
        click.echo(f"  Paid {payment.method:<42} {format_cents(payment.amount_cents):>12}")
    click.echo(f"  {'Balance due':<47} {format_cents(details.balance_due_cents):>12}\n")


@sales_group.command('pay')
@click.argument('sale_id', type=int)
@click.option('--amount', required=True, help='Amount, e.g. 20.00')
@click.option('--method', type=click.Choice(payment_service.VALID_PAYMENT_METHODS), default=payment_service.METHOD_CASH)
@with_appcontext
def pay_sale_cli(sale_id, amount, method):
    amount_cents = _run(to_cents, amount)
    summary = _run(payment_service.record_payment, sale_id, amount_cents, method)
    click.echo(
        f"PASS Payment recorded. Paid {format_cents(summary.amount_paid_cents)} of "
        f"{format_cents(summary.total_cents)}; balance {format_cents(summary.balance_due_cents)}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(sales_group)
