# Overview: Flask CLI command groups for bootstrap, inspection and periodic alerts.

# backend/lbp/cli.py
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
# Cash registers:
# - python -m flask caisse init-registers
#   Create one register per agency lacking one (idempotent). Run at deploy/start.
# - python -m flask caisse list [--all]
#   List registers with their current balance.
# - python -m flask caisse balance 3
#   Print a register's balance.
# - python -m flask caisse point 3 --date 2024-01-29
#   Daily close (entrees / sorties / solde) for a register.
#
# Alerts (schedule with cron):
# - python -m flask alerts check-balances          (hourly)
# - python -m flask alerts overdue-invoices --days 7   (daily, 9h)

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .services import alert_service, cash_service, report_service
from .validation import money_str, parse_date


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

    click.echo("PASS Database reset complete. Run 'python -m flask caisse init-registers' next.")


# =============================================================================
# CASH REGISTERS
# =============================================================================

@click.group('caisse')
def caisse_group():
    """Cash register inspection and bootstrap."""


@caisse_group.command('init-registers')
@with_appcontext
def init_registers_cli():
    """Create the missing per-agency registers."""
    created = cash_service.ensure_agency_registers()
    if not created:
        click.echo("PASS Every agency already has a register.")
        return
    for register in created:
        click.echo(f"PASS Created register: {register.name} (ID: {register.id}, agency: {register.agency_id})")


@caisse_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive registers too')
@with_appcontext
def list_registers_cli(show_all):
    """
    List registers with their balance.

    Example:
        flask caisse list
        flask caisse list --all
    """
    registers = cash_service.list_registers(include_inactive=show_all)

    if not registers:
        click.echo("No registers found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Agency':<8} {'Active':<8} {'Balance':>15} {'Threshold':>15}")
    click.echo("="*90)
    for register in registers:
        balance = cash_service.get_balance(register.id)
        click.echo(
            f"{register.id:<5} {register.name[:30]:<30} {str(register.agency_id or '-'):<8} "
            f"{'YES' if register.is_active else 'NO':<8} {money_str(balance):>15} "
            f"{money_str(register.alert_threshold):>15}"
        )
    click.echo("="*90 + "\n")


@caisse_group.command('balance')
@click.argument('register_id', type=int)
@with_appcontext
def balance_cli(register_id):
    """Print the current balance of a register."""
    try:
        balance = cash_service.get_balance(register_id)
    except LedgerError as exc:
        raise click.ClickException(str(exc))
    click.echo(money_str(balance))


@caisse_group.command('point')
@click.argument('register_id', type=int)
@click.option('--date', 'day', help='Day (YYYY-MM-DD), defaults to today')
@with_appcontext
def point_cli(register_id, day):
    """Daily close for a register."""
    try:
        point = report_service.point_de_caisse(register_id, parse_date(day, "date"))
    except LedgerError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"Date:      {point['date']}")
    click.echo(f"Entrees:   {point['entrees']}")
    click.echo(f"Sorties:   {point['sorties']}")
    click.echo(f"Solde:     {point['solde']}")
    click.echo(f"Mouvements: {point['mouvements_count']}")


# =============================================================================
# ALERTS
# =============================================================================

@click.group('alerts')
def alerts_group():
    """Periodic alert scans."""


@alerts_group.command('check-balances')
@with_appcontext
def check_balances_cli():
    """Warn about registers whose balance is below their alert threshold."""
    alerts = alert_service.check_register_balances()
    if not alerts:
        click.echo("PASS All register balances are above their threshold.")
        return
    for alert in alerts:
        click.echo(
            f"WARN {alert.register_name} (ID {alert.register_id}): "
            f"{money_str(alert.balance)} < {money_str(alert.threshold)}"
        )


@alerts_group.command('overdue-invoices')
@click.option('--days', type=int, default=None, help='Grace period in days (config default)')
@with_appcontext
def overdue_invoices_cli(days):
    """List definitive invoices still unpaid after the grace period."""
    overdue = alert_service.find_overdue_invoices(grace_days=days)
    if not overdue:
        click.echo("PASS No overdue invoice.")
        return
    for item in overdue:
        click.echo(
            f"WARN {item.number}: {item.days_overdue} days overdue, "
            f"remaining {money_str(item.remaining_amount)}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(caisse_group)
    app.cli.add_command(alerts_group)
