# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to storefront (PowerShell: $env:FLASK_APP="storefront").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create any missing tables (use "flask db upgrade" for migrated deployments).
#
# Users:
# - python -m flask users create --username alice --password "secret"
#   Register a user (prompts if options are omitted).
# - python -m flask users show alice
#   Show a user's balance and last login.
#
# Ledger (amounts are integer cents):
# - python -m flask ledger items
# - python -m flask ledger balance alice
# - python -m flask ledger deposit alice 500
# - python -m flask ledger purchase alice 1
# - python -m flask ledger purchases alice
#
# Sessions:
# - python -m flask sessions list alice
#   List a user's unexpired sessions.
# - python -m flask sessions sweep
#   Delete expired sessions once.
# - python -m flask sessions sweeper [--interval 86400]
#   Run the periodic sweeper in the foreground until interrupted.

import signal
import threading

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import StorefrontError
from .extensions import db
from .services import auth_service, ledger_service, session_service
from .services.concurrency import run_with_retry
from .services.sweeper_service import SessionSweeper
from .time_utils import to_utc_z


def _user_or_fail(username: str):
    user = auth_service.get_user_by_username(username)
    if not user:
        raise click.ClickException(f"User '{username}' not found")
    return user


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that don't exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User account commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(username, password):
    """Register a new user with a zero balance."""
    try:
        user = auth_service.register(username, password)
    except StorefrontError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.username} (ID: {user.id})")


@users_group.command('show')
@click.argument('username')
@with_appcontext
def show_user(username):
    """Show a user's account details."""
    user = _user_or_fail(username)
    click.echo(f"ID:         {user.id}")
    click.echo(f"Username:   {user.username}")
    click.echo(f"Balance:    {user.balance_cents} cents")
    click.echo(f"Created:    {to_utc_z(user.created_at)}")
    click.echo(f"Last login: {to_utc_z(user.last_login_at) or '-'}")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Balance, deposit and purchase commands."""


@ledger_group.command('items')
@with_appcontext
def list_items_cli():
    """List purchasable items."""
    items = ledger_service.list_items()
    if not items:
        click.echo("No items found.")
        return

    click.echo(f"{'ID':<5} {'Price (cents)':<14} {'Name'}")
    for item in items:
        click.echo(f"{item.id:<5} {item.price_cents:<14} {item.name}")


@ledger_group.command('balance')
@click.argument('username')
@with_appcontext
def balance_cli(username):
    """Show a user's balance in cents."""
    user = _user_or_fail(username)
    click.echo(ledger_service.get_balance(user.id))


@ledger_group.command('deposit')
@click.argument('username')
@click.argument('amount_cents', type=int)
@with_appcontext
def deposit_cli(username, amount_cents):
    """Deposit AMOUNT_CENTS into a user's balance."""
    user_id = _user_or_fail(username).id
    try:
        balance = run_with_retry(lambda: ledger_service.deposit(user_id, amount_cents))
    except StorefrontError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS New balance: {balance} cents")


@ledger_group.command('purchase')
@click.argument('username')
@click.argument('item_id', type=int)
@with_appcontext
def purchase_cli(username, item_id):
    """Buy ITEM_ID for a user."""
    user_id = _user_or_fail(username).id
    try:
        record = run_with_retry(lambda: ledger_service.purchase(user_id, item_id))
    except StorefrontError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Purchase {record.id}: item {record.item_id} for {record.price_cents} cents")


@ledger_group.command('purchases')
@click.argument('username')
@with_appcontext
def purchases_cli(username):
    """List a user's purchases, newest first."""
    user = _user_or_fail(username)
    purchases = ledger_service.list_purchases(user.id)
    if not purchases:
        click.echo("No purchases found.")
        return

    for p in purchases:
        click.echo(
            f"username: {p.username}, item: {p.item_name}, "
            f"price: {p.price_cents}, time: {to_utc_z(p.purchased_at)}"
        )


# =============================================================================
# SESSION COMMANDS
# =============================================================================

@click.group('sessions')
def sessions_group():
    """Session inspection and maintenance commands."""


@sessions_group.command('list')
@click.argument('username')
@with_appcontext
def list_sessions_cli(username):
    """List a user's unexpired sessions."""
    user = _user_or_fail(username)
    sessions = session_service.list_user_sessions(user.id)
    if not sessions:
        click.echo("No active sessions.")
        return

    for s in sessions:
        click.echo(f"{s.id:<6} from {s.ip_address or '-':<40} expires {to_utc_z(s.expires_at)}")


@sessions_group.command('sweep')
@with_appcontext
def sweep_sessions_cli():
    """Delete expired sessions now."""
    deleted = session_service.sweep_expired_sessions()
    click.echo(f"Deleted {deleted} expired sessions.")


@sessions_group.command('sweeper')
@click.option('--interval', type=float, default=None, help='Seconds between sweeps')
@with_appcontext
def run_sweeper_cli(interval):
    """Run the periodic session sweeper until interrupted."""
    sweeper = SessionSweeper(current_app._get_current_object(), interval=interval)
    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    sweeper.start()
    click.echo(f"Sweeping expired sessions every {sweeper.interval}s. Ctrl+C to stop.")
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        sweeper.stop()
    click.echo("Sweeper stopped.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(sessions_group)
