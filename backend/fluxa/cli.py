# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/fluxa/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables (idempotent). Production deployments use `flask db upgrade`.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --email admin@fluxa.local --password "secret123"
#   Create a user (prompts if options are omitted).
#
# Stock ledger:
# - python -m flask stock verify
#   List products whose cached quantity differs from the movement ledger.
# - python -m flask stock rebuild [--product-id 1]
#   Recompute cached quantities from the ledger.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services.auth_service import register_user, PasswordValidationError
from .services.errors import NotFoundError
from .services import stock_service
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


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

    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(email, password):
    """
    Create a new user.

    Password must be at least 6 characters.
    """
    try:
        user = register_user(email, password)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


@click.group('stock')
def stock_group():
    """Stock ledger inspection and repair."""


@stock_group.command('verify')
@with_appcontext
def verify_stock():
    """Report products whose cached quantity drifted from the ledger sum."""
    drift = stock_service.find_stock_drift()
    if not drift:
        click.echo("PASS Stock cache matches the ledger for all products")
        return

    click.echo(f"WARN {len(drift)} product(s) out of sync:")
    for row in drift:
        click.echo(
            f"  #{row['product_id']} {row['title']}: "
            f"cached={row['cached_quantity']} ledger={row['ledger_quantity']}"
        )
    raise SystemExit(1)


@stock_group.command('rebuild')
@click.option('--product-id', type=int, default=None, help='Only rebuild this product')
@with_appcontext
def rebuild_stock(product_id):
    """Recompute cached quantities from the ledger."""
    try:
        changed = stock_service.rebuild_stock_cache(product_id=product_id)
    except NotFoundError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Rebuilt stock cache ({changed} product(s) corrected)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
