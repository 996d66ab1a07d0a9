# Overview: Flask CLI command groups for bootstrap, users and the inventory catalog.

# backend/wingrow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wingrow (PowerShell: $env:FLASK_APP="wingrow").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions --retention-days 30
#   Delete expired/revoked session tokens older than the retention window.
#
# Users:
# - python -m flask users create --username mgr1 --password "Password123!" --role manager
#   Create a user (prompts if options are omitted).
# - python -m flask users list
#   List all users with role and active status.
#
# Inventory catalog:
# - python -m flask inventory seed [NAME ...]
#   Insert the standard field kit (or the given names) where missing.
# - python -m flask inventory list
#   Show items with stock and unit price.

from datetime import timedelta

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import User
from .models.auth import VALID_ROLES
from .services import inventory_service, session_service
from .services.auth_service import create_user
from .validation import cents_to_amount


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate all tables (deletes all data)."""
    if not yes and not click.confirm("This deletes ALL data. Continue?"):
        click.echo("Aborted.")
        return
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@system_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True, help='Keep sessions newer than this')
@with_appcontext
def cleanup_sessions(retention_days):
    deleted = session_service.cleanup_expired_sessions(timedelta(days=retention_days))
    click.echo(f"Deleted {deleted} session(s).")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='User identifier (userId)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    try:
        user = create_user(username, password, role)
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"Created {user.role} '{user.username}' (id={user.id}).")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.username.asc()).all()
    if not users:
        click.echo("No users.")
        return
    for user in users:
        state = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<24} {user.role:<10} {state}")


@click.group('inventory')
def inventory_group():
    """Inventory catalog commands."""


@inventory_group.command('seed')
@click.argument('names', nargs=-1)
@with_appcontext
def seed_inventory(names):
    items = inventory_service.seed_catalog(list(names) if names else None)
    click.echo(f"Catalog has {len(items)} item(s).")


@inventory_group.command('list')
@with_appcontext
def list_inventory():
    for item in inventory_service.list_items():
        click.echo(f"{item.id:>4}  {item.name:<24} {item.stock:>6} {item.unit:<6} {cents_to_amount(item.unit_price_cents):>10.2f}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
