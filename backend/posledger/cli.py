# Overview: Flask CLI command groups for bootstrap, inspection, and ledger audits.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-plans
#   Insert the Basic/Pro/Enterprise subscription plans if missing.
#
# Users:
# - python -m flask users create-admin --username admin --email admin@posledger.local --password "Password123!"
#   Create an administrator (not subject to plan limits).
#
# Stores:
# - python -m flask stores list [--owner-id 1] [--all]
#   List stores with owner and active status.
#
# Ledger:
# - python -m flask ledger audit [--store-id 1]
#   Compare product stock with the movement ledger; exits non-zero on mismatch.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models.auth import ROLE_ADMINISTRATOR
from .services import inventory_service, store_service, subscription_service, user_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-plans' next.")


@system_group.command('seed-plans')
@with_appcontext
def seed_plans():
    """Insert the default subscription plans."""
    created = subscription_service.seed_default_plans()
    if not created:
        click.echo("SKIP All default plans already exist.")
        return
    for plan in created:
        click.echo(f"PASS Created plan: {plan.name} (stores={plan.max_stores}, users={plan.max_users})")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create-admin')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--first-name', default='System')
@click.option('--last-name', default='Administrator')
@with_appcontext
def create_admin_cli(username, email, password, first_name, last_name):
    """Create an administrator account."""
    result = user_service.create_user(
        {
            "username": username,
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "role": ROLE_ADMINISTRATOR,
        },
        password,
        bypass_quota=True,
    )
    if not result.ok:
        click.echo(f"FAIL {result.error.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created administrator: {result.value.username} (ID: {result.value.id})")


@click.group('stores')
def stores_group():
    """Store inspection commands."""


@stores_group.command('list')
@click.option('--owner-id', type=int, default=None)
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive stores')
@with_appcontext
def list_stores_cli(owner_id, include_inactive):
    """List stores."""
    stores = store_service.list_stores(owner_id, include_inactive=include_inactive)

    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Owner':<8} {'Timezone':<20} {'Active'}")
    click.echo("="*80)
    for store in stores:
        active_str = "Yes" if store.is_active else "No"
        click.echo(f"{store.id:<5} {store.name:<30} {store.owner_id:<8} {store.timezone:<20} {active_str}")
    click.echo("="*80 + "\n")


@click.group('ledger')
def ledger_group():
    """Inventory ledger audits."""


@ledger_group.command('audit')
@click.option('--store-id', type=int, default=None, help='Limit the audit to one store')
@with_appcontext
def audit_ledger(store_id):
    """Check stock == signed sum of movements for every product."""
    mismatches = inventory_service.check_reconciliation(store_id)
    if not mismatches:
        click.echo("PASS Ledger reconciles: every product's stock matches its movements.")
        return

    click.echo(f"FAIL {len(mismatches)} product(s) out of balance:")
    for row in mismatches:
        click.echo(
            f"  store={row['store_id']} product={row['product_id']} sku={row['sku']} "
            f"stock={row['stock']} ledger={row['ledger']} diff={row['difference']}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(ledger_group)
