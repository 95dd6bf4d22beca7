# Overview: Flask CLI command groups for bootstrap, inspection, and ledger checks.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent: creates tables, seeds the default chart of accounts and an admin user.
#
# Chart of accounts:
# - python -m flask accounts seed
#   Add any missing default accounts.
# - python -m flask accounts list [--type Expense] [--all]
#
# Users:
# - python -m flask users create --username jane --email jane@example.com --password "Password123!" --role finance
# - python -m flask users list
#
# Ledger:
# - python -m flask ledger verify
#   Report transactions whose debits and credits differ.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .models import Account, User
from .services import account_service, ledger_service
from .services.auth_service import VALID_ROLES, ROLE_ADMIN, PasswordValidationError, create_user


DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_EMAIL = "admin@propledger.local"
DEFAULT_ADMIN_PASSWORD = "Password123!"


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, help='Password for the default admin user')
@with_appcontext
def init_system(admin_password):
    """
    Initialize the back office: tables, default chart of accounts, admin user.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing propledger...")

    db.create_all()
    click.echo("PASS Tables ready")

    created = account_service.seed_default_chart()
    click.echo(f"PASS Chart of accounts seeded ({created} new accounts)")

    if db.session.query(User).filter_by(username=DEFAULT_ADMIN_USERNAME).first():
        click.echo(f"WARN  User '{DEFAULT_ADMIN_USERNAME}' already exists, skipping...")
    else:
        try:
            create_user(DEFAULT_ADMIN_USERNAME, DEFAULT_ADMIN_EMAIL, admin_password, ROLE_ADMIN)
            click.echo(f"PASS Created user: {DEFAULT_ADMIN_USERNAME} ({DEFAULT_ADMIN_EMAIL}) with role 'admin'")
        except LedgerError as e:
            click.echo(f"FAIL Failed to create admin user: {e.message}")

    click.echo("\n" + "=" * 60)
    click.echo("DONE propledger initialized")
    click.echo("=" * 60)


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

@click.group('accounts')
def accounts_group():
    """Chart of accounts commands."""


@accounts_group.command('seed')
@with_appcontext
def seed_accounts():
    """Create any missing default accounts."""
    created = account_service.seed_default_chart()
    click.echo(f"PASS Created {created} accounts")


@accounts_group.command('list')
@click.option('--type', 'account_type', type=click.Choice(['Asset', 'Liability', 'Equity', 'Income', 'Expense']))
@click.option('--all', 'show_all', is_flag=True, help='Include inactive accounts')
@with_appcontext
def list_accounts_cli(account_type, show_all):
    """List accounts ordered by code."""
    accounts = account_service.list_accounts(
        account_type=account_type,
        is_active=None if show_all else True,
    )
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'Code':<8} {'Name':<36} {'Type':<10} {'Parent':<8} {'Active'}")
    click.echo("=" * 80)
    for account in accounts:
        parent = account.parent.code if account.parent else "-"
        active_str = "Yes" if account.is_active else "No"
        click.echo(f"{account.code:<8} {account.name:<36} {account.type:<10} {parent:<8} {active_str}")
    click.echo("=" * 80 + "\n")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(VALID_ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username=username, email=email, password=password, role=role)
        click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except LedgerError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List users with role and active status."""
    users = db.session.query(User).order_by(User.username).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        active_str = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<32} {user.role:<16} {active_str}")


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Ledger integrity commands."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger():
    """Report every transaction whose entries do not balance. Exit code 1 if any."""
    unbalanced = ledger_service.find_unbalanced_transactions()
    account_count = db.session.query(Account).count()
    if not unbalanced:
        click.echo(f"PASS Ledger balanced ({account_count} accounts)")
        return

    click.echo(f"FAIL {len(unbalanced)} unbalanced transactions:")
    for row in unbalanced:
        click.echo(
            f"  {row['transaction_id']}: debit {row['total_debit_cents']} "
            f"credit {row['total_credit_cents']} entries {row['entry_count']}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
