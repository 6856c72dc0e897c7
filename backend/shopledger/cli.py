# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/shopledger/cli.py
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
# Users:
# - python -m flask users create-owner --name "Meera" --email owner@shop.test --password "Password123!"
#   Create the shop owner (prompts if options are omitted).
# - python -m flask users create-staff --name "Asha" --staff-code S-01 --pin 1234
#   Create a staff account that logs in with staff code + PIN.
# - python -m flask users list
#   List all users with role and active status.
#
# Ledger:
# - python -m flask ledger audit
#   Check every transaction against the ledger invariants; exits 1 if any fail.

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import User
from .services.auth_service import create_owner, register_staff, PasswordValidationError
from .services.ledger_service import audit_ledger


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create-owner' next.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create-owner')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_owner_cli(name, email, password):
    """
    Create an OWNER account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_owner(name=name, email=email, password=password)
        click.echo(f"PASS Created owner: {user.name} ({user.email}), ID {user.id}")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create owner: {e.message}")


@users_group.command('create-staff')
@click.option('--name', prompt=True, help='Display name')
@click.option('--staff-code', prompt=True, help='Staff login code')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='4-6 digit PIN')
@with_appcontext
def create_staff_cli(name, staff_code, pin):
    """Create a STAFF account (logs in with staff code + PIN)."""
    try:
        user = register_staff(name=name, staff_code=staff_code, pin=pin)
        click.echo(f"PASS Created staff: {user.name} ({user.staff_code}), ID {user.id}")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create staff: {e.message}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<20} {'Role':<8} {'Login':<32} {'Active':<8}")
    click.echo("="*90)

    for user in users:
        login = user.email or user.staff_code or "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<20} {user.role:<8} {login:<32} {active_str:<8}")

    click.echo("="*90 + "\n")


@click.group('ledger')
def ledger_group():
    """Ledger inspection and reconciliation commands."""


@ledger_group.command('audit')
@with_appcontext
def audit_ledger_cli():
    """
    Verify every transaction against the ledger invariants.

    Read-only: reports problems for manual reconciliation, never repairs.
    Exits with status 1 when any transaction is inconsistent.
    """
    report = audit_ledger()

    if not report:
        click.echo("PASS Ledger consistent")
        return

    for entry in report:
        click.echo(f"FAIL transaction {entry['transaction_id']}:")
        for problem in entry["problems"]:
            click.echo(f"     - {problem}")

    click.echo(f"FAIL {len(report)} inconsistent transaction(s)")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
