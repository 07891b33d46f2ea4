# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockcycle/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-username admin] [--admin-password "Password123"]
#   Idempotent bootstrap: creates tables and a default administrator.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role DISTRIBUTOR]
#   List all users with role, group and active status.
# - python -m flask users create --username dist1 --name "North Depot" --password "Password123" --role DISTRIBUTOR --group GOLD
#   Create a user (prompts if options are omitted).
#
# Cycles:
# - python -m flask cycles show [--date 2024-01-10]
#   Print the cycle anchor, intake window and reporting window for a date (default: today).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, ROLE_DISTRIBUTOR, DISTRIBUTOR_GROUPS
from .services.auth_service import create_user, PasswordValidationError
from .services.cycle_service import cycle_for
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Default administrator username')
@click.option('--admin-password', default='Password123', help='Default administrator password')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Initialize StockCycle: schema and a default administrator.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing StockCycle...")

    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(
                username=admin_username,
                password=admin_password,
                name="Administrator",
                role=ROLE_ADMIN,
                group=None,
            )
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for '{admin_username}': {str(e)}")
            return
        click.echo(f"PASS Created administrator: {admin_username}")

    click.echo("\n" + "="*60)
    click.echo("DONE StockCycle Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nSECURITY WARNING:")
    click.echo("   - Change the administrator password immediately in production!")
    click.echo("   - Password requirements: 8+ chars, at least one letter and one digit")
    click.echo("")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_DISTRIBUTOR]), default=ROLE_DISTRIBUTOR, help='Role')
@click.option('--group', 'group_name', type=click.Choice(sorted(DISTRIBUTOR_GROUPS)), default='NEW',
              help='Distributor group (ignored for admins)')
@with_appcontext
def create_user_cli(username, name, password, role, group_name):
    """
    Create a new user.

    Password must be 8+ characters with at least one letter and one digit.
    """
    try:
        user = create_user(
            username=username,
            password=password,
            name=name,
            role=role,
            group=None if role == ROLE_ADMIN else group_name,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, at least one letter and one digit")
        return
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {username} with role '{role}' (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_DISTRIBUTOR]), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their role and group."""
    q = db.session.query(User)
    if role:
        q = q.filter(User.role == role)
    users = q.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Role':<13} {'Group':<8} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.username:<20} {user.name:<25} {user.role:<13} "
            f"{user.group or '-':<8} {active_str}"
        )

    click.echo("="*80 + "\n")


@click.group('cycles')
def cycles_group():
    """Reporting cycle inspection commands."""


@cycles_group.command('show')
@click.option('--date', 'on_date', type=click.DateTime(formats=["%Y-%m-%d"]), help='Any date (default: today)')
def show_cycle(on_date):
    """Print the cycle anchor and its windows for a date."""
    cycle = cycle_for(on_date or utcnow())

    click.echo(f"Cycle anchor (week start): {cycle.anchor.isoformat()}")
    click.echo(f"Intake window:    {cycle.intake.start.isoformat()} -> {cycle.intake.end.isoformat()}")
    click.echo(f"Reporting window: {cycle.reporting.start.isoformat()} -> {cycle.reporting.end.isoformat()}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(cycles_group)
