# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/tienda/cli.py
# Commands Legend (run with FLASK_APP=tienda):
# System bootstrap/repair:
# - flask system init [--email superadmin@tienda.local --password "Password123!"]
#   Create all tables and the first superadmin (idempotent).
# - flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Business (tenant) management:
# - flask businesses list
#   List all businesses with admin email and location count.
# - flask businesses create --name "Tienda Centro" --admin-email admin@centro.mx --admin-password "Password123!"
#   Create a business and its admin account.
#
# Accounts:
# - flask users create-superadmin --email ops@tienda.local --password "Password123!"
#   Create a platform operator account (no organization).
#
# Maintenance:
# - flask sessions cleanup [--max-age-days 30]
#   Delete expired or revoked sessions older than the window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_SUPERADMIN
from .services import business_service
from .services import session_service
from .services.auth_service import AccountError, PasswordValidationError, create_user
from .services.business_service import BusinessError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default='superadmin@tienda.local', help='Superadmin email')
@click.option('--password', default='Password123!', help='Superadmin password')
@with_appcontext
def init_system(email, password):
    """
    Create all tables and the first superadmin account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing Tienda...")
    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(role=ROLE_SUPERADMIN).first()
    if existing:
        click.echo(f"PASS Using existing superadmin: {existing.email}")
        return

    try:
        user = create_user(email, password, ROLE_SUPERADMIN, name="Superadmin")
    except (AccountError, PasswordValidationError) as e:
        click.echo(f"FAIL Could not create superadmin: {e}")
        return

    click.echo(f"PASS Created superadmin: {user.email}")
    click.echo("\nSECURITY Change the superadmin password immediately in production!")


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

    click.echo("PASS Database reset complete. Run 'flask system init' to initialize.")


@click.group('businesses')
def businesses_group():
    """Business (tenant) management commands."""


@businesses_group.command('list')
@with_appcontext
def list_businesses():
    """List all businesses."""
    businesses = business_service.list_businesses()

    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Active':<8} {'Stores':<8} {'Employees':<10} {'Admin'}")
    click.echo("="*90)

    for org in businesses:
        summary = business_service.business_summary(org)
        active_str = "Yes" if org.is_active else "No"
        click.echo(
            f"{org.id:<5} {org.name:<30} {active_str:<8} {summary['store_count']:<8} "
            f"{summary['employee_count']:<10} {summary['admin_email'] or '-'}"
        )


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--admin-email', required=True, help='Admin login email')
@click.option('--admin-password', required=True, help='Admin password')
@click.option('--code', default=None, help='Short code (unique)')
@click.option('--billing-day', type=click.IntRange(1, 31), default=None, help='Day of month billed')
@click.option('--billing-amount-cents', type=click.IntRange(min=0), default=None, help='Monthly fee in cents')
@with_appcontext
def create_business_cli(name, admin_email, admin_password, code, billing_day, billing_amount_cents):
    """Create a business and its admin account."""
    try:
        org, admin = business_service.create_business(
            name,
            admin_email,
            admin_password,
            code=code,
            billing_day=billing_day,
            billing_amount_cents=billing_amount_cents,
        )
    except (BusinessError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created business: {org.name} (ID: {org.id}) with admin {admin.email}")


@click.group('users')
def users_group():
    """Account commands."""


@users_group.command('create-superadmin')
@click.option('--email', required=True, help='Login email')
@click.option('--password', required=True, help='Password')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def create_superadmin(email, password, name):
    """Create a platform operator account (no organization)."""
    try:
        user = create_user(email, password, ROLE_SUPERADMIN, name=name)
    except (AccountError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created superadmin: {user.email} (ID: {user.id})")


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@click.option('--max-age-days', type=int, default=30, help='Only delete sessions older than this')
@with_appcontext
def cleanup_sessions(max_age_days):
    """Delete expired or revoked sessions."""
    deleted = session_service.cleanup_expired_sessions(max_age_days=max_age_days)
    click.echo(f"PASS Deleted {deleted} sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)
