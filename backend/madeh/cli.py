# Overview: Flask CLI command groups for bootstrap, admin accounts, and backups.

# backend/madeh/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --username owner --email owner@madeh.local
#   Create tables (if missing) and the first Super Admin (prompts for password).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Admin accounts:
# - python -m flask admins list
#   List all admins with role and status.
# - python -m flask admins create --username jane --email jane@madeh.local --role Cashier
#   Create an admin (prompts if options are omitted).
#
# Backups:
# - python -m flask backup export --output madeh-backup.json
#   Write a backup of products, purchases and purchase items.
# - python -m flask backup restore madeh-backup.json --yes
#   Upsert every row from a backup file.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Admin, ADMIN_ROLES
from .models.auth import ROLE_SUPER_ADMIN
from .services import admin_service, backup_service
from .services.auth_service import PasswordValidationError
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', prompt=True, help='Display name of the first Super Admin')
@click.option('--email', prompt=True, help='Login email of the first Super Admin')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password (min 6 characters)')
@with_appcontext
def init_system(username, email, password):
    """
    Initialize Madeh: create tables and the first Super Admin.

    Idempotent: an existing Super Admin is left alone.
    """
    click.echo("START Initializing Madeh Hardware...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(Admin).filter_by(role=ROLE_SUPER_ADMIN).first()
    if existing:
        click.echo(f"WARN  Super Admin '{existing.username}' already exists, skipping...")
        return

    try:
        admin = admin_service.create_admin(
            username=username,
            email=email,
            password=password,
            role=ROLE_SUPER_ADMIN,
        )
    except (ValidationError, ConflictError, PasswordValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created Super Admin: {admin.username} ({admin.email})")
    click.echo("DONE Madeh Hardware initialized")


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


@click.group('admins')
def admins_group():
    """Admin account commands."""


@admins_group.command('create')
@click.option('--username', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ADMIN_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_admin_cli(username, email, password, role):
    """Create a new admin account."""
    try:
        admin = admin_service.create_admin(username=username, email=email, password=password, role=role)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created admin: {admin.username} ({admin.email}) with role '{admin.role}'")


@admins_group.command('list')
@with_appcontext
def list_admins_cli():
    """List all admins with role and status."""
    admins = admin_service.list_admins()

    if not admins:
        click.echo("No admins found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<12} {'Status'}")
    click.echo("="*90)

    for admin in admins:
        click.echo(
            f"{admin['id']:<5} {admin['username']:<20} {admin['email']:<30} "
            f"{admin['role']:<12} {admin['status']}"
        )

    click.echo("="*90 + "\n")


@click.group('backup')
def backup_group():
    """Backup export and restore commands."""


@backup_group.command('export')
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True), default=None,
              help='Output file (stdout if omitted)')
@with_appcontext
def export_backup_cli(output):
    """Write a JSON backup of products, purchases and purchase items."""
    document = backup_service.build_backup()
    text = json.dumps(document, indent=2)

    if output is None:
        click.echo(text)
        return

    with open(output, "w", encoding="utf-8") as fh:
        fh.write(text)
    data = document["data"]
    click.echo(
        f"PASS Wrote {output}: {len(data['products'])} products, "
        f"{len(data['purchases'])} purchases, {len(data['purchase_items'])} purchase items",
        err=True,
    )


@backup_group.command('restore')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def restore_backup_cli(path, yes):
    """Upsert every row of a backup file (rows missing from it are kept)."""
    if not yes:
        click.confirm("WARN Rows with the same ID will be overwritten. Continue?", abort=True)

    with open(path, encoding="utf-8-sig") as fh:
        try:
            document = json.load(fh)
        except json.JSONDecodeError:
            raise click.ClickException(backup_service.INVALID_FORMAT_MESSAGE)

    try:
        counts = backup_service.restore_backup(document)
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"PASS Restored {counts['products']} products, {counts['purchases']} purchases, "
        f"{counts['purchase_items']} purchase items"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(admins_group)
    app.cli.add_command(backup_group)
