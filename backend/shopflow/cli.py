# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/shopflow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users seed
#   Create the default admin and shopkeeper accounts (idempotent).
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --email admin@shop.local --password "password123" --role admin
#   Create a user (prompts if options are omitted).
#
# Catalog maintenance:
# - python -m flask products recalculate <product_id>
#   Rewrite historical sale prices for a product from its current catalog prices.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Product
from .models.auth import ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services.errors import OperationError
from .services import recalculation_service


DEFAULT_USERS = [
    ("admin@shopflow.local", "Admin", "admin"),
    ("shopkeeper@shopflow.local", "Shopkeeper", "shopkeeper"),
]
DEFAULT_PASSWORD = "password123"


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

    click.echo("PASS Database reset complete. Run 'python -m flask users seed' to create accounts.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('seed')
@with_appcontext
def seed_users():
    """
    Create the default admin and shopkeeper accounts.

    Existing accounts are left untouched.

    SECURITY: Change passwords immediately in production!
    """
    click.echo("USERS Creating default users...")

    for email, display_name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(email=email, password=DEFAULT_PASSWORD, role=role, display_name=display_name)
            click.echo(f"PASS Created user: {email} with role '{role}'")
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create user '{email}': {e}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for email, _, role in DEFAULT_USERS:
        click.echo(f"   {role:<10} -> {email} / {DEFAULT_PASSWORD}")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--display-name', default=None, help='Name shown on receipts')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, display_name, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    try:
        user = create_user(email=email, password=password, role=role, display_name=display_name)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.email.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<34} {'Email':<32} {'Role':<12} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<34} {user.email:<32} {user.role:<12} {active_str}")

    click.echo("="*90 + "\n")


@click.group('products')
def products_group():
    """Catalog maintenance commands."""


@products_group.command('recalculate')
@click.argument('product_id')
@click.option('--batch-size', type=int, default=None, help='Sales per committed batch')
@with_appcontext
def recalculate_cli(product_id, batch_size):
    """Reprice every historical sale line of PRODUCT_ID from its current catalog prices."""
    product = db.session.get(Product, product_id)
    if not product:
        raise click.ClickException(f"Product {product_id} not found")

    try:
        result = recalculation_service.recalculate(
            product.id,
            product.purchase_price_cents,
            product.selling_price_cents,
            batch_size=batch_size,
        )
    except OperationError as e:
        raise click.ClickException(f"{e.message} {e.details}")

    click.echo(
        f"PASS Updated {result.updated_items} lines in {result.updated_sales} sales "
        f"({result.batches} batches)"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
