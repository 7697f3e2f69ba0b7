# Overview: Flask CLI command groups for bootstrap, users, and signing keys.

# backend/sales_api/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app wsgi <group> <command> [options]
#
# Schema:
# - flask --app wsgi db upgrade
#   Apply migrations (Flask-Migrate).
#
# System bootstrap:
# - flask --app wsgi system seed
#   Idempotent: admin + user accounts, two products, a few sales.
# - flask --app wsgi system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - flask --app wsgi users create --name "Ada" --email ada@example.com --password "Password123" --role ADMIN --role USER
# - flask --app wsgi users list
#
# Keys:
# - flask --app wsgi keys generate --out private.pem
#   Write a new RSA private key for signing tokens.

import os
import uuid

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, Sale, User
from .models.auth import ROLE_ADMIN, ROLE_USER
from .services.auth_service import PasswordValidationError, create_user
from .services.token_service import generate_private_key, private_key_to_pem
from .time_utils import utcnow

SEED_PASSWORD = "Gophers123"

SEED_USERS = [
    ("Admin Gopher", "admin@example.com", [ROLE_ADMIN, ROLE_USER]),
    ("User Gopher", "user@example.com", [ROLE_USER]),
]

# (name, cost, quantity, [(sold, paid), ...])
SEED_PRODUCTS = [
    ("Comic Books", 50, 42, [(2, 100), (5, 250)]),
    ("McDonalds Toys", 75, 120, [(3, 225)]),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('seed')
@with_appcontext
def seed():
    """Insert demo users, products and sales (skips what already exists)."""
    now = utcnow()

    click.echo("Seeding users...")
    owner_id = None
    for name, email, roles in SEED_USERS:
        user = db.session.query(User).filter_by(email=email).first()
        if user:
            click.echo(f"   = {email} (exists)")
        else:
            user = create_user(name, email, SEED_PASSWORD, roles, now)
            click.echo(f"   + {email} {roles}")
        if owner_id is None:
            owner_id = user.user_id

    click.echo("Seeding products...")
    for name, cost, quantity, sales in SEED_PRODUCTS:
        if db.session.query(Product).filter_by(name=name).first():
            click.echo(f"   = {name} (exists)")
            continue

        product = Product(
            product_id=str(uuid.uuid4()),
            name=name,
            cost=cost,
            quantity=quantity,
            user_id=owner_id,
            date_created=now,
            date_updated=now,
        )
        db.session.add(product)
        for sold, paid in sales:
            db.session.add(Sale(
                sale_id=str(uuid.uuid4()),
                product=product,
                quantity=sold,
                paid=paid,
                date_created=now,
            ))
        click.echo(f"   + {name} ({len(sales)} sales)")

    db.session.commit()

    click.echo("")
    click.echo("Seed complete. Logins (Basic auth on GET /v1/users/token):")
    for _, email, _ in SEED_USERS:
        click.echo(f"   {email} / {SEED_PASSWORD}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate all tables. DEV/TEST only."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', 'roles', multiple=True, type=click.Choice([ROLE_ADMIN, ROLE_USER]),
              default=[ROLE_USER], show_default=True, help='Role (repeatable)')
@with_appcontext
def create_user_cli(name, email, password, roles):
    """Create a user."""
    try:
        user = create_user(name, email, password, roles, utcnow())
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"Created user {user.email} id={user.user_id} roles={','.join(user.roles)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List users and their roles."""
    users = db.session.query(User).order_by(User.email.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    for u in users:
        click.echo(f"{u.user_id}  {u.email:<30} {','.join(u.roles or [])}")


@click.group('keys')
def keys_group():
    """Token signing key commands."""


@keys_group.command('generate')
@click.option('--out', 'out_path', default='private.pem', show_default=True, help='Where to write the PEM file')
@click.option('--bits', default=2048, show_default=True, help='RSA key size')
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def generate_key(out_path, bits, force):
    """Generate an RSA private key for signing tokens."""
    if os.path.exists(out_path) and not force:
        raise click.ClickException(f"{out_path} exists; use --force to overwrite")

    pem = private_key_to_pem(generate_private_key(bits))
    with open(out_path, "wb") as fh:
        fh.write(pem)
    os.chmod(out_path, 0o600)

    click.echo(f"Wrote private key to {out_path}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(keys_group)
