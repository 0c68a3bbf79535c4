# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/proforma/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to proforma (PowerShell: $env:FLASK_APP="proforma").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system create-admin --email admin@proforma.local
#   Create an admin profile (credentials live in the auth service).
#
# Requests:
# - python -m flask requests list [--status pending]
#   List requests, newest first.
# - python -m flask requests sequences
#   Show the per-year request number counters.
# - python -m flask requests transition 12 approved
#   Drive one request through the state machine (notifications fire as usual).
#
# Catalog:
# - python -m flask catalog quote --product-id 3 --quantity 75
#   Resolve the tiered unit price for a quantity.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Request, User
from .services import catalog_service, request_service, sequence_service
from .services.pricing_service import InvalidQuantity, format_cents
from .services.request_service import ConcurrentModification, IllegalTransition, RequestNotFound
from .services.tombstone_service import EntityNotFound


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

    This will DELETE ALL DATA, request number counters included!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@system_group.command('create-admin')
@click.option('--email', required=True, help='Admin email')
@click.option('--first-name', default='Admin', help='First name')
@click.option('--last-name', default='User', help='Last name')
@click.option('--super', 'is_super', is_flag=True, help='Create a super_admin')
@with_appcontext
def create_admin(email, first_name, last_name, is_super):
    """Create an admin profile, or promote an existing user."""
    email = email.strip().lower()
    role = "super_admin" if is_super else "admin"

    user = db.session.query(User).filter_by(email=email).first()
    if user:
        user.role = role
        click.echo(f"PASS Promoted existing user {email} to {role}")
    else:
        user = User(email=email, first_name=first_name, last_name=last_name, role=role)
        db.session.add(user)
        click.echo(f"PASS Created {role} {email}")
    db.session.commit()


@click.group('requests')
def requests_group():
    """Proforma request inspection commands."""


@requests_group.command('list')
@click.option('--status', default=None, help='Filter by status')
@click.option('--limit', default=50, type=int, help='Max rows')
@with_appcontext
def list_requests_cli(status, limit):
    """List requests, newest first."""
    query = db.session.query(Request)
    if status:
        query = query.filter(Request.status == status)
    rows = query.order_by(Request.created_at.desc(), Request.id.desc()).limit(limit).all()

    if not rows:
        click.echo("No requests found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<6} {'Number':<14} {'Status':<12} {'Customer':<28} {'Total'}")
    click.echo("="*80)

    for r in rows:
        total = f"{r.currency} {format_cents(r.total_amount_cents)}"
        click.echo(f"{r.id:<6} {r.request_number:<14} {r.status:<12} {(r.customer_name or '-')[:27]:<28} {total}")

    click.echo("="*80 + "\n")


@requests_group.command('sequences')
@with_appcontext
def list_sequences_cli():
    """Show per-year counters."""
    rows = sequence_service.list_sequences()
    if not rows:
        click.echo("No request numbers issued yet.")
        return

    for seq in rows:
        click.echo(f"{seq.year}: last issued {seq.last_issued}")


@requests_group.command('transition')
@click.argument('request_id', type=int)
@click.argument('status')
@click.option('--notes', default=None, help='Admin note')
@with_appcontext
def transition_cli(request_id, status, notes):
    """Move a request to STATUS."""
    try:
        req = request_service.transition(request_id, status.strip().lower(), notes=notes)
    except RequestNotFound:
        raise click.ClickException(f"Request {request_id} not found")
    except (IllegalTransition, ConcurrentModification) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS {req.request_number} is now {req.status}")


@click.group('catalog')
def catalog_group():
    """Catalog inspection commands."""


@catalog_group.command('quote')
@click.option('--product-id', required=True, type=int, help='Product ID')
@click.option('--quantity', required=True, type=int, help='Order quantity')
@with_appcontext
def quote_cli(product_id, quantity):
    """Resolve the tiered unit price for a quantity."""
    try:
        quote = catalog_service.quote_product(product_id, quantity)
    except EntityNotFound:
        raise click.ClickException(f"Product {product_id} not found")
    except InvalidQuantity as e:
        raise click.ClickException(str(e))

    click.echo(
        f"{quote['quantity']} x {quote['currency']} {format_cents(quote['unit_price_cents'])}"
        f" = {quote['currency']} {format_cents(quote['line_total_cents'])}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(requests_group)
    app.cli.add_command(catalog_group)
