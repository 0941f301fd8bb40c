# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/consignment/cli.py
# Commands Legend (run from the backend directory):
# - flask --app consignment system init-db
#   Create all tables (use migrations in production).
# - flask --app consignment system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - flask --app consignment users create-admin --name "Ana" --email ana@loja.local
#   Create an ADMIN account (prompts for the password).
# - flask --app consignment partners list
#   List partners with commission and pending payout totals.

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from .extensions import db
from .errors import ConsignmentError
from .access import Role


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    from . import models  # noqa: F401
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    if not yes:
        raise click.UsageError("Refusing to reset without --yes")
    from . import models  # noqa: F401
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create-admin')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(name, email, password):
    from .services import auth_service
    try:
        user = auth_service.create_user(name, email, password, role=Role.ADMIN)
    except ConsignmentError as e:
        raise click.ClickException(e.message)
    click.echo(f"Created admin {user.email} (id={user.id})")


@click.group('partners')
def partners_group():
    """Partner inspection commands."""


@partners_group.command('list')
@with_appcontext
def list_partners_cli():
    from .models import Partner, Payment

    pending = dict(
        db.session.query(Payment.partner_id, func.coalesce(func.sum(Payment.payout_cents), 0))
        .filter(Payment.is_paid.is_(False))
        .group_by(Payment.partner_id)
        .all()
    )
    partners = db.session.query(Partner).order_by(Partner.id).all()
    if not partners:
        click.echo("No partners.")
        return
    for p in partners:
        status = "active" if p.is_active else "inactive"
        click.echo(
            f"{p.id:>4}  {p.name:<30} {float(p.commission_percent):>6.2f}%  "
            f"pending={pending.get(p.id, 0) / 100:.2f}  {status}"
        )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(partners_group)
