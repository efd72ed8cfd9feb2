# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/poscloud/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use "flask db upgrade" for migrated databases).
#
# Company management (MULTI-TENANT):
# - python -m flask companies list
# - python -m flask companies create --name "Colmado Central" --rnc 131123456 --cloud-id FP-000123
# - python -m flask companies resolve --rnc "1-31-12345-6"
# - python -m flask companies purge-overrides --company-id 1 --yes
#   Delete override tokens, requests, virtual secrets and audit rows of one company.
#
# Users:
# - python -m flask users list --company-id 1
# - python -m flask users create --company-id 1 --username owner --role owner
#
# Overrides:
# - python -m flask overrides requests --company-id 1 --status PENDING
# - python -m flask overrides audit --company-id 1 --limit 20

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, User
from .models.auth import USER_ROLES
from .services import audit_service, company_service, override_service
from .services.auth_service import PasswordValidationError, create_user
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@with_appcontext
def list_companies():
    companies = db.session.query(Company).order_by(Company.id).all()
    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'RNC':<15} {'Cloud ID':<18} {'Active'}")
    click.echo("="*80)
    for company in companies:
        click.echo(
            f"{company.id:<5} {company.name[:29]:<30} {(company.rnc or '-'):<15} "
            f"{(company.cloud_company_id or '-'):<18} {'yes' if company.is_active else 'no'}"
        )


@companies_group.command('create')
@click.option('--name', prompt=True, help='Company name')
@click.option('--rnc', default=None, help='Tax ID (RNC)')
@click.option('--cloud-id', default=None, help='Cloud company ID')
@with_appcontext
def create_company_cli(name, rnc, cloud_id):
    try:
        company = company_service.create_company(name, rnc=rnc, cloud_company_id=cloud_id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created company: {company.name} (ID: {company.id})")


@companies_group.command('resolve')
@click.option('--rnc', default=None, help='Tax ID (RNC), any format')
@click.option('--cloud-id', default=None, help='Cloud company ID')
@with_appcontext
def resolve_company_cli(rnc, cloud_id):
    company_id = company_service.resolve_company_id(rnc=rnc, cloud_id=cloud_id)
    if company_id is None:
        click.echo("FAIL No matching company")
        return
    click.echo(f"PASS Company ID: {company_id}")


@companies_group.command('purge-overrides')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--yes', is_flag=True, help='Confirm the purge')
@with_appcontext
def purge_overrides_cli(company_id, yes):
    """Delete all override and audit data of one company."""
    if not yes:
        click.echo("FAIL Confirmation required: pass --yes to purge")
        return
    try:
        deleted = company_service.purge_company_override_data(company_id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    for table, count in deleted.items():
        click.echo(f"  {table}: {count}")
    click.echo(f"DONE Purged override data for company {company_id}")


@click.group('users')
def users_group():
    """Owner-app user commands."""


@users_group.command('list')
@click.option('--company-id', type=int, default=None, help='Filter by company')
@with_appcontext
def list_users(company_id):
    query = db.session.query(User).order_by(User.company_id, User.id)
    if company_id:
        query = query.filter_by(company_id=company_id)
    users = query.all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:<5} company={user.company_id:<5} {user.username:<20} {user.role:<12} {status}")


@users_group.command('create')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', default=None, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(company_id, username, email, password, role):
    """
    Create an owner-app user.

    Password: 8+ characters with uppercase, lowercase and a digit.
    """
    try:
        user = create_user(company_id, username, password, role=role, email=email)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@click.group('overrides')
def overrides_group():
    """Override inspection commands."""


@overrides_group.command('requests')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--status', default=None, help='PENDING, APPROVED, REJECTED or EXPIRED')
@click.option('--limit', type=int, default=50)
@with_appcontext
def list_requests_cli(company_id, status, limit):
    try:
        requests = override_service.get_override_requests(company_id, status=status, limit=limit)
    except ValidationError as e:
        click.echo(f"FAIL {e.issues[0]['message']}")
        return
    for item in requests:
        click.echo(
            f"{item.id:<6} {item.status:<9} {item.action_code:<16} "
            f"{(item.resource_type or '-')}:{(item.resource_id or '-')} "
            f"terminal={item.terminal_id or '-'} created={item.created_at}"
        )


@overrides_group.command('audit')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_audit_cli(company_id, limit):
    for entry in audit_service.get_audit(company_id, limit):
        click.echo(
            f"{entry.created_at} {entry.result:<12} {entry.action_code:<24} "
            f"method={entry.method or '-'} terminal={entry.terminal_id or '-'}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(users_group)
    app.cli.add_command(overrides_group)
