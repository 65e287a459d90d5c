# Overview: Flask CLI command groups for bootstrap and reporting.

# backend/kaunter/cli.py
# Commands Legend (run from the repository root):
# Prereqs:
# - Activate your virtualenv and `pip install -e .`
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="kaunter:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system seed [--company "Demo Kopitiam"]
#   Create a demo company, a company admin and a few items.
#
# Reports (dates are business-local wall clock):
# - python -m flask reports summary --company-id 1 --start 2024-03-01 --end 2024-03-31
#   Print revenue and order counts for the range.
# - python -m flask reports export --company-id 1 --start 2024-03-01 --end 2024-03-31 --output march.csv
#   Write the CSV export for the range.

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, Item, User
from .models.auth import ROLE_COMPANY_ADMIN
from .services import reporting_service
from .validation import ValidationError


# =============================================================================
# SYSTEM COMMANDS
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed')
@click.option('--company', 'company_name', default='Demo Kopitiam', help='Company name')
@click.option('--username', default='admin', help='Company admin username')
@with_appcontext
def seed(company_name, username):
    """Create a demo company, its admin and a small catalog."""
    company = db.session.query(Company).filter_by(name=company_name).first()
    if not company:
        company = Company(name=company_name, is_active=True)
        db.session.add(company)
        db.session.commit()
        click.echo(f"PASS Created company: {company.name} (ID: {company.id})")
    else:
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")

    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        user = User(company_id=company.id, username=username, role=ROLE_COMPANY_ADMIN)
        db.session.add(user)
        db.session.commit()
        click.echo(f"PASS Created user: {user.username} (ID: {user.id})")
    else:
        click.echo(f"WARN  User '{username}' already exists, skipping...")

    demo_items = [
        ("Kopi O", Decimal("2.50")),
        ("Teh Tarik", Decimal("3.00")),
        ("Nasi Lemak", Decimal("6.90")),
    ]
    for name, price in demo_items:
        exists = db.session.query(Item).filter_by(company_id=company.id, name=name).first()
        if exists:
            continue
        db.session.add(Item(company_id=company.id, name=name, price=price, created_by=user.id))
    db.session.commit()
    click.echo(f"PASS Catalog ready for {company.name}")


# =============================================================================
# REPORT COMMANDS
# =============================================================================

@click.group('reports')
def reports_group():
    """Sales report commands."""


@reports_group.command('summary')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--start', required=True, help='Start (YYYY-MM-DD[THH:mm:ss], local time)')
@click.option('--end', required=True, help='End (YYYY-MM-DD[THH:mm:ss], local time)')
@with_appcontext
def report_summary(company_id, start, end):
    """Print revenue and order counts for a date range."""
    try:
        report = reporting_service.get_report_data(company_id, start, end)
    except ValidationError as e:
        raise click.BadParameter(str(e))

    click.echo(f"Range (UTC): {report['start']} -> {report['end']}")
    click.echo(f"Revenue:      RM {report['total_revenue']}")
    click.echo(f"Orders:       {report['total_orders']}")
    click.echo(f"Cash:         {report['cash_count']}")
    click.echo(f"Touch 'n Go:  {report['touch_n_go_count']}")


@reports_group.command('export')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--start', required=True, help='Start (YYYY-MM-DD[THH:mm:ss], local time)')
@click.option('--end', required=True, help='End (YYYY-MM-DD[THH:mm:ss], local time)')
@click.option('--output', type=click.Path(dir_okay=False, writable=True), required=True, help='CSV file to write')
@with_appcontext
def report_export(company_id, start, end, output):
    """Write the CSV export for a date range."""
    try:
        content = reporting_service.export_report_csv(company_id, start, end)
    except ValidationError as e:
        raise click.BadParameter(str(e))

    with open(output, "w", encoding="utf-8", newline="") as handle:
        handle.write(content)
    click.echo(f"PASS Wrote {output}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(reports_group)
