# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/udhaar/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--name "My Shop"] [--code SHOP]
#   Idempotent bootstrap: creates tables and a default merchant.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Merchants:
# - python -m flask merchants list
# - python -m flask merchants create --name "Sharma Traders" --code SHARMA
# - python -m flask merchants deactivate --merchant-id 2
#
# Sessions (identity provider):
# - python -m flask sessions issue --merchant-id 1 --terminal counter-1
#   Issue a bearer token for a terminal (printed once, stored hashed).
# - python -m flask sessions revoke-all --merchant-id 1
#
# Ledger:
# - python -m flask ledger audit --merchant-id 1
#   Recompute every customer's advance balance from their invoices.
# - python -m flask ledger discrepancies --merchant-id 1 [--all]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Merchant
from .services import ledger_service, session_service
from .services.session_service import SessionError


@click.group('system')
def system_group():
    """System bootstrap commands."""
    pass


@system_group.command('init')
@click.option('--name', 'merchant_name', default='Default Shop', help='Merchant name')
@click.option('--code', 'merchant_code', default='DEFAULT', help='Merchant code')
@with_appcontext
def init_system(merchant_name, merchant_code):
    """Create tables and a default merchant (safe to re-run)."""
    click.echo("START Initializing udhaar POS...")
    db.create_all()

    merchant = db.session.query(Merchant).filter_by(code=merchant_code).first()
    if not merchant:
        merchant = Merchant(name=merchant_name, code=merchant_code, business_name=merchant_name)
        db.session.add(merchant)
        db.session.commit()
        click.echo(f"PASS Created merchant: {merchant.name} (ID: {merchant.id}, Code: {merchant.code})")
    else:
        click.echo(f"PASS Using existing merchant: {merchant.name} (ID: {merchant.id})")

    click.echo(f"\nNext: python -m flask sessions issue --merchant-id {merchant.id}")


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


@click.group('merchants')
def merchants_group():
    """Merchant (tenant) management."""
    pass


@merchants_group.command('list')
@with_appcontext
def list_merchants():
    merchants = db.session.query(Merchant).order_by(Merchant.id.asc()).all()
    if not merchants:
        click.echo("No merchants found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active'}")
    click.echo("="*60)
    for merchant in merchants:
        active_str = "yes" if merchant.is_active else "no"
        click.echo(f"{merchant.id:<5} {merchant.name:<30} {merchant.code or '-':<15} {active_str}")


@merchants_group.command('create')
@click.option('--name', required=True, help='Merchant name')
@click.option('--code', default=None, help='Unique short code')
@click.option('--business-name', default=None, help='Name printed on receipts')
@click.option('--phone', default=None, help='Phone printed on receipts')
@click.option('--address', default=None, help='Address printed on receipts')
@click.option('--gstin', default=None, help='GSTIN printed on receipts')
@with_appcontext
def create_merchant(name, code, business_name, phone, address, gstin):
    if code and db.session.query(Merchant).filter_by(code=code).first():
        click.echo(f"FAIL Merchant code '{code}' already exists")
        raise SystemExit(1)

    merchant = Merchant(
        name=name,
        code=code,
        business_name=business_name or name,
        business_phone=phone,
        business_address=address,
        gstin=gstin,
    )
    db.session.add(merchant)
    db.session.commit()
    click.echo(f"PASS Created merchant: {merchant.name} (ID: {merchant.id})")


@merchants_group.command('deactivate')
@click.option('--merchant-id', type=int, required=True, help='Merchant ID')
@with_appcontext
def deactivate_merchant(merchant_id):
    """Stop a merchant from trading; its terminals are logged out."""
    merchant = db.session.get(Merchant, merchant_id)
    if not merchant:
        click.echo(f"FAIL Merchant {merchant_id} not found")
        raise SystemExit(1)

    merchant.is_active = False
    db.session.commit()
    count = session_service.revoke_merchant_sessions(merchant_id, reason="Merchant deactivated")
    click.echo(f"PASS Deactivated {merchant.name}; revoked {count} session(s)")


@click.group('sessions')
def sessions_group():
    """Terminal session tokens."""
    pass


@sessions_group.command('issue')
@click.option('--merchant-id', type=int, required=True, help='Merchant ID')
@click.option('--terminal', default=None, help='Terminal label, e.g. counter-1')
@with_appcontext
def issue_session(merchant_id, terminal):
    """Issue a bearer token. The plaintext is shown once and never stored."""
    try:
        session, token = session_service.create_session(merchant_id, terminal=terminal)
    except SessionError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Session {session.id} for merchant {merchant_id} (expires {session.expires_at:%Y-%m-%d %H:%M} UTC)")
    click.echo(f"TOKEN {token}")


@sessions_group.command('revoke-all')
@click.option('--merchant-id', type=int, required=True, help='Merchant ID')
@with_appcontext
def revoke_all_sessions(merchant_id):
    count = session_service.revoke_merchant_sessions(merchant_id, reason="Revoked from CLI")
    click.echo(f"PASS Revoked {count} session(s)")


@click.group('ledger')
def ledger_group():
    """Udhaar ledger inspection."""
    pass


@ledger_group.command('audit')
@click.option('--merchant-id', type=int, required=True, help='Merchant ID')
@with_appcontext
def audit_ledger(merchant_id):
    """Check advance_balance == sum(credited) - sum(used) for every customer."""
    mismatches = ledger_service.audit_customer_ledgers(merchant_id)
    if not mismatches:
        click.echo("PASS All customer advance balances reconcile")
        return

    click.echo(f"FAIL {len(mismatches)} customer(s) out of balance:")
    for row in mismatches:
        click.echo(
            f"  #{row['customer_id']:<5} {row['customer_name']:<30} "
            f"stored={row['advance_balance_cents']} expected={row['expected_advance_balance_cents']} "
            f"diff={row['difference_cents']}"
        )
    raise SystemExit(1)


@ledger_group.command('discrepancies')
@click.option('--merchant-id', type=int, required=True, help='Merchant ID')
@click.option('--all', 'include_resolved', is_flag=True, help='Include resolved discrepancies')
@with_appcontext
def list_discrepancies(merchant_id, include_resolved):
    rows = ledger_service.list_discrepancies(merchant_id, include_resolved=include_resolved)
    if not rows:
        click.echo("No discrepancies found.")
        return

    for d in rows:
        status = "resolved" if d.is_resolved else "OPEN"
        click.echo(
            f"#{d.id:<5} {d.kind:<22} amount={d.amount_cents:<10} "
            f"customer={d.customer_id or '-'} invoice={d.invoice_id or '-'} [{status}] {d.detail or ''}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(merchants_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(ledger_group)
