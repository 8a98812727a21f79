# ledger_election/cli.py

# Operator commands, available as `flask --app ledger_election <command>`

import json

import click

from ledger_election import app, db
from ledger_election.authentication.rbac import RBACService
from ledger_election.operations.backup_manager import perform_backup, restore_backup
from ledger_election.security.token_manager import TokenManager
from ledger_election.service import get_audit_logger, get_election


@app.cli.command('init-db')
def init_db():
    """Create tables and the election from configuration if none is stored."""
    db.create_all()
    election = get_election()
    click.echo(f"Election ready, administrator: {election.administrator}")


@app.cli.command('issue-token')
@click.argument('identity')
@click.option('--expires-in', default=3600, show_default=True, help='Lifetime in seconds.')
def issue_token(identity, expires_in):
    """Print a bearer token whose subject is IDENTITY."""
    click.echo(TokenManager(app).generate_token(identity, expires_in=expires_in))


@app.cli.command('verify-token')
@click.argument('token')
def verify_token(token):
    """Print the identity and role a bearer token would act as."""
    identity = TokenManager(app).validate_token(token)
    if identity is None:
        raise click.ClickException("Token is invalid or expired.")
    role = RBACService().role_for(identity, get_election().administrator)
    click.echo(f"{identity} ({role.value})")


@app.cli.command('show-election')
def show_election():
    election = get_election()
    snap = election.snapshot()
    snap['phase'] = election.phase().value
    snap.pop('events')
    click.echo(json.dumps(snap, indent=2, sort_keys=True))


@app.cli.command('backup-state')
def backup_state():
    """Write an encrypted snapshot of the election to BACKUP_OUTDIR."""
    meta = perform_backup(get_election().snapshot(),
                          app.config['BACKUP_OUTDIR'],
                          app.config['BACKUP_AES256_KEY'])
    click.echo(json.dumps(meta, indent=2))


@app.cli.command('inspect-backup')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def inspect_backup(path):
    """Verify and decrypt a backup, printing the stored snapshot."""
    snapshot = restore_backup(path, app.config['BACKUP_AES256_KEY'])
    click.echo(json.dumps(snapshot, indent=2, sort_keys=True))


@app.cli.command('verify-audit-log')
def verify_audit_log():
    if get_audit_logger().verify_log_integrity():
        click.echo("Audit log intact.")
    else:
        raise click.ClickException("Audit log failed verification.")
