"""CLI commands for inspecting and refreshing stored credentials.

Usage:
    flask credentials show user@example.com
    flask credentials refresh user@example.com
"""

from __future__ import annotations

import click
from flask.cli import AppGroup

from calconnect.utils import isoformat_or_none

credentials_cli = AppGroup("credentials", help="Inspect stored OAuth credentials.")


@credentials_cli.command("show")
@click.argument("identity")
def show_credential_command(identity: str):
    """Print credential metadata for IDENTITY (tokens are never printed)."""
    from calconnect.domains.calendar.services import credential_store

    record = credential_store.get(identity)
    if record is None:
        click.echo(f"No credentials stored for {identity}", err=True)
        raise SystemExit(1)

    click.echo(f"identity:      {record.identity}")
    click.echo(f"expiry:        {isoformat_or_none(record.expiry) or 'unknown'}")
    click.echo(f"expired:       {'yes' if record.is_expired else 'no'}")
    click.echo(f"refresh token: {'present' if record.can_refresh else 'missing'}")
    click.echo(f"updated at:    {isoformat_or_none(record.updated_at)}")


@credentials_cli.command("refresh")
@click.argument("identity")
def refresh_credential_command(identity: str):
    """Refresh and persist the access token for IDENTITY."""
    from calconnect.domains.calendar.errors import CalendarError
    from calconnect.domains.calendar.services import token_lifecycle

    try:
        credential = token_lifecycle.handle_auth_failure(
            identity, token_lifecycle.hydrate(identity)
        )
    except CalendarError as e:
        click.echo(f"  ✗ {identity}: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"  ✓ {identity}: new expiry {isoformat_or_none(credential.expiry) or 'unknown'}")


def register_commands(app):
    """Register CLI commands with the app."""
    app.cli.add_command(credentials_cli)
