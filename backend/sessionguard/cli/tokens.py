"""Flask CLI commands for token table maintenance."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from sessionguard.core.timeutil import utcnow
from sessionguard.core.wiring import get_auth_service

LOGGER = logging.getLogger(__name__)


@click.group("tokens")
def tokens_cli() -> None:
    """Refresh token and blacklist maintenance commands."""


@tokens_cli.command("purge-expired")
@with_appcontext
def purge_expired() -> None:
    """Delete refresh tokens and blacklist entries past their expiry.

    Expiry is always enforced at read time; this only reclaims storage.
    """
    service = get_auth_service()
    now = utcnow()
    refresh = service.refresh_store.purge_expired(now)
    blacklist = service.blacklist.purge_expired(now)
    LOGGER.info("tokens.purged", extra={"count": refresh + blacklist})
    click.echo(f"Purged refresh_tokens={refresh} blacklist={blacklist}")
