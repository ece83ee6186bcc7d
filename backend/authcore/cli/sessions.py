"""Flask CLI commands for inspecting and revoking refresh sessions."""

from __future__ import annotations

import json
import logging

import click
from flask.cli import with_appcontext

from authcore.core.auth import get_auth
from authcore.schemas import SessionRecordSchema
from authcore.services import AuthError, LogoutIn
from authcore.services._shared.errors import storage_errors

LOGGER = logging.getLogger(__name__)


@click.group("sessions")
def sessions_cli() -> None:
    """Operator commands for refresh sessions."""


@sessions_cli.command("list")
@click.argument("user_id")
@click.option("--all", "include_all", is_flag=True, help="Include revoked and expired sessions.")
@with_appcontext
def list_command(user_id: str, include_all: bool) -> None:
    """Print USER_ID's sessions as JSON."""
    coordinator = get_auth()
    try:
        with storage_errors():
            records = coordinator.sessions.list_for_user(
                user_id, active_only=not include_all, now=coordinator.now()
            )
    except AuthError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(json.dumps(SessionRecordSchema(many=True).dump(records), indent=2))


@sessions_cli.command("revoke-user")
@click.argument("user_id")
@with_appcontext
def revoke_user_command(user_id: str) -> None:
    """Revoke every active session of USER_ID."""
    try:
        result = get_auth().logout(LogoutIn(principal_id=user_id))
    except AuthError as exc:
        raise click.ClickException(exc.message) from exc
    LOGGER.info(
        "sessions revoked from cli",
        extra={"event": "cli_revoke_user", "user_id": user_id, "revoked": result.revoked_sessions},
    )
    click.echo(f"Revoked {result.revoked_sessions} session(s) for user {user_id}.")
