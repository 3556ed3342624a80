"""Helpers shared by the mber CLI commands."""

from __future__ import annotations

import sys
from collections.abc import Callable

import click

from mberclient.client.api import MberClient
from mberclient.client.cli.config import load_session, save_session
from mberclient.client.envelope import Envelope
from mberclient.client.ledger import format_call
from mberclient.client.retry import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_WAIT_SECONDS,
    retry_envelope,
)
from mberclient.client.session import SessionState
from mberclient.core.config import ServerConfig

attempts_option = click.option(
    "--attempts",
    default=DEFAULT_MAX_ATTEMPTS,
    show_default=True,
    help="Attempts per remote step.",
)


def echo_error(message: str) -> None:
    click.echo(message, err=True)


def open_session_client() -> MberClient:
    """Build a client for the session saved by 'mber login'.

    Exits with an error if nobody is logged in.
    """
    data = load_session()
    if not data:
        echo_error("Error: Not logged in. Run 'mber login PROFILE' first.")
        sys.exit(1)
    session = SessionState.from_dict(data)
    config = ServerConfig(url=session.url, application=session.application)
    return MberClient(config, session=session)


def persist(client: MberClient) -> None:
    """Save the client's session for the next command."""
    save_session(client.session.to_dict())


def run_step(
    client: MberClient,
    description: str,
    operation: Callable[[], Envelope],
    attempts: int,
) -> Envelope:
    """Run one remote step with retries, exiting on failure.

    On failure the calls the session made are listed to help diagnose
    what the service rejected.

    Args:
        client: Client whose call history is printed on failure.
        description: What the step does, e.g. "Failed to create folder a/b".
        operation: Single attempt of the step.
        attempts: Maximum number of attempts.

    Returns:
        The Success envelope.
    """
    root = click.get_current_context().find_root()
    wait = (root.obj or {}).get("retry_wait", DEFAULT_WAIT_SECONDS)
    envelope = retry_envelope(
        operation,
        max_attempts=attempts,
        wait_seconds=wait,
        on_error=echo_error,
        describe=description,
    )
    if envelope.is_success:
        return envelope

    echo_error(f"Error: {description}. {envelope.error}")
    calls = client.drain_call_history()
    if calls:
        echo_error("Calls made:")
        for call in calls:
            echo_error(f"  {format_call(call)}")
    sys.exit(1)
