"""Session commands for the mber CLI.

Commands:
- login: Log in with an access profile and save the session
- logout: Forget the saved session
- mkpath: Create a folder path in the application
"""

from __future__ import annotations

import sys

import click

from mberclient.client.api import MberClient
from mberclient.client.cli.common import (
    attempts_option,
    echo_error,
    open_session_client,
    persist,
    run_step,
)
from mberclient.client.cli.config import clear_session, get_profile


@click.command()
@click.argument("profile_name", metavar="PROFILE")
@attempts_option
def login(profile_name: str, attempts: int) -> None:
    """Log in to Mber with the access profile PROFILE.

    The session is saved so the following commands can use it.
    """
    access_profile = get_profile(profile_name)
    if access_profile is None:
        echo_error(f"Error: No access profile named '{profile_name}'.")
        sys.exit(1)

    config = access_profile.server_config()
    if not config.is_secure:
        echo_error(f"Warning: {config.url} is not HTTPS; the password is sent unencrypted.")

    with MberClient(config) as client:
        click.echo(f"Connecting to Mber at {access_profile.url}")
        run_step(
            client,
            f"Failed to log in to {access_profile.application}",
            lambda: client.login(access_profile.username, access_profile.password),
            attempts,
        )
        persist(client)
    click.echo(f"Logged in to {access_profile.application}")


@click.command()
def logout() -> None:
    """Forget the saved session."""
    if clear_session():
        click.echo("Logged out.")
    else:
        click.echo("Not logged in.")


@click.command()
@click.argument("path")
@attempts_option
def mkpath(path: str, attempts: int) -> None:
    """Create the folder PATH, and any missing parents.

    Prints the id of the last folder.
    """
    with open_session_client() as client:
        response = run_step(
            client,
            f"Failed to create folder {path}",
            lambda: client.make_path(path),
            attempts,
        )
    click.echo(response.get_str("directoryId"))
