"""Access profile commands for the mber CLI.

Commands:
- profile add: Save credentials for an application
- profile list: Show saved profiles
"""

from __future__ import annotations

import click

from mberclient.client.cli.config import list_profiles, save_profile
from mberclient.core.config import DEFAULT_URL, AccessProfile


@click.group()
def profile() -> None:
    """Manage access profiles."""


@profile.command("add")
@click.argument("name")
@click.option("--application", required=True, help="Application alias or UUID.")
@click.option("--username", required=True, help="Mber username.")
@click.option("--password", prompt=True, hide_input=True, help="Mber password.")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Mber service URL.")
def add_profile(name: str, application: str, username: str, password: str, url: str) -> None:
    """Save an access profile named NAME.

    An existing profile with the same name is replaced.
    """
    save_profile(
        AccessProfile(
            name=name,
            application=application,
            username=username,
            password=password,
            url=url,
        )
    )
    click.echo(f"Saved profile '{name}'")


@profile.command("list")
def list_profiles_cmd() -> None:
    """List saved access profiles."""
    names = list_profiles()
    if not names:
        click.echo("No profiles configured.")
        return
    for name in names:
        click.echo(name)
