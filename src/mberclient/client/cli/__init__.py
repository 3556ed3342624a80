"""Command-line interface for mber.

This module provides the main CLI entry point and assembles all commands.

Commands:
- profile add/list: Manage access profiles
- login: Log in with an access profile
- logout: Forget the saved session
- mkpath: Create a folder path
- build start/finish: Track builds
- upload: Upload files or links into a folder
- download: Download documents by id, alias or tag
"""

from __future__ import annotations

import logging

import click

from mberclient.client.cli.build import build
from mberclient.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_session_file,
    load_config,
    save_config,
)
from mberclient.client.cli.profile import profile
from mberclient.client.cli.session import login, logout, mkpath
from mberclient.client.cli.transfer import download, upload
from mberclient.client.retry import DEFAULT_WAIT_SECONDS


def setup_logging(verbose: bool) -> None:
    """Send mberclient log records to stderr."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))

    mber_logger = logging.getLogger("mberclient")
    # Remove any existing handlers
    for existing in mber_logger.handlers[:]:
        mber_logger.removeHandler(existing)
    mber_logger.addHandler(handler)
    mber_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    mber_logger.propagate = False


@click.group()
@click.version_option(package_name="mberclient")
@click.option("--verbose", "-v", is_flag=True, help="Log every request.")
@click.option(
    "--retry-wait",
    default=DEFAULT_WAIT_SECONDS,
    show_default=True,
    help="Base wait in seconds between attempts, multiplied by the attempt number.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, retry_wait: float) -> None:
    """mber - Provision builds and move files to and from Mber."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["retry_wait"] = retry_wait


# Configuration commands
cli.add_command(profile)

# Session commands
cli.add_command(login)
cli.add_command(logout)
cli.add_command(mkpath)

# Build commands
cli.add_command(build)

# Transfer commands
cli.add_command(upload)
cli.add_command(download)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_session_file",
    "load_config",
    "save_config",
]
