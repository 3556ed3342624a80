"""Build tracking commands for the mber CLI.

Commands:
- build start: Create or find a project and start a build in it
- build finish: Mark the session's build as completed
"""

from __future__ import annotations

import click

from mberclient.client.cli.common import (
    attempts_option,
    open_session_client,
    persist,
    run_step,
)
from mberclient.core.types import BuildStatus


@click.group()
def build() -> None:
    """Track builds in Mber."""


@build.command("start")
@click.argument("project")
@click.argument("name")
@click.argument("alias")
@click.option("--description", default=None, help="Build description.")
@attempts_option
def start_build(
    project: str, name: str, alias: str, description: str | None, attempts: int
) -> None:
    """Start build NAME of PROJECT.

    ALIAS identifies the build uniquely, e.g. a job name and run number.
    """
    with open_session_client() as client:
        client.session.reset_build_status()
        run_step(
            client,
            f"Failed to create project {project}",
            lambda: client.make_project(project),
            attempts,
        )
        response = run_step(
            client,
            f"Failed to create build {name}",
            lambda: client.make_build(name, description, alias, BuildStatus.RUNNING),
            attempts,
        )
        persist(client)
    click.echo(response.get_str("buildId"))


@build.command("finish")
@click.argument("name")
@click.option("--failed", is_flag=True, help="Mark the build as failed.")
@click.option("--description", default=None, help="Build description.")
@attempts_option
def finish_build(name: str, failed: bool, description: str | None, attempts: int) -> None:
    """Mark the session's build NAME as completed.

    The completion tags are added to the statuses recorded by 'build start'.
    """
    outcome = BuildStatus.FAILURE if failed else BuildStatus.SUCCESS
    with open_session_client() as client:
        run_step(
            client,
            f"Failed to update build {name}",
            lambda: client.update_build(name, description, BuildStatus.COMPLETED, outcome),
            attempts,
        )
        persist(client)
    click.echo(f"Build {name}: {outcome}")
