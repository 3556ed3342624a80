"""File transfer commands for the mber CLI.

Commands:
- upload: Upload files (or links to them) into a folder
- download: Download documents by id, alias or tag
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from mberclient.client.cli.common import (
    attempts_option,
    echo_error,
    open_session_client,
    run_step,
)
from mberclient.client.transfer import ProgressListener, logging_listener

logger = logging.getLogger(__name__)


def _progress(enabled: bool, action: str, name: str) -> ProgressListener | None:
    if not enabled:
        return None
    return logging_listener(action, name, click.echo)


@click.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--folder", default="", help="Folder path to upload into (default: application root).")
@click.option("--tag", "tags", multiple=True, help="Tag to add to every document.")
@click.option("--overwrite", is_flag=True, help="Replace documents with the same name.")
@click.option("--link", is_flag=True, help="Create links to the local files instead of uploading them.")
@click.option("--progress", is_flag=True, help="Print upload progress.")
@attempts_option
def upload(
    files: tuple[str, ...],
    folder: str,
    tags: tuple[str, ...],
    overwrite: bool,
    link: bool,
    progress: bool,
    attempts: int,
) -> None:
    """Upload FILES into a folder.

    The folder is created if it doesn't exist. If the session has a
    build, the folder is attached to it.
    """
    with open_session_client() as client:
        response = run_step(
            client,
            f"Failed to create folder {folder or '/'}",
            lambda: client.make_path(folder),
            attempts,
        )
        directory = response.get_str("directoryId")

        if client.session.build_id:
            run_step(
                client,
                f"Failed to attach folder {folder or '/'} to the build",
                lambda: client.set_build_directory(directory),
                attempts,
            )

        for file in files:
            path = Path(file)
            if link:
                uri = str(path.resolve())
                run_step(
                    client,
                    f"Failed to link {path.name}",
                    lambda: client.link(uri, directory, path.name, tags, overwrite),
                    attempts,
                )
                click.echo(f"Linked {path.name}")
                continue

            listener = _progress(progress, "Uploaded", path.name)
            run_step(
                client,
                f"Failed to upload {path.name}",
                lambda: client.upload_file(path, directory, path.name, tags, overwrite, listener),
                attempts,
            )
            click.echo(f"Uploaded {path.name}")


@click.command()
@click.argument("identifiers", nargs=-1, required=True)
@click.option("--tags", "use_tags", is_flag=True, help="Treat IDENTIFIERS as tags to search for.")
@click.option("--overwrite", is_flag=True, help="Replace existing local files.")
@click.option(
    "--dest",
    default=".",
    type=click.Path(file_okay=False),
    help="Directory to download into.",
)
@click.option("--progress", is_flag=True, help="Print download progress.")
@attempts_option
def download(
    identifiers: tuple[str, ...],
    use_tags: bool,
    overwrite: bool,
    dest: str,
    progress: bool,
    attempts: int,
) -> None:
    """Download documents by id or alias.

    With --tags, every document carrying all of IDENTIFIERS is downloaded.
    """
    dest_dir = Path(dest)
    with open_session_client() as client:
        if use_tags:
            response = run_step(
                client,
                f"Failed to find documents with tags {', '.join(identifiers)}",
                lambda: client.find_documents_with_tags(identifiers),
                attempts,
            )
            documents = [doc for doc in response.get_list("results") if isinstance(doc, dict)]
            if not documents:
                echo_error(f"Error: No documents with tags {', '.join(identifiers)}.")
                sys.exit(1)
        else:
            documents = []
            for identifier in identifiers:
                response = run_step(
                    client,
                    f"Failed to find document {identifier}",
                    lambda: client.read_document(identifier),
                    attempts,
                )
                documents.append(response.get_object("result"))

        for document in documents:
            document_id = str(document.get("documentId", ""))
            if not document.get("canDownload"):
                echo_error(
                    f"Error: Document {document_id} is not downloadable. "
                    "Check that it has been uploaded."
                )
                sys.exit(1)

            name = str(document.get("name") or document_id)
            if name in (".", "..") or Path(name).name != name:
                echo_error(f"Error: Document {document_id} has an unsafe name '{name}'.")
                sys.exit(1)
            target = dest_dir / name
            if target.exists() and not overwrite:
                echo_error(f"Error: {target} already exists. Use --overwrite to replace it.")
                sys.exit(1)

            listener = _progress(progress, "Downloaded", name)
            logger.info(f"Downloading {name}")
            run_step(
                client,
                f"Failed to download {name}",
                lambda: client.download(document_id, target, listener),
                attempts,
            )
            click.echo(f"Downloaded {name}")
