"""File download with manual redirects and byte-count verification.

This module provides:
- FileDownloader: Resolves redirects, streams to a temp file, verifies
  the byte count and renames into place
- copy_stream: Buffer loop shared by the downloader and its tests
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import IO
from urllib.parse import urljoin

import httpx

from mberclient.client.envelope import Envelope
from mberclient.client.transfer.types import (
    CHUNK_SIZE,
    DownloadError,
    IntegrityError,
    PercentTracker,
    ProgressListener,
    TransferCancelledError,
)
from mberclient.client.transport import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})
MAX_REDIRECTS = 10


def copy_stream(
    chunks: Iterable[bytes],
    output: IO[bytes],
    tracker: PercentTracker,
    cancel_event: threading.Event | None = None,
) -> int:
    """Write chunks to an open file, reporting progress.

    Args:
        chunks: Source buffers.
        output: Binary file opened for writing.
        tracker: Progress tracker for the transfer.
        cancel_event: Optional event checked before every buffer.

    Returns:
        Number of bytes written.

    Raises:
        TransferCancelledError: If cancel_event was set.
    """
    tracker.start()
    for chunk in chunks:
        if cancel_event is not None and cancel_event.is_set():
            raise TransferCancelledError(
                f"Download cancelled after {tracker.transferred} bytes"
            )
        output.write(chunk)
        tracker.advance(len(chunk))
    return tracker.transferred


def _content_length(response: httpx.Response) -> int:
    value = response.headers.get("Content-Length")
    if value is None:
        return -1
    try:
        return int(value)
    except ValueError:
        return -1


class FileDownloader:
    """Downloads files from Mber download URLs.

    Download URLs usually redirect to a CDN whose headers some clients
    mishandle, so redirects are followed here one hop at a time.
    """

    def __init__(
        self,
        client: httpx.Client,
        chunk_size: int = CHUNK_SIZE,
        max_redirects: int = MAX_REDIRECTS,
    ) -> None:
        """Initialize the downloader.

        Args:
            client: httpx client to issue requests with.
            chunk_size: Bytes per buffer.
            max_redirects: Redirect hops followed before giving up.
        """
        self._client = client
        self._chunk_size = chunk_size
        self._max_redirects = max_redirects

    @contextlib.contextmanager
    def open_stream(self, url: str) -> Iterator[httpx.Response]:
        """Open a streamed GET at the end of a URL's redirect chain.

        Each hop is requested with redirects disabled and its body left
        unread. Relative Location headers are resolved against the URL
        that sent them.

        Args:
            url: Starting URL.

        Yields:
            The first response that isn't a redirect, body unread.

        Raises:
            DownloadError: If the chain is longer than max_redirects.
        """
        current = url
        for _ in range(self._max_redirects + 1):
            with self._client.stream("GET", current, follow_redirects=False) as response:
                location = response.headers.get("Location")
                if response.status_code not in REDIRECT_STATUS_CODES or not location:
                    yield response
                    return
            logger.debug(f"Redirected ({response.status_code}) to {location.split('?', 1)[0]}")
            current = urljoin(current, location)
        raise DownloadError(
            f"Too many redirects downloading {url.split('?', 1)[0]} "
            f"(more than {self._max_redirects})"
        )

    def follow_redirects(self, url: str) -> str:
        """Resolve a URL to the end of its redirect chain.

        Raises:
            DownloadError: If the chain is longer than max_redirects.
        """
        with self.open_stream(url) as response:
            return str(response.url)

    def download(
        self,
        url: str,
        destination: Path,
        listener: ProgressListener | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Envelope:
        """Download a URL to a local file.

        The body is written to "<destination>.tmp" and renamed over the
        destination only when the byte count matches the announced
        Content-Length. Any failure removes the temp file.

        Args:
            url: Download URL.
            destination: Target file path.
            listener: Optional percent-complete callback.
            cancel_event: Optional event; when set the download stops at
                the next buffer and returns an Aborted envelope.

        Returns:
            Success with ``path`` and ``size``, Failed, or Aborted.
        """
        destination = Path(destination)
        name = destination.name
        tmp_path = destination.with_name(name + ".tmp")

        try:
            if destination.is_dir():
                raise DownloadError(f"{destination} is a directory")
            with self.open_stream(url) as response:
                if response.status_code >= 400:
                    raise DownloadError(f"HTTP {response.status_code} downloading {name}")
                expected = _content_length(response)
                tracker = PercentTracker(expected, listener)
                destination.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, "wb") as output:
                    try:
                        received = copy_stream(
                            response.iter_bytes(self._chunk_size),
                            output,
                            tracker,
                            cancel_event,
                        )
                    except httpx.RemoteProtocolError as e:
                        # Peer closed the connection before Content-Length bytes arrived
                        received = tracker.transferred
                        if expected < 0 or received >= expected:
                            raise
                        logger.debug(f"Download of {name} ended early: {e}")

            if received < expected:
                raise IntegrityError(name, expected, received)

            # On Windows, need to remove existing file first
            if destination.exists():
                destination.unlink()
            tmp_path.rename(destination)
        except TransferCancelledError as e:
            self._discard(tmp_path)
            logger.info(f"Download of {name} cancelled")
            return Envelope.aborted(str(e))
        except TRANSPORT_ERRORS as e:
            self._discard(tmp_path)
            logger.debug(f"Download of {name} failed: {e}")
            return Envelope.from_exception(e)

        logger.info(f"Downloaded {name}: {received} bytes")
        return Envelope.success(path=str(destination), size=received)

    @staticmethod
    def _discard(tmp_path: Path) -> None:
        if tmp_path.exists():
            with contextlib.suppress(OSError):
                tmp_path.unlink()
