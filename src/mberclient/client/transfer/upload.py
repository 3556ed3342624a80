"""Streamed file upload to a pre-signed upload slot.

This module provides:
- FileUploader: PUTs a local file as application/octet-stream with
  progress reporting and cancellation at buffer boundaries
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import IO, TYPE_CHECKING

from mberclient.client.envelope import Envelope
from mberclient.client.transfer.types import (
    CHUNK_SIZE,
    PercentTracker,
    ProgressListener,
    TransferCancelledError,
    UploadError,
)
from mberclient.client.transport import TRANSPORT_ERRORS

if TYPE_CHECKING:
    from mberclient.client.transport import HTTPTransport

logger = logging.getLogger(__name__)


class FileUploader:
    """Uploads local files to URLs handed out by the service.

    The upload slot answers with an empty body on success; any other
    body is the error.
    """

    def __init__(self, transport: HTTPTransport, chunk_size: int = CHUNK_SIZE) -> None:
        """Initialize the uploader.

        Args:
            transport: Transport used for the PUT.
            chunk_size: Bytes read from disk per buffer.
        """
        self._transport = transport
        self._chunk_size = chunk_size

    def upload(
        self,
        path: Path,
        url: str,
        listener: ProgressListener | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Envelope:
        """Upload a file.

        Args:
            path: Local file to send.
            url: Upload slot URL from a prior upload request.
            listener: Optional percent-complete callback.
            cancel_event: Optional event; when set the upload stops at the
                next buffer and returns an Aborted envelope.

        Returns:
            Success with ``url`` and ``path``, Failed with the slot's
            response body, or Aborted.
        """
        path = Path(path)
        logger.info(f"Uploading {path.name}")
        stream: IO[bytes] | None = None
        try:
            if path.is_dir():
                raise UploadError(f"{path} is a directory")
            size = path.stat().st_size
            stream = path.open("rb")
            tracker = PercentTracker(size, listener)
            call = self._transport.put_stream(
                url, self._read_chunks(stream, tracker, cancel_event), size
            )
        except TransferCancelledError as e:
            logger.info(f"Upload of {path.name} cancelled")
            return Envelope.aborted(str(e))
        except TRANSPORT_ERRORS as e:
            logger.debug(f"Upload of {path.name} failed: {e}")
            return Envelope.from_exception(e)
        finally:
            if stream is not None:
                stream.close()

        if call.body:
            return Envelope.failed(call.body)
        if call.status_code >= 400:
            return Envelope.failed(f"HTTP {call.status_code} uploading {path.name}")
        logger.info(f"Uploaded {path.name}")
        return Envelope.success(url=url, path=str(path.resolve()))

    def _read_chunks(
        self,
        stream: IO[bytes],
        tracker: PercentTracker,
        cancel_event: threading.Event | None,
    ) -> Iterator[bytes]:
        tracker.start()
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise TransferCancelledError(
                    f"Upload cancelled after {tracker.transferred} bytes"
                )
            chunk = stream.read(self._chunk_size)
            if not chunk:
                return
            yield chunk
            tracker.advance(len(chunk))
