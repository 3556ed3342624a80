"""Integrity-checked file transfer.

This package contains:
- FileUploader: Streamed upload to a pre-signed slot
- FileDownloader: Redirect-resolving, byte-count verified download
- PercentTracker and the transfer exception classes
"""

from mberclient.client.transfer.download import FileDownloader, copy_stream
from mberclient.client.transfer.types import (
    DownloadError,
    IntegrityError,
    PercentTracker,
    ProgressListener,
    TransferCancelledError,
    TransferError,
    UploadError,
    logging_listener,
)
from mberclient.client.transfer.upload import FileUploader

__all__ = [
    "DownloadError",
    "FileDownloader",
    "FileUploader",
    "IntegrityError",
    "PercentTracker",
    "ProgressListener",
    "TransferCancelledError",
    "TransferError",
    "UploadError",
    "copy_stream",
    "logging_listener",
]
