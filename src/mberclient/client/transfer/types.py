"""Shared types for file transfers.

This module provides:
- TransferError, UploadError, DownloadError, IntegrityError: Exception classes
- TransferCancelledError: Raised at a buffer boundary after cancellation
- ProgressListener: Callback receiving whole percent values
- PercentTracker: Turns byte counts into throttled percent callbacks
"""

from __future__ import annotations

from collections.abc import Callable

from mberclient.client.errors import MberError

# Size of each read/write during a transfer
CHUNK_SIZE = 64 * 1024

# Type alias for progress callback
ProgressListener = Callable[[int], None]


class TransferError(MberError):
    """Base exception for transfer errors."""


class UploadError(TransferError):
    """Failed to upload a file."""


class DownloadError(TransferError):
    """Failed to download a file."""


class IntegrityError(DownloadError):
    """Fewer bytes were written than the server announced."""

    def __init__(self, name: str, expected: int, received: int) -> None:
        self.name = name
        self.expected = expected
        self.received = received
        self.missing = expected - received
        super().__init__(f"Missing {self.missing} bytes in {name}")


class TransferCancelledError(TransferError):
    """Raised when a transfer is cancelled."""


class PercentTracker:
    """Reports transfer progress as whole percents.

    The listener only fires when the integer percent increases, so a
    large file produces at most 101 callbacks. With an unknown or zero
    total nothing is reported.
    """

    def __init__(self, total: int, listener: ProgressListener | None = None) -> None:
        self._total = total
        self._listener = listener
        self._transferred = 0
        self._last_percent = -1

    @property
    def transferred(self) -> int:
        return self._transferred

    @property
    def percent(self) -> int | None:
        """Current percent, or None when the total is unknown."""
        if self._total <= 0:
            return None
        return min(self._transferred * 100 // self._total, 100)

    def start(self) -> None:
        """Report 0% before the first byte moves."""
        self._notify()

    def advance(self, count: int) -> None:
        """Record that count more bytes were transferred."""
        self._transferred += count
        self._notify()

    def _notify(self) -> None:
        percent = self.percent
        if percent is None or self._listener is None:
            return
        if percent > self._last_percent:
            self._last_percent = percent
            self._listener(percent)


def logging_listener(
    action: str, name: str, sink: Callable[[str], None]
) -> ProgressListener:
    """Build a listener that writes "<action> N% of <name>" to a sink."""

    def listener(percent: int) -> None:
        sink(f"{action} {percent}% of {name}")

    return listener
