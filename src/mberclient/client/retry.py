"""Retry logic with linear backoff and cancellable waits.

This module provides:
- retry: Bounded-attempt retry for any fallible zero-argument operation
- retry_envelope: retry() specialised for operations returning Envelopes
- RetryError: Raised by an operation to request another attempt

retry() never raises. It returns the first non-None result, or None once
the attempts run out or the wait between attempts is cancelled.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from mberclient.client.envelope import Envelope

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WAIT_SECONDS = 10.0  # multiplied by the attempt number
MAX_WAIT_SECONDS = 120.0


class RetryError(Exception):
    """Raised inside a retried operation when it should be attempted again."""


ErrorSink = Callable[[str], None]


def _log_sink(message: str) -> None:
    logger.warning(message)


def normalize_attempts(max_attempts: int) -> int:
    """Clamp an attempt count to a positive number.

    Negative counts use their absolute value, zero means one attempt.
    """
    return max(abs(max_attempts), 1)


def backoff_seconds(attempt: int, wait_seconds: float) -> float:
    """Wait before the attempt following ``attempt``, capped at two minutes."""
    return min(attempt * wait_seconds, MAX_WAIT_SECONDS)


def retry(
    func: Callable[[], T | None],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    wait_seconds: float = DEFAULT_WAIT_SECONDS,
    cancel_event: threading.Event | None = None,
    on_error: ErrorSink | None = None,
) -> T | None:
    """Execute an operation until it returns a value.

    An attempt fails if it raises or returns None. Between attempts the
    driver waits attempt * wait_seconds (at most 120s); a wait of zero
    disables waiting. Setting cancel_event during a wait stops at once.

    Args:
        func: Operation to execute.
        max_attempts: Maximum number of attempts; see normalize_attempts.
        wait_seconds: Base wait multiplied by the attempt number.
        cancel_event: Optional event that cancels waiting.
        on_error: Receives each failure message (defaults to the logger).

    Returns:
        First non-None result, or None if every attempt failed or the
        retry was cancelled.
    """
    attempts = normalize_attempts(max_attempts)
    sink = on_error or _log_sink

    for attempt in range(1, attempts + 1):
        try:
            result = func()
            if result is not None:
                return result
            sink(f"Attempt {attempt}/{attempts} returned no result")
        except Exception as e:
            sink(str(e) or type(e).__name__)

        if attempt == attempts:
            break

        if wait_seconds > 0:
            wait = backoff_seconds(attempt, wait_seconds)
            sink(f"Retrying in {wait:.0f} seconds... {attempt}/{attempts}")
            if cancel_event is not None:
                if cancel_event.wait(wait):
                    logger.info("Retry cancelled while waiting")
                    return None
            else:
                time.sleep(wait)
        elif cancel_event is not None and cancel_event.is_set():
            return None

    logger.debug(f"All {attempts} attempts failed")
    return None


def retry_envelope(
    func: Callable[[], Envelope],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    wait_seconds: float = DEFAULT_WAIT_SECONDS,
    cancel_event: threading.Event | None = None,
    on_error: ErrorSink | None = None,
    describe: str | None = None,
) -> Envelope:
    """Retry an envelope-returning operation while it reports Failed.

    Success, Duplicate and NotFound come back on the first attempt since
    retrying cannot change them. Aborted envelopes stop retrying at once.

    Args:
        func: Operation to execute.
        max_attempts: Maximum number of attempts.
        wait_seconds: Base backoff.
        cancel_event: Optional event that cancels waiting.
        on_error: Receives each failure message.
        describe: Optional prefix for failure messages, e.g. "Failed to create folder a/b".

    Returns:
        The last envelope seen. Never None.
    """
    last: list[Envelope] = []

    def attempt() -> Envelope:
        try:
            envelope = func()
        except Exception as e:
            envelope = Envelope.from_exception(e)
        last[:] = [envelope]
        if envelope.is_failed:
            message = envelope.error or ""
            if describe:
                message = f"{describe}. {message}".strip()
            raise RetryError(message)
        return envelope

    result = retry(
        attempt,
        max_attempts=max_attempts,
        wait_seconds=wait_seconds,
        cancel_event=cancel_event,
        on_error=on_error,
    )
    if result is not None:
        return result
    if cancel_event is not None and cancel_event.is_set():
        return Envelope.aborted(last[0].error if last else "Cancelled")
    if last:
        return last[0]
    return Envelope.failed(describe or "Operation failed")
