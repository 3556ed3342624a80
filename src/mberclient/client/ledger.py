"""Per-session history of remote calls.

The ledger keeps every RemoteCall made during a logical session so the
calls can be printed when the session fails. Session ids are supplied by
the caller and must be unique per session (a job-run URL, for example).
Callers drain or clear a session when it ends; nothing expires on its own.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from mberclient.client.transport import RemoteCall


def format_call(call: RemoteCall) -> str:
    """Render a call for diagnostics.

    Query strings are dropped since they carry access tokens.
    """
    url = call.url.split("?", 1)[0]
    return f"{call.method} {url} - {call.status_code}"


class CallLedger:
    """Thread-safe mapping from session id to the calls made in it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[str, list[RemoteCall]] = {}

    def record(self, session_id: str, call: RemoteCall) -> None:
        """Append a call to a session."""
        with self._lock:
            self._calls.setdefault(session_id, []).append(call)

    def extend(self, session_id: str, calls: Iterable[RemoteCall]) -> None:
        """Append several calls to a session, keeping their order."""
        with self._lock:
            self._calls.setdefault(session_id, []).extend(calls)

    def calls(self, session_id: str) -> list[RemoteCall]:
        """Get a copy of a session's calls without clearing them."""
        with self._lock:
            return list(self._calls.get(session_id, ()))

    def drain(self, session_id: str) -> list[RemoteCall]:
        """Return a session's calls and forget them."""
        with self._lock:
            return self._calls.pop(session_id, [])

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._calls.pop(session_id, None)

    def sessions(self) -> list[str]:
        with self._lock:
            return list(self._calls)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(calls) for calls in self._calls.values())
