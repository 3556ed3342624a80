"""Exceptions raised inside the Mber client.

These never cross the public surface of MberClient: every operation
catches them at its boundary and returns a Failed or Aborted envelope.
"""

from __future__ import annotations


class MberError(Exception):
    """Base exception for Mber client errors."""


class InvalidURLError(MberError):
    """The configured service URL has no scheme or host."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid Mber URL: {url}")
        self.url = url

