"""Shared types for mberclient.

This module defines the enums used by the resolver, the session state
and the CLI.
"""

from __future__ import annotations

from enum import Enum


class BuildStatus(str, Enum):
    """Status tags attached to a Mber build.

    A build carries a set of these tags; recording a status adds to the
    set instead of replacing it.
    """

    RUNNING = "Running"
    COMPLETED = "Completed"
    SUCCESS = "Success"
    FAILURE = "Failure"

    def __str__(self) -> str:
        return self.value
