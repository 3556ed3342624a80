"""Session state shared by the resolver and the client facade.

A SessionState is created per logical session and mutated by resolver
calls: logins set the access token and application id, project and
build creation set their ids. The state round-trips through a flat JSON
object so a session can be handed from one process to the next.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from mberclient.core.types import BuildStatus


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


@dataclass
class SessionState:
    """Mutable context of one Mber session.

    Attributes:
        url: Service URL.
        application: Application alias or UUID, as the user supplied it.
        access_token: OAuth token from the last login ("" when logged out).
        application_id: Application UUID from the last login.
        project_id: Project resolved by make_project.
        build_id: Build resolved by make_build.
        build_alias: Alias the build was created with.
        build_status: Status tags recorded so far, in recording order.
    """

    url: str
    application: str
    access_token: str = ""
    application_id: str = ""
    project_id: str = ""
    build_id: str = ""
    build_alias: str = ""
    build_status: list[str] = field(default_factory=list)
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    @property
    def is_logged_in(self) -> bool:
        return bool(self.access_token)

    # === Updates from responses ===

    def apply_login(self, payload: Mapping[str, Any]) -> None:
        """Set or clear the token and application id from a login response."""
        with self._lock:
            self.access_token = _string(payload, "access_token")
            self.application_id = _string(payload, "applicationId")

    def set_or_clear_project_id(self, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self.project_id = _string(payload, "projectId")

    def set_or_clear_build_id(self, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self.build_id = _string(payload, "buildId")

    def set_build_alias(self, alias: str | None) -> None:
        with self._lock:
            self.build_alias = alias or ""

    # === Build status ===

    def record_build_status(self, *statuses: BuildStatus | str) -> list[str]:
        """Add status tags to the build's status set.

        Tags already recorded are kept once, where they were first recorded.

        Returns:
            Copy of the accumulated status list.
        """
        with self._lock:
            for status in statuses:
                tag = str(status)
                if tag not in self.build_status:
                    self.build_status.append(tag)
            return list(self.build_status)

    def reset_build_status(self) -> None:
        with self._lock:
            self.build_status = []

    # === Serialization ===

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the flat handoff format."""
        with self._lock:
            return {
                "url": self.url,
                "application": self.application,
                "access_token": self.access_token,
                "applicationId": self.application_id,
                "projectId": self.project_id,
                "buildId": self.build_id,
                "buildAlias": self.build_alias,
                "buildStatus": list(self.build_status),
            }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionState:
        """Restore a session from the flat handoff format.

        Missing fields are treated as cleared.
        """
        statuses: Iterable[Any] = data.get("buildStatus") or []
        return cls(
            url=_string(data, "url"),
            application=_string(data, "application"),
            access_token=_string(data, "access_token"),
            application_id=_string(data, "applicationId"),
            project_id=_string(data, "projectId"),
            build_id=_string(data, "buildId"),
            build_alias=_string(data, "buildAlias"),
            build_status=[str(status) for status in statuses],
        )
