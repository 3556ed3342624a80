"""Response envelopes for Mber JSON calls.

Every Mber response is a JSON object with a ``status`` field. Envelope
wraps the parsed object with a normalized status and a guaranteed error
message for anything that isn't a success.

This module provides:
- EnvelopeStatus: Tagged outcome of a call
- Envelope: Parsed, normalized response
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

EMPTY_RESPONSE = "Empty response"


class EnvelopeStatus(str, Enum):
    """Outcome of a remote call.

    The first four values are sent by the service. ABORTED is produced
    locally when a transfer is cancelled.
    """

    SUCCESS = "Success"
    DUPLICATE = "Duplicate"
    NOT_FOUND = "NotFound"
    FAILED = "Failed"
    ABORTED = "Aborted"


_REMOTE_STATUSES = {
    EnvelopeStatus.SUCCESS.value: EnvelopeStatus.SUCCESS,
    EnvelopeStatus.DUPLICATE.value: EnvelopeStatus.DUPLICATE,
    EnvelopeStatus.NOT_FOUND.value: EnvelopeStatus.NOT_FOUND,
    EnvelopeStatus.FAILED.value: EnvelopeStatus.FAILED,
}


def _non_empty(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class Envelope:
    """Normalized view of a Mber response.

    Attributes:
        status: Classified outcome.
        error: Error message; always set unless status is SUCCESS.
        payload: Raw JSON object returned by the service (or built locally).
    """

    status: EnvelopeStatus
    error: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    # === Construction ===

    @classmethod
    def parse(cls, body: str) -> Envelope:
        """Classify a raw response body.

        Bodies that aren't JSON objects, or that lack a ``status`` field,
        are Failed. Non-success envelopes take their error from ``error``,
        then ``message``, then ``invalid`` (as "Invalid X"), then the raw
        body itself.

        Args:
            body: Raw HTTP response body.

        Returns:
            Parsed envelope. Never raises.
        """
        try:
            data = json.loads(body)
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return cls.failed(body.strip() or EMPTY_RESPONSE)

        raw_status = data.get("status")
        status = EnvelopeStatus.FAILED
        if isinstance(raw_status, str):
            status = _REMOTE_STATUSES.get(raw_status, EnvelopeStatus.FAILED)
        if raw_status is None:
            data["status"] = EnvelopeStatus.FAILED.value
        if status is EnvelopeStatus.SUCCESS:
            return cls(status=status, error=None, payload=data)

        error = _non_empty(data, "error") or _non_empty(data, "message")
        if error is None:
            invalid = _non_empty(data, "invalid")
            if invalid is not None:
                error = f"Invalid {invalid}"
        if error is None:
            error = body.strip() or EMPTY_RESPONSE
        data["error"] = error
        return cls(status=status, error=error, payload=data)

    @classmethod
    def success(cls, **fields: Any) -> Envelope:
        """Build a local success envelope carrying extra fields."""
        payload = {"status": EnvelopeStatus.SUCCESS.value, **fields}
        return cls(status=EnvelopeStatus.SUCCESS, payload=payload)

    @classmethod
    def failed(cls, error: str, **fields: Any) -> Envelope:
        """Build a local failure envelope."""
        error = error or EnvelopeStatus.FAILED.value
        payload = {"status": EnvelopeStatus.FAILED.value, "error": error, **fields}
        return cls(status=EnvelopeStatus.FAILED, error=error, payload=payload)

    @classmethod
    def aborted(cls, error: str = "Cancelled") -> Envelope:
        """Build an envelope for a cancelled operation."""
        error = error or "Cancelled"
        payload = {"status": EnvelopeStatus.ABORTED.value, "error": error}
        return cls(status=EnvelopeStatus.ABORTED, error=error, payload=payload)

    @classmethod
    def from_exception(cls, exc: BaseException) -> Envelope:
        """Build a failure envelope describing an exception."""
        return cls.failed(str(exc) or type(exc).__name__)

    def with_fields(self, **fields: Any) -> Envelope:
        """Copy this envelope with extra payload fields."""
        return Envelope(self.status, self.error, {**self.payload, **fields})

    def as_success(self, **fields: Any) -> Envelope:
        """Copy this envelope as a success, dropping any error."""
        payload = {k: v for k, v in self.payload.items() if k != "error"}
        payload.update(fields)
        payload["status"] = EnvelopeStatus.SUCCESS.value
        return Envelope(EnvelopeStatus.SUCCESS, None, payload)

    # === Status checks ===

    @property
    def is_success(self) -> bool:
        return self.status is EnvelopeStatus.SUCCESS

    @property
    def is_duplicate(self) -> bool:
        return self.status is EnvelopeStatus.DUPLICATE

    @property
    def is_not_found(self) -> bool:
        return self.status is EnvelopeStatus.NOT_FOUND

    @property
    def is_failed(self) -> bool:
        return self.status is EnvelopeStatus.FAILED

    @property
    def is_aborted(self) -> bool:
        return self.status is EnvelopeStatus.ABORTED

    # === Payload access ===

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def get_str(self, key: str) -> str:
        """Get a string field, or "" if it is missing or null."""
        value = self.payload.get(key)
        return "" if value is None else str(value)

    def get_object(self, key: str) -> dict[str, Any]:
        """Get a nested object, or {} if it is missing or not an object."""
        value = self.payload.get(key)
        return value if isinstance(value, dict) else {}

    def get_list(self, key: str) -> list[Any]:
        """Get a nested array, or [] if it is missing or not an array."""
        value = self.payload.get(key)
        return value if isinstance(value, list) else []

    def to_json(self) -> str:
        return json.dumps(self.payload)

    def __str__(self) -> str:
        if self.error:
            return f"{self.status.value}: {self.error}"
        return self.status.value
