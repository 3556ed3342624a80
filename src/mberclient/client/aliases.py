"""Alias and UUID canonicalization.

Mber addresses every resource either by its primary key, a 22 character
URL-safe token, or by an alias prefixed with a single tick. Human names
are always sent as aliases because the service matches names exactly.

This module provides:
- is_alias / is_uuid: Shape checks
- make_alias: Unconditional tick prefix
- resolve_alias_or_uuid: Canonical identifier for a user-supplied value
- generate_transaction_id: Per-request idempotency token
"""

from __future__ import annotations

import base64
import re
import uuid

ALIAS_SENTINEL = "'"

_UUID_RE = re.compile(r"^[A-Za-z0-9_-]{22}$")


def is_alias(value: str) -> bool:
    """Check if a value is already alias-prefixed."""
    return value.startswith(ALIAS_SENTINEL)


def is_uuid(value: str) -> bool:
    """Check if a value has the shape of a Mber primary key."""
    return _UUID_RE.match(value) is not None


def make_alias(value: str) -> str:
    """Prefix a value with the alias sentinel.

    This does not check for an existing prefix. Use resolve_alias_or_uuid
    for user-supplied values.
    """
    return ALIAS_SENTINEL + value


def resolve_alias_or_uuid(value: str) -> str:
    """Turn a user-supplied identifier into the form the service expects.

    Aliases and UUIDs pass through unchanged, anything else becomes an
    alias. Applying this to its own output is a no-op.

    Args:
        value: Name, alias or UUID.

    Returns:
        Canonical identifier.
    """
    if is_alias(value):
        return value
    if is_uuid(value):
        return value
    return make_alias(value)


def generate_transaction_id() -> str:
    """Generate a transaction id for a write request.

    Returns:
        Base64 encoding of 16 random bytes.
    """
    return base64.b64encode(uuid.uuid4().bytes).decode("ascii")
