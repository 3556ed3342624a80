"""Core module - Shared configuration and types."""

from mberclient.core.config import (
    DEFAULT_API_VERSION,
    DEFAULT_URL,
    AccessProfile,
    ServerConfig,
)
from mberclient.core.types import BuildStatus

__all__ = [
    # Config
    "AccessProfile",
    "DEFAULT_API_VERSION",
    "DEFAULT_URL",
    "ServerConfig",
    # Types
    "BuildStatus",
]
