"""Configuration utilities for the mber CLI.

This module provides shared configuration functions used across CLI commands:
access profiles in ~/.mber/config.json and the logged in session in
~/.mber/session.json.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mberclient.core.config import AccessProfile


def get_config_dir() -> Path:
    """Get the configuration directory for mber.

    Returns:
        Path to ~/.mber or equivalent.
    """
    return Path.home() / ".mber"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_session_file() -> Path:
    """Get the path to the session handoff file."""
    return get_config_dir() / "session.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_profile(name: str) -> AccessProfile | None:
    """Get an access profile by name.

    Returns:
        The profile, or None if no profile has that name.
    """
    data = load_config().get("profiles", {}).get(name)
    if not data:
        return None
    return AccessProfile.from_dict(data)


def save_profile(profile: AccessProfile) -> None:
    """Add or replace an access profile."""
    config = load_config()
    config.setdefault("profiles", {})[profile.name] = profile.to_dict()
    save_config(config)


def list_profiles() -> list[str]:
    return sorted(load_config().get("profiles", {}))


def load_session() -> dict[str, Any] | None:
    """Load the session written by the last login.

    Returns:
        Session in handoff format, or None if nobody is logged in.
    """
    session_file = get_session_file()
    if not session_file.exists():
        return None
    return dict(json.loads(session_file.read_text()))


def save_session(session: dict[str, Any]) -> None:
    """Write the session for the next command to pick up."""
    session_file = get_session_file()
    session_file.parent.mkdir(parents=True, exist_ok=True)
    session_file.write_text(json.dumps(session, indent=2))


def clear_session() -> bool:
    """Delete the session file.

    Returns:
        True if there was a session to delete.
    """
    session_file = get_session_file()
    if not session_file.exists():
        return False
    session_file.unlink()
    return True
