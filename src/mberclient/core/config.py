"""Shared configuration classes for mberclient.

This module defines the connection settings used by the HTTP transport,
the file transfer engine and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_URL = "https://member.firepub.net/"
DEFAULT_API_VERSION = "2.0.x"


@dataclass
class ServerConfig:
    """Configuration for connecting to a Mber service.

    Used by both the JSON transport (HTTPTransport) and the file
    downloader so that every request goes out with the same settings.

    Attributes:
        url: Base URL of the service (e.g., "https://member.firepub.net/").
        application: Application alias or UUID the session logs into.
        timeout: Request/connection timeout in seconds.
        api_version: Value of the REST-API-Version header sent on every request.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    url: str
    application: str
    timeout: float = 30.0
    api_version: str = DEFAULT_API_VERSION
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize the service URL."""
        self.url = self.url.strip() or DEFAULT_URL

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if the service uses HTTPS.
        """
        return self.url.startswith("https://")


@dataclass
class AccessProfile:
    """Named set of credentials for one Mber application.

    Credentials are held in plain text; storing them safely is up to
    whoever persists the profile.
    """

    name: str
    application: str
    username: str
    password: str
    url: str = DEFAULT_URL

    def __post_init__(self) -> None:
        if not self.url:
            self.url = DEFAULT_URL

    def server_config(self, timeout: float = 30.0) -> ServerConfig:
        """Build the ServerConfig for this profile."""
        return ServerConfig(url=self.url, application=self.application, timeout=timeout)

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "application": self.application,
            "username": self.username,
            "password": self.password,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> AccessProfile:
        """Create from a config file entry."""
        return cls(
            name=data["name"],
            application=data["application"],
            username=data["username"],
            password=data.get("password", ""),
            url=data.get("url") or DEFAULT_URL,
        )
