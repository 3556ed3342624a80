"""Tests for core configuration classes."""

from __future__ import annotations

from mberclient.core.config import DEFAULT_URL, AccessProfile, ServerConfig
from mberclient.core.types import BuildStatus


class TestServerConfig:
    """Tests for ServerConfig class."""

    def test_init_basic(self) -> None:
        """Should initialize with required fields."""
        config = ServerConfig(url="https://mber.example.com/", application="game")
        assert config.url == "https://mber.example.com/"
        assert config.application == "game"
        assert config.timeout == 30.0
        assert config.api_version == "2.0.x"
        assert config.verify_ssl is True

    def test_init_custom_timeout(self) -> None:
        """Should accept custom timeout."""
        config = ServerConfig(url="https://mber.example.com", application="game", timeout=60.0)
        assert config.timeout == 60.0

    def test_blank_url_uses_default(self) -> None:
        """Should fall back to the public service URL."""
        config = ServerConfig(url="  ", application="game")
        assert config.url == DEFAULT_URL

    def test_url_whitespace_stripped(self) -> None:
        """Should strip surrounding whitespace from the URL."""
        config = ServerConfig(url=" http://localhost:8080 ", application="game")
        assert config.url == "http://localhost:8080"

    def test_is_secure_https(self) -> None:
        """Should return True for HTTPS URLs."""
        config = ServerConfig(url="https://mber.example.com", application="game")
        assert config.is_secure is True

    def test_is_secure_http(self) -> None:
        """Should return False for HTTP URLs."""
        config = ServerConfig(url="http://localhost:8080", application="game")
        assert config.is_secure is False


class TestAccessProfile:
    """Tests for AccessProfile class."""

    def test_dict_round_trip(self) -> None:
        """Should survive to_dict/from_dict."""
        profile = AccessProfile(
            name="ci",
            application="game",
            username="builder",
            password="secret",
            url="http://localhost:8080/",
        )
        assert AccessProfile.from_dict(profile.to_dict()) == profile

    def test_missing_url_uses_default(self) -> None:
        """Should default the URL when a config entry has none."""
        profile = AccessProfile.from_dict(
            {"name": "ci", "application": "game", "username": "builder"}
        )
        assert profile.url == DEFAULT_URL
        assert profile.password == ""

    def test_server_config(self) -> None:
        """Should build a ServerConfig for its application."""
        profile = AccessProfile(
            name="ci", application="game", username="u", password="p", url="http://h/"
        )
        config = profile.server_config(timeout=5.0)
        assert config.url == "http://h/"
        assert config.application == "game"
        assert config.timeout == 5.0


class TestBuildStatus:
    """Tests for BuildStatus enum."""

    def test_str_is_wire_value(self) -> None:
        """Should render as the value the service expects."""
        assert str(BuildStatus.RUNNING) == "Running"
        assert f"{BuildStatus.FAILURE}" == "Failure"
