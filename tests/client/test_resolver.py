"""Tests for the resource resolver."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from mberclient.client.resolver import (
    BUILD,
    DIRECTORY,
    DOCUMENT_LINK,
    PROJECT,
    ResourceResolver,
    extract_id,
    normalize_path,
)
from mberclient.client.envelope import Envelope
from mberclient.client.session import SessionState
from mberclient.client.transport import RemoteCall
from mberclient.core.types import BuildStatus

BASE = "http://mber.test/"
APP_ID = "AppAppAppAppAppAppApp1"


class FakeTransport:
    """Transport double answering calls from a queue of JSON bodies."""

    def __init__(self, *responses: dict[str, Any] | str) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def _answer(self, method: str, url: str, data: Any) -> RemoteCall:
        self.calls.append((method, url, dict(data or {})))
        if not self._responses:
            raise AssertionError(f"Unexpected call: {method} {url}")
        response = self._responses.pop(0)
        body = response if isinstance(response, str) else json.dumps(response)
        return RemoteCall(method, url, 200, body)

    def get(self, url: str, args: Any = None) -> RemoteCall:
        return self._answer("GET", url, args)

    def delete(self, url: str, args: Any = None) -> RemoteCall:
        return self._answer("DELETE", url, args)

    def post(self, url: str, data: Any) -> RemoteCall:
        return self._answer("POST", url, data)

    def put(self, url: str, data: Any) -> RemoteCall:
        return self._answer("PUT", url, data)

    @property
    def urls(self) -> list[str]:
        return [f"{method} {url}" for method, url, _ in self.calls]


def make_resolver(
    *responses: dict[str, Any] | str, application: str = "game"
) -> tuple[ResourceResolver, FakeTransport, SessionState]:
    transport = FakeTransport(*responses)
    session = SessionState(url=BASE, application=application)
    session.apply_login({"access_token": "tok", "applicationId": APP_ID})
    return ResourceResolver(transport, session), transport, session  # type: ignore[arg-type]


class TestHelpers:
    """Tests for module level helpers."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [("a/b/c", "a/b/c"), ("/a//b///c/", "a/b/c"), ("//", ""), ("", "")],
    )
    def test_normalize_path(self, path: str, expected: str) -> None:
        """Should collapse slashes and strip the ends."""
        assert normalize_path(path) == expected

    def test_extract_id(self) -> None:
        """Should find ids at the top level or under result."""
        assert extract_id(Envelope.success(directoryId="d1"), "directoryId") == "d1"
        assert extract_id(Envelope.success(result={"directoryId": "d2"}), "directoryId") == "d2"
        assert extract_id(Envelope.success(), "directoryId") == ""


class TestRequest:
    """Tests for ResourceResolver.request."""

    def test_builds_url_from_session(self) -> None:
        """Should resolve the service path and encode the resource."""
        resolver, transport, _ = make_resolver({"status": "Success"})
        resolver.request("GET", "service/json/data/directory", "'a/b/", {"access_token": "tok"})
        assert transport.urls == ["GET http://mber.test/service/json/data/directory/'a%2Fb%2F"]

    def test_invalid_url(self) -> None:
        """Should fail without calling the transport."""
        transport = FakeTransport()
        resolver = ResourceResolver(transport, SessionState(url="not a url", application="game"))  # type: ignore[arg-type]
        envelope = resolver.request("GET", "jsdl")
        assert envelope.is_failed
        assert envelope.error == "Invalid Mber URL: not a url"
        assert transport.calls == []

    def test_transport_error(self) -> None:
        """Should turn network errors into Failed envelopes."""
        transport = MagicMock()
        transport.post.side_effect = httpx.ConnectError("Name or service not known")
        resolver = ResourceResolver(transport, SessionState(url=BASE, application="game"))
        envelope = resolver.request("POST", "service/json/build/project", data={})
        assert envelope.is_failed
        assert envelope.error == "Name or service not known"

    def test_malformed_body(self) -> None:
        """Should report non-JSON bodies as Failed."""
        resolver, _, _ = make_resolver("<html>Bad Gateway</html>")
        envelope = resolver.request("GET", "jsdl")
        assert envelope.error == "<html>Bad Gateway</html>"


class TestLogin:
    """Tests for ResourceResolver.login."""

    def test_login_sets_session(self) -> None:
        """Should log in with the canonical application id."""
        resolver, transport, session = make_resolver(
            {"status": "Success", "access_token": "new", "applicationId": "app2"}
        )
        envelope = resolver.login("builder", "secret")

        assert envelope.is_success
        assert session.access_token == "new"
        assert session.application_id == "app2"
        method, url, data = transport.calls[0]
        assert url == "http://mber.test/service/json/oauth/accesstoken/"
        assert data["client_id"] == "'game"
        assert data["grant_type"] == "password"
        assert data["transactionId"]

    def test_failed_login_clears_session(self) -> None:
        """Should clear the token when login fails."""
        resolver, transport, session = make_resolver({"status": "Failed", "invalid": "password"})
        envelope = resolver.login("builder", "wrong")

        assert envelope.error == "Invalid password"
        assert not session.is_logged_in
        assert len(transport.calls) == 1

    def test_uuid_shaped_alias_fallback(self) -> None:
        """Should retry as an alias when a UUID-shaped id fails."""
        application = "nightly_builds_for_win"
        resolver, transport, session = make_resolver(
            {"status": "Failed", "error": "Unknown client"},
            {"status": "Success", "access_token": "t2", "applicationId": "app"},
            application=application,
        )
        envelope = resolver.login("builder", "secret")

        assert envelope.is_success
        assert [data["client_id"] for _, _, data in transport.calls] == [
            application,
            "'" + application,
        ]
        assert session.access_token == "t2"


class TestResolveOrCreate:
    """Tests for the create-or-find protocol."""

    def test_created(self) -> None:
        """Should return the id from a successful create."""
        resolver, transport, _ = make_resolver({"status": "Success", "directoryId": "d1"})
        envelope = resolver.resolve_or_create(DIRECTORY, "docs", alias="docs/", parent=APP_ID)

        assert envelope.get("directoryId") == "d1"
        _, url, data = transport.calls[0]
        assert url == "http://mber.test/service/json/data/directory/"
        assert data["name"] == "docs"
        assert data["alias"] == "docs/"
        assert data["parent"] == APP_ID
        assert data["access_token"] == "tok"

    def test_created_without_id(self) -> None:
        """Should not report success when the id is missing."""
        resolver, _, _ = make_resolver({"status": "Success"})
        envelope = resolver.resolve_or_create(DIRECTORY, "docs", alias="docs/", parent=APP_ID)

        assert envelope.is_failed
        assert envelope.error == "Created directory docs but the response had no directoryId"

    def test_duplicate_read_by_alias(self) -> None:
        """Should read the existing resource by its alias."""
        resolver, transport, _ = make_resolver(
            {"status": "Duplicate"},
            {"status": "Success", "result": {"directoryId": "d1"}},
        )
        envelope = resolver.resolve_or_create(DIRECTORY, "docs", alias="docs/", parent=APP_ID)

        assert envelope.is_success
        assert envelope.get("directoryId") == "d1"
        assert transport.urls[1] == "GET http://mber.test/service/json/data/directory/'docs%2F"

    def test_duplicate_legacy_alias(self) -> None:
        """Should try the double tick alias of old directories."""
        resolver, transport, _ = make_resolver(
            {"status": "Duplicate"},
            {"status": "NotFound"},
            {"status": "Success", "result": {"directoryId": "old"}},
        )
        envelope = resolver.resolve_or_create(DIRECTORY, "docs", alias="docs/", parent=APP_ID)

        assert envelope.get("directoryId") == "old"
        assert transport.urls[2] == "GET http://mber.test/service/json/data/directory/''docs%2F"

    def test_duplicate_found_by_listing(self) -> None:
        """Should list the parent and match the name exactly."""
        resolver, transport, _ = make_resolver(
            {"status": "Duplicate"},
            {"status": "NotFound"},
            {"status": "NotFound"},
            {
                "status": "Success",
                "result": {
                    "directories": [
                        {"name": "Docs", "directoryId": "wrong"},
                        {"name": "docs", "directoryId": "d9"},
                    ]
                },
            },
        )
        envelope = resolver.resolve_or_create(DIRECTORY, "docs", alias="docs/", parent=APP_ID)

        assert envelope.is_success
        assert envelope.get("directoryId") == "d9"
        assert transport.urls[3] == f"GET http://mber.test/service/json/data/directory/{APP_ID}"

    def test_duplicate_not_found(self) -> None:
        """Should fail distinctly when the duplicate can't be found."""
        resolver, _, _ = make_resolver(
            {"status": "Duplicate"},
            {"status": "NotFound"},
            {"status": "NotFound"},
            {"status": "Success", "result": {"directories": []}},
        )
        envelope = resolver.resolve_or_create(DIRECTORY, "docs", alias="docs/", parent=APP_ID)

        assert envelope.is_failed
        assert envelope.error == "Directory docs was not created and was not found"

    def test_create_failure_passes_through(self) -> None:
        """Should return create failures so callers can retry them."""
        resolver, transport, _ = make_resolver({"status": "Failed", "message": "Token expired"})
        envelope = resolver.resolve_or_create(DIRECTORY, "docs", alias="docs/", parent=APP_ID)

        assert envelope.error == "Token expired"
        assert len(transport.calls) == 1

    def test_document_link_lists_documents(self) -> None:
        """Should match document links against the directory's documents."""
        resolver, _, _ = make_resolver(
            {"status": "Duplicate"},
            {"status": "Success", "result": {"documents": [{"name": "log.txt", "documentId": "doc1"}]}},
        )
        envelope = resolver.resolve_or_create(DOCUMENT_LINK, "log.txt", parent="d1")
        assert envelope.get("documentId") == "doc1"


class TestMakePath:
    """Tests for ResourceResolver.make_path."""

    def test_cumulative_aliases(self) -> None:
        """Should create each folder under the previous one."""
        resolver, transport, _ = make_resolver(
            {"status": "Success", "directoryId": "d_a"},
            {"status": "Success", "directoryId": "d_b"},
            {"status": "Success", "directoryId": "d_c"},
        )
        envelope = resolver.make_path("a/b/c")

        assert envelope.get("directoryId") == "d_c"
        assert len(transport.calls) == 3
        assert [data["alias"] for _, _, data in transport.calls] == ["a/", "a/b/", "a/b/c/"]
        assert [data["parent"] for _, _, data in transport.calls] == [APP_ID, "d_a", "d_b"]

    def test_normalizes_slashes(self) -> None:
        """Should ignore leading, trailing and repeated slashes."""
        resolver, transport, _ = make_resolver(
            {"status": "Success", "directoryId": "d_a"},
            {"status": "Success", "directoryId": "d_b"},
        )
        resolver.make_path("//a///b/")
        assert [data["name"] for _, _, data in transport.calls] == ["a", "b"]

    def test_stops_at_first_failure(self) -> None:
        """Should stop and keep the folders already created."""
        resolver, transport, _ = make_resolver(
            {"status": "Success", "directoryId": "d_a"},
            {"status": "Failed", "error": "Invalid name"},
        )
        envelope = resolver.make_path("a/b/c")

        assert envelope.error == "Invalid name"
        assert len(transport.calls) == 2
        assert all(method == "POST" for method, _, _ in transport.calls)

    def test_empty_path_is_root(self) -> None:
        """Should resolve an empty path to the application root."""
        resolver, transport, _ = make_resolver()
        envelope = resolver.make_path("/")
        assert envelope.get("directoryId") == APP_ID
        assert transport.calls == []


class TestProjectsAndBuilds:
    """Tests for project and build provisioning."""

    def test_make_project(self) -> None:
        """Should alias the project by its name and remember its id."""
        resolver, transport, session = make_resolver({"status": "Success", "projectId": "p1"})
        resolver.make_project("game", "The game")

        _, url, data = transport.calls[0]
        assert url == "http://mber.test/service/json/build/project/"
        assert data["alias"] == "game"
        assert data["description"] == "The game"
        assert session.project_id == "p1"

    def test_make_project_duplicate(self) -> None:
        """Should find existing projects by alias, or by name when unaliased."""
        resolver, transport, session = make_resolver(
            {"status": "Duplicate"},
            {
                "status": "Success",
                "results": [
                    {"alias": "other", "name": "game", "projectId": "p0"},
                    {"alias": "game", "name": "Game", "projectId": "p1"},
                ],
            },
        )
        envelope = resolver.make_project("game")

        assert envelope.is_success
        assert session.project_id == "p1"
        assert transport.urls[1] == "GET http://mber.test/service/json/build/project/"
        assert "description" not in transport.calls[0][2]

    def test_failed_project_clears_id(self) -> None:
        """Should clear the session's project when resolution fails."""
        resolver, _, session = make_resolver({"status": "Failed", "error": "nope"})
        session.set_or_clear_project_id({"projectId": "stale"})
        resolver.make_project("game")
        assert session.project_id == ""

    def test_make_build(self) -> None:
        """Should create the build in the session's project."""
        resolver, transport, session = make_resolver({"status": "Success", "buildId": "b1"})
        session.set_or_clear_project_id({"projectId": "p1"})

        resolver.make_build("12", None, "job-12", BuildStatus.RUNNING)

        _, url, data = transport.calls[0]
        assert url == "http://mber.test/service/json/build/build/"
        assert data["projectId"] == "p1"
        assert data["alias"] == "job-12"
        assert data["status"] == ["Running"]
        assert session.build_id == "b1"
        assert session.build_alias == "job-12"

    def test_make_build_without_alias(self) -> None:
        """Should not send an empty alias."""
        resolver, transport, _ = make_resolver({"status": "Success", "buildId": "b1"})
        resolver.make_build("12", "", "")
        assert "alias" not in transport.calls[0][2]

    def test_update_build_accumulates_status(self) -> None:
        """Should send every status recorded in the session."""
        resolver, transport, session = make_resolver(
            {"status": "Success", "buildId": "b1"},
            {"status": "Success"},
        )
        resolver.make_build("12", None, "job-12", BuildStatus.RUNNING)
        resolver.update_build("12", "done", BuildStatus.COMPLETED, BuildStatus.SUCCESS)

        method, url, data = transport.calls[1]
        assert method == "PUT"
        assert url == "http://mber.test/service/json/build/build/b1"
        assert data["status"] == ["Running", "Completed", "Success"]
        assert data["alias"] == "job-12"
        assert data["buildId"] == "b1"
        assert data["description"] == "done"

    def test_set_build_directory(self) -> None:
        """Should attach the directory to the build."""
        resolver, transport, session = make_resolver({"status": "Success"})
        session.set_or_clear_build_id({"buildId": "b1"})
        resolver.set_build_directory("d1")
        assert transport.calls[0][2]["directoryIds"] == ["d1"]

    def test_update_without_build(self) -> None:
        """Should fail when no build was created."""
        resolver, transport, _ = make_resolver()
        envelope = resolver.update_build("12")
        assert envelope.is_failed
        assert transport.calls == []

    def test_build_kind_reads_by_alias(self) -> None:
        """Should look duplicate builds up by alias."""
        resolver, transport, session = make_resolver(
            {"status": "Duplicate"},
            {"status": "Success", "result": {"buildId": "b7"}},
        )
        resolver.resolve_or_create(BUILD, "12", alias="job-12")
        assert transport.urls[1] == "GET http://mber.test/service/json/build/build/'job-12"


class TestDocuments:
    """Tests for document lookups."""

    def test_find_duplicate(self) -> None:
        """Should return the id of the document with exactly that name."""
        resolver, _, _ = make_resolver(
            {
                "status": "Success",
                "result": {
                    "documents": [
                        {"name": "build.zip.bak", "documentId": "x"},
                        {"name": "build.zip", "documentId": "doc1"},
                    ]
                },
            }
        )
        envelope = resolver.find_duplicate("d1", "build.zip")
        assert envelope.get("documentId") == "doc1"

    def test_find_duplicate_missing(self) -> None:
        """Should fail distinctly when nothing matches."""
        resolver, _, _ = make_resolver({"status": "Success", "result": {"documents": []}})
        envelope = resolver.find_duplicate("d1", "build.zip")
        assert envelope.is_failed
        assert "no matching entry was found" in (envelope.error or "")

    def test_read_document(self) -> None:
        """Should read documents by alias."""
        resolver, transport, _ = make_resolver({"status": "Success", "result": {}})
        resolver.read_document("latest build")
        assert transport.urls == [
            "GET http://mber.test/service/json/data/document/'latest%20build"
        ]

    def test_find_documents_with_tags(self) -> None:
        """Should send the tags as a list."""
        resolver, transport, _ = make_resolver({"status": "Success", "results": []})
        resolver.find_documents_with_tags(["nightly", "win64"])
        method, url, args = transport.calls[0]
        assert url == "http://mber.test/service/json/data/document"
        assert args["tags"] == ["nightly", "win64"]

    def test_list_directories(self) -> None:
        """Should map subdirectory names to ids."""
        resolver, _, _ = make_resolver(
            {"status": "Success", "result": {"directories": [{"name": "a", "directoryId": "d_a"}]}}
        )
        assert resolver.list_directories(APP_ID) == {"a": "d_a"}

    def test_read_directory(self) -> None:
        """Should read directories by alias or id."""
        resolver, transport, _ = make_resolver(
            {"status": "Success", "result": {}}, {"status": "Success", "result": {}}
        )
        resolver.read_directory("builds/")
        resolver.read_directory(APP_ID)
        assert transport.urls == [
            "GET http://mber.test/service/json/data/directory/'builds%2F",
            f"GET http://mber.test/service/json/data/directory/{APP_ID}",
        ]

    def test_list_projects(self) -> None:
        """Should skip projects without an id."""
        resolver, _, _ = make_resolver(
            {
                "status": "Success",
                "results": [{"name": "game", "projectId": "p1"}, {"name": "broken"}],
            }
        )
        assert resolver.list_projects() == {"game": "p1"}


class TestTestResults:
    """Tests for test result publishing and metrics."""

    def test_publish_test_results(self) -> None:
        """Should publish the known counters as a permanent event."""
        resolver, transport, session = make_resolver({"status": "Success"})
        session.set_or_clear_build_id({"buildId": "b1"})

        resolver.publish_test_results({"passCount": 10, "failCount": 2, "duration": 3.5})

        _, url, event = transport.calls[0]
        assert url == "http://mber.test/service/json/eventstream/appevent/"
        assert event["countFields"] == [
            {"name": "failCount", "count": 2},
            {"name": "passCount", "count": 10},
        ]
        assert event["historicalIds"] == ["b1"]
        assert event["applicationId"] == APP_ID
        assert event["permanent"] is True

    def test_get_build_count_since(self) -> None:
        """Should query the event counter in milliseconds."""
        resolver, transport, _ = make_resolver({"status": "Success"})
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)

        resolver.get_build_count_since("game", start)

        _, url, args = transport.calls[0]
        assert url == "http://mber.test/service/json/metrics/countovertime/"
        assert args["eventName"] == "AppEvent.tests.game"
        assert args["startDate"] == 1704067200000

    def test_kinds_are_distinct(self) -> None:
        """Should describe each kind with its own id field."""
        assert {k.id_field for k in (DIRECTORY, PROJECT, BUILD, DOCUMENT_LINK)} == {
            "directoryId",
            "projectId",
            "buildId",
            "documentId",
        }
