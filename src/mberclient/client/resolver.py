"""Create-or-find resolution of Mber resources.

Creating a resource on Mber is not idempotent: the resource may already
exist, another process may be creating it at the same time, or it may
have been created under an older alias format. ResourceResolver turns
"create X" into a single outcome: Success with an id, or Failed.

Every method makes single attempts. Retrying is the caller's job (see
retry.retry_envelope).

This module provides:
- ResourceKind: Descriptor of one kind of resource (endpoints, id field)
- DIRECTORY, PROJECT, BUILD, DOCUMENT_LINK: The supported kinds
- ResourceResolver: Login, resolve-or-create, make_path and friends
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from mberclient.client.aliases import (
    generate_transaction_id,
    is_uuid,
    make_alias,
    resolve_alias_or_uuid,
)
from mberclient.client.envelope import Envelope
from mberclient.client.errors import InvalidURLError
from mberclient.client.session import SessionState
from mberclient.client.transport import (
    TRANSPORT_ERRORS,
    base_url_with_path,
    encode_uri_component,
)
from mberclient.core.types import BuildStatus

if TYPE_CHECKING:
    from mberclient.client.transport import HTTPTransport, RemoteCall

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "service/json/oauth/accesstoken"
DIRECTORY_ENDPOINT = "service/json/data/directory"
DOCUMENT_SERVICE = "service/json/data"
EVENT_ENDPOINT = "service/json/eventstream/appevent"
METRICS_ENDPOINT = "service/json/metrics/countovertime"

TEST_COUNT_FIELDS = ("failCount", "skipCount", "passCount", "totalCount")


@dataclass(frozen=True)
class ResourceKind:
    """How to create, read and list one kind of resource.

    Attributes:
        name: Human readable kind, used in error messages.
        endpoint: Create (POST) and update (PUT <endpoint>/<id>) endpoint.
        id_field: Response field holding the new resource's id.
        parent_field: Request field naming the parent, if any.
        read_endpoint: Endpoint for reads by alias, or None if unsupported.
        list_endpoint: Endpoint listing candidates for a name match.
        list_in_parent: Whether the listing is of the parent directory.
        list_path: Keys leading to the array of entries in a listing.
        match_keys: Entry fields compared with the name; the first one
            present on an entry decides.
        legacy_alias: Whether old resources may carry a double tick alias.
    """

    name: str
    endpoint: str
    id_field: str
    parent_field: str | None = None
    read_endpoint: str | None = None
    list_endpoint: str | None = None
    list_in_parent: bool = False
    list_path: tuple[str, ...] = ()
    match_keys: tuple[str, ...] = ("name",)
    legacy_alias: bool = False


DIRECTORY = ResourceKind(
    name="directory",
    endpoint=DIRECTORY_ENDPOINT,
    id_field="directoryId",
    parent_field="parent",
    read_endpoint=DIRECTORY_ENDPOINT,
    list_endpoint=DIRECTORY_ENDPOINT,
    list_in_parent=True,
    list_path=("result", "directories"),
    legacy_alias=True,
)

PROJECT = ResourceKind(
    name="project",
    endpoint="service/json/build/project",
    id_field="projectId",
    list_endpoint="service/json/build/project",
    list_path=("results",),
    match_keys=("alias", "name"),
)

BUILD = ResourceKind(
    name="build",
    endpoint="service/json/build/build",
    id_field="buildId",
    read_endpoint="service/json/build/build",
)

DOCUMENT_LINK = ResourceKind(
    name="document link",
    endpoint="service/json/data/documentlink",
    id_field="documentId",
    parent_field="directoryId",
    list_endpoint=DIRECTORY_ENDPOINT,
    list_in_parent=True,
    list_path=("result", "documents"),
)


def extract_id(envelope: Envelope, id_field: str) -> str:
    """Get an id from a create or read response.

    Creates return the id at the top level, reads nest it under "result".
    """
    value = envelope.get_str(id_field)
    if value:
        return value
    nested = envelope.get_object("result").get(id_field)
    return "" if nested is None else str(nested)


def _entries(envelope: Envelope, path: tuple[str, ...]) -> list[dict[str, Any]]:
    node: Any = envelope.payload
    for key in path:
        if not isinstance(node, dict):
            return []
        node = node.get(key)
    if not isinstance(node, list):
        return []
    return [entry for entry in node if isinstance(entry, dict)]


def _entry_name(entry: Mapping[str, Any], match_keys: tuple[str, ...]) -> str | None:
    for key in match_keys:
        if key in entry:
            return str(entry[key])
    return None


def normalize_path(path: str) -> str:
    """Collapse repeated slashes and strip the leading and trailing one."""
    while "//" in path:
        path = path.replace("//", "/")
    return path.strip("/")


class ResourceResolver:
    """Resolves and creates Mber resources for one session.

    The resolver reads and updates the SessionState it is given: logins
    set the access token, make_project and make_build set their ids.
    """

    def __init__(self, transport: HTTPTransport, session: SessionState) -> None:
        """Initialize the resolver.

        Args:
            transport: Transport for the JSON calls.
            session: Session state to read and update.
        """
        self._transport = transport
        self._session = session

    @property
    def session(self) -> SessionState:
        return self._session

    # === Requests ===

    def request(
        self,
        method: str,
        service: str,
        resource: str = "",
        data: Mapping[str, Any] | None = None,
    ) -> Envelope:
        """Make one JSON call and classify its response.

        The URL is the service path resolved against the session URL,
        followed by the percent-encoded resource.

        Args:
            method: "GET", "POST", "PUT" or "DELETE".
            service: API path, e.g. "service/json/data/directory".
            resource: Resource id appended to the path.
            data: Query arguments for GET/DELETE, JSON body otherwise.

        Returns:
            Parsed envelope. Transport errors become Failed envelopes.
        """
        try:
            url = base_url_with_path(self._session.url, service)
            url += encode_uri_component(resource)
            call = self._send(method, url, data or {})
        except InvalidURLError as e:
            return Envelope.failed(str(e))
        except TRANSPORT_ERRORS as e:
            logger.debug(f"{method} {service} failed: {e}")
            return Envelope.from_exception(e)
        return Envelope.parse(call.body)

    def _send(self, method: str, url: str, data: Mapping[str, Any]) -> RemoteCall:
        if method == "GET":
            return self._transport.get(url, data)
        if method == "DELETE":
            return self._transport.delete(url, data)
        if method == "POST":
            return self._transport.post(url, data)
        if method == "PUT":
            return self._transport.put(url, data)
        raise ValueError(f"Unsupported method: {method}")

    def _auth(self) -> dict[str, Any]:
        return {"access_token": self._session.access_token}

    def signed(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Add the access token and a fresh transaction id to a write request."""
        return {
            **data,
            "access_token": self._session.access_token,
            "transactionId": generate_transaction_id(),
        }

    # === Login ===

    def login(self, username: str, password: str) -> Envelope:
        """Log in to the session's application.

        The application is first addressed in canonical form. If that
        fails and the raw value looks like a UUID, the login is retried
        with the value as an alias, for applications whose alias happens
        to have the UUID shape.

        Returns:
            The login response. The session's token and application id
            are set from it, or cleared if it has none.
        """
        raw = self._session.application
        response = self._login_as(username, password, resolve_alias_or_uuid(raw))
        if response.is_success or not is_uuid(raw):
            return response
        logger.debug(f"Login as {raw} failed, retrying as an alias")
        return self._login_as(username, password, make_alias(raw))

    def _login_as(self, username: str, password: str, client_id: str) -> Envelope:
        data = {
            "username": username,
            "password": password,
            "grant_type": "password",
            "client_id": client_id,
            "transactionId": generate_transaction_id(),
        }
        response = self.request("POST", LOGIN_ENDPOINT, data=data)
        self._session.apply_login(response.payload)
        return response

    # === Generic create-or-find ===

    def create(self, kind: ResourceKind, data: Mapping[str, Any]) -> Envelope:
        """POST a create request for a resource."""
        return self.request("POST", kind.endpoint, data=self.signed(data))

    def update(self, kind: ResourceKind, resource_id: str, data: Mapping[str, Any]) -> Envelope:
        """PUT an update of an existing resource."""
        return self.request("PUT", kind.endpoint, resource_id, self.signed(data))

    def resolve_or_create(
        self,
        kind: ResourceKind,
        name: str,
        fields: Mapping[str, Any] | None = None,
        alias: str | None = None,
        parent: str | None = None,
    ) -> Envelope:
        """Create a resource, or find it if it already exists.

        On Duplicate the resource is looked up by alias (and, for
        directories, by the legacy double tick alias), then by listing
        the candidates and matching the name.

        Args:
            kind: Resource kind.
            name: Resource name.
            fields: Extra request fields.
            alias: Alias to create the resource with.
            parent: Parent id, for kinds that have one.

        Returns:
            Success with ``kind.id_field`` set, or Failed. Failed errors
            tell "not created and not found" apart from "created but the
            id is missing".
        """
        data: dict[str, Any] = {"name": name, **(fields or {})}
        if alias:
            data["alias"] = alias
        if parent is not None and kind.parent_field:
            data[kind.parent_field] = parent

        response = self.create(kind, data)
        if response.is_success:
            resource_id = extract_id(response, kind.id_field)
            if not resource_id:
                return Envelope.failed(
                    f"Created {kind.name} {name} but the response had no {kind.id_field}"
                )
            logger.info(f"Created {kind.name} {name}")
            return response.with_fields(**{kind.id_field: resource_id})
        if not response.is_duplicate:
            return response

        logger.debug(f"{kind.name.capitalize()} {name} already exists, looking it up")
        resource_id = self.find_existing(kind, name, alias=alias, parent=parent)
        if not resource_id:
            return Envelope.failed(
                f"{kind.name.capitalize()} {name} was not created and was not found"
            )
        return response.as_success(**{kind.id_field: resource_id})

    def find_existing(
        self,
        kind: ResourceKind,
        name: str,
        alias: str | None = None,
        parent: str | None = None,
    ) -> str:
        """Find the id of a resource that already exists.

        Returns:
            The id, or "" if every lookup came up empty.
        """
        if alias and kind.read_endpoint:
            candidates = [resolve_alias_or_uuid(alias)]
            if kind.legacy_alias:
                candidates.append(make_alias(make_alias(alias)))
            for candidate in candidates:
                found = self.request("GET", kind.read_endpoint, candidate, self._auth())
                resource_id = extract_id(found, kind.id_field) if found.is_success else ""
                if resource_id:
                    return resource_id

        if kind.list_endpoint is None or (kind.list_in_parent and not parent):
            return ""
        return self._list(kind, parent).get(name, "")

    def _list(self, kind: ResourceKind, parent: str | None = None) -> dict[str, str]:
        if kind.list_endpoint is None:
            return {}
        resource = resolve_alias_or_uuid(parent) if kind.list_in_parent and parent else ""
        response = self.request("GET", kind.list_endpoint, resource, self._auth())
        listing: dict[str, str] = {}
        for entry in _entries(response, kind.list_path):
            entry_name = _entry_name(entry, kind.match_keys)
            entry_id = entry.get(kind.id_field)
            if entry_name is not None and entry_id:
                listing[entry_name] = str(entry_id)
        return listing

    # === Directories ===

    def make_path(self, path: str) -> Envelope:
        """Create a folder path under the application root.

        Each folder gets the cumulative alias of the path down to it
        ("a/", "a/b/", "a/b/c/"), so equal names under different parents
        don't collide. Folders created before a failure are kept.

        Args:
            path: Slash separated folder path.

        Returns:
            Envelope of the last folder, carrying its ``directoryId``, or
            the first failure.
        """
        parent = self._session.application_id
        folders = [folder for folder in normalize_path(path).split("/") if folder]
        if not folders:
            return Envelope.success(directoryId=parent)

        response = Envelope.failed(f"Failed to create folder {path}")
        alias = ""
        for folder in folders:
            alias += folder + "/"
            response = self.resolve_or_create(DIRECTORY, folder, alias=alias, parent=parent)
            if not response.is_success:
                break
            parent = response.get_str(DIRECTORY.id_field)
        return response

    def read_directory(self, alias_or_uuid: str) -> Envelope:
        resource = resolve_alias_or_uuid(alias_or_uuid)
        return self.request("GET", DIRECTORY_ENDPOINT, resource, self._auth())

    def list_directories(self, parent: str) -> dict[str, str]:
        """Map the names of a directory's subdirectories to their ids."""
        return self._list(DIRECTORY, parent)

    def list_documents(self, directory: str) -> dict[str, str]:
        """Map the names of a directory's documents to their ids.

        Mber doesn't allow two documents with the same name in a folder.
        """
        return self._list(DOCUMENT_LINK, directory)

    def find_duplicate(self, directory: str, name: str) -> Envelope:
        """Find the document a Duplicate response was about.

        Returns:
            Success with ``documentId``, or Failed if the directory has no
            document with exactly that name.
        """
        document_id = self.list_documents(directory).get(name)
        if not document_id:
            return Envelope.failed(
                f"Duplicate {name} reported in directory {directory} "
                "but no matching entry was found"
            )
        return Envelope.success(documentId=document_id)

    # === Projects and builds ===

    def list_projects(self) -> dict[str, str]:
        """Map project aliases (or names, when unaliased) to their ids."""
        return self._list(PROJECT)

    def make_project(self, name: str, description: str | None = None) -> Envelope:
        """Create or find the project aliased by name.

        The session's project id is set from the result, or cleared.
        """
        fields = {"description": description} if description else {}
        response = self.resolve_or_create(PROJECT, name, fields, alias=name)
        self._session.set_or_clear_project_id(response.payload)
        return response

    def make_build(
        self,
        name: str,
        description: str | None = None,
        alias: str | None = None,
        *statuses: BuildStatus | str,
    ) -> Envelope:
        """Create or find a build in the session's project.

        The statuses are added to the session's status set and the alias
        is kept for later updates. The session's build id is set from the
        result, or cleared.
        """
        status = self._session.record_build_status(*statuses)
        self._session.set_build_alias(alias)
        fields: dict[str, Any] = {"status": status, "projectId": self._session.project_id}
        if description:
            fields["description"] = description
        response = self.resolve_or_create(BUILD, name, fields, alias=alias or None)
        self._session.set_or_clear_build_id(response.payload)
        return response

    def update_build(
        self,
        name: str,
        description: str | None = None,
        *statuses: BuildStatus | str,
    ) -> Envelope:
        """Rename the session's build and add status tags to it."""
        self._session.record_build_status(*statuses)
        data: dict[str, Any] = {"name": name}
        if description:
            data["description"] = description
        return self._update_build(data)

    def set_build_directory(self, directory_id: str) -> Envelope:
        """Attach a directory to the session's build."""
        return self._update_build({"directoryIds": [directory_id]})

    def _update_build(self, data: dict[str, Any]) -> Envelope:
        build_id = self._session.build_id
        if not build_id:
            return Envelope.failed("No build has been created in this session")
        if self._session.build_alias:
            data["alias"] = self._session.build_alias
        data["buildId"] = build_id
        data["status"] = list(self._session.build_status)
        return self.update(BUILD, build_id, data)

    # === Documents ===

    def read_document(self, alias_or_uuid: str) -> Envelope:
        resource = resolve_alias_or_uuid(alias_or_uuid)
        return self.request("GET", f"{DOCUMENT_SERVICE}/document", resource, self._auth())

    def find_documents_with_tags(self, tags: Iterable[str]) -> Envelope:
        """Search documents carrying all of the given tags."""
        args = {"tags": list(tags), **self._auth()}
        return self.request("GET", DOCUMENT_SERVICE, "document", args)

    # === Test results ===

    def publish_test_results(self, results: Mapping[str, Any]) -> Envelope:
        """Publish a build's test counts as an application event.

        Args:
            results: Mapping with any of failCount, skipCount, passCount
                and totalCount.
        """
        count_fields = [
            {"name": key, "count": int(results[key])}
            for key in TEST_COUNT_FIELDS
            if key in results
        ]
        build_id = self._session.build_id
        event = {
            "name": "tests",
            "data": build_id,
            "applicationId": self._session.application_id,
            "historicalIds": [build_id],
            "countFields": count_fields,
            "permanent": True,
            **self._auth(),
        }
        return self.request("POST", EVENT_ENDPOINT, data=event)

    def get_build_count_since(self, name: str, start: datetime) -> Envelope:
        """Count the test events published for a project since a date."""
        args = {
            "eventName": f"AppEvent.tests.{name}",
            "eventType": "CREATE",
            "timeUnit": "MINUTES",
            "startDate": int(start.timestamp() * 1000),
            **self._auth(),
        }
        return self.request("GET", METRICS_ENDPOINT, "", args)
