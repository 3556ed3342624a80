"""Client for the Mber build-tracking and file service.

This module provides:
- MberClient: One session against a Mber application, wiring together
  the transport, the resource resolver and the file transfer engine
- Document upload, link and download operations
"""

from __future__ import annotations

import base64
import json
import logging
import threading
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx

from mberclient.client.aliases import resolve_alias_or_uuid
from mberclient.client.envelope import Envelope
from mberclient.client.errors import InvalidURLError
from mberclient.client.ledger import CallLedger
from mberclient.client.resolver import DOCUMENT_LINK, ResourceResolver
from mberclient.client.session import SessionState
from mberclient.client.transfer import FileDownloader, FileUploader, ProgressListener
from mberclient.client.transport import (
    TRANSPORT_ERRORS,
    HTTPTransport,
    RemoteCall,
    base_url_with_path,
    encode_uri_component,
    to_query,
)
from mberclient.core.config import ServerConfig
from mberclient.core.types import BuildStatus

logger = logging.getLogger(__name__)

UPLOAD_ENDPOINT = "service/json/data/upload"
DOCUMENT_ENDPOINT = "service/json/data/document"
DOWNLOAD_ENDPOINT = "service/raw/data/download"


class MberClient:
    """A session against one Mber application.

    Every operation makes a single attempt and returns an Envelope; wrap
    calls in retry_envelope to retry them. All calls made through the
    client are recorded in its CallLedger under session_id.
    """

    def __init__(
        self,
        config: ServerConfig,
        session: SessionState | None = None,
        ledger: CallLedger | None = None,
        session_id: str | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings.
            session: State restored from an earlier process, or None for
                a fresh, logged out session.
            ledger: Ledger shared with other sessions, or None for a
                private one.
            session_id: Unique key of this session in the ledger.
        """
        self._config = config
        self._session = session or SessionState(url=config.url, application=config.application)
        self._ledger = ledger if ledger is not None else CallLedger()
        self._session_id = session_id or uuid.uuid4().hex
        self._transport = HTTPTransport(config, recorder=self._record)
        self._resolver = ResourceResolver(self._transport, self._session)
        self._uploader = FileUploader(self._transport)
        self._downloader = FileDownloader(self._transport.client)

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def ledger(self) -> CallLedger:
        return self._ledger

    @property
    def resolver(self) -> ResourceResolver:
        return self._resolver

    def close(self) -> None:
        """Close the HTTP client."""
        self._transport.close()

    def __enter__(self) -> MberClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    # === Call history ===

    def _record(self, call: RemoteCall) -> None:
        self._ledger.record(self._session_id, call)

    def call_history(self) -> list[RemoteCall]:
        """Get the calls made in this session so far."""
        return self._ledger.calls(self._session_id)

    def drain_call_history(self) -> list[RemoteCall]:
        """Get the calls made in this session and forget them."""
        return self._ledger.drain(self._session_id)

    # === Session and resources ===

    def login(self, username: str, password: str) -> Envelope:
        return self._resolver.login(username, password)

    def make_path(self, path: str) -> Envelope:
        return self._resolver.make_path(path)

    def make_project(self, name: str, description: str | None = None) -> Envelope:
        return self._resolver.make_project(name, description)

    def make_build(
        self,
        name: str,
        description: str | None = None,
        alias: str | None = None,
        *statuses: BuildStatus | str,
    ) -> Envelope:
        return self._resolver.make_build(name, description, alias, *statuses)

    def update_build(
        self,
        name: str,
        description: str | None = None,
        *statuses: BuildStatus | str,
    ) -> Envelope:
        return self._resolver.update_build(name, description, *statuses)

    def set_build_directory(self, directory_id: str) -> Envelope:
        return self._resolver.set_build_directory(directory_id)

    def read_document(self, alias_or_uuid: str) -> Envelope:
        return self._resolver.read_document(alias_or_uuid)

    def find_documents_with_tags(self, tags: Iterable[str]) -> Envelope:
        return self._resolver.find_documents_with_tags(tags)

    def publish_test_results(self, results: Mapping[str, Any]) -> Envelope:
        return self._resolver.publish_test_results(results)

    def get_build_count_since(self, name: str, start: datetime) -> Envelope:
        return self._resolver.get_build_count_since(name, start)

    # === Uploads ===

    def upload_file(
        self,
        path: Path,
        directory: str,
        name: str | None = None,
        tags: Iterable[str] = (),
        overwrite: bool = False,
        listener: ProgressListener | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Envelope:
        """Upload a local file to a directory.

        An upload slot is requested first and the file is then streamed to
        the slot's URL. If a document with the same name exists and
        overwrite is set, the existing document's slot is reissued instead.

        Args:
            path: Local file.
            directory: Target directory id.
            name: Document name (defaults to the file name).
            tags: Tags for the document.
            overwrite: Replace an existing document with the same name.
            listener: Optional percent-complete callback.
            cancel_event: Optional event that cancels the transfer.

        Returns:
            Success, Duplicate (exists and overwrite is off), Failed or
            Aborted.
        """
        path = Path(path)
        name = name or path.name
        try:
            size = path.stat().st_size
        except OSError as e:
            return Envelope.from_exception(e)

        data = {
            "name": name,
            "size": size,
            "directoryId": directory,
            "tags": list(tags),
        }
        response = self._resolver.request(
            "POST", UPLOAD_ENDPOINT, data=self._resolver.signed(data)
        )
        if response.is_duplicate and overwrite:
            existing = self._resolver.find_duplicate(directory, name)
            if not existing.is_success:
                return existing
            document_id = existing.get_str("documentId")
            logger.info(f"Overwriting {name} ({document_id})")
            response = self._resolver.request(
                "PUT", UPLOAD_ENDPOINT, document_id, self._resolver.signed(data)
            )
        if not response.is_success:
            return response

        result = self._uploader.upload(path, response.get_str("url"), listener, cancel_event)
        if result.is_success and response.get("documentId"):
            return result.with_fields(documentId=response.get_str("documentId"))
        return result

    def upload_content(
        self,
        content: Mapping[str, Any],
        directory: str,
        name: str,
        tags: Iterable[str] = (),
    ) -> Envelope:
        """Create a document from an in-memory JSON object.

        The object is serialized and sent base64 encoded in the create
        request, for artifacts that are generated rather than read from
        disk.
        """
        encoded = base64.b64encode(json.dumps(content).encode("utf-8")).decode("ascii")
        data = {
            "name": name,
            "content": encoded,
            "directoryId": directory,
            "tags": list(tags),
        }
        return self._resolver.request("POST", DOCUMENT_ENDPOINT, data=self._resolver.signed(data))

    def link(
        self,
        uri: str,
        directory: str,
        name: str,
        tags: Iterable[str] = (),
        overwrite: bool = False,
    ) -> Envelope:
        """Create a document that links to a file stored elsewhere.

        With overwrite, an existing link of the same name is updated and
        the new tags are added to its existing ones.
        """
        tags = list(tags)
        data: dict[str, Any] = {"directoryId": directory, "name": name, "uri": uri, "tags": tags}
        response = self._resolver.create(DOCUMENT_LINK, data)
        if not (response.is_duplicate and overwrite):
            return response

        existing = self._resolver.find_duplicate(directory, name)
        if not existing.is_success:
            return existing
        # Updates take "tagsToAdd" instead of "tags"
        del data["tags"]
        data["tagsToAdd"] = tags
        return self._resolver.update(DOCUMENT_LINK, existing.get_str("documentId"), data)

    # === Downloads ===

    def download_url(self, document: str) -> str:
        """Build the raw download URL of a document.

        Raises:
            InvalidURLError: If the session URL is invalid.
        """
        endpoint = base_url_with_path(self._session.url, DOWNLOAD_ENDPOINT)
        resource = encode_uri_component(resolve_alias_or_uuid(document))
        return endpoint + resource + to_query({"access_token": self._session.access_token})

    def download(
        self,
        document: str,
        destination: Path,
        listener: ProgressListener | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Envelope:
        """Download a document by id or alias to a local file."""
        try:
            url = self.download_url(document)
        except InvalidURLError as e:
            return Envelope.failed(str(e))
        return self._downloader.download(url, Path(destination), listener, cancel_event)

    # === Service discovery ===

    @staticmethod
    def is_mber_url(url: str, timeout: float = 10.0) -> bool:
        """Check whether a URL points at a Mber service.

        Mber publishes a non-empty JSON service description under /jsdl.
        """
        try:
            response = httpx.get(base_url_with_path(url, "jsdl"), timeout=timeout)
            description = response.json()
        except (*TRANSPORT_ERRORS, ValueError):
            return False
        return bool(description)
