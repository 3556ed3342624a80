"""HTTP transport for the Mber REST API.

This module provides:
- RemoteCall: Immutable record of one request/response pair
- HTTPTransport: Thin httpx wrapper issuing GET/PUT/POST/DELETE
- encode_uri_component, to_query, base_url_with_path: URL helpers

The transport never interprets response bodies; classification is done
by Envelope.parse.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlsplit

import httpx

from mberclient.client.errors import InvalidURLError, MberError
from mberclient.core.config import ServerConfig

logger = logging.getLogger(__name__)

API_VERSION_HEADER = "REST-API-Version"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"
OCTET_STREAM = "application/octet-stream"

# Characters JavaScript's encodeURIComponent leaves alone on top of the
# unreserved set that quote() always keeps.
_URI_COMPONENT_SAFE = "!*()'"

# Failures of a single request that callers turn into Failed envelopes.
# InvalidURL and StreamError are not HTTPError subclasses.
TRANSPORT_ERRORS: tuple[type[Exception], ...] = (
    httpx.HTTPError,
    httpx.InvalidURL,
    httpx.StreamError,
    OSError,
    MberError,
)


@dataclass(frozen=True)
class RemoteCall:
    """A single completed HTTP call.

    Attributes:
        method: HTTP method.
        url: Full request URL, including the query string.
        status_code: HTTP status code.
        body: Response body as text.
    """

    method: str
    url: str
    status_code: int
    body: str


CallRecorder = Callable[[RemoteCall], None]


def encode_uri_component(component: str) -> str:
    """Percent-encode a string like JavaScript's encodeURIComponent.

    Letters, digits and ``- _ . ~ ! * ( ) '`` are kept, everything else
    is UTF-8 encoded as %XX with upper-case hex digits.
    """
    return quote(component, safe=_URI_COMPONENT_SAFE)


def _query_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(_query_value(item) for item in value)
    return str(value)


def to_query(args: Mapping[str, Any] | None) -> str:
    """Build a query string from a mapping.

    Arrays are sent as comma separated strings. Empty keys and empty
    values are skipped.

    Args:
        args: Query arguments.

    Returns:
        "?key=value&..." or "" when nothing is left to send.
    """
    if not args:
        return ""
    parts = []
    for key, value in args.items():
        text = _query_value(value)
        if key and text:
            parts.append(f"{encode_uri_component(key)}={encode_uri_component(text)}")
    if not parts:
        return ""
    return "?" + "&".join(parts)


def base_url_with_path(url: str, path: str) -> str:
    """Resolve an API path against the root of a service URL.

    Only the scheme and authority of ``url`` are kept. The result always
    ends with a single slash so resources can be appended to it.

    Args:
        url: Service URL, possibly with a path of its own.
        path: API path such as "service/json/data/directory".

    Returns:
        Absolute endpoint URL.

    Raises:
        InvalidURLError: If url has no scheme or host.
    """
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidURLError(url)
    path = path.strip("/")
    if not path:
        return f"{parts.scheme}://{parts.netloc}/"
    return f"{parts.scheme}://{parts.netloc}/{path}/"


class HTTPTransport:
    """Issues single HTTP requests and records them.

    Automatic redirect following is disabled; the file downloader walks
    redirects itself.
    """

    def __init__(
        self,
        config: ServerConfig,
        recorder: CallRecorder | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Connection settings.
            recorder: Optional hook receiving every completed call.
            client: Optional preconfigured httpx client (used by tests).
        """
        self._config = config
        self._recorder = recorder
        self._client = client or httpx.Client(
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=False,
        )
        self._client.headers[API_VERSION_HEADER] = config.api_version

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def client(self) -> httpx.Client:
        """Underlying httpx client, shared with the file downloader."""
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # === Requests ===

    def get(self, url: str, args: Mapping[str, Any] | None = None) -> RemoteCall:
        """GET a URL with optional query arguments."""
        return self._send("GET", url + to_query(args))

    def delete(self, url: str, args: Mapping[str, Any] | None = None) -> RemoteCall:
        """DELETE a URL with optional query arguments."""
        return self._send("DELETE", url + to_query(args))

    def post(self, url: str, data: Mapping[str, Any]) -> RemoteCall:
        """POST a JSON body."""
        return self._send(
            "POST",
            url,
            content=json.dumps(data).encode("utf-8"),
            headers={"Content-Type": JSON_CONTENT_TYPE},
        )

    def put(self, url: str, data: Mapping[str, Any]) -> RemoteCall:
        """PUT a JSON body."""
        return self._send(
            "PUT",
            url,
            content=json.dumps(data).encode("utf-8"),
            headers={"Content-Type": JSON_CONTENT_TYPE},
        )

    def put_stream(self, url: str, content: Iterable[bytes], size: int) -> RemoteCall:
        """PUT a streamed binary body.

        Args:
            url: Destination URL, usually a pre-signed upload slot.
            content: Iterable producing the body in chunks.
            size: Total body size, sent as Content-Length.

        Returns:
            The completed call.
        """
        return self._send(
            "PUT",
            url,
            content=content,
            headers={"Content-Type": OCTET_STREAM, "Content-Length": str(size)},
        )

    def _send(self, method: str, url: str, **kwargs: Any) -> RemoteCall:
        logger.debug(f"{method} {url.split('?', 1)[0]}")
        response = self._client.request(method, url, **kwargs)
        call = RemoteCall(
            method=method,
            url=url,
            status_code=response.status_code,
            body=response.text,
        )
        if self._recorder is not None:
            self._recorder(call)
        return call
