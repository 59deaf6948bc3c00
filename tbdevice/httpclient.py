"""HTTP/1.1 client that writes requests to a byte-stream transport."""

from __future__ import annotations

import ipaddress

from .codec import b64_encode
from .http_response import (
    HttpApiError,
    HttpConnectionFailed,
    HttpState,
    ResponseReader,
    Transport,
)

USER_AGENT = "Arduino/2.2.0"
HTTP_PORT = 80
HTTPS_PORT = 443

METHOD_GET = "GET"
METHOD_POST = "POST"
METHOD_PUT = "PUT"
METHOD_PATCH = "PATCH"
METHOD_DELETE = "DELETE"

_CRLF = b"\r\n"


def _as_bytes(data: bytes | bytearray | memoryview | str | int) -> bytes:
    if isinstance(data, int):
        return bytes([data & 0xFF])
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class HttpClient(ResponseReader):
    """Sends HTTP/1.1 requests over ``client`` and reads the responses.

    ``server`` is either a host name, which is also sent in the ``Host``
    header, or an IP address, for which no ``Host`` header is sent.
    Request methods raise :class:`~tbdevice.http_response.HttpError`
    subclasses on failure.
    """

    def __init__(
        self,
        client: Transport,
        server: str | ipaddress.IPv4Address | ipaddress.IPv6Address,
        port: int = HTTP_PORT,
    ) -> None:
        super().__init__(client)
        self.server = server
        self.port = port
        self._connection_close = True
        self._send_default_headers = True

    @property
    def _server_name(self) -> str | None:
        return self.server if isinstance(self.server, str) else None

    def connect(self, host: str, port: int) -> bool:
        """Open a connection on the underlying transport."""
        return bool(self.client.connect(host, port))

    def connected(self) -> bool:
        """True while the underlying transport is connected."""
        return bool(self.client.connected())

    def connection_keep_alive(self) -> None:
        """Keep the connection open between requests."""
        self._connection_close = False

    def no_default_request_headers(self) -> None:
        """Stop sending the Host and User-Agent headers."""
        self._send_default_headers = False

    def begin_request(self) -> None:
        """Start a request whose headers are finished later by :meth:`end_request`."""
        self.state = HttpState.REQUEST_STARTED

    def start_request(
        self,
        url_path: str,
        method: str,
        content_type: str | None = None,
        body: bytes | bytearray | str | None = None,
    ) -> None:
        """Connect if needed and send the request line and headers.

        When no request was begun with :meth:`begin_request`, or a body is
        given, the headers are finished and the body sent straight away.
        """
        if self.end_of_headers_reached():
            self._flush_client_rx()
            self.reset_state()

        initial_state = self.state
        if initial_state not in (HttpState.IDLE, HttpState.REQUEST_STARTED):
            raise HttpApiError(f"cannot start a request in state {initial_state.name}")

        if self._connection_close or not self.client.connected():
            if not self.client.connect(str(self.server), self.port):
                raise HttpConnectionFailed(f"could not connect to {self.server}:{self.port}")

        self._send_initial_headers(url_path, method)

        payload = _as_bytes(body) if body is not None else b""
        if content_type is not None:
            self.send_header("Content-Type", content_type)
        if payload:
            self.send_header("Content-Length", len(payload))
        if initial_state == HttpState.IDLE or payload:
            self._finish_headers()
        if payload:
            self.client.write(payload)

    def _send_initial_headers(self, url_path: str, method: str) -> None:
        self._send_line(f"{method} {url_path} HTTP/1.1")
        if self._send_default_headers:
            name = self._server_name
            if name:
                host = name
                if self.port not in (HTTP_PORT, HTTPS_PORT):
                    host = f"{name}:{self.port}"
                self.send_header("Host", host)
            self.send_header("User-Agent", USER_AGENT)
        if self._connection_close:
            self.send_header("Connection", "close")
        self.state = HttpState.REQUEST_STARTED

    def _send_line(self, text: str = "") -> None:
        self.client.write(text.encode("utf-8") + _CRLF)

    def send_header(self, name: str, value: str | int | None = None) -> None:
        """Send one header line; with no ``value``, ``name`` is the whole line."""
        if value is None:
            self._send_line(name)
        else:
            self._send_line(f"{name}: {value}")

    def send_basic_auth(self, user: str, password: str) -> None:
        """Send an ``Authorization: Basic`` header for ``user`` and ``password``."""
        self.send_header("Authorization", "Basic " + b64_encode(f"{user}:{password}"))

    def _finish_headers(self) -> None:
        self.client.write(_CRLF)
        self.state = HttpState.REQUEST_SENT

    def _flush_client_rx(self) -> None:
        while self.client.available():
            self.client.read()

    def end_request(self) -> None:
        """Finish the request headers if they are still open."""
        self.begin_body()

    def begin_body(self) -> None:
        """Finish the headers so that the body can follow."""
        if self.state < HttpState.REQUEST_SENT:
            self._finish_headers()

    def get(self, url_path: str) -> None:
        """Send a GET request."""
        self.start_request(url_path, METHOD_GET)

    def post(
        self,
        url_path: str,
        content_type: str | None = None,
        body: bytes | bytearray | str | None = None,
    ) -> None:
        """Send a POST request, optionally with a body."""
        self.start_request(url_path, METHOD_POST, content_type, body)

    def put(
        self,
        url_path: str,
        content_type: str | None = None,
        body: bytes | bytearray | str | None = None,
    ) -> None:
        """Send a PUT request, optionally with a body."""
        self.start_request(url_path, METHOD_PUT, content_type, body)

    def patch(
        self,
        url_path: str,
        content_type: str | None = None,
        body: bytes | bytearray | str | None = None,
    ) -> None:
        """Send a PATCH request, optionally with a body."""
        self.start_request(url_path, METHOD_PATCH, content_type, body)

    def delete(
        self,
        url_path: str,
        content_type: str | None = None,
        body: bytes | bytearray | str | None = None,
    ) -> None:
        """Send a DELETE request, optionally with a body."""
        self.start_request(url_path, METHOD_DELETE, content_type, body)

    def write(self, data: bytes | bytearray | memoryview | str | int) -> int:
        """Write request body data, finishing open headers first."""
        raw = _as_bytes(data)
        if self.state == HttpState.REQUEST_STARTED:
            self._finish_headers()
        return self.client.write(raw)