"""Incremental reader for HTTP/1.1 responses arriving over a byte stream."""

from __future__ import annotations

import contextlib
import time
from enum import IntEnum
from typing import Protocol

_LF = 0x0A
_CR = 0x0D
_STATUS_PREFIX = b"HTTP/*.* "
_WILDCARD = ord("*")
_CONTENT_LENGTH_PREFIX = b"Content-Length: "
_CHUNKED_HEADER = b"Transfer-Encoding: chunked"
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_WHITESPACE = " \t\n\v\f\r"

DEFAULT_RESPONSE_TIMEOUT = 30.0
DEFAULT_WAIT_FOR_DATA_DELAY = 0.1
DEFAULT_READ_TIMEOUT = 1.0


class Transport(Protocol):
    """Byte stream a client talks over."""

    def connect(self, host: str, port: int) -> bool: ...

    def connected(self) -> bool: ...

    def available(self) -> int: ...

    def read(self) -> int: ...

    def read_bytes(self, size: int) -> bytes: ...

    def peek(self) -> int: ...

    def write(self, data: bytes) -> int: ...

    def stop(self) -> None: ...


class HttpError(Exception):
    """Base class for HTTP client errors."""


class HttpApiError(HttpError):
    """A call was made in a state that does not allow it."""


class HttpConnectionFailed(HttpError):
    """The connection to the server could not be opened."""


class HttpTimeoutError(HttpError):
    """The server did not answer in time."""


class HttpInvalidResponse(HttpError):
    """The server's answer could not be understood."""


class HttpState(IntEnum):
    """Progress of a request and its response, in order."""

    IDLE = 0
    REQUEST_STARTED = 1
    REQUEST_SENT = 2
    READING_STATUS_CODE = 3
    STATUS_CODE_READ = 4
    READING_CONTENT_LENGTH = 5
    SKIP_TO_END_OF_HEADER = 6
    LINE_STARTING_CR_FOUND = 7
    READING_BODY = 8
    READING_CHUNK_LENGTH = 9
    READING_BODY_CHUNK = 10


_BODY_STATES = frozenset({
    HttpState.READING_BODY,
    HttpState.READING_CHUNK_LENGTH,
    HttpState.READING_BODY_CHUNK,
})


class ResponseReader:
    """Parses the status line, headers and body of a response from ``client``.

    Tracks ``Content-Length`` and ``Transfer-Encoding: chunked`` while the
    headers go by, so that the body can then be read byte by byte.
    """

    def __init__(self, client: Transport) -> None:
        self.client = client
        self.header_line = ""
        self.reset_state()

    def reset_state(self) -> None:
        """Forget the current response and return to the idle state."""
        self.state = HttpState.IDLE
        self.status_code = 0
        self._content_length: int | None = None
        self.body_length_consumed = 0
        self._content_length_pos = 0
        self._chunked_pos = 0
        self.is_chunked = False
        self.chunk_length = 0
        self.response_timeout = DEFAULT_RESPONSE_TIMEOUT
        self.wait_for_data_delay = DEFAULT_WAIT_FOR_DATA_DELAY
        self.read_timeout = DEFAULT_READ_TIMEOUT

    def stop(self) -> None:
        """Close the connection and reset the state."""
        self.client.stop()
        self.reset_state()

    def response_status_code(self) -> int:
        """Read the status line and return its code, skipping 1xx responses except 101."""
        if self.state < HttpState.REQUEST_SENT:
            raise HttpApiError("no request has been sent")

        c = 0
        while True:
            self.status_code = 0
            self.state = HttpState.REQUEST_SENT
            prefix_pos = 0
            started = time.monotonic()
            while c != _LF and time.monotonic() - started < self.response_timeout:
                if not self.available():
                    time.sleep(self.wait_for_data_delay)
                    continue
                c = self._http_read()
                if c == -1:
                    continue
                if self.state == HttpState.REQUEST_SENT:
                    expected = _STATUS_PREFIX[prefix_pos]
                    if expected != _WILDCARD and expected != c:
                        raise HttpInvalidResponse("response does not start with a status line")
                    prefix_pos += 1
                    if prefix_pos == len(_STATUS_PREFIX):
                        self.state = HttpState.READING_STATUS_CODE
                elif self.state == HttpState.READING_STATUS_CODE:
                    if 0x30 <= c <= 0x39:
                        self.status_code = self.status_code * 10 + (c - 0x30)
                    else:
                        self.state = HttpState.STATUS_CODE_READ
                started = time.monotonic()

            informational = self.status_code < 200 and self.status_code != 101
            if c == _LF and informational:
                c = 0
            if not (self.state == HttpState.STATUS_CODE_READ and informational):
                break

        if c == _LF and self.state == HttpState.STATUS_CODE_READ:
            return self.status_code
        if c != _LF:
            raise HttpTimeoutError("timed out reading the status line")
        raise HttpInvalidResponse("malformed status line")

    def skip_response_headers(self) -> None:
        """Read and discard the remaining headers; raise on timeout."""
        started = time.monotonic()
        while (not self.end_of_headers_reached()
               and time.monotonic() - started < self.response_timeout):
            if self.available():
                self.read_header()
                started = time.monotonic()
            else:
                time.sleep(self.wait_for_data_delay)
        if not self.end_of_headers_reached():
            raise HttpTimeoutError("timed out reading the response headers")

    def end_of_headers_reached(self) -> bool:
        """True once the blank line ending the headers has been read."""
        return self.state in _BODY_STATES

    def content_length(self) -> int | None:
        """Return the Content-Length of the response, or None if it sent none.

        Skips any headers not yet read first.
        """
        if not self.end_of_headers_reached():
            with contextlib.suppress(HttpTimeoutError):
                self.skip_response_headers()
        return self._content_length

    def response_body(self) -> str:
        """Read the whole body and return it decoded as UTF-8.

        Raises :class:`HttpInvalidResponse` if fewer bytes arrive than the
        Content-Length promised.
        """
        body_length = self.content_length()
        body = bytearray()
        while self.body_length_consumed != body_length:
            c = self._timed_read()
            if c == -1:
                break
            body.append(c)
        if body_length is not None and body_length > 0 and len(body) != body_length:
            raise HttpInvalidResponse(
                f"expected {body_length} body bytes, received {len(body)}"
            )
        return body.decode("utf-8", errors="replace")

    def end_of_body_reached(self) -> bool:
        """True once as many body bytes as Content-Length gave have been read."""
        if self.end_of_headers_reached():
            length = self.content_length()
            if length is not None:
                return self.body_length_consumed >= length
        return False

    def available(self) -> int:
        """Number of bytes that can be read now, honouring chunk boundaries."""
        if self.state == HttpState.READING_CHUNK_LENGTH:
            while self.client.available():
                c = self.client.read()
                if c == _LF:
                    self.state = HttpState.READING_BODY_CHUNK
                    break
                if c in _HEX_DIGITS:
                    self.chunk_length = self.chunk_length * 16 + int(chr(c), 16)

        if self.state == HttpState.READING_BODY_CHUNK and self.chunk_length == 0:
            self.state = HttpState.READING_CHUNK_LENGTH

        if self.state == HttpState.READING_CHUNK_LENGTH:
            return 0

        client_available = self.client.available()
        if self.state == HttpState.READING_BODY_CHUNK:
            return min(client_available, self.chunk_length)
        return client_available

    def read(self) -> int:
        """Read one byte, or return -1 if none is available."""
        return self._http_read()

    def _http_read(self) -> int:
        if self.is_chunked and not ResponseReader.available(self):
            return -1
        c = self.client.read()
        if c >= 0:
            if (self.end_of_headers_reached() and self._content_length is not None
                    and self._content_length > 0):
                self.body_length_consumed += 1
            if self.state == HttpState.READING_BODY_CHUNK:
                self.chunk_length -= 1
                if self.chunk_length == 0:
                    self.state = HttpState.READING_CHUNK_LENGTH
        return c

    def read_bytes(self, size: int) -> bytes:
        """Read up to ``size`` bytes straight from the connection."""
        data = self.client.read_bytes(size)
        if (self.end_of_headers_reached() and self._content_length is not None
                and self._content_length > 0):
            self.body_length_consumed += len(data)
        return data

    def peek(self) -> int:
        """Return the next byte without consuming it, or -1."""
        return self.client.peek()

    def _timed_read(self) -> int:
        started = time.monotonic()
        while True:
            c = self.read()
            if c >= 0:
                return c
            if time.monotonic() - started >= self.read_timeout:
                return -1
            time.sleep(0)

    def header_available(self) -> bool:
        """Read the next header line; True if there was one.

        The line is then available through :meth:`read_header_name` and
        :meth:`read_header_value`.
        """
        self.header_line = ""
        started = time.monotonic()
        while not self.end_of_headers_reached():
            c = self.read_header()
            if c < 0:
                if time.monotonic() - started >= self.response_timeout:
                    break
                time.sleep(self.wait_for_data_delay)
                continue
            started = time.monotonic()
            if c in (_CR, _LF):
                if self.header_line:
                    break
                continue
            self.header_line += chr(c)
        return bool(self.header_line)

    def read_header_name(self) -> str:
        """Name of the last header read, or '' if it had no colon."""
        name, colon, _ = self.header_line.partition(":")
        return name if colon else ""

    def read_header_value(self) -> str:
        """Value of the last header read without leading whitespace, or ''."""
        _, colon, value = self.header_line.partition(":")
        return value.lstrip(_WHITESPACE) if colon else ""

    def read_header(self) -> int:
        """Read one byte of the headers, watching for length and chunking headers."""
        c = self._http_read()
        if self.end_of_headers_reached() or c < 0:
            return c

        if self.state == HttpState.STATUS_CODE_READ:
            if _CONTENT_LENGTH_PREFIX[self._content_length_pos] == c:
                self._content_length_pos += 1
                if self._content_length_pos == len(_CONTENT_LENGTH_PREFIX):
                    self.state = HttpState.READING_CONTENT_LENGTH
                    self._content_length = 0
                    self.body_length_consumed = 0
            elif _CHUNKED_HEADER[self._chunked_pos] == c:
                self._chunked_pos += 1
                if self._chunked_pos == len(_CHUNKED_HEADER):
                    self.is_chunked = True
                    self.state = HttpState.SKIP_TO_END_OF_HEADER
            elif self._content_length_pos == 0 and self._chunked_pos == 0 and c == _CR:
                self.state = HttpState.LINE_STARTING_CR_FOUND
            else:
                self.state = HttpState.SKIP_TO_END_OF_HEADER
        elif self.state == HttpState.READING_CONTENT_LENGTH:
            if 0x30 <= c <= 0x39:
                current = self._content_length or 0
                updated = current * 10 + (c - 0x30)
                if updated > current:
                    self._content_length = updated
            else:
                self.state = HttpState.SKIP_TO_END_OF_HEADER
        elif self.state == HttpState.LINE_STARTING_CR_FOUND:
            if c == _LF:
                if self.is_chunked:
                    self.state = HttpState.READING_CHUNK_LENGTH
                    self.chunk_length = 0
                else:
                    self.state = HttpState.READING_BODY

        if c == _LF and not self.end_of_headers_reached():
            self.state = HttpState.STATUS_CODE_READ
            self._content_length_pos = 0
            self._chunked_pos = 0
        return c