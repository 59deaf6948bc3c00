"""WebSocket client built on top of the HTTP client's upgrade handshake."""

from __future__ import annotations

import contextlib
import ipaddress
import secrets
from enum import IntEnum

from .codec import b64_encode
from .http_response import (
    HttpApiError,
    HttpError,
    HttpInvalidResponse,
    HttpState,
    HttpTimeoutError,
    ResponseReader,
    Transport,
)
from .httpclient import HTTP_PORT, HttpClient

TX_BUFFER_SIZE = 128
_SWITCHING_PROTOCOLS = 101
_FIN = 0x80
_MASKED = 0x80


class MessageType(IntEnum):
    """WebSocket frame opcodes."""

    CONTINUATION = 0x0
    TEXT = 0x1
    BINARY = 0x2
    CONNECTION_CLOSE = 0x8
    PING = 0x9
    PONG = 0xA


def _as_bytes(data: bytes | bytearray | memoryview | str | int) -> bytes:
    if isinstance(data, int):
        return bytes([data & 0xFF])
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class WebSocketClient(HttpClient):
    """A WebSocket connection: messages out are masked, messages in are unmasked.

    Outgoing messages are collected with :meth:`begin_message`,
    :meth:`write` and :meth:`end_message`, up to ``TX_BUFFER_SIZE`` bytes.
    Incoming messages are found with :meth:`parse_message` and then read.
    """

    def __init__(
        self,
        client: Transport,
        server: str | ipaddress.IPv4Address | ipaddress.IPv6Address,
        port: int = HTTP_PORT,
    ) -> None:
        super().__init__(client, server, port)
        self._tx_started = False
        self._tx_type = 0
        self._tx_buffer = bytearray()
        self._rx_opcode = 0
        self._rx_size = 0
        self._rx_masked = False
        self._rx_mask_index = 0
        self._rx_mask_key = bytes(4)

    def begin(self, path: str = "/") -> None:
        """Open the connection and perform the upgrade handshake on ``path``.

        Raises :class:`~tbdevice.http_response.HttpInvalidResponse` if the
        server does not switch protocols.
        """
        self.begin_request()
        self.connection_keep_alive()
        try:
            self.get(path)
            key = bytes(secrets.randbelow(0xFE) + 1 for _ in range(16))
            self.send_header("Upgrade", "websocket")
            self.send_header("Connection", "Upgrade")
            self.send_header("Sec-WebSocket-Key", b64_encode(key))
            self.send_header("Sec-WebSocket-Version", "13")
            self.end_request()
            status = self.response_status_code()
            with contextlib.suppress(HttpTimeoutError):
                self.skip_response_headers()
        finally:
            self._rx_size = 0
        if status != _SWITCHING_PROTOCOLS:
            raise HttpInvalidResponse(f"server refused the upgrade with status {status}")

    def begin_message(self, message_type: int) -> None:
        """Start collecting an outgoing message of ``message_type``."""
        if self._tx_started:
            raise HttpApiError("a message is already being written")
        self._tx_started = True
        self._tx_type = message_type & 0x0F
        self._tx_buffer.clear()

    def end_message(self) -> None:
        """Mask and send the message started with :meth:`begin_message`."""
        if not self._tx_started:
            raise HttpApiError("no message has been begun")
        payload = bytes(self._tx_buffer)
        size = len(payload)

        header = bytearray([_FIN | self._tx_type])
        if size < 126:
            header.append(_MASKED | size)
        elif size < 0xFFFF:
            header.append(_MASKED | 126)
            header += size.to_bytes(2, "big")
        else:
            header.append(_MASKED | 127)
            header += size.to_bytes(8, "big")

        mask = bytes(secrets.randbelow(0xFF) for _ in range(4))
        masked = bytes(b ^ mask[i % 4] for i, b in enumerate(payload))

        self._tx_started = False
        self._tx_buffer.clear()

        HttpClient.write(self, bytes(header) + mask)
        if HttpClient.write(self, masked) != len(masked):
            raise HttpError("message was not fully written")

    def write(self, data: bytes | bytearray | memoryview | str | int) -> int:
        """Add ``data`` to the current message; return how many bytes fitted.

        Before the upgrade the data goes straight to the HTTP request.
        """
        raw = _as_bytes(data)
        if self.state < HttpState.READING_BODY:
            return HttpClient.write(self, raw)
        if not self._tx_started:
            return 0
        room = TX_BUFFER_SIZE - len(self._tx_buffer)
        chunk = raw[:room]
        self._tx_buffer += chunk
        return len(chunk)

    def _read_raw(self, count: int) -> bytes:
        return bytes(ResponseReader.read(self) & 0xFF for _ in range(count))

    def parse_message(self) -> int:
        """Read the next frame header; return the payload size, or 0 if none.

        Pings are answered with a pong, and close frames stop the connection;
        both then report 0.
        """
        self._flush_rx()
        if ResponseReader.available(self) < 2:
            return 0

        opcode, length = self._read_raw(2)
        if opcode & 0x0F == 0:
            self._rx_opcode |= opcode
        else:
            self._rx_opcode = opcode

        self._rx_masked = bool(length & _MASKED)
        length &= 0x7F
        if length < 126:
            size = length
        elif length == 126:
            size = int.from_bytes(self._read_raw(2), "big")
        else:
            size = int.from_bytes(self._read_raw(8), "big")

        if self._rx_masked:
            self._rx_mask_key = self._read_raw(4)
        self._rx_mask_index = 0
        self._rx_size = size

        kind = self.message_type()
        if kind == MessageType.CONNECTION_CLOSE:
            self._flush_rx()
            self.stop()
            self._rx_size = 0
        elif kind == MessageType.PING:
            self.begin_message(MessageType.PONG)
            while self.available() > 0:
                byte = self.read()
                if byte < 0:
                    break
                self.write(byte)
            self.end_message()
            self._rx_size = 0
        elif kind == MessageType.PONG:
            self._flush_rx()
            self._rx_size = 0

        return self._rx_size

    def message_type(self) -> int:
        """Opcode of the message last parsed."""
        return self._rx_opcode & 0x0F

    def is_final(self) -> bool:
        """True if the message last parsed is the final fragment."""
        return bool(self._rx_opcode & _FIN)

    def read_string(self) -> str:
        """Read what remains of the current message as UTF-8 text."""
        avail = self.available()
        if avail <= 0:
            return ""
        return self.read_bytes(avail).decode("utf-8", errors="replace")

    def ping(self) -> None:
        """Send a ping carrying 16 random bytes."""
        data = bytes(secrets.randbelow(0xFF) for _ in range(16))
        self.begin_message(MessageType.PING)
        self.write(data)
        self.end_message()

    def available(self) -> int:
        """Bytes left in the current message (or on the wire before the upgrade)."""
        if self.state < HttpState.READING_BODY:
            return ResponseReader.available(self)
        return self._rx_size

    def read(self) -> int:
        """Read one unmasked byte, or return -1."""
        data = self.read_bytes(1)
        return data[0] if data else -1

    def read_bytes(self, size: int) -> bytes:
        """Read up to ``size`` bytes of the current message, unmasked."""
        data = ResponseReader.read_bytes(self, size)
        if not data:
            return data
        self._rx_size -= len(data)
        if self._rx_masked:
            key = self._rx_mask_key
            start = self._rx_mask_index
            data = bytes(b ^ key[(start + i) % 4] for i, b in enumerate(data))
            self._rx_mask_index += len(data)
        return data

    def peek(self) -> int:
        """Return the next unmasked byte without consuming it, or -1."""
        p = ResponseReader.peek(self)
        if p != -1 and self._rx_masked:
            p = (p & 0xFF) ^ self._rx_mask_key[self._rx_mask_index % 4]
        return p

    def _flush_rx(self) -> None:
        while self.available() > 0:
            if self.read() == -1:
                break