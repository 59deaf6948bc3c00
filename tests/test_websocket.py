import base64

import pytest

from tbdevice.http_response import HttpApiError, HttpInvalidResponse, HttpState
from tbdevice.websocket import TX_BUFFER_SIZE, MessageType, WebSocketClient

HANDSHAKE = (
    b"HTTP/1.1 101 Switching Protocols\r\n"
    b"Upgrade: websocket\r\n"
    b"Connection: Upgrade\r\n"
    b"\r\n"
)


class FakeTransport:
    def __init__(self, incoming=b""):
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.is_connected = False
        self.stopped = False

    def connect(self, host, port):
        self.is_connected = True
        return True

    def connected(self):
        return self.is_connected

    def available(self):
        return len(self.incoming)

    def read(self):
        if not self.incoming:
            return -1
        return self.incoming.pop(0)

    def read_bytes(self, size):
        data = bytes(self.incoming[:size])
        del self.incoming[:size]
        return data

    def peek(self):
        return self.incoming[0] if self.incoming else -1

    def write(self, data):
        self.sent += data
        return len(data)

    def stop(self):
        self.is_connected = False
        self.stopped = True

    def feed(self, data):
        self.incoming += data


def open_socket():
    t = FakeTransport(HANDSHAKE)
    ws = WebSocketClient(t, "example.com", 80)
    ws.begin("/chat")
    t.sent.clear()
    return t, ws


def decode_client_frame(frame):
    frame = bytes(frame)
    first, second = frame[0], frame[1]
    assert second & 0x80
    length = second & 0x7F
    pos = 2
    if length == 126:
        length = int.from_bytes(frame[2:4], "big")
        pos = 4
    mask = frame[pos:pos + 4]
    payload = frame[pos + 4:pos + 4 + length]
    assert len(payload) == length
    return first, bytes(b ^ mask[i % 4] for i, b in enumerate(payload))


def test_begin_sends_upgrade_request():
    t = FakeTransport(HANDSHAKE)
    ws = WebSocketClient(t, "example.com", 80)
    ws.begin("/chat")
    lines = bytes(t.sent).decode().split("\r\n")
    assert lines[0] == "GET /chat HTTP/1.1"
    assert "Upgrade: websocket" in lines
    assert "Connection: Upgrade" in lines
    assert "Sec-WebSocket-Version: 13" in lines
    assert "Connection: close" not in lines
    key_lines = [line for line in lines if line.startswith("Sec-WebSocket-Key: ")]
    assert len(key_lines) == 1
    key = base64.b64decode(key_lines[0].split(": ", 1)[1])
    assert len(key) == 16
    assert all(1 <= b <= 254 for b in key)
    assert bytes(t.sent).endswith(b"\r\n\r\n")
    assert ws.end_of_headers_reached()


def test_begin_rejected_upgrade_raises():
    t = FakeTransport(b"HTTP/1.1 200 OK\r\n\r\n")
    ws = WebSocketClient(t, "example.com", 80)
    with pytest.raises(HttpInvalidResponse):
        ws.begin("/")


def test_send_text_message():
    t, ws = open_socket()
    ws.begin_message(MessageType.TEXT)
    assert ws.write(b"hi") == 2
    ws.end_message()
    first, payload = decode_client_frame(t.sent)
    assert first == 0x81
    assert payload == b"hi"


def test_send_message_with_extended_length():
    t, ws = open_socket()
    data = bytes(range(127))
    ws.begin_message(MessageType.BINARY)
    ws.write(data)
    ws.end_message()
    assert t.sent[1] == 0xFE
    assert int.from_bytes(t.sent[2:4], "big") == len(data)
    first, payload = decode_client_frame(t.sent)
    assert first == 0x82
    assert payload == data


def test_write_is_limited_by_buffer():
    _, ws = open_socket()
    ws.begin_message(MessageType.BINARY)
    assert ws.write(b"a" * 100) == 100
    assert ws.write(b"b" * 100) == TX_BUFFER_SIZE - 100


def test_write_without_message_returns_zero():
    t, ws = open_socket()
    assert ws.write(b"data") == 0
    assert t.sent == bytearray()


def test_message_api_misuse():
    _, ws = open_socket()
    with pytest.raises(HttpApiError):
        ws.end_message()
    ws.begin_message(MessageType.TEXT)
    with pytest.raises(HttpApiError):
        ws.begin_message(MessageType.TEXT)


def test_parse_unmasked_text_frame():
    t, ws = open_socket()
    t.feed(b"\x81\x05hello")
    assert ws.parse_message() == 5
    assert ws.message_type() == MessageType.TEXT
    assert ws.is_final()
    assert ws.available() == 5
    assert ws.read_string() == "hello"
    assert ws.available() == 0


def test_parse_masked_frame_and_peek():
    t, ws = open_socket()
    key = b"\x01\x02\x03\x04"
    masked = bytes(b ^ key[i % 4] for i, b in enumerate(b"hey"))
    t.feed(b"\x81\x83" + key + masked)
    assert ws.parse_message() == 3
    assert ws.peek() == ord("h")
    assert ws.read() == ord("h")
    assert ws.read_bytes(2) == b"ey"


def test_parse_frame_with_16_bit_length():
    t, ws = open_socket()
    payload = b"x" * 200
    t.feed(b"\x82\x7e" + len(payload).to_bytes(2, "big") + payload)
    assert ws.parse_message() == len(payload)
    assert ws.message_type() == MessageType.BINARY
    assert ws.read_bytes(len(payload)) == payload


def test_parse_frame_with_64_bit_length():
    t, ws = open_socket()
    t.feed(b"\x82\x7f" + (3).to_bytes(8, "big") + b"abc")
    assert ws.parse_message() == 3
    assert ws.read_string() == "abc"


def test_parse_needs_two_bytes():
    t, ws = open_socket()
    t.feed(b"\x81")
    assert ws.parse_message() == 0


def test_unread_data_is_flushed_before_next_message():
    t, ws = open_socket()
    t.feed(b"\x81\x03abc\x81\x02de")
    assert ws.parse_message() == 3
    assert ws.parse_message() == 2
    assert ws.read_string() == "de"


def test_continuation_keeps_message_type():
    t, ws = open_socket()
    t.feed(b"\x01\x03abc")
    assert ws.parse_message() == 3
    assert ws.message_type() == MessageType.TEXT
    assert not ws.is_final()
    assert ws.read_string() == "abc"
    t.feed(b"\x80\x02de")
    assert ws.parse_message() == 2
    assert ws.message_type() == MessageType.TEXT
    assert ws.is_final()
    assert ws.read_string() == "de"


def test_server_ping_is_answered_with_pong():
    t, ws = open_socket()
    t.feed(b"\x89\x02ab")
    assert ws.parse_message() == 0
    first, payload = decode_client_frame(t.sent)
    assert first == 0x8A
    assert payload == b"ab"


def test_server_pong_is_discarded():
    t, ws = open_socket()
    t.feed(b"\x8a\x02ab")
    assert ws.parse_message() == 0
    assert t.incoming == bytearray()
    assert t.sent == bytearray()


def test_close_frame_stops_connection():
    t, ws = open_socket()
    t.feed(b"\x88\x00")
    assert ws.parse_message() == 0
    assert t.stopped
    assert ws.state == HttpState.IDLE


def test_ping_sends_sixteen_bytes():
    t, ws = open_socket()
    ws.ping()
    first, payload = decode_client_frame(t.sent)
    assert first == 0x89
    assert len(payload) == 16


def test_available_before_upgrade_reflects_transport():
    t = FakeTransport(b"abc")
    ws = WebSocketClient(t, "example.com", 80)
    assert ws.available() == 3