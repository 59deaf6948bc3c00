# tbdevice

Small, dependency-free clients for devices that talk to a server over a
plain byte stream: an HTTP/1.1 client and a WebSocket client built on it,
plus the URL and text encoders they use. The clients do no networking of
their own; they work over any transport object you hand them.

## Installing

```
pip install tbdevice
```

For running the tests:

```
pip install "tbdevice[test]"
pytest
```

## Transports

A transport is any object with these methods (the `Transport` protocol in
`tbdevice.http_response`):

| method | does |
| --- | --- |
| `connect(host, port)` | opens the connection, returns true on success |
| `connected()` | true while the connection is open |
| `available()` | number of bytes that can be read now |
| `read()` | one byte as an int, or `-1` if none |
| `read_bytes(size)` | up to `size` bytes |
| `peek()` | the next byte without consuming it, or `-1` |
| `write(data)` | writes bytes, returns how many were written |
| `stop()` | closes the connection |

A wrapper around a TCP socket, a serial link or an in-memory fake in a
test all fit.

## Modules

- `tbdevice.codec`: `b64_encode(data)` returns padded standard Base64;
  `url_encode(text)` percent-encodes every byte except letters, digits and
  `-._~`, using upper-case hex. Strings are taken as UTF-8.
- `tbdevice.urlparse`: `parse_url(url, is_connect=False)` splits a URL into
  `UrlParts`, whose `spans` map each `UrlField` (`SCHEMA`, `HOST`, `PORT`,
  `PATH`, `QUERY`, `FRAGMENT`, `USERINFO`) to an `(offset, length)` pair;
  `UrlParts.get(field)` returns the text and `port` the numeric port.
  Malformed URLs raise `UrlParseError`. With `is_connect=True` the URL must be
  exactly `host:port`. `parser_version()` returns the packed parser version.
- `tbdevice.parsed_url`: `ParsedUrl(url)` exposes `schema`, `host`, `port`,
  `path`, `query` and `userinfo` as strings (the port as an int). Missing
  parts are empty, the path defaults to `/`, and the port to 443 for `https`
  and `wss`, otherwise 80. The fragment is dropped.
- `tbdevice.http_response`: `ResponseReader` parses a response as it
  arrives. `response_status_code()` skips 1xx responses other than 101;
  `skip_response_headers()`, `header_available()` with
  `read_header_name()` / `read_header_value()`, `content_length()` (None
  when the server sent none), `response_body()`, `end_of_body_reached()`,
  and `read()` / `read_bytes()` / `peek()` / `available()`, which respect
  chunked transfer encoding. `HttpState` lists the reader's states.
  Failures raise `HttpApiError`, `HttpConnectionFailed`, `HttpTimeoutError`
  or `HttpInvalidResponse`, all subclasses of `HttpError`. The timeouts are
  the attributes `response_timeout` (30 s), `wait_for_data_delay` (0.1 s)
  and `read_timeout` (1 s, per body byte).
- `tbdevice.httpclient`: `HttpClient(client, server, port=80)` with `get`,
  `post`, `put`, `patch` and `delete`, `send_header`, `send_basic_auth`,
  `connection_keep_alive` and `no_default_request_headers`. For a request
  built in steps, call `begin_request()`, then the method, then
  `send_header(...)` as needed and `end_request()`. A host name as `server`
  is sent in the `Host` header (with the port unless it is 80 or 443); an
  IP address sends no `Host` header. By default every request carries
  `Connection: close` and reconnects.
- `tbdevice.websocket`: `WebSocketClient(client, server, port=80)`.
  `begin(path="/")` performs the upgrade handshake and raises
  `HttpInvalidResponse` unless the server answers 101. Outgoing messages are
  built with `begin_message(type)`, `write(...)` and `end_message()`, are
  masked, and hold at most 128 bytes. `parse_message()` reads the next
  frame header and returns its payload size; `read_string()`, `read()` and
  `read_bytes()` return the unmasked payload. Pings are answered with a pong
  and close frames stop the connection. `MessageType` lists the opcodes.

## Example

```python
from tbdevice.httpclient import HttpClient

http = HttpClient(transport, "demo.example.com", 80)
http.post("/api/v1/token/telemetry", "application/json", '{"temperature": 21.5}')
status = http.response_status_code()
body = http.response_body()
```

```python
from tbdevice.websocket import MessageType, WebSocketClient

ws = WebSocketClient(transport, "demo.example.com", 80)
ws.begin("/ws")
ws.begin_message(MessageType.TEXT)
ws.write("hello")
ws.end_message()

if ws.parse_message() > 0:
    print(ws.message_type(), ws.read_string())
```

## What it does not do

- There is no MQTT client here; only HTTP and WebSocket are covered.
- There is no built-in socket or TLS transport: you supply the transport.
- There is no command-line tool.