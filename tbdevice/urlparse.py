"""Strict URL splitter that records where each component lies in the input."""

from __future__ import annotations

import string
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto

VERSION_MAJOR = 2
VERSION_MINOR = 7
VERSION_PATCH = 1

_MAX_PORT = 0xFFFF

_ALPHA = frozenset(string.ascii_letters)
_DIGITS = frozenset(string.digits)
_ALNUM = _ALPHA | _DIGITS
_HEX = frozenset(string.hexdigits)
_MARK = frozenset("-_.!~*'()")
_USERINFO_CHARS = _ALNUM | _MARK | frozenset("%;:&=+$,")
_HOST_CHARS = _ALNUM | frozenset(".-")
_ZONE_CHARS = _ALNUM | frozenset("%.-_~")
_V6_CHARS = _HEX | frozenset(":.")
_TERMINATORS = frozenset(" \r\n\t\f")


class UrlField(IntEnum):
    """Components a URL is split into."""

    SCHEMA = 0
    HOST = 1
    PORT = 2
    PATH = 3
    QUERY = 4
    FRAGMENT = 5
    USERINFO = 6


class UrlParseError(ValueError):
    """Raised when a URL cannot be split into its components."""


@dataclass(frozen=True, eq=True)
class UrlParts:
    """The result of :func:`parse_url`.

    ``spans`` maps each component found to its ``(offset, length)`` in ``url``;
    ``port`` is the numeric port, or 0 when the URL names none.
    """

    url: str
    spans: Mapping[UrlField, tuple[int, int]] = field(default_factory=dict)
    port: int = 0

    __hash__ = None  # type: ignore[assignment]

    @property
    def field_set(self) -> int:
        """Bit mask with ``1 << field`` set for every component present."""
        mask = 0
        for present in self.spans:
            mask |= 1 << present
        return mask

    def __contains__(self, item: object) -> bool:
        return item in self.spans

    def span(self, which: UrlField) -> tuple[int, int] | None:
        """Return ``(offset, length)`` of a component, or None if absent."""
        return self.spans.get(which)

    def get(self, which: UrlField, default: str | None = None) -> str | None:
        """Return the text of a component, or ``default`` if absent."""
        found = self.spans.get(which)
        if found is None:
            return default
        offset, length = found
        return self.url[offset:offset + length]


class _State(Enum):
    DEAD = auto()
    SPACES_BEFORE_URL = auto()
    SCHEMA = auto()
    SCHEMA_SLASH = auto()
    SCHEMA_SLASH_SLASH = auto()
    SERVER_START = auto()
    SERVER = auto()
    SERVER_WITH_AT = auto()
    PATH = auto()
    QUERY_STRING_START = auto()
    QUERY_STRING = auto()
    FRAGMENT_START = auto()
    FRAGMENT = auto()


class _HostState(Enum):
    DEAD = auto()
    USERINFO_START = auto()
    USERINFO = auto()
    HOST_START = auto()
    V6_START = auto()
    HOST = auto()
    V6 = auto()
    V6_END = auto()
    V6_ZONE_START = auto()
    V6_ZONE = auto()
    PORT_START = auto()
    PORT = auto()


_DELIMITER_STATES = frozenset({
    _State.SCHEMA_SLASH,
    _State.SCHEMA_SLASH_SLASH,
    _State.SERVER_START,
    _State.QUERY_STRING_START,
    _State.FRAGMENT_START,
})

_STATE_FIELDS = {
    _State.SCHEMA: UrlField.SCHEMA,
    _State.SERVER: UrlField.HOST,
    _State.SERVER_WITH_AT: UrlField.HOST,
    _State.PATH: UrlField.PATH,
    _State.QUERY_STRING: UrlField.QUERY,
    _State.FRAGMENT: UrlField.FRAGMENT,
}

_BAD_HOST_END_STATES = frozenset({
    _HostState.HOST_START,
    _HostState.V6_START,
    _HostState.V6,
    _HostState.V6_ZONE_START,
    _HostState.V6_ZONE,
    _HostState.PORT_START,
    _HostState.USERINFO,
    _HostState.USERINFO_START,
})


def _is_url_char(ch: str) -> bool:
    return "!" <= ch <= "~" and ch not in "#?"


def _next_url_state(state: _State, ch: str) -> _State:
    if ch in _TERMINATORS:
        return _State.DEAD

    if state is _State.SPACES_BEFORE_URL:
        if ch in "/*":
            return _State.PATH
        if ch in _ALPHA:
            return _State.SCHEMA
    elif state is _State.SCHEMA:
        if ch in _ALPHA:
            return state
        if ch == ":":
            return _State.SCHEMA_SLASH
    elif state is _State.SCHEMA_SLASH:
        if ch == "/":
            return _State.SCHEMA_SLASH_SLASH
    elif state is _State.SCHEMA_SLASH_SLASH:
        if ch == "/":
            return _State.SERVER_START
    elif state in (_State.SERVER_WITH_AT, _State.SERVER_START, _State.SERVER):
        if state is _State.SERVER_WITH_AT and ch == "@":
            return _State.DEAD
        if ch == "/":
            return _State.PATH
        if ch == "?":
            return _State.QUERY_STRING_START
        if ch == "@":
            return _State.SERVER_WITH_AT
        if ch in _USERINFO_CHARS or ch in "[]":
            return _State.SERVER
    elif state is _State.PATH:
        if _is_url_char(ch):
            return state
        if ch == "?":
            return _State.QUERY_STRING_START
        if ch == "#":
            return _State.FRAGMENT_START
    elif state in (_State.QUERY_STRING_START, _State.QUERY_STRING):
        if _is_url_char(ch) or ch == "?":
            return _State.QUERY_STRING
        if ch == "#":
            return _State.FRAGMENT_START
    elif state is _State.FRAGMENT_START:
        if _is_url_char(ch) or ch == "?":
            return _State.FRAGMENT
        if ch == "#":
            return state
    elif state is _State.FRAGMENT:
        if _is_url_char(ch) or ch in "?#":
            return state

    return _State.DEAD


def _next_host_state(state: _HostState, ch: str) -> _HostState:
    if state in (_HostState.USERINFO, _HostState.USERINFO_START):
        if ch == "@":
            return _HostState.HOST_START
        if ch in _USERINFO_CHARS:
            return _HostState.USERINFO
    elif state is _HostState.HOST_START:
        if ch == "[":
            return _HostState.V6_START
        if ch in _HOST_CHARS:
            return _HostState.HOST
    elif state in (_HostState.HOST, _HostState.V6_END):
        if state is _HostState.HOST and ch in _HOST_CHARS:
            return _HostState.HOST
        if ch == ":":
            return _HostState.PORT_START
    elif state in (_HostState.V6, _HostState.V6_START):
        if state is _HostState.V6 and ch == "]":
            return _HostState.V6_END
        if ch in _V6_CHARS:
            return _HostState.V6
        if state is _HostState.V6 and ch == "%":
            return _HostState.V6_ZONE_START
    elif state in (_HostState.V6_ZONE, _HostState.V6_ZONE_START):
        if state is _HostState.V6_ZONE and ch == "]":
            return _HostState.V6_END
        if ch in _ZONE_CHARS:
            return _HostState.V6_ZONE
    elif state in (_HostState.PORT, _HostState.PORT_START):
        if ch in _DIGITS:
            return _HostState.PORT
    return _HostState.DEAD


def _split_authority(url: str, spans: dict[UrlField, list[int]], found_at: bool) -> None:
    """Split the authority span into user info, host and port, in place."""
    start, length = spans[UrlField.HOST]
    host_offset, host_length = start, 0
    state = _HostState.USERINFO_START if found_at else _HostState.HOST_START

    for pos, ch in enumerate(url[start:start + length], start=start):
        new_state = _next_host_state(state, ch)
        if new_state is _HostState.DEAD:
            raise UrlParseError(f"invalid character {ch!r} in authority at offset {pos}")

        if new_state in (_HostState.HOST, _HostState.V6):
            if state is not new_state:
                host_offset = pos
            host_length += 1
        elif new_state in (_HostState.V6_ZONE_START, _HostState.V6_ZONE):
            host_length += 1
        elif new_state is _HostState.PORT:
            if state is not _HostState.PORT:
                spans[UrlField.PORT] = [pos, 0]
            spans[UrlField.PORT][1] += 1
        elif new_state is _HostState.USERINFO:
            if state is not _HostState.USERINFO:
                spans[UrlField.USERINFO] = [pos, 0]
            spans[UrlField.USERINFO][1] += 1
        state = new_state

    if state in _BAD_HOST_END_STATES:
        raise UrlParseError("authority ends unexpectedly")

    spans[UrlField.HOST] = [host_offset, host_length]


def parse_url(url: str | bytes, is_connect: bool = False) -> UrlParts:
    """Split ``url`` into its components.

    With ``is_connect`` the URL must be exactly ``host:port``, as in a
    CONNECT request. Raises :class:`UrlParseError` when the URL is malformed.
    """
    text = url.decode("latin-1") if isinstance(url, (bytes, bytearray)) else url
    spans: dict[UrlField, list[int]] = {}
    state = _State.SERVER_START if is_connect else _State.SPACES_BEFORE_URL
    current: UrlField | None = None
    found_at = False

    for pos, ch in enumerate(text):
        state = _next_url_state(state, ch)
        if state is _State.DEAD:
            raise UrlParseError(f"invalid character {ch!r} at offset {pos}")
        if state in _DELIMITER_STATES:
            continue
        if state is _State.SERVER_WITH_AT:
            found_at = True

        which = _STATE_FIELDS[state]
        if which is current:
            spans[which][1] += 1
            continue
        spans[which] = [pos, 1]
        current = which

    if UrlField.SCHEMA in spans and UrlField.HOST not in spans:
        raise UrlParseError("a URL with a schema must have a host")

    if UrlField.HOST in spans:
        _split_authority(text, spans, found_at)

    if is_connect and set(spans) != {UrlField.HOST, UrlField.PORT}:
        raise UrlParseError("a CONNECT target must be exactly host:port")

    port = 0
    if UrlField.PORT in spans:
        offset, length = spans[UrlField.PORT]
        port = int(text[offset:offset + length])
        if port > _MAX_PORT:
            raise UrlParseError(f"port out of range: {port}")

    return UrlParts(
        url=text,
        spans={which: (offset, length) for which, (offset, length) in spans.items()},
        port=port,
    )


def parser_version() -> int:
    """Return the parser version packed as major << 16 | minor << 8 | patch."""
    return VERSION_MAJOR << 16 | VERSION_MINOR << 8 | VERSION_PATCH