"""URL components with the defaults an HTTP or WebSocket request needs."""

from __future__ import annotations

from .urlparse import UrlField, parse_url

_SECURE_SCHEMAS = frozenset({"https", "wss"})
_SECURE_PORT = 443
_PLAIN_PORT = 80


class ParsedUrl:
    """Schema, host, port, path, query and user info of a URL.

    Missing components are empty strings, except that an empty path becomes
    ``"/"`` and a missing port becomes 443 for ``https``/``wss`` and 80
    otherwise. The fragment is dropped. Raises
    :class:`~tbdevice.urlparse.UrlParseError` for a malformed URL.
    """

    __slots__ = ("schema", "host", "port", "path", "query", "userinfo")

    def __init__(self, url: str | bytes) -> None:
        parts = parse_url(url)
        self.schema: str = parts.get(UrlField.SCHEMA, "") or ""
        self.host: str = parts.get(UrlField.HOST, "") or ""
        self.query: str = parts.get(UrlField.QUERY, "") or ""
        self.userinfo: str = parts.get(UrlField.USERINFO, "") or ""
        self.path: str = parts.get(UrlField.PATH, "") or "/"
        if parts.port:
            self.port: int = parts.port
        elif self.schema in _SECURE_SCHEMAS:
            self.port = _SECURE_PORT
        else:
            self.port = _PLAIN_PORT

    def __repr__(self) -> str:
        return (
            f"ParsedUrl(schema={self.schema!r}, host={self.host!r}, port={self.port}, "
            f"path={self.path!r}, query={self.query!r}, userinfo={self.userinfo!r})"
        )