"""Small text encodings used when building HTTP requests."""

from __future__ import annotations

import string

_B64_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "+/"
_UNRESERVED = frozenset((string.ascii_letters + string.digits + "-._~").encode("ascii"))
_HEX_DIGITS = "0123456789ABCDEF"


def _as_bytes(data: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def b64_encode(data: bytes | bytearray | memoryview | str) -> str:
    """Return the padded standard Base64 encoding of ``data``."""
    raw = _as_bytes(data)
    pieces: list[str] = []
    for start in range(0, len(raw), 3):
        chunk = raw[start:start + 3]
        padded = chunk + b"\x00" * (3 - len(chunk))
        value = int.from_bytes(padded, "big")
        quad = [_B64_ALPHABET[(value >> shift) & 0x3F] for shift in (18, 12, 6, 0)]
        kept = len(chunk) + 1
        pieces.append("".join(quad[:kept]) + "=" * (4 - kept))
    return "".join(pieces)


def url_encode(text: bytes | bytearray | memoryview | str) -> str:
    """Percent-encode every byte of ``text`` that is not an unreserved URL character.

    Strings are encoded as UTF-8 first; escapes use upper-case hex digits.
    """
    out: list[str] = []
    for byte in _as_bytes(text):
        if byte in _UNRESERVED:
            out.append(chr(byte))
        else:
            out.append("%" + _HEX_DIGITS[byte >> 4] + _HEX_DIGITS[byte & 0x0F])
    return "".join(out)