import base64
from urllib.parse import quote, unquote_to_bytes

import pytest

from tbdevice.codec import b64_encode, url_encode


@pytest.mark.parametrize(
    "data",
    [b"", b"a", b"ab", b"abc", b"amcewen", b"user:password", bytes(range(256)), b"\xff\xfe\xfd\x00"],
)
def test_b64_matches_standard_encoding(data):
    assert b64_encode(data) == base64.b64encode(data).decode("ascii")


@pytest.mark.parametrize("data", [b"x", b"xy", b"xyz", b"wxyz", b"\x00" * 17])
def test_b64_round_trip_and_length(data):
    encoded = b64_encode(data)
    assert len(encoded) == ((len(data) + 2) // 3) * 4
    assert base64.b64decode(encoded) == data


def test_b64_accepts_str_as_utf8():
    assert b64_encode("user:password") == b64_encode(b"user:password")
    assert base64.b64decode(b64_encode("héllo")) == "héllo".encode("utf-8")


def test_b64_padding_for_short_chunks():
    assert b64_encode(b"M").endswith("==")
    assert b64_encode(b"Ma").endswith("=")
    assert "=" not in b64_encode(b"Man")


def test_url_encode_keeps_unreserved():
    text = "abcXYZ0189-._~"
    assert url_encode(text) == text


def test_url_encode_space():
    assert url_encode("a b") == "a%20b"


@pytest.mark.parametrize(
    "text",
    ["hello world", "a/b?c=d&e=f", "100%", "ünïcødé", "{\"key\":1}", "", "~tilde_under.dot-dash"],
)
def test_url_encode_matches_strict_quote(text):
    assert url_encode(text) == quote(text, safe="")


@pytest.mark.parametrize("data", [bytes(range(256)), b"\x80\xff", b"plain"])
def test_url_encode_round_trip_bytes(data):
    encoded = url_encode(data)
    assert unquote_to_bytes(encoded) == data
    assert all(ch.isascii() for ch in encoded)


def test_url_encode_uses_uppercase_hex():
    encoded = url_encode(b"\xab\xcd")
    assert encoded == encoded.upper()
    assert encoded.count("%") == 2