"""Tests for canonical JSON bytes and digests."""

from __future__ import annotations

import hashlib

import pytest

from toolpath.errors import SignatureError
from toolpath.signing.canonical import canonicalize, digest, digest_hex


def test_keys_sorted_and_no_whitespace():
    assert canonicalize({"b": 1, "a": [1, 2, {"d": None, "c": True}]}) == b'{"a":[1,2,{"c":true,"d":null}],"b":1}'


def test_key_order_does_not_change_bytes():
    left = {"step": {"id": "s1", "actor": "human:alex"}, "change": {"x": {"raw": "+1"}}}
    right = {"change": {"x": {"raw": "+1"}}, "step": {"actor": "human:alex", "id": "s1"}}

    assert canonicalize(left) == canonicalize(right)
    assert digest(left) == digest(right)


def test_keys_sorted_by_utf8_bytes():
    # U+00E9 sorts after every ASCII key, U+20AC after U+00E9.
    value = {"€": 3, "é": 2, "z": 1, "A": 0}

    assert canonicalize(value) == '{"A":0,"z":1,"é":2,"€":3}'.encode("utf-8")


def test_string_escaping():
    value = 'quote " backslash \\ newline \n tab \t bell \x07 unit \x1f slash / snowman ☃'

    encoded = canonicalize(value)

    assert encoded == (
        b'"quote \\" backslash \\\\ newline \\n tab \\t bell \\u0007 unit \\u001f slash / snowman '
        + "☃".encode("utf-8")
        + b'"'
    )


@pytest.mark.parametrize(
    ("number", "expected"),
    [
        (0, b"0"),
        (-0.0, b"0"),
        (1.0, b"1"),
        (-5, b"-5"),
        (1.5, b"1.5"),
        (100.25, b"100.25"),
        (0.001, b"0.001"),
        (1.2e-5, b"0.000012"),
        (1e-7, b"1e-7"),
        (1e21, b"1e+21"),
        (123456789012345680000.0, b"123456789012345680000"),
        (2.5e22, b"2.5e+22"),
    ],
)
def test_number_formatting(number, expected):
    assert canonicalize(number) == expected


def test_non_finite_numbers_rejected():
    with pytest.raises(SignatureError, match="non-finite"):
        canonicalize({"x": float("nan")})
    with pytest.raises(SignatureError):
        canonicalize(float("inf"))


def test_non_json_values_rejected():
    with pytest.raises(SignatureError):
        canonicalize({1: "x"})
    with pytest.raises(SignatureError):
        canonicalize({"x": object()})


def test_digest_is_sha256_of_canonical_bytes():
    value = {"b": [1, 2], "a": "x"}

    assert digest(value) == hashlib.sha256(b'{"a":"x","b":[1,2]}').digest()
    assert digest_hex(value) == digest(value).hex()
