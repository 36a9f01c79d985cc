"""
Canonical JSON serialization for signing.

Signatures are only portable if every implementation produces the same
bytes for the same value, so this encoder follows RFC 8785 (JCS):

- object keys sorted by their UTF-8 bytes
- no insignificant whitespace
- strings escape only '"', '\\' and U+0000-U+001F (short forms for
  \\b \\f \\n \\r \\t, lowercase \\u00xx otherwise)
- numbers in ECMAScript shortest form: no leading or trailing zeros,
  no '+' on the mantissa, exponent only outside [1e-6, 1e21)

The output is UTF-8 bytes, ready for hashing.
"""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any

from ..errors import SignatureError


def _format_float(value: float) -> str:
    if not math.isfinite(value):
        raise SignatureError(f"cannot canonicalize non-finite number {value!r}")
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 2**53:
        return str(int(value))

    sign = "-" if value < 0 else ""
    # repr() gives the shortest digits that round-trip; only the layout changes.
    mantissa, _, exp_text = repr(abs(value)).partition("e")
    exponent = int(exp_text) if exp_text else 0
    int_part, _, frac_part = mantissa.partition(".")
    all_digits = int_part + frac_part
    leading = len(all_digits) - len(all_digits.lstrip("0"))
    digits = all_digits.strip("0")
    k = len(digits)
    n = len(int_part) + exponent - leading  # value == 0.<digits> * 10**n

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        text = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        exp_sign = "+" if e >= 0 else "-"
        head = digits if k == 1 else digits[0] + "." + digits[1:]
        text = f"{head}e{exp_sign}{abs(e)}"
    return sign + text


def _encode(value: Any, out: list[str]) -> None:
    if value is None:
        out.append("null")
    elif value is True:
        out.append("true")
    elif value is False:
        out.append("false")
    elif isinstance(value, int):
        out.append(str(value))
    elif isinstance(value, float):
        out.append(_format_float(value))
    elif isinstance(value, str):
        out.append(json.dumps(value, ensure_ascii=False))
    elif isinstance(value, dict):
        for key in value:
            if not isinstance(key, str):
                raise SignatureError(f"object keys must be strings, got {type(key).__name__}")
        out.append("{")
        for i, key in enumerate(sorted(value, key=lambda k: k.encode("utf-8", "surrogatepass"))):
            if i:
                out.append(",")
            out.append(json.dumps(key, ensure_ascii=False))
            out.append(":")
            _encode(value[key], out)
        out.append("}")
    elif isinstance(value, (list, tuple)):
        out.append("[")
        for i, item in enumerate(value):
            if i:
                out.append(",")
            _encode(item, out)
        out.append("]")
    else:
        raise SignatureError(f"cannot canonicalize value of type {type(value).__name__}")


def canonicalize(value: Any) -> bytes:
    """
    Serialize a JSON-compatible value to its canonical bytes.

    Raises:
        SignatureError: for values with no JSON form (non-finite floats,
            non-string keys, unpaired surrogates, arbitrary objects)
    """
    out: list[str] = []
    _encode(value, out)
    try:
        return "".join(out).encode("utf-8")
    except UnicodeEncodeError as exc:
        raise SignatureError(f"string is not valid Unicode: {exc.reason}") from exc


def digest(value: Any) -> bytes:
    """SHA-256 of the canonical form."""
    return hashlib.sha256(canonicalize(value)).digest()


def digest_hex(value: Any) -> str:
    return hashlib.sha256(canonicalize(value)).hexdigest()
