"""
Canonical JSON serialization and content checksums.

Canonical form follows RFC 8785 (JSON Canonicalization Scheme):

- Object keys sorted by UTF-16 code units, recursively
- Separators without whitespace
- Numbers rendered the way ECMAScript renders them (1.0 -> "1", 1e21 -> "1e+21")
- Strings escaped minimally, UTF-8 output

Every stored identity in the system is derived from this form, so any
change here changes every checksum.
"""

import hashlib
import json
import math
from decimal import Decimal
from functools import lru_cache
from typing import Any

CHECKSUM_ALGORITHM = "sha256"
CHECKSUM_PREFIX = f"{CHECKSUM_ALGORITHM}:"


class CanonicalizationError(ValueError):
    """Raised when a value has no canonical JSON form."""


def _format_number(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise CanonicalizationError(f"{value!r} is not representable in JSON")
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))

    sign = "-" if value < 0 else ""
    # repr gives the shortest round-tripping digits, same as ECMAScript
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).rstrip("0") or "0"
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = k + exponent

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        text = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _utf16_key(key: str) -> bytes:
    return key.encode("utf-16-be", "surrogatepass")


def _serialize(value: Any, out: list[str]) -> None:
    if value is None:
        out.append("null")
    elif value is True:
        out.append("true")
    elif value is False:
        out.append("false")
    elif isinstance(value, int):
        out.append(str(value))
    elif isinstance(value, float):
        out.append(_format_number(value))
    elif isinstance(value, str):
        out.append(json.dumps(value, ensure_ascii=False))
    elif isinstance(value, dict):
        out.append("{")
        for index, key in enumerate(sorted(value, key=_utf16_key_checked)):
            if index:
                out.append(",")
            out.append(json.dumps(key, ensure_ascii=False))
            out.append(":")
            _serialize(value[key], out)
        out.append("}")
    elif isinstance(value, (list, tuple)):
        out.append("[")
        for index, item in enumerate(value):
            if index:
                out.append(",")
            _serialize(item, out)
        out.append("]")
    else:
        raise CanonicalizationError(
            f"Unsupported type for canonicalization: {type(value).__name__}"
        )


def _utf16_key_checked(key: Any) -> bytes:
    if not isinstance(key, str):
        raise CanonicalizationError(f"Object keys must be strings, got {type(key).__name__}")
    return _utf16_key(key)


def canonicalize(value: Any) -> str:
    """
    Serialize a JSON value to its canonical string.

    Two structurally equal values always produce the same string,
    whatever the key order of their objects.

    Raises:
        CanonicalizationError: If the value contains non-JSON types,
            non-string keys, NaN or infinities
    """
    out: list[str] = []
    _serialize(value, out)
    return "".join(out)


@lru_cache(maxsize=4096)
def sha256_hex(text: str) -> str:
    """Lowercase hex SHA-256 of a string's UTF-8 bytes (memoized)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def prefix_checksum(hex_digest: str) -> str:
    """Attach the algorithm tag: "<hex>" -> "sha256:<hex>"."""
    return CHECKSUM_PREFIX + hex_digest


def strip_checksum_prefix(checksum: str) -> str:
    """Inverse of prefix_checksum; bare digests pass through unchanged."""
    if checksum.startswith(CHECKSUM_PREFIX):
        return checksum[len(CHECKSUM_PREFIX):]
    return checksum


def content_sha256(value: Any) -> str:
    """Bare hex SHA-256 of a JSON value's canonical form."""
    return sha256_hex(canonicalize(value))


def checksum_of(value: Any) -> str:
    """Self-describing checksum of a JSON value: "sha256:<hex>"."""
    return prefix_checksum(content_sha256(value))


def is_checksum(text: str) -> bool:
    """True for well-formed "sha256:<64 lowercase hex>" strings."""
    if not isinstance(text, str) or not text.startswith(CHECKSUM_PREFIX):
        return False
    digest = text[len(CHECKSUM_PREFIX):]
    return len(digest) == 64 and all(c in "0123456789abcdef" for c in digest)
