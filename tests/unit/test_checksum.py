"""
Unit tests for canonical JSON and checksums.
"""

import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from schemastash.core.checksum import (
    CanonicalizationError,
    canonicalize,
    checksum_of,
    content_sha256,
    is_checksum,
    prefix_checksum,
    sha256_hex,
    strip_checksum_prefix,
)

EXAMPLE_CHECKSUM = "sha256:fdd6d11951299b11b907b704cb0030da837421f7be1315f0b2d16c86cee08bdc"

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text()
    | st.floats(allow_nan=False, allow_infinity=False),
    lambda children: st.lists(children, max_size=4) | st.dictionaries(st.text(), children, max_size=4),
    max_leaves=20,
)


class TestCanonicalize:
    """Tests for canonical serialization"""

    def test_sorts_keys_without_whitespace(self):
        assert canonicalize({"foo": 1, "bar": "baz"}) == '{"bar":"baz","foo":1}'

    def test_nested_objects_sorted(self):
        value = {"b": [{"z": 1, "a": 2}], "a": {"y": None, "x": True}}
        assert canonicalize(value) == '{"a":{"x":true,"y":null},"b":[{"a":2,"z":1}]}'

    def test_numbers_rendered_like_ecmascript(self):
        assert canonicalize(1.0) == "1"
        assert canonicalize(-0.0) == "0"
        assert canonicalize(0.5) == "0.5"
        assert canonicalize(1e21) == "1e+21"
        assert canonicalize(1e-7) == "1e-7"
        assert canonicalize(123456789012.5) == "123456789012.5"

    def test_strings_keep_unicode(self):
        assert canonicalize("café") == '"café"'
        assert canonicalize('quote"and\\slash') == '"quote\\"and\\\\slash"'

    def test_keys_sorted_by_utf16_code_units(self):
        # U+10000 encodes as a surrogate pair (0xD800...) and sorts before U+FFFD
        value = {"�": 1, "\U00010000": 2}
        assert canonicalize(value) == '{"\U00010000":2,"�":1}'

    def test_rejects_nan(self):
        with pytest.raises(CanonicalizationError):
            canonicalize(float("nan"))

    def test_rejects_non_string_keys(self):
        with pytest.raises(CanonicalizationError):
            canonicalize({1: "a"})

    def test_rejects_unsupported_types(self):
        with pytest.raises(CanonicalizationError):
            canonicalize({"when": object()})


class TestChecksums:
    """Tests for content checksums"""

    def test_known_checksum(self):
        assert checksum_of({"foo": 1, "bar": "baz"}) == EXAMPLE_CHECKSUM

    def test_key_order_does_not_matter(self):
        assert checksum_of({"bar": "baz", "foo": 1}) == EXAMPLE_CHECKSUM

    def test_prefix_round_trip(self):
        digest = content_sha256({"foo": 1, "bar": "baz"})
        assert prefix_checksum(digest) == EXAMPLE_CHECKSUM
        assert strip_checksum_prefix(EXAMPLE_CHECKSUM) == digest
        assert strip_checksum_prefix(digest) == digest

    def test_sha256_hex_of_empty_string(self):
        assert sha256_hex("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    def test_is_checksum(self):
        assert is_checksum(EXAMPLE_CHECKSUM)
        assert not is_checksum(EXAMPLE_CHECKSUM.upper())
        assert not is_checksum("sha256:abc")
        assert not is_checksum("md5:" + "0" * 64)
        assert not is_checksum(None)

    @given(st.dictionaries(st.text(), json_values, max_size=6))
    def test_checksum_independent_of_key_order(self, value):
        reversed_value = dict(reversed(list(value.items())))
        assert checksum_of(reversed_value) == checksum_of(value)

    @given(json_values)
    def test_canonical_form_is_stable(self, value):
        assert canonicalize(json.loads(canonicalize(value))) == canonicalize(value)
