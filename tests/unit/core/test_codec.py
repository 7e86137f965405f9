"""Unit tests for value codecs and collection encodings."""

from __future__ import annotations

import json
from enum import Enum

import pytest

from syncdb.core.codec import (
    BOOLEAN,
    INT,
    LONG,
    STRING,
    Codec,
    EnumCodec,
    FormatError,
    decode_map,
    decode_set,
    encode_map,
    encode_set,
)


class Difficulty(Enum):
    EASY = 1
    HARD = 2


# =============================================================================
# Scalars
# =============================================================================


class TestBooleanCodec:
    def test_encodes_lowercase_words(self):
        assert BOOLEAN.encode(True) == "true"
        assert BOOLEAN.encode(False) == "false"

    def test_decodes_words(self):
        assert BOOLEAN.decode("true") is True
        assert BOOLEAN.decode("false") is False

    @pytest.mark.parametrize("raw", ["True", "1", "", "yes"])
    def test_rejects_other_strings(self, raw):
        with pytest.raises(FormatError):
            BOOLEAN.decode(raw)

    def test_encode_rejects_non_bool(self):
        with pytest.raises(TypeError):
            BOOLEAN.encode(1)


class TestIntegerCodec:
    def test_encodes_base_ten(self):
        assert INT.encode(45) == "45"
        assert INT.encode(-7) == "-7"

    def test_decode_inverts_encode(self):
        assert INT.decode(INT.encode(2**31 - 1)) == 2**31 - 1
        assert LONG.decode(LONG.encode(-(2**63))) == -(2**63)

    def test_int_range_enforced_on_decode(self):
        with pytest.raises(FormatError):
            INT.decode(str(2**31))

    def test_long_accepts_values_beyond_int(self):
        assert LONG.decode(str(2**40)) == 2**40

    def test_out_of_range_encode_is_value_error(self):
        with pytest.raises(ValueError):
            INT.encode(2**31)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            INT.encode(True)

    @pytest.mark.parametrize("raw", ["", "4.5", "abc", "0x10"])
    def test_rejects_garbage(self, raw):
        with pytest.raises(FormatError):
            INT.decode(raw)

    @pytest.mark.parametrize("raw", ["4_2", " +7 ", "+7", "007", "-0", "12\n"])
    def test_rejects_non_canonical_forms(self, raw):
        with pytest.raises(FormatError, match="non-canonical"):
            LONG.decode(raw)


class TestStringCodec:
    def test_encodes_as_json(self):
        assert STRING.encode("bar") == '"bar"'

    def test_none_is_null(self):
        assert STRING.encode(None) == "null"
        assert STRING.decode("null") is None

    def test_empty_string_distinct_from_none(self):
        assert STRING.encode("") == '""'
        assert STRING.decode('""') == ""

    def test_escapes_survive(self):
        text = 'quote " and\nnewline'
        assert STRING.decode(STRING.encode(text)) == text

    def test_rejects_non_string_json(self):
        with pytest.raises(FormatError):
            STRING.decode("42")

    def test_rejects_invalid_json(self):
        with pytest.raises(FormatError):
            STRING.decode("bar")


class TestEnumCodec:
    def test_encodes_by_name(self):
        codec = EnumCodec(Difficulty)
        assert codec.encode(Difficulty.HARD) == "HARD"
        assert codec.decode("EASY") is Difficulty.EASY

    def test_unknown_member(self):
        with pytest.raises(FormatError, match="MEDIUM"):
            EnumCodec(Difficulty).decode("MEDIUM")

    def test_wrong_type(self):
        with pytest.raises(TypeError):
            EnumCodec(Difficulty).encode("HARD")

    def test_satisfies_codec_protocol(self):
        assert isinstance(EnumCodec(Difficulty), Codec)
        assert isinstance(STRING, Codec)


class TestFormatError:
    def test_is_value_error(self):
        assert issubclass(FormatError, ValueError)

    def test_key_prefixes_message(self):
        err = FormatError("bad", key="maxInt")
        assert err.key == "maxInt"
        assert str(err) == "maxInt: bad"


# =============================================================================
# Collections
# =============================================================================


class TestSetEncoding:
    def test_sorted_for_stable_output(self):
        assert encode_set({"b", "a"}, STRING) == encode_set({"a", "b"}, STRING)
        assert json.loads(encode_set({"b", "a"}, STRING)) == ['"a"', '"b"']

    def test_decode_inverts_encode(self):
        assert decode_set(encode_set({1, 2, 3}, INT), INT) == {1, 2, 3}

    def test_empty(self):
        assert decode_set(encode_set(set(), INT), INT) == set()

    def test_rejects_object(self):
        with pytest.raises(FormatError):
            decode_set('{"a": "1"}', INT)

    def test_rejects_non_string_items(self):
        with pytest.raises(FormatError):
            decode_set("[1, 2]", INT)


class TestMapEncoding:
    def test_decode_inverts_encode(self):
        entries = {"two": 2, "four": 44}
        assert decode_map(encode_map(entries, STRING, INT), STRING, INT) == entries

    def test_stable_key_order(self):
        assert encode_map({"b": 1, "a": 2}, STRING, INT) == encode_map({"a": 2, "b": 1}, STRING, INT)

    def test_rejects_list(self):
        with pytest.raises(FormatError):
            decode_map("[]", STRING, INT)

    def test_rejects_bad_value(self):
        with pytest.raises(FormatError):
            decode_map('{"\\"a\\"": "x"}', STRING, INT)
