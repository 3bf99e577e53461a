"""Tests for the note body decoder."""

import gzip

import pytest

from notesnap.proto import DecodeError, ProtobufReader, decode_note_text, gunzip
from tests.fakes import (
    bytes_field,
    encode_varint,
    fixed32_field,
    fixed64_field,
    legacy_envelope,
    modern_envelope,
    note_message,
    varint_field,
)

SAMPLE_TEXTS = [
    "Plain note body",
    "Héllo wörld, ça va?",
    "日本語のメモ\n二行目",
    "Shopping 🍎🥖🧀 and 👩‍👩‍👧 family emoji",
    "",
    "x" * 5000,
]


class TestEnvelopes:
    """Both known envelope shapes decode to the original text."""

    @pytest.mark.parametrize("text", SAMPLE_TEXTS)
    def test_legacy_envelope(self, text):
        assert decode_note_text(gzip.compress(legacy_envelope(text))) == text

    @pytest.mark.parametrize("text", SAMPLE_TEXTS)
    def test_modern_envelope(self, text):
        assert decode_note_text(gzip.compress(modern_envelope(text))) == text

    def test_legacy_shape_wins_over_modern(self):
        """The legacy field is tried first even when the modern one comes earlier."""
        document = bytes_field(3, note_message("modern"))
        payload = bytes_field(2, document) + bytes_field(3, note_message("legacy"))
        assert decode_note_text(gzip.compress(payload)) == "legacy"

    def test_unknown_fields_are_skipped(self):
        note = (
            varint_field(1, 123456)
            + fixed32_field(7)
            + fixed64_field(8)
            + bytes_field(9, b"\x00\x01\x02")
            + bytes_field(2, "found me".encode("utf-8"))
        )
        document = varint_field(1, 1) + fixed64_field(4) + bytes_field(3, note)
        payload = fixed32_field(6) + varint_field(1, 0) + bytes_field(2, document)
        assert decode_note_text(gzip.compress(payload)) == "found me"


class TestDegradation:
    """Malformed envelopes mean "no text", not an exception."""

    def test_empty_input(self):
        assert decode_note_text(b"") == ""

    def test_gzip_of_empty_bytes(self):
        assert decode_note_text(gzip.compress(b"")) == ""

    def test_no_text_field(self):
        payload = varint_field(1, 0) + bytes_field(2, varint_field(1, 5))
        assert decode_note_text(gzip.compress(payload)) is None

    def test_truncated_length(self):
        payload = encode_varint((3 << 3) | 2) + encode_varint(100) + b"abc"
        assert decode_note_text(gzip.compress(payload)) is None

    def test_unterminated_varint(self):
        assert decode_note_text(gzip.compress(b"\xff\xff\xff")) is None

    def test_invalid_utf8_text(self):
        payload = bytes_field(3, bytes_field(2, b"\xff\xfe\xfd"))
        assert decode_note_text(gzip.compress(payload)) is None

    def test_group_wire_type_stops_scan(self):
        payload = encode_varint((4 << 3) | 3) + bytes_field(3, note_message("unreachable"))
        assert decode_note_text(gzip.compress(payload)) is None

    def test_truncated_fixed64_inside_note(self):
        note = encode_varint((1 << 3) | 1) + b"\x00\x00"
        payload = bytes_field(3, note)
        assert decode_note_text(gzip.compress(payload)) is None


class TestGunzip:
    def test_empty(self):
        assert gunzip(b"") == b""

    def test_round_trip(self):
        assert gunzip(gzip.compress(b"payload")) == b"payload"

    def test_not_gzip(self):
        with pytest.raises(DecodeError):
            gunzip(b"definitely not gzip")

    def test_truncated_stream(self):
        data = gzip.compress(b"some longer payload " * 50)
        with pytest.raises(DecodeError):
            gunzip(data[: len(data) // 2])

    def test_decode_note_text_propagates_gzip_errors(self):
        with pytest.raises(DecodeError):
            decode_note_text(b"\x1f\x8b broken")


class TestProtobufReader:
    def test_multi_byte_varint(self):
        reader = ProtobufReader(encode_varint(300) + encode_varint(2**40))
        assert reader.read_varint() == 300
        assert reader.read_varint() == 2**40

    def test_overlong_varint(self):
        reader = ProtobufReader(b"\x80" * 11 + b"\x01")
        with pytest.raises(DecodeError):
            reader.read_varint()

    def test_read_tag(self):
        reader = ProtobufReader(bytes_field(3, b"ab"))
        assert reader.read_tag() == (3, 2)

    def test_read_tag_at_end(self):
        assert ProtobufReader(b"").read_tag() is None

    def test_fields(self):
        data = varint_field(1, 7) + bytes_field(2, b"hi") + fixed32_field(3)
        fields = list(ProtobufReader(data).fields())
        assert fields == [(1, 0, None), (2, 2, b"hi"), (3, 5, None)]
