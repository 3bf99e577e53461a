"""Decoder for the compressed note body stored in ZICNOTEDATA.ZDATA.

Apple Notes stores content as gzip-compressed protobuf. There is no
published schema; the layout below is what has been observed:

    legacy:  top-level { 3: note { 2: text } }
    modern:  top-level { 2: document { 3: note { 2: text } } }

Everything else is skipped. Parsing problems inside the envelope mean
"no text", never an exception, so that a format change in a future macOS
release degrades to an empty body instead of a crash.
"""

import gzip
import zlib

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5

SUPPORTED_WIRE_TYPES = (WIRE_VARINT, WIRE_FIXED64, WIRE_LENGTH_DELIMITED, WIRE_FIXED32)


class DecodeError(Exception):
    """Note data could not be decompressed or parsed."""
    pass


def gunzip(data: bytes) -> bytes:
    """Decompress gzip data; empty input stays empty."""
    if not data:
        return b""
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error, MemoryError) as e:
        raise DecodeError(f"Failed to decode gzip data: {e}") from e


class ProtobufReader:
    """Minimal cursor over protobuf wire-format bytes."""

    def __init__(self, data: bytes):
        self.data = data
        self.index = 0

    def read_tag(self) -> tuple[int, int] | None:
        """Return (field number, wire type), or None at the end or on a bad tag."""
        if self.index >= len(self.data):
            return None
        try:
            raw = self.read_varint()
        except DecodeError:
            return None
        wire_type = raw & 0x7
        if wire_type not in SUPPORTED_WIRE_TYPES:
            return None
        return raw >> 3, wire_type

    def read_varint(self) -> int:
        result = 0
        shift = 0
        while self.index < len(self.data):
            byte = self.data[self.index]
            self.index += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7
            if shift > 63:
                raise DecodeError("Invalid protobuf varint")
        raise DecodeError("Unexpected EOF while reading varint")

    def read_length(self) -> int:
        length = self.read_varint()
        if self.index + length > len(self.data):
            raise DecodeError("Protobuf length out of range")
        return length

    def read_bytes(self, count: int) -> bytes:
        if count < 0 or self.index + count > len(self.data):
            raise DecodeError("Unexpected EOF while reading bytes")
        chunk = self.data[self.index:self.index + count]
        self.index += count
        return chunk

    def skip(self, wire_type: int) -> None:
        if wire_type == WIRE_VARINT:
            self.read_varint()
        elif wire_type == WIRE_FIXED64:
            self.read_bytes(8)
        elif wire_type == WIRE_FIXED32:
            self.read_bytes(4)
        elif wire_type == WIRE_LENGTH_DELIMITED:
            self.read_bytes(self.read_length())
        else:
            raise DecodeError(f"Unsupported wire type {wire_type}")

    def fields(self):
        """Yield (field number, wire type, payload) for every field.

        Payload is the raw bytes for length-delimited fields and None for
        the others, which are skipped.
        """
        while True:
            tag = self.read_tag()
            if tag is None:
                return
            field_number, wire_type = tag
            if wire_type == WIRE_LENGTH_DELIMITED:
                yield field_number, wire_type, self.read_bytes(self.read_length())
            else:
                self.skip(wire_type)
                yield field_number, wire_type, None


def _find_message(data: bytes, field_number: int) -> list[bytes]:
    """Length-delimited payloads of one field, in order, up to the first parse error."""
    found = []
    try:
        for number, wire_type, payload in ProtobufReader(data).fields():
            if number == field_number and wire_type == WIRE_LENGTH_DELIMITED:
                found.append(payload)
    except DecodeError:
        pass
    return found


def _decode_note_message(data: bytes) -> str | None:
    reader = ProtobufReader(data)
    try:
        for number, wire_type, payload in reader.fields():
            if number == 2 and wire_type == WIRE_LENGTH_DELIMITED:
                return payload.decode("utf-8")
    except (DecodeError, UnicodeDecodeError):
        return None
    return None


def _decode_legacy(data: bytes) -> str | None:
    for note in _find_message(data, 3):
        text = _decode_note_message(note)
        if text is not None:
            return text
    return None


def _decode_modern(data: bytes) -> str | None:
    for document in _find_message(data, 2):
        for note in _find_message(document, 3):
            text = _decode_note_message(note)
            if text is not None:
                return text
    return None


def decode_note_text(data: bytes) -> str | None:
    """Extract the plain text of a note from its compressed ZDATA blob.

    Returns None when no text could be found in the envelope, and "" for
    empty input.

    Raises:
        DecodeError: If the gzip layer is corrupt
    """
    unzipped = gunzip(data)
    if not unzipped:
        return ""
    text = _decode_legacy(unzipped)
    if text is None:
        text = _decode_modern(unzipped)
    return text
