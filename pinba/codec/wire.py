# ==============================
# Wire Primitives
# ==============================
"""
Protocol-buffers style wire primitives.

Only the three payload kinds the request message needs are supported:
varint (uint32), fixed32 (float) and length-delimited (string).

No schema knowledge here. No I/O.
"""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import Iterator, Tuple, Union

from pinba.contracts.errors import InvalidValueError

_FLOAT = struct.Struct("<f")

# largest finite IEEE-754 single precision value
FLOAT32_MAX = 3.4028234663852886e38


class WireType(IntEnum):
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3  # deprecated
    END_GROUP = 4  # deprecated
    FIXED32 = 5


# ==============================
# Encoding
# ==============================


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise InvalidValueError(f"Varint value must be non-negative, got {value}")
    out = bytearray()
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def varint_size(value: int) -> int:
    if value < 0:
        raise InvalidValueError(f"Varint value must be non-negative, got {value}")
    size = 1
    while value > 0x7F:
        value >>= 7
        size += 1
    return size


def make_tag(field_number: int, wire_type: WireType) -> int:
    return (field_number << 3) | int(wire_type)


def encode_uint32(field_number: int, value: int) -> bytes:
    if not 0 <= value <= 0xFFFFFFFF:
        raise InvalidValueError(f"Field {field_number}: uint32 out of range: {value}")
    return encode_varint(make_tag(field_number, WireType.VARINT)) + encode_varint(value)


def encode_float(field_number: int, value: float) -> bytes:
    try:
        packed = _FLOAT.pack(value)
    except (OverflowError, struct.error) as exc:
        raise InvalidValueError(f"Field {field_number}: float out of range: {value!r}") from exc
    return encode_varint(make_tag(field_number, WireType.FIXED32)) + packed


def encode_string(field_number: int, value: Union[str, bytes]) -> bytes:
    raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    header = encode_varint(make_tag(field_number, WireType.LENGTH_DELIMITED))
    return header + encode_varint(len(raw)) + raw


def uint32_size(field_number: int, value: int) -> int:
    return varint_size(make_tag(field_number, WireType.VARINT)) + varint_size(value)


def float_size(field_number: int) -> int:
    return varint_size(make_tag(field_number, WireType.FIXED32)) + _FLOAT.size


def string_size(field_number: int, value: Union[str, bytes]) -> int:
    length = len(value.encode("utf-8")) if isinstance(value, str) else len(value)
    return varint_size(make_tag(field_number, WireType.LENGTH_DELIMITED)) + varint_size(length) + length


# ==============================
# Decoding
# ==============================


def decode_varint(buffer: bytes, pos: int = 0) -> Tuple[int, int]:
    """
    Read one varint starting at pos.
    Returns (value, new_pos).
    """
    result = 0
    shift = 0
    while True:
        if pos >= len(buffer):
            raise InvalidValueError("Truncated varint")
        byte = buffer[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift > 63:
            raise InvalidValueError("Varint too long")


def iter_fields(buffer: bytes) -> Iterator[Tuple[int, WireType, Union[int, bytes]]]:
    """
    Yield (field_number, wire_type, raw_value) for every field in buffer.

    Varints are yielded as int; every other wire type as the raw payload bytes.
    """
    pos = 0
    end = len(buffer)
    while pos < end:
        tag, pos = decode_varint(buffer, pos)
        field_number = tag >> 3
        try:
            wire_type = WireType(tag & 0x07)
        except ValueError as exc:
            raise InvalidValueError(f"Unknown wire type in tag {tag}") from exc
        if wire_type == WireType.VARINT:
            value, pos = decode_varint(buffer, pos)
            yield field_number, wire_type, value
        elif wire_type in _FIXED_SIZES:
            size = _FIXED_SIZES[wire_type]
            _require(pos + size, end, field_number)
            yield field_number, wire_type, buffer[pos : pos + size]
            pos += size
        elif wire_type == WireType.LENGTH_DELIMITED:
            length, pos = decode_varint(buffer, pos)
            _require(pos + length, end, field_number)
            yield field_number, wire_type, buffer[pos : pos + length]
            pos += length
        else:
            raise InvalidValueError(f"Unsupported wire type {wire_type.name}")


_FIXED_SIZES = {WireType.FIXED32: 4, WireType.FIXED64: 8}


def _require(stop: int, end: int, field_number: int) -> None:
    if stop > end:
        raise InvalidValueError(f"Truncated payload for field {field_number}")


def unpack_float(raw: bytes) -> float:
    return _FLOAT.unpack(raw)[0]
