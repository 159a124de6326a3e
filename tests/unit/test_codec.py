# ==============================
# Tests: Wire Codec
# ==============================
from __future__ import annotations

import pytest

from pinba.codec import wire
from pinba.codec.decoder import decode_message
from pinba.codec.encoder import MessageEncoder, encode_message
from pinba.codec.schema import (
    PINBA_REQUEST_V1,
    PINBA_REQUEST_V2,
    Cardinality,
    FieldSpec,
    FieldType,
    MessageSchema,
    get_schema,
)
from pinba.contracts.errors import EncodingSizeMismatchError, InvalidValueError


def _message(**extra):
    base = {
        "hostname": "h",
        "server_name": "s",
        "script_name": "/x",
        "request_count": 1,
        "request_time": 0.5,
        "ru_utime": 0.0,
        "ru_stime": 0.0,
    }
    base.update(extra)
    return base


def test_varint_encoding() -> None:
    assert wire.encode_varint(0) == b"\x00"
    assert wire.encode_varint(1) == b"\x01"
    assert wire.encode_varint(300) == b"\xac\x02"
    assert wire.varint_size(300) == 2
    assert wire.varint_size(2**32 - 1) == 5
    assert wire.decode_varint(b"\xac\x02") == (300, 2)


def test_negative_varint_is_rejected() -> None:
    with pytest.raises(InvalidValueError):
        wire.encode_varint(-1)


def test_field_encodings() -> None:
    assert wire.encode_uint32(4, 1) == b"\x20\x01"
    assert wire.encode_string(1, "ab") == b"\x0a\x02ab"
    assert wire.encode_float(7, 1.0) == b"\x3d\x00\x00\x80\x3f"
    # field 20 needs a two-byte tag
    assert wire.encode_uint32(20, 3) == b"\xa0\x01\x03"


def test_uint32_range_is_enforced() -> None:
    with pytest.raises(InvalidValueError):
        wire.encode_uint32(4, 2**32)


def test_utf8_strings_are_length_prefixed_in_bytes() -> None:
    encoded = wire.encode_string(15, "héllo")
    assert encoded[1] == len("héllo".encode("utf-8"))
    assert wire.string_size(15, "héllo") == len(encoded)


def test_schema_tables() -> None:
    assert [f.number for f in PINBA_REQUEST_V2] == list(range(1, 18)) + [19, 20, 21]
    assert PINBA_REQUEST_V2.by_name("dictionary").cardinality == Cardinality.REPEATED
    assert PINBA_REQUEST_V2.by_number(19).name == "schema"
    assert not PINBA_REQUEST_V1.has_field("tag_name")
    assert get_schema("v1") is PINBA_REQUEST_V1
    with pytest.raises(ValueError):
        get_schema("v9")


def test_schema_rejects_duplicate_numbers() -> None:
    with pytest.raises(ValueError):
        MessageSchema(
            name="Bad",
            version="x",
            fields=(FieldSpec(1, "a", FieldType.STRING), FieldSpec(1, "b", FieldType.STRING)),
        )


def test_encode_matches_expected_size() -> None:
    encoder = MessageEncoder()
    message = _message(
        dictionary=["tag1", "value1"],
        timer_hit_count=[2],
        timer_value=[0.3],
        timer_tag_count=[1],
        timer_tag_name=[0],
        timer_tag_value=[1],
        tag_name=[0],
        tag_value=[1],
        schema="https",
        status=200,
    )

    payload = encoder.encode(message)

    assert len(payload) == encoder.expected_size(message)


def test_optional_fields_are_omitted_when_none() -> None:
    payload = encode_message(_message(document_size=None, schema=None))
    numbers = [number for number, _, _ in wire.iter_fields(payload)]
    assert numbers == [1, 2, 3, 4, 7, 8, 9]


def test_repeated_fields_are_unpacked() -> None:
    payload = encode_message(_message(timer_hit_count=[1, 2, 3]))
    hits = [value for number, _, value in wire.iter_fields(payload) if number == 10]
    assert hits == [1, 2, 3]


def test_missing_required_field_is_rejected() -> None:
    message = _message()
    del message["hostname"]
    with pytest.raises(InvalidValueError):
        encode_message(message)


def test_wrong_value_type_is_rejected() -> None:
    with pytest.raises(InvalidValueError):
        encode_message(_message(request_count="1"))


def test_v1_schema_drops_v2_only_fields() -> None:
    payload = encode_message(_message(schema="http", tag_name=[0], tag_value=[1]), PINBA_REQUEST_V1)
    numbers = {number for number, _, _ in wire.iter_fields(payload)}
    assert numbers.isdisjoint({17, 19, 20, 21})


def test_decode_reverses_encode() -> None:
    message = _message(dictionary=["a", "b"], timer_value=[0.25], status=3)

    decoded = decode_message(encode_message(message))

    assert decoded["hostname"] == "h"
    assert decoded["request_time"] == 0.5
    assert decoded["dictionary"] == ["a", "b"]
    assert decoded["timer_value"] == [0.25]
    assert decoded["status"] == 3
    assert decoded["tag_name"] == []
    assert "schema" not in decoded


class _DriftingEncoder(MessageEncoder):
    def expected_size(self, message) -> int:
        return super().expected_size(message) + 1


def test_size_mismatch_raises() -> None:
    with pytest.raises(EncodingSizeMismatchError) as excinfo:
        _DriftingEncoder().encode(_message())
    assert excinfo.value.actual + 1 == excinfo.value.expected


def test_float_beyond_float32_range_is_rejected() -> None:
    with pytest.raises(InvalidValueError):
        wire.encode_float(7, 1e39)
    with pytest.raises(InvalidValueError):
        encode_message(_message(timer_value=[1e39]))


@pytest.mark.parametrize("cut", [1, 2, 3])
def test_truncated_datagram_is_rejected(cut) -> None:
    payload = encode_message(_message(timer_value=[0.25]))

    with pytest.raises(InvalidValueError):
        decode_message(payload[:-cut])


def test_truncated_string_payload_is_rejected() -> None:
    # field 1, length 5, only two bytes follow
    with pytest.raises(InvalidValueError):
        decode_message(b"\x0a\x05ab")


def test_invalid_utf8_string_is_rejected() -> None:
    with pytest.raises(InvalidValueError, match="hostname"):
        decode_message(b"\x0a\x02\xff\xfe")
