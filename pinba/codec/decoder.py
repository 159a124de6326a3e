# ==============================
# Message Decoder
# ==============================
"""
Decode a request datagram back into a field-name keyed dict.

Used for inspection (local collectors, tests). Unknown field numbers are
skipped. Repeated fields always decode to a list, even when empty.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pinba.codec import wire
from pinba.codec.schema import DEFAULT_SCHEMA, Cardinality, FieldType, MessageSchema
from pinba.contracts.errors import InvalidValueError


def decode_message(buffer: bytes, schema: Optional[MessageSchema] = None) -> Dict[str, Any]:
    use = schema or DEFAULT_SCHEMA
    out: Dict[str, Any] = {
        spec.name: [] for spec in use if spec.cardinality == Cardinality.REPEATED
    }
    for number, wire_type, raw in wire.iter_fields(buffer):
        try:
            spec = use.by_number(number)
        except KeyError:
            continue
        if wire_type != spec.type.wire_type:
            raise InvalidValueError(
                f"Field '{spec.name}' ({number}) has wire type {wire_type.name}, "
                f"expected {spec.type.wire_type.name}"
            )
        if spec.type == FieldType.STRING:
            try:
                value: Any = bytes(raw).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InvalidValueError(f"Field '{spec.name}' ({number}) is not valid UTF-8") from exc
        elif spec.type == FieldType.FLOAT:
            value = wire.unpack_float(bytes(raw))
        else:
            value = raw
        if spec.cardinality == Cardinality.REPEATED:
            out[spec.name].append(value)
        else:
            out[spec.name] = value
    return out
