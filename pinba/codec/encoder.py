# ==============================
# Message Encoder
# ==============================
"""
Schema-driven encoder for the request message.

Rules:
- Fields are emitted in ascending field-number order.
- REQUIRED fields must be present (None is rejected).
- OPTIONAL fields are skipped when None.
- REPEATED fields are emitted unpacked: one tag + payload per element.

encode() precomputes the expected size and checks the produced buffer
against it; a disagreement is a codec bug and raises
EncodingSizeMismatchError.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Tuple

from pinba.codec import wire
from pinba.codec.schema import DEFAULT_SCHEMA, Cardinality, FieldSpec, FieldType, MessageSchema
from pinba.contracts.errors import EncodingSizeMismatchError, InvalidValueError

logger = logging.getLogger("pinba.codec")


class MessageEncoder:
    def __init__(self, schema: Optional[MessageSchema] = None) -> None:
        self.schema = schema or DEFAULT_SCHEMA

    # ==============================
    # Public API
    # ==============================

    def expected_size(self, message: Mapping[str, Any]) -> int:
        total = 0
        for spec, value in self._present(message):
            total += self._value_size(spec, value)
        return total

    def encode_fields(self, message: Mapping[str, Any]) -> bytes:
        out = bytearray()
        for spec, value in self._present(message):
            out += self._encode_value(spec, value)
        return bytes(out)

    def encode(self, message: Mapping[str, Any]) -> bytes:
        expected = self.expected_size(message)
        payload = self.encode_fields(message)
        if len(payload) != expected:
            logger.error(
                "encoded size mismatch",
                extra={"size": len(payload), "expected_size": expected},
            )
            raise EncodingSizeMismatchError(expected=expected, actual=len(payload))
        return payload

    # ==============================
    # Internals
    # ==============================

    def _present(self, message: Mapping[str, Any]) -> Iterable[Tuple[FieldSpec, Any]]:
        for spec in self.schema:
            value = message.get(spec.name)
            if spec.cardinality == Cardinality.REPEATED:
                for item in value or ():
                    yield spec, item
            elif value is None:
                if spec.cardinality == Cardinality.REQUIRED:
                    raise InvalidValueError(f"Required field '{spec.name}' ({spec.number}) is missing")
            else:
                yield spec, value

    def _encode_value(self, spec: FieldSpec, value: Any) -> bytes:
        if spec.type == FieldType.UINT32:
            return wire.encode_uint32(spec.number, _as_uint(spec, value))
        if spec.type == FieldType.FLOAT:
            return wire.encode_float(spec.number, float(value))
        return wire.encode_string(spec.number, _as_text(spec, value))

    def _value_size(self, spec: FieldSpec, value: Any) -> int:
        if spec.type == FieldType.UINT32:
            return wire.uint32_size(spec.number, _as_uint(spec, value))
        if spec.type == FieldType.FLOAT:
            return wire.float_size(spec.number)
        return wire.string_size(spec.number, _as_text(spec, value))


def _as_uint(spec: FieldSpec, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidValueError(f"Field '{spec.name}' expects an integer, got {type(value).__name__}")
    return value


def _as_text(spec: FieldSpec, value: Any) -> Any:
    if not isinstance(value, (str, bytes)):
        raise InvalidValueError(f"Field '{spec.name}' expects a string, got {type(value).__name__}")
    return value


def encode_message(message: Mapping[str, Any], schema: Optional[MessageSchema] = None) -> bytes:
    return MessageEncoder(schema).encode(message)
