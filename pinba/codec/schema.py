# ==============================
# Message Schema
# ==============================
"""
Versioned field tables for the Pinba request message.

A MessageSchema is selected once (per request) and drives both the encoder
and the decoder. Field names match PinbaMessage attributes.

Versions:
- v1: classic request (fields 1..16)
- v2: adds memory_footprint, schema and request tags (fields 17, 19, 20, 21)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Tuple

from pinba.codec.wire import WireType


class FieldType(str, Enum):
    STRING = "string"
    UINT32 = "uint32"
    FLOAT = "float"

    @property
    def wire_type(self) -> WireType:
        return _WIRE_TYPES[self]


_WIRE_TYPES = {
    FieldType.STRING: WireType.LENGTH_DELIMITED,
    FieldType.UINT32: WireType.VARINT,
    FieldType.FLOAT: WireType.FIXED32,
}


class Cardinality(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    REPEATED = "repeated"


@dataclass(frozen=True)
class FieldSpec:
    number: int
    name: str
    type: FieldType
    cardinality: Cardinality = Cardinality.REQUIRED


class MessageSchema:
    def __init__(self, *, name: str, version: str, fields: Tuple[FieldSpec, ...]) -> None:
        numbers = [f.number for f in fields]
        names = [f.name for f in fields]
        if len(set(numbers)) != len(numbers):
            raise ValueError(f"Duplicate field numbers in schema {name}/{version}")
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate field names in schema {name}/{version}")
        if any(n <= 0 for n in numbers):
            raise ValueError(f"Field numbers must be positive in schema {name}/{version}")
        self.name = name
        self.version = version
        # encoding order is ascending field number
        self.fields: Tuple[FieldSpec, ...] = tuple(sorted(fields, key=lambda f: f.number))
        self._by_number: Dict[int, FieldSpec] = {f.number: f for f in self.fields}
        self._by_name: Dict[str, FieldSpec] = {f.name: f for f in self.fields}

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __repr__(self) -> str:
        return f"MessageSchema(name={self.name!r}, version={self.version!r}, fields={len(self.fields)})"

    def by_number(self, number: int) -> FieldSpec:
        return self._by_number[number]

    def by_name(self, name: str) -> FieldSpec:
        return self._by_name[name]

    def has_field(self, name: str) -> bool:
        return name in self._by_name


_S = FieldType.STRING
_U = FieldType.UINT32
_F = FieldType.FLOAT
_REQ = Cardinality.REQUIRED
_OPT = Cardinality.OPTIONAL
_REP = Cardinality.REPEATED

_V1_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(1, "hostname", _S, _REQ),
    FieldSpec(2, "server_name", _S, _REQ),
    FieldSpec(3, "script_name", _S, _REQ),
    FieldSpec(4, "request_count", _U, _REQ),
    FieldSpec(5, "document_size", _U, _OPT),
    FieldSpec(6, "memory_peak", _U, _OPT),
    FieldSpec(7, "request_time", _F, _REQ),
    FieldSpec(8, "ru_utime", _F, _REQ),
    FieldSpec(9, "ru_stime", _F, _REQ),
    FieldSpec(10, "timer_hit_count", _U, _REP),
    FieldSpec(11, "timer_value", _F, _REP),
    FieldSpec(12, "timer_tag_count", _U, _REP),
    FieldSpec(13, "timer_tag_name", _U, _REP),
    FieldSpec(14, "timer_tag_value", _U, _REP),
    FieldSpec(15, "dictionary", _S, _REP),
    FieldSpec(16, "status", _U, _OPT),
)

PINBA_REQUEST_V1 = MessageSchema(name="Pinba.Request", version="v1", fields=_V1_FIELDS)

PINBA_REQUEST_V2 = MessageSchema(
    name="Pinba.Request",
    version="v2",
    fields=_V1_FIELDS
    + (
        FieldSpec(17, "memory_footprint", _U, _OPT),
        FieldSpec(19, "schema", _S, _OPT),
        FieldSpec(20, "tag_name", _U, _REP),
        FieldSpec(21, "tag_value", _U, _REP),
    ),
)

SCHEMAS: Dict[str, MessageSchema] = {
    PINBA_REQUEST_V1.version: PINBA_REQUEST_V1,
    PINBA_REQUEST_V2.version: PINBA_REQUEST_V2,
}

DEFAULT_SCHEMA = PINBA_REQUEST_V2


def get_schema(version: str) -> MessageSchema:
    try:
        return SCHEMAS[version]
    except KeyError:
        known = ", ".join(sorted(SCHEMAS))
        raise ValueError(f"Unknown message version '{version}'. Known: {known}") from None
