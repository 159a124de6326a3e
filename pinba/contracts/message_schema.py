# ==============================
# Message Contracts
# ==============================
"""
Request-level contracts for pinba/.

These models define:
- PinbaMessage: the wire-ready aggregated request (field names match the
  message schema in pinba.codec.schema)
- RequestInfo: a non-mutating snapshot of a request
- MessageOverrides: one-shot field overrides (get_message_data, flush)
- FlushOptions: MessageOverrides plus the per-flush flags

Intended usage:
- Aggregator fills the dictionary/tag/timer arrays
- PinbaRequest adds request metadata and hands model_dump() to the encoder
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from pinba.codec.wire import FLOAT32_MAX
from pinba.contracts.timer_schema import TimerInfo

UINT32_MAX = 2**32 - 1


# ==============================
# Models
# ==============================
class AggregatedSummary(BaseModel):
    """Dictionary-encoded view of request tags and timer groups."""
    model_config = ConfigDict(extra="forbid")

    dictionary: List[str] = Field(default_factory=list, description="Unique strings in first-seen order.")
    tag_name: List[int] = Field(default_factory=list, description="Request tag name indices.")
    tag_value: List[int] = Field(default_factory=list, description="Request tag value indices.")

    timer_hit_count: List[int] = Field(default_factory=list, description="Timers merged into each group.")
    timer_value: List[float] = Field(default_factory=list, description="Summed seconds per group.")
    timer_tag_count: List[int] = Field(default_factory=list, description="Tags per group.")
    timer_tag_name: List[int] = Field(default_factory=list, description="Group tag name indices, flattened.")
    timer_tag_value: List[int] = Field(default_factory=list, description="Group tag value indices, flattened.")


class PinbaMessage(AggregatedSummary):
    """Complete request message, ready for encoding."""

    hostname: str
    server_name: str
    script_name: str
    request_count: int = Field(default=1, ge=0, le=UINT32_MAX)
    document_size: Optional[int] = Field(default=None, ge=0, le=UINT32_MAX)
    memory_peak: Optional[int] = Field(default=None, ge=0, le=UINT32_MAX)
    request_time: float = Field(default=0.0, ge=0.0)
    ru_utime: float = Field(default=0.0, ge=0.0)
    ru_stime: float = Field(default=0.0, ge=0.0)
    status: Optional[int] = Field(default=None, ge=0, le=UINT32_MAX)
    memory_footprint: Optional[int] = Field(default=None, ge=0, le=UINT32_MAX)
    schema_: Optional[str] = Field(default=None, alias="schema")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_fields(self) -> Dict[str, object]:
        """Field-name keyed mapping consumed by the encoder."""
        return self.model_dump(by_alias=True)


class RequestInfo(BaseModel):
    """Snapshot of a request and all of its timers."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    hostname: str
    server_name: str
    script_name: str
    schema_: Optional[str] = Field(default=None, alias="schema")
    request_count: int = 1
    request_time: float = 0.0
    ru_utime: float = 0.0
    ru_stime: float = 0.0
    document_size: Optional[int] = None
    memory_peak: Optional[int] = None
    timers: List[TimerInfo] = Field(default_factory=list)
    tags: Dict[str, str] = Field(default_factory=dict)


class MessageOverrides(BaseModel):
    """One-shot message field overrides; never stored on the request."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    hostname: Optional[str] = None
    server_name: Optional[str] = None
    script_name: Optional[str] = None
    schema_: Optional[str] = Field(default=None, alias="schema")
    request_time: Optional[float] = Field(default=None, ge=0.0, le=FLOAT32_MAX)
    document_size: Optional[int] = Field(default=None, ge=0, le=UINT32_MAX)
    memory_peak: Optional[int] = Field(default=None, ge=0, le=UINT32_MAX)
    memory_footprint: Optional[int] = Field(default=None, ge=0, le=UINT32_MAX)
    status: Optional[int] = Field(default=None, ge=0, le=UINT32_MAX)

    def overrides(self) -> Dict[str, object]:
        """Message fields to replace (flags excluded)."""
        data = self.model_dump(by_alias=True, exclude={"only_stopped", "reset"})
        return {k: v for k, v in data.items() if v is not None}


class FlushOptions(MessageOverrides):
    """Flags and one-shot overrides for a single flush."""

    only_stopped: bool = Field(default=False, description="Report stopped timers only; leave running ones unstopped.")
    reset: bool = Field(default=False, description="Also clear request tags and restart the request clock.")
