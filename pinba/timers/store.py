# ==============================
# Timer Store
# ==============================
"""
Per-request storage for timers.

State machine per timer:
  running --stop--> stopped --delete--> gone
  running --delete--> gone

A stopped timer keeps its value fixed but its tags/data stay mutable until
it is deleted or the store is cleared.

Handles are allocated from a store-local counter (pre-increment, starting
at 0) and are never reused, not even after clear().
"""

from __future__ import annotations

import math
import time
from copy import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from pinba.codec.wire import FLOAT32_MAX
from pinba.contracts.errors import AlreadyStoppedError, InvalidValueError, TimerNotFoundError
from pinba.contracts.timer_schema import TimerInfo

Clock = Callable[[], float]


@dataclass
class _TimerRecord:
    handle: int
    tags: Dict[str, str]
    data: Dict[str, Any]
    started: bool
    started_at: Optional[float] = None
    value: float = 0.0


def normalize_tags(tags: Optional[Mapping[Any, Any]]) -> Dict[str, str]:
    if not tags:
        return {}
    return {str(k): str(v) for k, v in tags.items()}


def _copy_data(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return dict(data) if data else {}


class TimerStore:
    def __init__(self, *, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or time.perf_counter
        self._last_handle = 0
        # dicts keep insertion order, which is creation order
        self._timers: Dict[int, _TimerRecord] = {}

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, handle: object) -> bool:
        return handle in self._timers

    # ==============================
    # Lifecycle
    # ==============================

    def start(self, tags: Optional[Mapping[str, Any]] = None, data: Optional[Mapping[str, Any]] = None) -> int:
        handle = self._next_handle()
        self._timers[handle] = _TimerRecord(
            tags=normalize_tags(tags),
            data=_copy_data(data),
            started=True,
            started_at=self._clock(),
            handle=handle,
        )
        return handle

    def add(
        self,
        tags: Optional[Mapping[str, Any]] = None,
        value: float = 0.0,
        data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        seconds = _validate_value(value)
        handle = self._next_handle()
        self._timers[handle] = _TimerRecord(
            tags=normalize_tags(tags),
            data=_copy_data(data),
            started=False,
            value=seconds,
            handle=handle,
        )
        return handle

    def stop(self, handle: int) -> float:
        record = self._get(handle, action="stop")
        if not record.started:
            raise AlreadyStoppedError(handle)
        self._finish(record)
        return record.value

    def stop_all(self) -> int:
        """Stop every running timer. Returns how many were stopped."""
        stopped = 0
        for record in self._timers.values():
            if record.started:
                self._finish(record)
                stopped += 1
        return stopped

    def delete(self, handle: int) -> None:
        if handle not in self._timers:
            raise TimerNotFoundError(handle, action="delete")
        del self._timers[handle]

    def clear(self) -> None:
        self._timers.clear()

    # ==============================
    # Tags / Data
    # ==============================

    def merge_tags(self, handle: int, tags: Mapping[str, Any]) -> None:
        record = self._get(handle, action="modify")
        record.tags = {**record.tags, **normalize_tags(tags)}

    def replace_tags(self, handle: int, tags: Mapping[str, Any]) -> None:
        record = self._get(handle, action="modify")
        record.tags = normalize_tags(tags)

    def merge_data(self, handle: int, data: Mapping[str, Any]) -> None:
        record = self._get(handle, action="modify")
        record.data = {**record.data, **_copy_data(data)}

    def replace_data(self, handle: int, data: Mapping[str, Any]) -> None:
        record = self._get(handle, action="modify")
        record.data = _copy_data(data)

    # ==============================
    # Queries
    # ==============================

    def get_info(self, handle: int) -> TimerInfo:
        return self._snapshot(self._get(handle, action="get info for"))

    def is_running(self, handle: int) -> bool:
        record = self._timers.get(handle)
        return record is not None and record.started

    def handles(self, *, only_stopped: bool = False) -> List[int]:
        return [h for h, r in self._timers.items() if not (only_stopped and r.started)]

    def timers(self, *, only_stopped: bool = False) -> List[TimerInfo]:
        return [self._snapshot(r) for r in self._timers.values() if not (only_stopped and r.started)]

    # ==============================
    # Internals
    # ==============================

    def _next_handle(self) -> int:
        self._last_handle += 1
        return self._last_handle

    def _get(self, handle: int, *, action: str) -> _TimerRecord:
        record = self._timers.get(handle)
        if record is None:
            raise TimerNotFoundError(handle, action=action)
        return record

    def _elapsed(self, record: _TimerRecord) -> float:
        return max(0.0, self._clock() - (record.started_at or 0.0))

    def _finish(self, record: _TimerRecord) -> None:
        record.value = self._elapsed(record)
        record.started = False
        record.started_at = None

    def _snapshot(self, record: _TimerRecord) -> TimerInfo:
        value = self._elapsed(record) if record.started else record.value
        return TimerInfo(
            handle=record.handle,
            started=record.started,
            value=value,
            tags=dict(record.tags),
            data=copy(record.data),
        )


def _validate_value(value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidValueError(f"Timer value must be a number, got {value!r}")
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidValueError(f"Timer value must be a number, got {value!r}") from exc
    if not math.isfinite(seconds) or seconds < 0:
        raise InvalidValueError(f"Timer value must be finite and non-negative, got {value!r}")
    if seconds > FLOAT32_MAX:
        raise InvalidValueError(f"Timer value does not fit the wire float, got {value!r}")
    return seconds
