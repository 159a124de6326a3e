# ==============================
# Timer Aggregator
# ==============================
"""
Collapse timers sharing an identical tag set and build the string dictionary.

Rules:
- Only stopped timers participate.
- Two timers group together iff their tag mappings are equal (order-independent).
- Groups keep first-seen order; tags inside a group keep the representative
  timer's insertion order.
- One dictionary is shared by request tags and all timer groups; each string
  is interned once, in first-seen order.

Pure: no clock, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Tuple

from pinba.contracts.message_schema import AggregatedSummary
from pinba.contracts.timer_schema import TimerInfo

TagKey = Tuple[Tuple[str, str], ...]


class StringDictionary:
    def __init__(self) -> None:
        self.strings: List[str] = []
        self._index: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.strings)

    def intern(self, value: str) -> int:
        idx = self._index.get(value)
        if idx is None:
            idx = len(self.strings)
            self.strings.append(value)
            self._index[value] = idx
        return idx


@dataclass
class TimerGroup:
    tags: Dict[str, str]
    hit_count: int = 0
    value: float = 0.0
    handles: List[int] = field(default_factory=list)


def tag_key(tags: Mapping[str, str]) -> TagKey:
    return tuple(sorted(tags.items()))


def group_timers(timers: Iterable[TimerInfo]) -> List[TimerGroup]:
    groups: Dict[TagKey, TimerGroup] = {}
    for timer in timers:
        if timer.started:
            continue
        key = tag_key(timer.tags)
        group = groups.get(key)
        if group is None:
            group = TimerGroup(tags=dict(timer.tags))
            groups[key] = group
        group.hit_count += 1
        group.value += timer.value
        group.handles.append(timer.handle)
    return list(groups.values())


def aggregate(request_tags: Mapping[str, str], timers: Iterable[TimerInfo]) -> AggregatedSummary:
    dictionary = StringDictionary()
    summary = AggregatedSummary()

    for name, value in request_tags.items():
        summary.tag_name.append(dictionary.intern(name))
        summary.tag_value.append(dictionary.intern(value))

    for group in group_timers(timers):
        summary.timer_hit_count.append(group.hit_count)
        summary.timer_value.append(group.value)
        summary.timer_tag_count.append(len(group.tags))
        for name, value in group.tags.items():
            summary.timer_tag_name.append(dictionary.intern(name))
            summary.timer_tag_value.append(dictionary.intern(value))

    summary.dictionary = dictionary.strings
    return summary
