# ==============================
# Pinba Request
# ==============================
"""
Request facade: one instrumented unit of work.

Responsibilities:
- Hold request metadata (hostname, server/script names, schema, collector)
- Own exactly one TimerStore and the request-level tags
- flush(): stop timers, aggregate, encode, clear, send one datagram

Flush policy:
- Timers are always cleared by a successful encode, whatever the transport does.
- Request tags and the request clock survive a flush unless reset=True.
- Encoding errors raise before anything is cleared or sent.
- Transport errors never raise; they resolve the returned Future and reach
  the optional callback.
"""

from __future__ import annotations

import logging
import os
import socket
import time
from concurrent.futures import Future
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError

from pinba.codec.encoder import MessageEncoder
from pinba.codec.schema import DEFAULT_SCHEMA, MessageSchema, get_schema
from pinba.config.schema import Settings
from pinba.contracts.errors import InvalidValueError
from pinba.contracts.message_schema import FlushOptions, MessageOverrides, PinbaMessage, RequestInfo
from pinba.contracts.timer_schema import TimerInfo
from pinba.logging.logger import RequestLogContext, with_context
from pinba.timers.aggregator import aggregate
from pinba.timers.store import Clock, TimerStore
from pinba.transport.udp import DEFAULT_PORT, DEFAULT_SERVER, SendCallback, Transport, UdpTransport, attach_callback

logger = logging.getLogger("pinba.request")

CpuTimes = Callable[[], Tuple[float, float]]
O = TypeVar("O", bound=MessageOverrides)


def process_cpu_times() -> Tuple[float, float]:
    t = os.times()
    return t.user, t.system


class PinbaRequest:
    def __init__(
        self,
        *,
        hostname: Optional[str] = None,
        server_name: str = "unknown",
        script_name: str = "unknown",
        schema: Optional[str] = None,
        pinba_server: str = DEFAULT_SERVER,
        pinba_port: int = DEFAULT_PORT,
        message_schema: Optional[MessageSchema] = None,
        transport: Optional[Transport] = None,
        encoder: Optional[MessageEncoder] = None,
        clock: Optional[Clock] = None,
        cpu_times: Optional[CpuTimes] = None,
    ) -> None:
        self.hostname = hostname or socket.gethostname()
        self.server_name = server_name
        self.script_name = script_name
        self.schema = schema
        self.pinba_server = pinba_server
        self.pinba_port = pinba_port

        self.document_size: Optional[int] = None
        self.memory_peak: Optional[int] = None
        self.memory_footprint: Optional[int] = None
        self.status: Optional[int] = None

        self.message_schema = message_schema or DEFAULT_SCHEMA
        self.encoder = encoder or MessageEncoder(self.message_schema)
        self.transport: Transport = transport or UdpTransport()

        self._clock: Clock = clock or time.perf_counter
        self._cpu_times: CpuTimes = cpu_times or process_cpu_times
        self.timers = TimerStore(clock=self._clock)
        self._tags: Dict[str, str] = {}
        self._restart_clock()

    def __repr__(self) -> str:
        return (
            f"PinbaRequest(hostname={self.hostname!r}, server_name={self.server_name!r}, "
            f"script_name={self.script_name!r}, timers={len(self.timers)})"
        )

    @classmethod
    def from_settings(cls, *, settings: Settings, **overrides: Any) -> "PinbaRequest":
        """
        Convenience constructor; keyword overrides win over settings.
        """
        cfg = settings.pinba
        kwargs: Dict[str, Any] = {
            "hostname": cfg.hostname,
            "server_name": cfg.server_name,
            "script_name": cfg.script_name,
            "schema": cfg.schema_,
            "pinba_server": cfg.server,
            "pinba_port": cfg.port,
            "message_schema": get_schema(cfg.message_version),
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    # ==============================
    # Request Tags
    # ==============================

    def tag_set(self, name: str, value: Any) -> None:
        self._tags[str(name)] = str(value)

    def tag_get(self, name: str) -> Optional[str]:
        return self._tags.get(name)

    def tag_delete(self, name: str) -> None:
        self._tags.pop(name, None)

    def tags_get(self) -> Dict[str, str]:
        return dict(self._tags)

    # ==============================
    # Timers
    # ==============================

    def timer_start(self, tags: Optional[Mapping[str, Any]] = None, data: Optional[Mapping[str, Any]] = None) -> int:
        return self.timers.start(tags, data)

    def timer_add(
        self,
        tags: Optional[Mapping[str, Any]] = None,
        value: float = 0.0,
        data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        return self.timers.add(tags, value, data)

    def timer_stop(self, handle: int) -> float:
        return self.timers.stop(handle)

    def timer_delete(self, handle: int) -> None:
        self.timers.delete(handle)

    def timer_tags_merge(self, handle: int, tags: Mapping[str, Any]) -> None:
        self.timers.merge_tags(handle, tags)

    def timer_tags_replace(self, handle: int, tags: Mapping[str, Any]) -> None:
        self.timers.replace_tags(handle, tags)

    def timer_data_merge(self, handle: int, data: Mapping[str, Any]) -> None:
        self.timers.merge_data(handle, data)

    def timer_data_replace(self, handle: int, data: Mapping[str, Any]) -> None:
        self.timers.replace_data(handle, data)

    def timer_get_info(self, handle: int) -> TimerInfo:
        return self.timers.get_info(handle)

    def timers_stop(self) -> int:
        return self.timers.stop_all()

    @contextmanager
    def timer(self, tags: Optional[Mapping[str, Any]] = None, data: Optional[Mapping[str, Any]] = None) -> Iterator[int]:
        """Time a block; the timer is stopped on exit unless already stopped or deleted."""
        handle = self.timer_start(tags, data)
        try:
            yield handle
        finally:
            if self.timers.is_running(handle):
                self.timers.stop(handle)

    # ==============================
    # Snapshots
    # ==============================

    def request_time(self) -> float:
        return max(0.0, self._clock() - self._started_at)

    def get_info(self) -> RequestInfo:
        utime, stime = self._cpu_usage()
        return RequestInfo(
            hostname=self.hostname,
            server_name=self.server_name,
            script_name=self.script_name,
            schema=self.schema,
            request_count=1,
            request_time=self.request_time(),
            ru_utime=utime,
            ru_stime=stime,
            document_size=self.document_size,
            memory_peak=self.memory_peak,
            timers=self.timers.timers(),
            tags=self.tags_get(),
        )

    def get_message_data(self, **overrides: Any) -> PinbaMessage:
        """Message a flush would send right now (stopped timers only); nothing is mutated."""
        opts = _validate_options(MessageOverrides, overrides)
        return self._build_message(self.timers.timers(only_stopped=True), opts)

    # ==============================
    # Flush
    # ==============================

    def flush(self, *, callback: Optional[SendCallback] = None, **options: Any) -> "Future[None]":
        """
        Aggregate, encode and send this request as one datagram.

        Options (see FlushOptions): only_stopped, reset, and one-shot field
        overrides such as script_name or request_time.

        Returns a Future resolved once the send completes; its exception (and
        the callback argument) is a TransportError on failure.
        """
        opts = _validate_options(FlushOptions, options)
        if not opts.only_stopped:
            self.timers.stop_all()
        message = self._build_message(self.timers.timers(only_stopped=True), opts)
        payload = self.encoder.encode(message.to_fields())

        self.timers.clear()
        if opts.reset:
            self._tags.clear()
            self._restart_clock()

        log = with_context(
            logger,
            RequestLogContext(
                hostname=message.hostname,
                server_name=message.server_name,
                script_name=message.script_name,
            ),
        )
        log.debug(
            "pinba flush",
            extra={
                "timer_count": len(message.timer_hit_count),
                "size": len(payload),
                "target": f"{self.pinba_server}:{self.pinba_port}",
            },
        )
        future = self.transport.submit(payload, self.pinba_server, self.pinba_port)
        attach_callback(future, callback)
        return future

    # ==============================
    # Internals
    # ==============================

    def _restart_clock(self) -> None:
        self._started_at = self._clock()
        self._cpu_start = self._cpu_times()

    def _cpu_usage(self) -> Tuple[float, float]:
        user, system = self._cpu_times()
        return max(0.0, user - self._cpu_start[0]), max(0.0, system - self._cpu_start[1])

    def _build_message(self, timers: List[TimerInfo], opts: MessageOverrides) -> PinbaMessage:
        # v1 messages carry no request tags; keep them out of the dictionary too
        request_tags = self._tags if self.message_schema.has_field("tag_name") else {}
        summary = aggregate(request_tags, timers)
        utime, stime = self._cpu_usage()
        fields: Dict[str, Any] = {
            "hostname": self.hostname,
            "server_name": self.server_name,
            "script_name": self.script_name,
            "schema": self.schema,
            "request_count": 1,
            "request_time": self.request_time(),
            "ru_utime": utime,
            "ru_stime": stime,
            "document_size": self.document_size,
            "memory_peak": self.memory_peak,
            "memory_footprint": self.memory_footprint,
            "status": self.status,
        }
        fields.update(opts.overrides())
        return PinbaMessage.model_validate({**summary.model_dump(), **fields})


def _validate_options(model: Type[O], values: Dict[str, Any]) -> O:
    try:
        return model.model_validate(values)
    except ValidationError as e:
        raise InvalidValueError(f"Invalid request options: {e}") from e
