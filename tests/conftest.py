# ==============================
# Testing Fixtures
# ==============================
from __future__ import annotations

import sys
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from pinba.contracts.errors import TransportError
from pinba.request import PinbaRequest


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class SentDatagram:
    payload: bytes
    host: str
    port: int


class RecordingTransport:
    def __init__(self, *, error: Optional[str] = None) -> None:
        self.error = error
        self.sent: List[SentDatagram] = []

    def submit(self, payload: bytes, host: str, port: int) -> "Future[None]":
        self.sent.append(SentDatagram(payload=payload, host=host, port=port))
        future: "Future[None]" = Future()
        if self.error:
            future.set_exception(TransportError(self.error))
        else:
            future.set_result(None)
        return future


def _fixed_cpu_times() -> Tuple[float, float]:
    return 1.0, 0.5


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def request_factory(clock: FakeClock, transport: RecordingTransport):
    """Build PinbaRequest objects wired to the fake clock and recording transport."""

    def _make(**kwargs) -> PinbaRequest:
        kwargs.setdefault("hostname", "HOSTNAME")
        kwargs.setdefault("server_name", "SERVER_NAME")
        kwargs.setdefault("script_name", "SCRIPT_NAME")
        kwargs.setdefault("schema", "SCHEMA")
        kwargs.setdefault("transport", transport)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("cpu_times", _fixed_cpu_times)
        return PinbaRequest(**kwargs)

    return _make


@pytest.fixture
def pinba_request(request_factory) -> PinbaRequest:
    return request_factory()


@pytest.fixture
def failing_transport() -> RecordingTransport:
    return RecordingTransport(error="network unreachable")
