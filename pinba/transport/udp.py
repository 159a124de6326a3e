# ==============================
# UDP Transport
# ==============================
"""
Fire-and-forget datagram transport.

send() performs one sendto and raises TransportError on failure.
submit() wraps send() in a Future: inline by default, or on a caller-owned
executor. Failures end up as the Future's exception; nothing is retried.
"""

from __future__ import annotations

import logging
import socket
from concurrent.futures import Executor, Future
from typing import Callable, Optional, Protocol

from pinba.contracts.errors import TransportError

logger = logging.getLogger("pinba.transport")

DEFAULT_SERVER = "127.0.0.1"
DEFAULT_PORT = 30002

SendCallback = Callable[[Optional[TransportError]], None]


class Transport(Protocol):
    def submit(self, payload: bytes, host: str, port: int) -> "Future[None]":
        ...


class UdpTransport:
    def __init__(self, *, executor: Optional[Executor] = None) -> None:
        self.executor = executor

    def send(self, payload: bytes, host: str, port: int) -> None:
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise TransportError(f"Invalid collector port {port!r}", details={"host": host, "port": port})
        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
            if not infos:
                raise TransportError(f"Cannot resolve {host}:{port}")
            family, socktype, proto, _, address = infos[0]
            with socket.socket(family, socktype, proto) as sock:
                sock.sendto(payload, address)
        except (OSError, TypeError, ValueError, OverflowError) as exc:
            raise TransportError(
                f"Datagram send to {host}:{port} failed: {exc}",
                details={"host": host, "port": port},
            ) from exc

    def submit(self, payload: bytes, host: str, port: int) -> "Future[None]":
        future: "Future[None]"
        if self.executor is not None:
            try:
                return self.executor.submit(self.send, payload, host, port)
            except RuntimeError as exc:
                # executor already shut down
                future = Future()
                error = TransportError(f"Datagram executor unavailable: {exc}")
                error.__cause__ = exc
                future.set_exception(error)
                return future
        future = Future()
        try:
            self.send(payload, host, port)
        except TransportError as exc:
            future.set_exception(exc)
        else:
            future.set_result(None)
        return future


def attach_callback(future: "Future[None]", callback: Optional[SendCallback]) -> None:
    """
    Route the send outcome to callback(error_or_none).
    Without a callback, failures are logged and otherwise dropped.
    """

    def _done(f: "Future[None]") -> None:
        exc = f.exception()
        error: Optional[TransportError]
        if exc is None or isinstance(exc, TransportError):
            error = exc
        else:
            error = TransportError(f"Datagram send failed: {exc}")
            error.__cause__ = exc
        if callback is not None:
            callback(error)
        elif error is not None:
            logger.warning("pinba datagram dropped: %s", error)

    future.add_done_callback(_done)
