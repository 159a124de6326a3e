"""Pinba client: per-request timers aggregated into one UDP datagram."""

from pinba.contracts.errors import (
    AlreadyStoppedError,
    EncodingSizeMismatchError,
    InvalidValueError,
    NotFoundError,
    PinbaError,
    TimerNotFoundError,
    TransportError,
)
from pinba.request import PinbaRequest

Request = PinbaRequest

__all__ = [
    "AlreadyStoppedError",
    "EncodingSizeMismatchError",
    "InvalidValueError",
    "NotFoundError",
    "PinbaError",
    "PinbaRequest",
    "Request",
    "TimerNotFoundError",
    "TransportError",
]
