# ==============================
# Error Contracts
# ==============================
"""
Error taxonomy for pinba/.

Lifecycle and encoding errors are raised synchronously to the caller.
TransportError is only ever delivered through the flush completion channel.
"""

# ==============================
# Imports
# ==============================
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


# ==============================
# Enums
# ==============================
class PinbaErrorCode(str, Enum):
    """Standard error codes for client failures."""
    NOT_FOUND = "not_found"
    ALREADY_STOPPED = "already_stopped"
    ENCODING_SIZE_MISMATCH = "encoding_size_mismatch"
    TRANSPORT = "transport"
    INVALID_VALUE = "invalid_value"


# ==============================
# Exceptions
# ==============================
class PinbaError(Exception):
    code: PinbaErrorCode = PinbaErrorCode.INVALID_VALUE

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def __str__(self) -> str:
        return self.message


class TimerNotFoundError(PinbaError, KeyError):
    """Operation referenced a timer handle absent from the store."""
    code = PinbaErrorCode.NOT_FOUND

    def __init__(self, handle: int, *, action: str = "access") -> None:
        super().__init__(f"Cannot {action} nonexistent timer {handle}", details={"handle": handle})
        self.handle = handle


NotFoundError = TimerNotFoundError


class AlreadyStoppedError(PinbaError):
    """stop was called on a timer that is already stopped."""
    code = PinbaErrorCode.ALREADY_STOPPED

    def __init__(self, handle: int) -> None:
        super().__init__(f"Cannot stop already stopped timer {handle}", details={"handle": handle})
        self.handle = handle


class EncodingSizeMismatchError(PinbaError):
    """Encoder produced a different byte length than it predicted."""
    code = PinbaErrorCode.ENCODING_SIZE_MISMATCH

    def __init__(self, *, expected: int, actual: int) -> None:
        super().__init__(
            f"Encoded message is {actual} bytes, expected {expected}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class TransportError(PinbaError):
    """Wraps whatever the datagram send primitive reported."""
    code = PinbaErrorCode.TRANSPORT


class InvalidValueError(PinbaError, ValueError):
    """A value cannot be accepted into a timer or message."""
    code = PinbaErrorCode.INVALID_VALUE
