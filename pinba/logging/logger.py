# ==============================
# Logging Bootstrap
# ==============================
"""
Structured logging for the pinba client.

Library modules only call logging.getLogger("pinba.<area>") and pass
structured fields through `extra`. Applications that want JSON lines on
stdout call bootstrap_logger(settings) once at startup.

Request identity (hostname, server_name, script_name) is attached with
with_context(), which returns a RequestLogAdapter. Unlike a plain
LoggerAdapter it merges the per-call `extra` over the identity fields
instead of discarding it.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, MutableMapping, Optional, Tuple

from pinba.config.schema import Settings

# attributes every LogRecord carries; anything else arrived through `extra`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


@dataclass(frozen=True)
class RequestLogContext:
    hostname: Optional[str] = None
    server_name: Optional[str] = None
    script_name: Optional[str] = None

    def fields(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class RequestLogAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_context(logger: logging.Logger, ctx: RequestLogContext) -> RequestLogAdapter:
    return RequestLogAdapter(logger, ctx.fields())


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record: level, logger, msg, then any `extra` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **record_extras(record),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def bootstrap_logger(settings: Settings) -> logging.Logger:
    """
    Install a single root handler per settings.logging and return the
    "pinba" logger. Calling it again replaces the handler.
    """
    cfg = settings.logging
    level = logging.getLevelName(cfg.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler: logging.Handler
    if cfg.console:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonLineFormatter())
    else:
        handler = logging.NullHandler()
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    return logging.getLogger("pinba")
