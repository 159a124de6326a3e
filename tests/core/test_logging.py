# ==============================
# Logging Bootstrap Tests
# ==============================
from __future__ import annotations

import json
import logging

from pinba.config.schema import LoggingConfig, Settings
from pinba.logging.logger import JsonLineFormatter, RequestLogContext, bootstrap_logger, with_context


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("pinba.request", logging.INFO, __file__, 1, "pinba flush", None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_formatter_includes_structured_extras() -> None:
    line = JsonLineFormatter().format(_record(script_name="/x", timer_count=2, target="c:1"))

    payload = json.loads(line)
    assert payload == {
        "level": "INFO",
        "logger": "pinba.request",
        "msg": "pinba flush",
        "script_name": "/x",
        "timer_count": 2,
        "target": "c:1",
    }


def test_bootstrap_installs_single_handler() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        settings = Settings(logging=LoggingConfig(level="debug"))
        bootstrap_logger(settings)
        logger = bootstrap_logger(settings)

        assert logger.name == "pinba"
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonLineFormatter)
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_bootstrap_without_console_is_silent() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        bootstrap_logger(Settings(logging=LoggingConfig(level="nonsense", console=False)))

        assert root.level == logging.INFO
        assert [type(h) for h in root.handlers] == [logging.NullHandler]
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_with_context_carries_request_identity(caplog) -> None:
    caplog.set_level(logging.INFO, logger="pinba.test")
    adapter = with_context(logging.getLogger("pinba.test"), RequestLogContext(hostname="h", script_name="/s"))

    adapter.info("hello")

    record = caplog.records[-1]
    assert (record.hostname, record.script_name) == ("h", "/s")
    assert not hasattr(record, "server_name")


def test_with_context_keeps_per_call_extras(caplog) -> None:
    caplog.set_level(logging.INFO, logger="pinba.test")
    adapter = with_context(logging.getLogger("pinba.test"), RequestLogContext(hostname="h"))

    adapter.info("sent", extra={"size": 12, "hostname": "override"})

    record = caplog.records[-1]
    assert (record.hostname, record.size) == ("override", 12)
