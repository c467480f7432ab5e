from __future__ import annotations

import argparse
import logging

import pytest

from ampy_commander.common import logging_config
from ampy_commander.common.logging_config import (
    TRACE,
    AnsiColorFormatter,
    UiLogHandler,
    add_log_level_arguments,
    attach_ui_log,
    configure_logging,
    detach_ui_log,
    level_from_args,
)


class Sink:
    def __init__(self, fail: bool = False) -> None:
        self.lines: list[str] = []
        self.fail = fail

    def push(self, line: str) -> None:
        if self.fail:
            raise RuntimeError("client gone")
        self.lines.append(line)


def _record(msg: str = "hello", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("ampy", level, __file__, 1, msg, None, None)


def test_formatter_is_plain_without_tty():
    formatter = AnsiColorFormatter(colored=False)
    text = formatter.format(_record())
    assert "\033[" not in text
    assert text.endswith("INFO ampy: hello")


def test_configure_logging_is_idempotent():
    root = logging.getLogger()
    configure_logging(logging.DEBUG)
    configure_logging(logging.INFO)
    consoles = [h for h in root.handlers if isinstance(h.formatter, AnsiColorFormatter)]
    ui_handlers = [h for h in root.handlers if isinstance(h, UiLogHandler)]
    assert len(consoles) == 1
    assert len(ui_handlers) == 1
    assert root.level == logging.INFO


def test_ui_handler_mirrors_records_and_drops_broken_sinks():
    good, bad = Sink(), Sink(fail=True)
    attach_ui_log(good)
    attach_ui_log(bad)
    try:
        UiLogHandler().emit(_record("board reset"))
        assert len(good.lines) == 1
        assert "[INFO] ampy: board reset" in good.lines[0]

        UiLogHandler().emit(_record("again"))
        assert len(good.lines) == 2
        assert bad.lines == []
    finally:
        detach_ui_log(good)
        detach_ui_log(bad)


def test_trace_level_is_registered():
    assert logging.getLevelName(TRACE) == "TRACE"
    assert hasattr(logging.getLogger("ampy"), "trace")


@pytest.mark.parametrize(
    ("argv", "expected"),
    [
        ([], logging.ERROR),
        (["-q"], logging.WARNING),
        (["-v"], logging.INFO),
        (["-vv"], logging.DEBUG),
        (["--log-level", "CRITICAL"], logging.CRITICAL),
        (["--log-level", "DEBUG", "-q"], logging.DEBUG),
    ],
)
def test_level_from_args(argv, expected):
    parser = argparse.ArgumentParser()
    add_log_level_arguments(parser)
    assert level_from_args(parser.parse_args(argv), logging.ERROR) == expected


def test_trace_flag_enables_child_output_tracing(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(logging_config, "TRACE_ENABLED", False)
    parser = argparse.ArgumentParser()
    add_log_level_arguments(parser)
    assert level_from_args(parser.parse_args(["-vvv"]), logging.WARNING) == TRACE
    assert logging_config.TRACE_ENABLED is True
