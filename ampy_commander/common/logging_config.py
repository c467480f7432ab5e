from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
import weakref
from typing import Protocol

_LEVEL_COLORS = {
    "TRACE": "\033[32m",
    "DEBUG": "\033[36m",
    "INFO": "\033[37m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[41m",
}
_RESET = "\033[0m"
_DIM = "\033[2m"

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

if not hasattr(logging.Logger, "trace"):

    def _trace(self, msg, *args, **kwargs):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)

    logging.Logger.trace = _trace  # type: ignore[attr-defined]
    logging.TRACE = TRACE  # type: ignore[attr-defined]

# AMPY_TRACE=1 logs every line a streamed `ampy run -s` prints
TRACE_ENABLED = str(os.getenv("AMPY_TRACE", "0")).lower() in ("1", "true", "yes", "on")

LOG_LEVEL_CHOICES = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogSink(Protocol):
    def push(self, line: str) -> None: ...


class AnsiColorFormatter(logging.Formatter):
    """HH:MM:SS console lines; level names are colored when stderr is a terminal."""

    def __init__(self, colored: bool = True) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
        )
        self.colored = colored and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.colored:
            return base
        level = record.levelname.upper()
        color = _LEVEL_COLORS.get(level, "")
        # split off the timestamp to dim it
        ts, sep, rest = base.partition(" ")
        if not sep:
            return base
        if color:
            rest = rest.replace(level, f"{color}{level}{_RESET}", 1)
        return f"{_DIM}{ts}{_RESET} {rest}"


# Run-log widgets (weakly held) that receive a copy of every record

_ui_log_targets: set[weakref.ref] = set()
_ui_lock = threading.Lock()


class UiLogHandler(logging.Handler):
    """Copy records into the run log of each open commander page."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%H:%M:%S"
            )
        )

    def emit(self, record: logging.LogRecord) -> None:
        if not _ui_log_targets:
            return
        msg = self.format(record)
        stale: list[weakref.ref] = []
        with _ui_lock:
            for ref in list(_ui_log_targets):
                widget = ref()
                if widget is None:
                    stale.append(ref)
                    continue
                try:
                    widget.push(msg)
                except Exception:
                    # client disconnected; drop the widget
                    stale.append(ref)
            for ref in stale:
                _ui_log_targets.discard(ref)


def attach_ui_log(log_widget: LogSink) -> None:
    """Start copying log records into ``log_widget`` (the page run log)."""
    try:
        ref = weakref.ref(log_widget)
    except TypeError:
        return
    with _ui_lock:
        _ui_log_targets.add(ref)


def detach_ui_log(log_widget: LogSink) -> None:
    """Stop copying records into ``log_widget``; called on client disconnect."""
    try:
        ref = weakref.ref(log_widget)
    except TypeError:
        return
    with _ui_lock:
        _ui_log_targets.discard(ref)


def _have_console_handler(logger: logging.Logger) -> bool:
    return any(
        isinstance(h, logging.StreamHandler)
        and isinstance(h.formatter, AnsiColorFormatter)
        for h in logger.handlers
    )


def _have_ui_handler(logger: logging.Logger) -> bool:
    return any(isinstance(h, UiLogHandler) for h in logger.handlers)


def configure_logging(
    level: int = logging.INFO, use_color: bool = True, add_ui_handler: bool = True
) -> logging.Logger:
    """
    Send ampy_commander logs to stderr and, for the web commander, into the
    page run logs. Safe to call again (the CLI and tests do); later calls
    only change the level.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    if not _have_console_handler(logger):
        console = logging.StreamHandler(stream=sys.stderr)
        console.setFormatter(AnsiColorFormatter(colored=use_color))
        logger.addHandler(console)

    if add_ui_handler and not _have_ui_handler(logger):
        logger.addHandler(UiLogHandler())

    for handler in logger.handlers:
        if isinstance(handler, UiLogHandler) or isinstance(
            handler.formatter, AnsiColorFormatter
        ):
            handler.setLevel(level)

    return logger


def add_log_level_arguments(parser: argparse.ArgumentParser) -> None:
    """Attach the shared ``--log-level`` / ``-v`` / ``-q`` options."""
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVEL_CHOICES,
        help="Set log level",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity; -v=INFO, -vv=DEBUG, -vvv=TRACE",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only log warnings and errors"
    )


def level_from_args(args: argparse.Namespace, default: int) -> int:
    """Resolve the log level: --log-level > -v/-q > environment default."""
    global TRACE_ENABLED
    if args.log_level == "TRACE":
        TRACE_ENABLED = True
        return TRACE
    if args.log_level:
        return getattr(logging, args.log_level)
    if args.verbose >= 3:
        TRACE_ENABLED = True
        return TRACE
    if args.verbose == 2:
        return logging.DEBUG
    if args.verbose == 1:
        return logging.INFO
    if args.quiet:
        return logging.WARNING
    return default
