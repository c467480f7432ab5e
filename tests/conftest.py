from __future__ import annotations

import asyncio
import logging
import os
import stat
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from tests.utils.fakes import SpawnRecorder

if TYPE_CHECKING:
    from collections.abc import Iterator


FAKE_AMPY_SOURCE = """\
#!{python}
import os
import sys
import time

args = sys.argv[1:]
log = os.environ.get("FAKE_AMPY_LOG")
if log:
    with open(log, "a", encoding="utf-8") as f:
        f.write("|".join(args) + "\\n")

cmd = args[2:]
if cmd[:1] == ["ls"]:
    print("/boot.py")
    print("/main.py")
elif cmd[:1] == ["get"] and len(cmd) == 2:
    if cmd[1] == "/missing.py":
        print("RuntimeError: No such file: /missing.py", file=sys.stderr)
        sys.exit(1)
    sys.stdout.write("print('hello')\\n")
elif cmd[:1] == ["put"]:
    # more than any OS pipe buffer
    sys.stdout.write("x" * (1 << 20))
    sys.stderr.write("y" * (1 << 20))
elif cmd[:2] == ["run", "-s"]:
    script = cmd[2]
    if script.endswith("forever.py"):
        print("tick", flush=True)
        while True:
            time.sleep(0.05)
    if script.endswith("bigline.py"):
        sys.stdout.write("a" * 200000 + "\\n")
        for _ in range(2000):
            sys.stdout.write("b" * 1000 + "\\n")
        sys.stdout.flush()
        sys.exit(0)
    if script.endswith("echo.py"):
        line = sys.stdin.readline()
        print("got " + line.strip(), flush=True)
        sys.exit(0)
    for i in range(3):
        print("line %d" % i, flush=True)
    print("warning: slow board", file=sys.stderr, flush=True)
    sys.exit(3)
elif cmd[:1] == ["run"]:
    print("ran " + cmd[-1])
"""


@pytest.fixture
def spawn(monkeypatch: pytest.MonkeyPatch) -> SpawnRecorder:
    """Record process launches instead of starting ampy."""
    recorder = SpawnRecorder()
    monkeypatch.setattr(asyncio, "create_subprocess_exec", recorder)
    return recorder


@pytest.fixture
def fake_ampy(tmp_path: Path) -> Path:
    """
    Write an executable stand-in for ampy that answers a few subcommands.
    Its argv is appended to $FAKE_AMPY_LOG when that is set.
    """
    if sys.platform == "win32":
        pytest.skip("fake ampy relies on a shebang line")
    script = tmp_path / "fake-ampy"
    script.write_text(FAKE_AMPY_SOURCE.format(python=sys.executable), encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def ampy_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    log = tmp_path / "ampy-argv.log"
    monkeypatch.setenv("FAKE_AMPY_LOG", os.fspath(log))
    return log


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    """configure_logging() mutates the root logger; undo it after every test."""
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        yield
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)
