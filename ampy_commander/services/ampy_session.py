from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Callable, Literal

from ampy_commander.common import logging_config

Channel = Literal["stdout", "stderr"]
LineCallback = Callable[[str], None]

CHANNELS: tuple[Channel, ...] = ("stdout", "stderr")


async def _read_line(stream: asyncio.StreamReader) -> bytes:
    """Read one line including its newline, whatever its length; b"" at EOF."""
    chunks: list[bytes] = []
    while True:
        try:
            chunks.append(await stream.readuntil(b"\n"))
            break
        except asyncio.IncompleteReadError as e:
            chunks.append(e.partial)
            break
        except asyncio.LimitOverrunError as e:
            # longer than the reader limit: take what is buffered and keep going
            chunks.append(await stream.read(e.consumed))
    return b"".join(chunks)


class AmpySession:
    """
    Live handle for an ``ampy run -s`` child process.

    Both output streams are read line by line in background tasks and each
    decoded line is handed to the callbacks subscribed on its channel. The
    caller owns the session: it must ``wait()`` for it or ``stop()`` it.
    """

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        on_stdout: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
    ) -> None:
        self._proc = proc
        self._subscribers: dict[str, list[LineCallback]] = {c: [] for c in CHANNELS}
        if on_stdout:
            self.subscribe("stdout", on_stdout)
        if on_stderr:
            self.subscribe("stderr", on_stderr)
        self.start_ts = time.time()

        # Readers start on the next loop iteration, after the caller had a
        # chance to subscribe.
        self._readers = [
            asyncio.create_task(self._pump(proc.stdout, "stdout")),
            asyncio.create_task(self._pump(proc.stderr, "stderr")),
        ]

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def running(self) -> bool:
        return self._proc.returncode is None

    def subscribe(self, channel: Channel, callback: LineCallback) -> None:
        """Deliver every subsequent line of ``channel`` to ``callback``."""
        if channel not in self._subscribers:
            raise ValueError(f"Unknown channel: {channel!r} (expected one of {CHANNELS})")
        self._subscribers[channel].append(callback)

    def on_stdout(self, callback: LineCallback) -> None:
        self.subscribe("stdout", callback)

    def on_stderr(self, callback: LineCallback) -> None:
        self.subscribe("stderr", callback)

    async def _pump(self, stream: asyncio.StreamReader | None, channel: Channel) -> None:
        if stream is None:
            return
        try:
            while True:
                line_bytes = await _read_line(stream)
                if not line_bytes:
                    break
                line = line_bytes.decode("utf-8", errors="replace").rstrip("\r\n")
                if logging_config.TRACE_ENABLED:
                    logging.getLogger(__name__).trace("[%s] %s", channel, line)  # type: ignore[attr-defined]
                self._dispatch(channel, line)
        except Exception as e:
            logging.error("Stream reader error (%s): %s", channel, e)
            # Keep the pipe drained so the child never blocks on a full buffer
            with contextlib.suppress(Exception):
                while await stream.read(1 << 16):
                    pass

    def _dispatch(self, channel: Channel, line: str) -> None:
        for callback in list(self._subscribers[channel]):
            try:
                callback(line)
            except Exception as e:
                logging.error("Line callback failed on %s: %s", channel, e)

    async def send_input(self, text: str) -> None:
        """Write ``text`` to the child's standard input."""
        stdin = self._proc.stdin
        if stdin is None:
            raise RuntimeError("Session was started without a stdin pipe")
        stdin.write(text.encode("utf-8"))
        await stdin.drain()

    async def wait(self) -> int:
        """Wait for the process to exit and all output to be delivered."""
        rc = await self._proc.wait()
        for task in self._readers:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        return rc

    def terminate(self) -> None:
        """Ask the process to exit; does not wait."""
        if self._proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self._proc.terminate()

    async def stop(self, timeout: float = 2.0) -> None:
        """
        Stop the session gracefully.

        Args:
            timeout: Seconds to wait for termination before force kill
        """
        proc = self._proc

        if proc.returncode is None:
            try:
                proc.terminate()
                try:
                    await asyncio.wait_for(proc.wait(), timeout=timeout)
                    logging.info("ampy session %s terminated", proc.pid)
                except asyncio.TimeoutError:
                    proc.kill()
                    await proc.wait()
                    logging.warning("ampy session %s force-killed after timeout", proc.pid)
            except ProcessLookupError:
                pass
        else:
            logging.info("ampy session already exited (code: %s)", proc.returncode)

        for task in self._readers:
            if not task.done():
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def __aenter__(self) -> AmpySession:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
