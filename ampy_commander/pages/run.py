from __future__ import annotations

import asyncio
import contextlib
import logging

from nicegui import ui

from ampy_commander.constants import RUN_LOG_MAX_LINES
from ampy_commander.services.ampy import Ampy, ResetMode
from ampy_commander.services.ampy_session import AmpySession
from ampy_commander.state import board_state, session_state


class RunPage:
    """Run / reset tab page."""

    def __init__(self) -> None:
        self.script_input: ui.input | None = None
        self.reset_select: ui.select | None = None
        self.run_log: ui.log | None = None
        self.session: AmpySession | None = None
        self.monitor_task: asyncio.Task | None = None

    def _ampy(self) -> Ampy:
        return Ampy(int(board_state.com_port))

    def _script(self) -> str:
        return (self.script_input.value or "").strip() if self.script_input else ""

    def _push(self, line: str) -> None:
        if self.run_log:
            self.run_log.push(line)

    async def run_and_wait(self) -> None:
        """Run a script and show its complete output once it finishes."""
        script = self._script()
        if not script:
            ui.notify("Provide a local script path", color="warning")
            return
        board_state.busy = True
        try:
            res = await self._ampy().run(script)
            for line in res.output.splitlines():
                self._push(line)
            for line in res.error.splitlines():
                self._push(f"[ERR] {line}")
            board_state.last_error = res.error
            logging.info("Ran %s", script)
        except Exception as e:
            ui.notify(f"Run failed: {e}", color="negative")
            logging.error("run %s failed: %s", script, e)
        finally:
            board_state.busy = False

    async def run_detached(self) -> None:
        script = self._script()
        if not script:
            ui.notify("Provide a local script path", color="warning")
            return
        try:
            await self._ampy().run_no_wait(script)
            ui.notify(f"Started {script} on the board", color="positive")
            logging.info("Started %s without waiting", script)
        except Exception as e:
            ui.notify(f"Run failed: {e}", color="negative")
            logging.error("run -n %s failed: %s", script, e)

    async def start_stream(self) -> None:
        """Run a script with live output pushed into the run log."""
        if session_state.running:
            ui.notify("A script is already running", color="warning")
            return
        script = self._script()
        if not script:
            ui.notify("Provide a local script path", color="warning")
            return

        try:
            self.session = await self._ampy().run_with_stream_output(
                script,
                on_stdout=self._push,
                on_stderr=lambda line: self._push(f"[ERR] {line}"),
            )
            session_state.running = True
            session_state.pid = self.session.pid
            session_state.script = script

            h = self.session  # capture
            self.monitor_task = asyncio.create_task(self._monitor_session(h, script))

            ui.notify(f"Started script: {script}", color="positive")
        except Exception as e:
            ui.notify(f"Failed to start script: {e}", color="negative")
            logging.error("Failed to start script: %s", e)

    async def _monitor_session(self, session: AmpySession, script: str) -> None:
        """Reset state when the streamed run finishes on its own."""
        try:
            rc = await session.wait()
            # Only report if this session is still the active one
            if self.session is session:
                self.session = None
                session_state.running = False
                session_state.pid = None
                session_state.last_exit_code = rc
                ui.notify(
                    f"Script finished: {script} (exit {rc})",
                    color="positive" if rc == 0 else "warning",
                )
                logging.info("Script %s finished with code %s", script, rc)
        except Exception as e:
            logging.error("Error monitoring ampy session: %s", e)
            if self.session is session:
                self.session = None
                session_state.running = False
                session_state.pid = None

    async def stop_stream(self) -> None:
        if not session_state.running or not self.session:
            ui.notify("No script running", color="warning")
            return

        session = self.session  # capture
        # Clear state up-front; the monitor sees this and stays silent
        self.session = None
        session_state.running = False
        session_state.pid = None
        try:
            await session.stop()
            session_state.last_exit_code = session.returncode
            ui.notify("Script stopped", color="warning")
            logging.info("Script stopped by user")
        except Exception as e:
            ui.notify(f"Error stopping script: {e}", color="negative")
            logging.error("Error stopping script: %s", e)

    async def reset_board(self) -> None:
        value = self.reset_select.value if self.reset_select else ResetMode.REPL.value
        try:
            await self._ampy().reset(ResetMode(value))
            ui.notify(f"Sent reset --{value}", color="primary")
            logging.info("Reset (%s) sent", value)
        except Exception as e:
            ui.notify(f"Reset failed: {e}", color="negative")
            logging.error("Reset failed: %s", e)

    async def shutdown(self) -> None:
        """Stop a streamed run still attached to this page."""
        if self.session:
            session, self.session = self.session, None
            with contextlib.suppress(Exception):
                await session.stop()
            session_state.running = False

    def build(self) -> None:
        """Build the Run page content."""
        with ui.card().classes("w-full"):
            ui.label("Run").classes("text-md font-medium")
            with ui.row().classes("items-center gap-2 w-full"):
                self.script_input = ui.input(label="Local script").classes("grow")
                ui.button("Run", on_click=self.run_and_wait).props("unelevated")
                ui.button("Run detached", on_click=self.run_detached).props("unelevated")
                ui.button("Stream", on_click=self.start_stream).props("color=positive")
                ui.button("Stop", on_click=self.stop_stream).props("color=negative")
            ui.label().bind_text_from(
                session_state,
                "running",
                backward=lambda r: "running" if r else "idle",
            ).classes("text-sm")
            self.run_log = (
                ui.log(max_lines=RUN_LOG_MAX_LINES)
                .classes("w-full whitespace-pre-wrap break-words")
                .style("height: 320px")
            )
            with ui.row().classes("items-center gap-2"):
                ui.button("Clear", on_click=lambda: self.run_log and self.run_log.clear())

        with ui.card().classes("w-full"):
            ui.label("Reset").classes("text-md font-medium")
            with ui.row().classes("items-center gap-2"):
                self.reset_select = ui.select(
                    [m.value for m in ResetMode], value=ResetMode.REPL.value
                ).props("dense")
                ui.button("Reset", on_click=self.reset_board).props("color=warning")
