from __future__ import annotations

import logging

from nicegui import ui

from ampy_commander.services.ampy import Ampy, AmpyOutput
from ampy_commander.state import board_state


class FilesPage:
    """Board filesystem tab page."""

    def __init__(self) -> None:
        self.dir_input: ui.input | None = None
        self.long_format_cb: ui.checkbox | None = None
        self.recursive_cb: ui.checkbox | None = None
        self.remote_input: ui.input | None = None
        self.local_input: ui.input | None = None
        self.exists_okay_cb: ui.checkbox | None = None
        self.make_parents_cb: ui.checkbox | None = None
        self.missing_okay_cb: ui.checkbox | None = None
        self.viewer: ui.textarea | None = None

    def _ampy(self) -> Ampy:
        return Ampy(int(board_state.com_port))

    def _remote(self) -> str:
        return (self.remote_input.value or "").strip() if self.remote_input else ""

    def _local(self) -> str:
        return (self.local_input.value or "").strip() if self.local_input else ""

    def _report(self, res: AmpyOutput) -> None:
        board_state.last_error = res.error
        if res.error:
            ui.notify(res.error.strip().splitlines()[-1], color="negative")
            logging.warning("ampy: %s", res.error.strip())

    # ---------- commands ----------

    async def refresh_listing(self) -> None:
        directory = (self.dir_input.value or "").strip() if self.dir_input else ""
        directory = directory or "/"
        board_state.busy = True
        try:
            res = await self._ampy().list_directory(
                directory,
                long_format=bool(self.long_format_cb and self.long_format_cb.value),
                recursive=bool(self.recursive_cb and self.recursive_cb.value),
            )
            board_state.listing = res.output
            board_state.listing_dir = directory
            self._report(res)
        except Exception as e:
            ui.notify(f"Listing failed: {e}", color="negative")
            logging.error("ls %s failed: %s", directory, e)
        finally:
            board_state.busy = False

    async def open_file(self) -> None:
        remote = self._remote()
        if not remote:
            ui.notify("Provide a remote path", color="warning")
            return
        board_state.busy = True
        try:
            res = await self._ampy().get_file_content(remote)
            if self.viewer:
                self.viewer.value = res.output
            self._report(res)
        except Exception as e:
            ui.notify(f"Get failed: {e}", color="negative")
            logging.error("get %s failed: %s", remote, e)
        finally:
            board_state.busy = False

    async def _no_output(self, label: str, action) -> None:
        board_state.busy = True
        try:
            await action(self._ampy())
            ui.notify(f"Sent {label}", color="primary")
            logging.info("%s done", label)
        except Exception as e:
            ui.notify(f"{label} failed: {e}", color="negative")
            logging.error("%s failed: %s", label, e)
        finally:
            board_state.busy = False
        await self.refresh_listing()

    async def download(self) -> None:
        remote, local = self._remote(), self._local()
        if not remote or not local:
            ui.notify("Provide remote and local paths", color="warning")
            return
        await self._no_output(f"get {remote}", lambda a: a.download_file(remote, local))

    async def upload(self) -> None:
        local, remote = self._local(), self._remote()
        if not local:
            ui.notify("Provide a local path", color="warning")
            return
        await self._no_output(f"put {local}", lambda a: a.upload(local, remote or None))

    async def remove_file(self) -> None:
        remote = self._remote()
        if not remote:
            ui.notify("Provide a remote path", color="warning")
            return
        await self._no_output(f"rm {remote}", lambda a: a.remove_file(remote))

    async def make_directory(self) -> None:
        remote = self._remote()
        if not remote:
            ui.notify("Provide a remote path", color="warning")
            return
        exists_okay = bool(self.exists_okay_cb and self.exists_okay_cb.value)
        make_parents = bool(self.make_parents_cb and self.make_parents_cb.value)
        await self._no_output(
            f"mkdir {remote}",
            lambda a: a.create_directory(remote, exists_okay, make_parents),
        )

    async def remove_directory(self) -> None:
        remote = self._remote()
        if not remote:
            ui.notify("Provide a remote path", color="warning")
            return
        missing_okay = bool(self.missing_okay_cb and self.missing_okay_cb.value)
        await self._no_output(
            f"rmdir {remote}", lambda a: a.remove_directory(remote, missing_okay)
        )

    # ---------- layout ----------

    def build(self) -> None:
        """Build the Files page content."""
        with ui.row().classes("w-full gap-4 no-wrap items-start"):
            with ui.card().classes("w-1/2"):
                ui.label("Board").classes("text-md font-medium")
                with ui.row().classes("items-center gap-2"):
                    self.dir_input = ui.input(label="Directory", value="/").props("dense")
                    self.long_format_cb = ui.checkbox("Long")
                    self.recursive_cb = ui.checkbox("Recursive")
                    ui.button("List", on_click=self.refresh_listing).props("unelevated")
                ui.label().bind_text_from(
                    board_state, "listing_dir", backward=lambda d: f"Contents of {d}"
                ).classes("text-sm")
                ui.label().bind_text_from(board_state, "listing").classes(
                    "w-full whitespace-pre font-mono text-sm"
                )
                ui.spinner(size="sm").bind_visibility_from(board_state, "busy")

            with ui.card().classes("w-1/2"):
                ui.label("Transfer").classes("text-md font-medium")
                self.remote_input = ui.input(label="Remote path").classes("w-full")
                self.local_input = ui.input(label="Local path (host)").classes("w-full")
                with ui.row().classes("items-center gap-2"):
                    ui.button("View", on_click=self.open_file).props("unelevated")
                    ui.button("Download", on_click=self.download).props("unelevated")
                    ui.button("Upload", on_click=self.upload).props("unelevated")
                    ui.button("Remove", on_click=self.remove_file).props("color=negative")
                ui.separator()
                with ui.row().classes("items-center gap-2"):
                    self.exists_okay_cb = ui.checkbox("Exists okay")
                    self.make_parents_cb = ui.checkbox("Make parents")
                    ui.button("Mkdir", on_click=self.make_directory).props("unelevated")
                with ui.row().classes("items-center gap-2"):
                    self.missing_okay_cb = ui.checkbox("Missing okay")
                    ui.button("Rmdir", on_click=self.remove_directory).props(
                        "color=negative"
                    )
                self.viewer = (
                    ui.textarea(label="File content")
                    .props("readonly outlined")
                    .classes("w-full font-mono")
                )
