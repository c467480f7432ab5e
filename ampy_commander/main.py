import argparse
import logging

from nicegui import app as ng_app
from nicegui import ui

from ampy_commander.common.logging_config import (
    add_log_level_arguments,
    attach_ui_log,
    configure_logging,
    detach_ui_log,
    level_from_args,
)
from ampy_commander.constants import (
    AMPY_DOC_URL,
    DEFAULT_COM_PORT,
    LOG_LEVEL,
    SERVER_HOST,
    SERVER_PORT,
)
from ampy_commander.pages.files import FilesPage
from ampy_commander.pages.run import RunPage
from ampy_commander.state import board_state


def _restore_port() -> None:
    try:
        board_state.com_port = int(ng_app.storage.general.get("com_port", DEFAULT_COM_PORT))
    except (TypeError, ValueError):
        board_state.com_port = DEFAULT_COM_PORT


def set_port(value) -> None:
    if value is None:
        ui.notify("Provide a port number", color="warning")
        return
    board_state.com_port = int(value)
    ng_app.storage.general["com_port"] = board_state.com_port
    logging.info("Target port set to COM%s", board_state.com_port)


def build_header():
    with (
        ui.header().classes("p-0"),
        ui.row().classes("w-full items-center justify-between px-2"),
    ):
        with ui.tabs() as tabs:
            files_tab = ui.tab("Files")
            run_tab = ui.tab("Run")
        ui.label("Ampy Commander").classes("text-sm text-center")
        with ui.row().classes("items-center gap-2"):
            port_input = (
                ui.number(label="COM port", value=board_state.com_port, min=0, format="%d")
                .props("dense dark")
                .classes("w-24")
            )
            port_input.on("keydown.enter", lambda: set_port(port_input.value))
            ui.button("Set", on_click=lambda: set_port(port_input.value)).props("flat color=white")
            ui.button(
                "?",
                on_click=lambda: ui.run_javascript(
                    f"window.open('{AMPY_DOC_URL}', '_blank')"
                ),
            ).props("round unelevated")
    return tabs, files_tab, run_tab


@ui.page("/")
async def index() -> None:
    _restore_port()
    files_page = FilesPage()
    run_page = RunPage()

    tabs, files_tab, run_tab = build_header()
    with ui.tab_panels(tabs, value=files_tab).classes("w-full"):
        with ui.tab_panel(files_tab):
            files_page.build()
        with ui.tab_panel(run_tab):
            run_page.build()

    if run_page.run_log:
        attach_ui_log(run_page.run_log)

    async def _on_disconnect() -> None:
        if run_page.run_log:
            detach_ui_log(run_page.run_log)
        await run_page.shutdown()

    ui.context.client.on_disconnect(_on_disconnect)


def main() -> None:
    parser = argparse.ArgumentParser(description="Ampy Commander webserver")
    parser.add_argument("--host", default=SERVER_HOST, help="Webserver bind host")
    parser.add_argument("--port", type=int, default=SERVER_PORT, help="Webserver bind port")
    add_log_level_arguments(parser)
    args, _ = parser.parse_known_args()

    configure_logging(level_from_args(args, LOG_LEVEL))
    logging.info(f"Webserver bind: host={args.host} port={args.port}")

    ui.run(
        title="Ampy Commander",
        host=args.host,
        port=int(args.port),
        reload=False,
        show=False,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
