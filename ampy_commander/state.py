from nicegui import binding

from ampy_commander.constants import DEFAULT_COM_PORT


# Shared state singletons for cross-module access
@binding.bindable_dataclass
class BoardState:
    com_port: int = DEFAULT_COM_PORT
    listing: str = ""  # last `ls` output
    listing_dir: str = "/"
    last_error: str = ""  # last stderr text returned by ampy
    busy: bool = False  # a capture/no-output command is in flight


@binding.bindable_dataclass
class SessionState:
    running: bool = False
    pid: int | None = None
    script: str = ""
    last_exit_code: int | None = None


# Module-level singletons
board_state = BoardState()
session_state = SessionState()
