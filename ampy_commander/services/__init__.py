# Service layer for the Ampy Commander
# - ampy:         Ampy facade, one ampy child process per board operation
# - ampy_session: live handle for streamed script runs
from ampy_commander.services.ampy import RESET_FLAGS, Ampy, AmpyOutput, ResetMode
from ampy_commander.services.ampy_session import AmpySession

__all__ = ["Ampy", "AmpyOutput", "AmpySession", "ResetMode", "RESET_FLAGS"]
