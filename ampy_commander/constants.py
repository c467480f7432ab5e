from __future__ import annotations

import logging
import os
from pathlib import Path

# Repository root
REPO_ROOT = Path(__file__).resolve().parent.parent

# Upstream tool documentation
AMPY_DOC_URL = "https://github.com/scientifichackers/ampy"

# External tool launched for every board operation
AMPY_EXECUTABLE: str = os.getenv("AMPY_EXECUTABLE", "ampy")
# Default board target (COM<n>)
DEFAULT_COM_PORT: int = int(os.getenv("AMPY_COM_PORT", "1"))

# Webserver bind (NiceGUI host/port)
SERVER_HOST: str = os.getenv("AMPY_SERVER_IP", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("AMPY_SERVER_PORT", "8080"))

# Lines kept in the web run log
RUN_LOG_MAX_LINES: int = 500


def _resolve_log_level() -> int:
    s = os.getenv("AMPY_LOG_LEVEL")
    if s:
        name = s.strip().upper()
        mapping = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return mapping.get(name, logging.WARNING)
    else:
        return logging.WARNING


LOG_LEVEL: int = _resolve_log_level()
