"""Logging configuration."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from agent_relay import constants
from agent_relay.utils.pathing import ensure_runtime_directories


def setup_logging(level: int = logging.INFO, console: bool = True) -> None:
    """Configure root logging with console + file handlers.

    The CLI passes ``console=False`` so its stdout stays machine-readable JSON.
    """
    ensure_runtime_directories()
    log_file = constants.LOG_DIR / "agent-relay.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    file_handler = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=5)
    file_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
    root.addHandler(file_handler)
