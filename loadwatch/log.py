"""CLI logging configuration with file output.

The live dashboard owns the terminal for the whole run, so log records go
to a rotating file instead of the console:

    ~/.local/share/loadwatch/logs/<command>.log

Set ``LOADWATCH_LOG_DIR`` to log somewhere else.

Follow a run live with::

    tail -f ~/.local/share/loadwatch/logs/loadwatch.log
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Standard log directory follows XDG convention
LOG_DIR = Path.home() / ".local" / "share" / "loadwatch" / "logs"
LOG_DIR_ENV_VAR = "LOADWATCH_LOG_DIR"


def get_log_dir() -> Path:
    """Return the log directory, creating it if needed."""
    log_dir = Path(os.environ[LOG_DIR_ENV_VAR]) if os.getenv(LOG_DIR_ENV_VAR) else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_file(command: str) -> Path:
    """Return the log file path for a CLI command."""
    return get_log_dir() / f"{command}.log"


def configure_cli_logging(
    command: str,
    *,
    verbose: bool = False,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 3,
) -> Path:
    """Configure file logging for a CLI command.

    Args:
        command: CLI command name, used as the log file stem.
        verbose: Log at DEBUG instead of INFO.
        max_bytes: Max size per log file before rotation.
        backup_count: Number of rotated backups to keep.

    Returns:
        Path to the log file.
    """
    log_file = get_log_file(command)
    level = logging.DEBUG if verbose else logging.INFO

    package_logger = logging.getLogger("loadwatch")

    # Remove existing file handlers to avoid duplicates on repeated calls
    for handler in package_logger.handlers[:]:
        if isinstance(handler, (RotatingFileHandler, logging.FileHandler)):
            package_logger.removeHandler(handler)
            handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(threadName)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    package_logger.addHandler(file_handler)
    package_logger.setLevel(level)

    return log_file
