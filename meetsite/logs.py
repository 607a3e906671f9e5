"""
Logging setup for the meetsite CLI.

Console output is one `[LEVEL] message` line per event on stderr. When the
data directory is usable, the same events also go to a rotating log file
with timestamps.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

from .config import Config

CONSOLE_FORMAT = "[%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Handlers installed by setup_logging(), so a second call replaces them
_installed: list[logging.Handler] = []


def setup_logging(verbose: bool = False, config: Config = None):
    """Configure the meetsite loggers; safe to call more than once."""
    root = logging.getLogger("meetsite")
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    level = logging.DEBUG if verbose else logging.INFO
    root.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console_handler.setLevel(level)
    root.addHandler(console_handler)
    _installed.append(console_handler)

    if config is None:
        return

    try:
        config.data_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
    except OSError as e:
        root.warning(f"File logging disabled, cannot use {config.log_file}: {e}")
        return

    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    file_handler.setLevel(logging.DEBUG)
    root.addHandler(file_handler)
    _installed.append(file_handler)
