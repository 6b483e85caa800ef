"""
Logging helpers.

The persisted debug flag gates verbosity for the whole `ad_monitor` logger
tree: debug and info records only pass while debug mode is on, warnings and
errors always pass.
"""

import logging
from typing import Optional

ROOT_LOGGER_NAME = "ad_monitor"
REMOTE_LOGGER_NAME = "ad_monitor.remote"

_LEVELS = {
    "debug": logging.DEBUG,
    "log": logging.INFO,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(debug_mode: bool) -> None:
    """Apply the debug flag to the package logger."""
    level = logging.DEBUG if debug_mode else logging.WARNING
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


def log_message(
    message: str,
    level: Optional[str] = None,
    extra: Optional[dict] = None,
) -> None:
    """Forward a log line sent by a remote caller through the `log` task."""
    numeric = _LEVELS.get((level or "log").lower(), logging.INFO)
    remote = logging.getLogger(REMOTE_LOGGER_NAME)
    if extra:
        remote.log(numeric, "%s %s", message, extra)
    else:
        remote.log(numeric, "%s", message)
