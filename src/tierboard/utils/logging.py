"""Log handlers for the tierboard command-line tool."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

from ..services.settings import Settings

__all__ = ["setup_logging", "resolve_log_dir", "LOG_FILENAME"]

LOG_FILENAME = "tierboard.log"
_DEFAULT_LOG_DIR = Path.home() / ".tierboard" / "logs"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that receive the tierboard handlers; httpx reports each catalog request.
_PACKAGE_LOGGER = "tierboard"
_TRANSPORT_LOGGER = "httpx"

_installed: list[tuple[logging.Logger, logging.Handler]] = []


def resolve_log_dir(settings: Settings) -> Path:
    """``TIERBOARD_LOG_DIR``, else ``<storage_dir>/logs``, else ``~/.tierboard/logs``."""

    env_override = os.environ.get("TIERBOARD_LOG_DIR")
    if env_override:
        return Path(env_override).expanduser()
    if settings.storage_dir:
        return Path(settings.storage_dir).expanduser() / "logs"
    return _DEFAULT_LOG_DIR


def setup_logging(
    settings: Settings,
    *,
    debug: bool = False,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """Attach a rotating file handler (and optionally stderr) to the tierboard loggers.

    The file records board and index activity at INFO; with ``debug`` or
    ``settings.debug_logging`` both outputs drop to DEBUG and each catalog
    request is logged. Calling it again replaces the previous handlers.
    """

    verbose = debug or settings.debug_logging
    file_level = logging.DEBUG if verbose else logging.INFO
    console_level = logging.DEBUG if verbose else logging.WARNING

    log_dir = resolve_log_dir(settings)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    handlers: list[logging.Handler] = []
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    handlers.append(file_handler)
    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    _remove_installed()
    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    package_logger.setLevel(file_level)
    transport_logger = logging.getLogger(_TRANSPORT_LOGGER)
    transport_logger.setLevel(logging.INFO if verbose else logging.WARNING)
    for logger in (package_logger, transport_logger):
        for handler in handlers:
            logger.addHandler(handler)
            _installed.append((logger, handler))
    logging.captureWarnings(True)
    package_logger.debug("Logging to %s (verbose=%s)", log_path, verbose)
    return log_path


def _remove_installed() -> None:
    closed: set[int] = set()
    while _installed:
        logger, handler = _installed.pop()
        logger.removeHandler(handler)
        if id(handler) not in closed:
            closed.add(id(handler))
            handler.close()
