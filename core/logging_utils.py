"""Lightweight logging helpers with UTC timestamps."""

from __future__ import annotations

import logging
import os
import time

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_HANDLER_NAME = "coinwatch-root-handler"
_FILE_HANDLER_NAME = "coinwatch-file-handler"

# Set while the TUI owns the terminal
_console_suppressed = False


def _formatter() -> logging.Formatter:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    formatter.converter = time.gmtime  # Force UTC timestamps
    return formatter


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        return getattr(logging, env_level, logging.INFO)
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def suppress_console_logging(suppress: bool = True) -> None:
    """Silence the console handler (TUI mode). File logging continues."""
    global _console_suppressed
    _console_suppressed = suppress

    root = logging.getLogger()
    for handler in root.handlers:
        if getattr(handler, "name", "") == _HANDLER_NAME:
            handler.setLevel(logging.CRITICAL + 1 if suppress else root.level)


def setup_logging(level: str | int | None = None, log_file: str | None = None) -> logging.Logger:
    """Configure a single console handler and an optional file handler."""
    root = logging.getLogger()
    resolved_level = _resolve_level(level)

    has_handler = any(getattr(h, "name", "") == _HANDLER_NAME for h in root.handlers)
    if not has_handler:
        handler = logging.StreamHandler()
        handler.name = _HANDLER_NAME
        handler.setFormatter(_formatter())
        root.addHandler(handler)

    if log_file:
        for handler in root.handlers[:]:
            if getattr(handler, "name", "") == _FILE_HANDLER_NAME:
                if getattr(handler, "baseFilename", None) == os.path.abspath(log_file):
                    break
                root.removeHandler(handler)
                handler.close()
        else:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.name = _FILE_HANDLER_NAME
            file_handler.setFormatter(_formatter())
            root.addHandler(file_handler)

    root.setLevel(resolved_level)
    for handler in root.handlers:
        name = getattr(handler, "name", "")
        if name == _HANDLER_NAME:
            handler.setLevel(resolved_level if not _console_suppressed else logging.CRITICAL + 1)
        elif name == _FILE_HANDLER_NAME:
            handler.setLevel(resolved_level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(resolved_level, logging.WARNING))
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger configured with the shared format."""
    setup_logging()
    return logging.getLogger(name)
