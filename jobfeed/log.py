"""Logging setup for the feed engine: console plus a daily debug file, stdlib only."""
from __future__ import annotations

import logging
import os
import sys
import threading
from datetime import datetime
from pathlib import Path

_DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(threadName)-14s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_QUIET_LOGGERS = ("urllib3", "charset_normalizer")

_lock = threading.Lock()
_installed: list[logging.Handler] = []
_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def configure_logging(
    level: str | int | None = None,
    log_dir: Path | str | None = None,
    *,
    force: bool = False,
) -> None:
    """Install the console and daily-file handlers on the root logger.

    ``level`` falls back to $LOG_LEVEL, then INFO. ``log_dir`` falls back to
    $FEED_LOG_DIR, then ``logs/`` in the project. Handlers someone else put
    on the root logger are left alone; ``force`` replaces only ours.
    """
    global _configured
    with _lock:
        console_level = _resolve_level(level)
        root = logging.getLogger()

        if force:
            for handler in _installed:
                root.removeHandler(handler)
                handler.close()
            _installed.clear()

        _configured = True
        if root.handlers:
            root.setLevel(console_level)
            return

        formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(console_level)
        console.setFormatter(formatter)
        _installed.append(console)

        directory = Path(log_dir or os.environ.get("FEED_LOG_DIR") or _DEFAULT_LOG_DIR)
        file_handler = _daily_file_handler(directory, formatter)
        if file_handler is not None:
            _installed.append(file_handler)

        for handler in _installed:
            root.addHandler(handler)
        root.setLevel(logging.DEBUG if file_handler is not None else console_level)

        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG if console_level <= logging.DEBUG else logging.WARNING)

        if file_handler is None:
            logging.getLogger(__name__).warning("File logging disabled: %s is not writable", directory)


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _daily_file_handler(directory: Path, formatter: logging.Formatter) -> logging.Handler | None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(
            directory / f"feed_{datetime.now().strftime('%Y-%m-%d')}.log", encoding="utf-8"
        )
    except OSError:
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler
