"""Logging bootstrap for the ``atelier`` CLI.

Records go to a rotating file under ``~/.atelier/logs`` (or
``$ATELIER_LOG_DIR``) and, optionally, to stderr for warnings and worse.
Configured API keys are masked before any handler writes a record.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Iterable

__all__ = ["LOG_FILENAME", "SecretMaskFilter", "get_log_path", "level_for", "setup_logging"]

LOG_FILENAME = "atelier.log"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_DEFAULT_LOG_DIR = Path.home() / ".atelier" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_MASK = "***"
_LOG_PATH: Path | None = None


class SecretMaskFilter(logging.Filter):
    """Replaces known secret values in the rendered message of each record."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        # longest first so a key containing another key is fully masked
        self._secrets = tuple(sorted({value for value in secrets if value}, key=len, reverse=True))

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        masked = message
        for secret in self._secrets:
            masked = masked.replace(secret, _MASK)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def level_for(debug: bool) -> int:
    return logging.DEBUG if debug else logging.INFO


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    secrets: Iterable[str] = (),
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install the root handlers and return the log file path.

    A second call is a no-op unless ``force`` is set, in which case the
    previous handlers are closed and replaced.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    log_path = _resolve_log_dir(log_dir) / LOG_FILENAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    mask = SecretMaskFilter(secrets)
    handlers = [_file_handler(log_path, max_bytes=max_bytes, backup_count=backup_count)]
    if console:
        handlers.append(_console_handler(level))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(mask)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _quiet_third_party(level)

    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the active log file, or ``None`` before :func:`setup_logging`."""

    return _LOG_PATH


def _file_handler(path: Path, *, max_bytes: int, backup_count: int) -> logging.Handler:
    return logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")


def _console_handler(level: int) -> logging.Handler:
    # stdout belongs to command output
    handler = logging.StreamHandler()
    handler.setLevel(max(level, logging.WARNING))
    return handler


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    return Path(log_dir or os.environ.get("ATELIER_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()


def _quiet_third_party(root_level: int) -> None:
    level = max(root_level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)
