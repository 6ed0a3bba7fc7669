"""Logging setup for the inkwise engine.

Log records pass through :class:`SecretRedactionFilter` so API keys that were
registered with :func:`register_secret` never reach a handler verbatim.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Iterable

__all__ = [
    "SecretRedactionFilter",
    "get_log_path",
    "get_logger",
    "register_secret",
    "setup_logging",
]

_DEFAULT_LOG_DIR = Path.home() / ".inkwise" / "logs"
_LOG_FILE_NAME = "inkwise.log"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_MIN_SECRET_LENGTH = 6
_CONFIGURED = False
_LOG_PATH: Path | None = None
_SECRETS: set[str] = set()


class SecretRedactionFilter(logging.Filter):
    """Replace registered secrets in formatted log messages with a mask."""

    def __init__(self, secrets: Iterable[str] | None = None) -> None:
        super().__init__()
        self._extra = {value for value in (secrets or ()) if value}

    def filter(self, record: logging.LogRecord) -> bool:
        secrets = _SECRETS | self._extra
        if not secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in secrets:
            if secret in redacted:
                redacted = redacted.replace(secret, _mask(secret))
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def register_secret(value: str | None) -> None:
    """Remember ``value`` so later log output masks it."""

    candidate = (value or "").strip()
    if len(candidate) >= _MIN_SECRET_LENGTH:
        _SECRETS.add(candidate)


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging with a rotating file and an optional console handler."""

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    redaction = SecretRedactionFilter()

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(redaction)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _quiet_transport_loggers(level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_logger(name: str) -> logging.Logger:
    """Return a module-specific logger."""

    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Return the active log file, if logging has been configured."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("INKWISE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _quiet_transport_loggers(root_level: int) -> None:
    quiet_level = max(root_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)


def _mask(secret: str) -> str:
    return f"{secret[:2]}***{secret[-2:]}"
