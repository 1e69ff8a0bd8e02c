"""Logging setup for the lirt CLI."""

from __future__ import annotations
import json
import logging
import os
from collections.abc import Mapping
from rich.console import Console
from rich.logging import RichHandler
from .credentials import mask_api_key


LOGGER_NAME = "lirt"
LOG_LEVEL_ENV = "LIRT_LOG_LEVEL"
LOG_FORMAT_ENV = "LIRT_LOG_FORMAT"

_HANDLER_FLAG = "_lirt_handler"
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


class SecretRedactingFilter(logging.Filter):
    """Replace registered secrets in log records with their masked form."""

    def __init__(self) -> None:
        """Create a filter with no registered secrets."""
        super().__init__()
        self._secrets: set[str] = set()

    def register(self, secret: str | None) -> None:
        """Start masking ``secret`` in every subsequent record."""
        if secret:
            self._secrets.add(secret)

    def redact(self, text: str) -> str:
        """Return ``text`` with every registered secret masked."""
        for secret in sorted(self._secrets, key=len, reverse=True):
            if secret in text:
                text = text.replace(secret, mask_api_key(secret))
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        """Rewrite the record message in place; never drops records."""
        if not self._secrets:
            return True
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line, including extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialise ``record`` to JSON."""
        payload: dict[str, object] = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _resolve_level(level: int | str | None, env: Mapping[str, str]) -> int:
    raw = level if level is not None else env.get(LOG_LEVEL_ENV, "WARNING")
    if isinstance(raw, int):
        return raw
    resolved = logging.getLevelName(str(raw).upper())
    return resolved if isinstance(resolved, int) else logging.WARNING


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    env: Mapping[str, str] | None = None,
    redactor: SecretRedactingFilter | None = None,
) -> logging.Logger:
    """Install a single stderr handler on the ``lirt`` logger.

    Calling it again replaces the previously installed handler, so each
    invocation of the CLI starts from a known state. When ``redactor`` is
    given it masks the secrets registered on it in every record.
    """
    env = os.environ if env is None else env
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            logger.removeHandler(handler)

    log_format = (fmt or env.get(LOG_FORMAT_ENV) or "text").lower()
    handler: logging.Handler
    if log_format == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            rich_tracebacks=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(handler, _HANDLER_FLAG, True)
    if redactor is not None:
        handler.addFilter(redactor)

    logger.addHandler(handler)
    logger.setLevel(_resolve_level(level, env))
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``name`` or the package logger."""
    return logging.getLogger(name or LOGGER_NAME)


__all__ = [
    "LOG_FORMAT_ENV",
    "LOG_LEVEL_ENV",
    "JsonFormatter",
    "SecretRedactingFilter",
    "configure_logging",
    "get_logger",
]
