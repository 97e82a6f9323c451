"""Narrow structured logger used by the parsing pipeline."""

import logging
from typing import Any, Optional

from .errors import ParserError


PACKAGE_LOGGER = "codecontext_mcp"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _render(msg: str, fields: dict) -> str:
    if not fields:
        return msg
    pairs = " ".join(f"{k}={v}" for k, v in fields.items())
    return f"{msg} [{pairs}]"


class ParserLogger:
    """Logger with Info/Debug/Error methods taking key-value fields.

    Wraps a stdlib ``logging.Logger``. Fields are appended to the message
    as ``[k=v ...]`` and attached to the record as ``record.fields``.
    """

    def __init__(self, name: str = PACKAGE_LOGGER, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(name)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, fields)

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, fields)

    def error(self, msg: str, err: Optional[BaseException] = None, **fields: Any) -> None:
        if err is not None:
            fields["error"] = str(err)
            if isinstance(err, ParserError):
                if err.path:
                    fields.setdefault("file_path", err.path)
                if err.language:
                    fields.setdefault("language", err.language)
                if err.kind == "panic_recovered":
                    fields["panic_recovered"] = True
        self._log(logging.ERROR, msg, fields)

    def _log(self, level: int, msg: str, fields: dict) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, _render(msg, fields), extra={"fields": fields})


class NopLogger(ParserLogger):
    """Logger stand-in that discards everything."""

    def __init__(self):
        pass

    def _log(self, level: int, msg: str, fields: dict) -> None:
        return None


def configure_logging(config) -> None:
    """Apply a LoggingConfig level to the package logger."""
    level = _LEVELS.get(config.level.lower(), logging.INFO)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
