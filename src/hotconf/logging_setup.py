"""
Output formatting for the ``hotconf`` logger.

Library modules only call ``logging.getLogger(__name__)``; nothing is printed
until an application calls :func:`setup_logging` (directly or through
``RegistryBuilder.with_logging()``).  Reload events carry ``config_file`` and
``configurations`` extras that both formatters render.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, TextIO

from .exceptions import HotconfError
from .settings import RuntimeSettings

LOGGER_NAME = "hotconf"

# extras attached by the registry and the reload supervisor
EVENT_FIELDS = ("config_file", "configurations", "outcome")


class LogFormat(Enum):
    PRETTY = "pretty"
    JSON = "json"


RESET = "\033[0m"
COLORS = {
    "DEBUG": "\033[37m",
    "INFO": "\033[36m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[41m\033[97m",
    "TIME": "\033[90m",
    "SOURCE": "\033[35m",
}


def _short_name(record: logging.LogRecord) -> str:
    prefix = LOGGER_NAME + "."
    return record.name[len(prefix):] if record.name.startswith(prefix) else record.name


def _event_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in EVENT_FIELDS if hasattr(record, key)}


def _error_details(record: logging.LogRecord) -> Optional[Dict[str, Any]]:
    if not record.exc_info:
        return None
    error = record.exc_info[1]
    if isinstance(error, HotconfError):
        return error.to_dict()
    return None


class PrettyColoredFormatter(logging.Formatter):
    """
    Colored single-line formatter for terminals.

    2026-01-05 09:12:44.120 UTC | WARNING  | supervisor | Rejected change ... (config_file=conf/c.json)
    """

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def _paint(self, key: str, text: str) -> str:
        if not self.use_color:
            return text
        return f"{COLORS.get(key, '')}{text}{RESET}"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        line = (
            f"{self._paint('TIME', timestamp + ' UTC')} | "
            f"{self._paint(record.levelname, f'{record.levelname:<8}')} | "
            f"{self._paint('SOURCE', _short_name(record))} | "
            f"{record.getMessage()}"
        )
        fields = _event_fields(record)
        if fields:
            line += " (" + ", ".join(f"{k}={v}" for k, v in fields.items()) + ")"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per record; hotconf errors are expanded via ``to_dict()``."""

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in _event_fields(record).items():
            base[key] = value if isinstance(value, (str, int, float, bool, list)) else str(value)
        details = _error_details(record)
        if details is not None:
            base["error"] = details
        elif record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, separators=(",", ":"), default=str)


def setup_logging(settings: Optional[RuntimeSettings] = None, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Route the ``hotconf`` logger to a single stream handler.

    Level and format come from ``settings`` (``HOTCONF_LOG_LEVEL`` and
    ``HOTCONF_LOG_FORMAT``).  Calling it again replaces the handler.
    """
    settings = settings or RuntimeSettings()
    stream = stream or sys.stdout
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    try:
        log_format = LogFormat(settings.log_format)
    except ValueError:
        raise ValueError(f"Unknown log format: {settings.log_format}") from None
    handler = logging.StreamHandler(stream)
    if log_format is LogFormat.JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(PrettyColoredFormatter(use_color=hasattr(stream, "isatty") and stream.isatty()))

    logger.handlers = [handler]
    logger.propagate = False
    return logger
