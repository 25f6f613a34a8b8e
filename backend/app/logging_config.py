"""Process logger setup"""
from datetime import datetime, timezone
from typing import Optional
import json
import logging
import os
import sys
import time

LOGGER_NAME = "flex"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

DEVELOPMENT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s"
PRODUCTION_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def record_extras(record: logging.LogRecord) -> dict:
    """Return the fields attached to a record through `extra`"""
    return {key: value for key, value in vars(record).items() if key not in _RESERVED}


class JSONFormatter(logging.Formatter):
    """
    Emit each record as one JSON object per line

    Base fields are ts, level, logger and msg. Fields passed through
    `extra` are merged in, and the caller location is added in the
    development profile.
    """

    def __init__(self, include_caller: bool = False):
        super().__init__()
        self.include_caller = include_caller

    def format(self, record):
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if self.include_caller:
            payload["caller"] = f"{record.module}:{record.lineno}"
        payload.update(record_extras(record))
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text formatter that appends `extra` fields as key=value pairs"""

    def format(self, record):
        line = super().format(record)
        extras = record_extras(record)
        if extras:
            line += " " + " ".join(f"{key}={value}" for key, value in extras.items())
        return line


def build_formatter(environment: str, log_format: str) -> logging.Formatter:
    """
    Pick the formatter for an environment/format combination

    Args:
        environment: Value of ENV ("production" selects the production profile)
        log_format: Value of LOG_FORMAT ("json" selects JSON, anything else console)
    """
    production = environment == "production"

    if log_format == "json":
        return JSONFormatter(include_caller=not production)

    formatter = ConsoleFormatter(PRODUCTION_FORMAT if production else DEVELOPMENT_FORMAT)
    if production:
        formatter.converter = time.gmtime
    return formatter


def resolve_level(name: Optional[str]) -> int:
    """Map LOG_LEVEL to a logging level, defaulting to INFO"""
    return LEVELS.get(name or "", logging.INFO)


def init_logger() -> logging.Logger:
    """
    Configure the root logger from ENV, LOG_FORMAT and LOG_LEVEL

    Reads the process environment directly so logging is available
    before configuration is loaded. Existing root handlers are replaced,
    so calling this more than once never duplicates output.

    Returns:
        The application logger
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(os.getenv("ENV", ""), os.getenv("LOG_FORMAT", "")))

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(resolve_level(os.getenv("LOG_LEVEL")))

    return logging.getLogger(LOGGER_NAME)
