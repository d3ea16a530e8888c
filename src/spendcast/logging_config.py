"""Logging for the ``spendcast`` package: readable console, JSON lines on disk."""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path

from .config import BaseConfig

ROOT_LOGGER_NAME = "spendcast"
LOG_FILENAME = "spendcast.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` context nested under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            exc_type, exc_value, _tb = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        context = {
            key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS
        }
        if context:
            payload["extra"] = context
        return json.dumps(payload, default=str)


def _console_handler(dev_mode: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    if dev_mode:
        handler.setLevel(logging.INFO)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)-8s [%(name)s:%(lineno)d] %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    else:
        handler.setLevel(logging.WARNING)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    return handler


def setup_logging(config: BaseConfig) -> logging.Logger:
    """Attach console and rotating JSON file handlers to the package logger.

    Safe to call repeatedly; previously installed handlers are closed first.
    """
    logs_dir = Path(config.DATA_DIR) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if config.DEV_MODE else logging.INFO

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.addHandler(_console_handler(config.DEV_MODE))

    log_file = logs_dir / LOG_FILENAME
    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(JSONFormatter())
    package_logger.addHandler(file_handler)

    package_logger.info(
        "Logging initialized",
        extra={"dev_mode": config.DEV_MODE, "log_file": str(log_file)},
    )
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger namespaced under the package root, e.g. ``spendcast.services.budgets``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
