"""Logging setup: text to stdout, optional JSON lines to a rotating file."""

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_LOGGER = "callintel"

_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"asctime", "message"}


def _record_context(record: logging.LogRecord) -> dict:
    """Fields attached through `extra=` (call_id, stage, ...)."""
    context = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_ATTRS or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except TypeError:
            value = str(value)
        context[key] = value
    return context


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if context := _record_context(record):
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class ContextTextFormatter(logging.Formatter):
    """Human readable lines with `extra` fields appended as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in sorted(context.items()))
        return line


class CallLogAdapter(logging.LoggerAdapter):
    """Prefixes messages with the call id and tags records with it."""

    def process(self, msg, kwargs):
        call_id = self.extra.get("call_id")
        extra = {**self.extra, **kwargs.get("extra", {})}
        kwargs["extra"] = extra
        return (f"[{call_id}] {msg}" if call_id else msg), kwargs


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the `callintel` logger once and return it.

    Args:
        level: Log level name; defaults to CALLINTEL_LOG_LEVEL or INFO
    """
    logger = logging.getLogger(ROOT_LOGGER)
    level_name = (level or os.getenv("CALLINTEL_LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if logger.handlers:
        return logger

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(
        ContextTextFormatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(stream)

    if log_file := os.getenv("CALLINTEL_LOG_FILE", ""):
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)

    return logger


logger = setup_logging()


def get_logger(name: str | None = None) -> logging.Logger:
    """Child logger under `callintel`, e.g. get_logger("pipeline")."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logger


def call_logger(log: logging.Logger, call_id: str | None) -> CallLogAdapter:
    """Wrap a module logger so every line carries the call id."""
    return CallLogAdapter(log, {"call_id": call_id})
