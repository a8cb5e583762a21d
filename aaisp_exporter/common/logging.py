"""JSON and console logging with a stable field schema."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from aaisp_exporter.common.constants import JSON_LOG_FIELDS, LOG_OUTPUTS, LOGGER_NAME
from aaisp_exporter.common.time_utils import utc_timestamp_iso

_EVENT_FIELDS = tuple(f for f in JSON_LOG_FIELDS if f not in {"timestamp", "level", "message"})


def _event_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {field: getattr(record, field, None) for field in _EVENT_FIELDS}


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": utc_timestamp_iso(),
            "level": record.levelname.lower(),
            **_event_fields(record),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable single line: time, level, message, then set fields."""

    def format(self, record: logging.LogRecord) -> str:
        when = self.formatTime(record, "%H:%M:%S")
        parts = [when, record.levelname[:3], record.getMessage()]
        for key, value in _event_fields(record).items():
            if value is not None:
                parts.append(f"{key}={value}")
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def parse_level(level: str) -> int:
    # Unknown names fall back to INFO rather than failing startup.
    value = logging.getLevelName(level.upper())
    if isinstance(value, int):
        return value
    return logging.INFO


def build_logger(level: str = "info", output: str = "json", stream=None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(parse_level(level))
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(stream or sys.stderr)
    if output == "console":
        handler.setFormatter(ConsoleFormatter())
    elif output in LOG_OUTPUTS:
        handler.setFormatter(JsonLineFormatter())
    else:
        raise ValueError(f"Unknown log output: {output}")
    logger.addHandler(handler)

    return logger


def log_event(logger: logging.Logger, message: str, *, level: int = logging.INFO, **event_fields: Any) -> None:
    logger.log(level, message, extra=event_fields)
