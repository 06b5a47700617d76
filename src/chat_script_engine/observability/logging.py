"""JSON logging for the chat script engine.

Records go to stderr as one JSON object per line. The `chat-scripts chat`
loop prints the transcript on stdout, so logs and conversation never mix.

Engine modules attach run context with
`extra={"extra_fields": {"script_id": ..., "step_id": ..., "feature": ...}}`;
those keys land at the top level of the entry next to `level`, `logger` and
`message`.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

LOG_LEVEL_ENV = "CHAT_SCRIPTS_LOG_LEVEL"


class JsonFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Structured fields whose value is None (e.g. `code` for errors that are not
    engine errors) are left out of the entry.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        probe = logging.LogRecord("probe", logging.INFO, "", 0, "", None, None)
        self._reserved_attrs = set(probe.__dict__.keys())
        self._reserved_attrs.update({"message", "asctime"})

    def _fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in self._reserved_attrs:
                continue
            if key == "extra_fields" and isinstance(value, dict):
                fields.update(value)
            else:
                fields[key] = value
        return {k: v for k, v in fields.items() if v is not None}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self._fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        # hook payloads may hold values json cannot encode
        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(
    level: Optional[str] = None,
    stream: Optional[TextIO] = None,
    *,
    default: str = "INFO",
) -> None:
    """Installs the JSON handler on the root logger, replacing any others.

    Args:
        level: Log level. Defaults to CHAT_SCRIPTS_LOG_LEVEL, then LOG_LEVEL,
            then `default`.
        stream: Output stream. Defaults to stderr.
        default: Level used when neither argument nor environment sets one.
    """
    log_level = (
        level
        or os.environ.get(LOG_LEVEL_ENV)
        or os.environ.get("LOG_LEVEL", default)
    ).upper()

    root = logging.getLogger()
    root.setLevel(log_level)

    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
