"""Structured logging helpers: JSON lines with context."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

ROOT_LOGGER_NAME = "nuclio_builder"


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Context travels as ``extra={"ctx": {...}}``; its values are rendered with
    ``str()`` under a ``ctx`` key, which is omitted when empty.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        ctx = getattr(record, "ctx", None)
        if ctx:
            payload["ctx"] = {k: str(v) for k, v in ctx.items()}
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def get_logger(name: str = ROOT_LOGGER_NAME, verbose: bool | None = None) -> logging.Logger:
    """Return the named logger, attaching the JSON handler on first use.

    Child loggers (``get_logger().getChild("env")``) propagate to the root
    handler, so only the root needs one. ``verbose`` switches between DEBUG
    and INFO; ``None`` leaves the current level alone.
    """
    logger = logging.getLogger(name)
    if not logger.handlers and "." not in name:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    if verbose is not None:
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger
