"""Shared logging configuration utilities."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from squisher.config.env import parse_bool_env


DEFAULT_JSON_ENV_KEYS = ("LOG_JSON", "LOG_FORMAT")
LOG_FORMAT_NAMES = {"json": True, "plain": False, "text": False}
CONTEXT_FIELDS = ("asset", "image_index")


def _should_use_json(env: Mapping[str, str]) -> bool:
    for key in DEFAULT_JSON_ENV_KEYS:
        if key in env:
            value = str(env.get(key)).strip().lower()
            parsed = LOG_FORMAT_NAMES.get(value, parse_bool_env(value))
            if parsed is not None:
                return parsed
    return False


def _resolve_context_value(record: logging.LogRecord, key: str) -> str:
    value = getattr(record, key, None)
    return "" if value is None else str(value)


class JsonLogFormatter(logging.Formatter):
    """Formats logs as structured JSON with standard fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        squish_error = self._resolve_squish_error(record)
        if squish_error is not None:
            payload["squish_error"] = squish_error
            payload["error_category"] = self._serialize_enum(squish_error.get("category"))
            payload["error_severity"] = self._serialize_enum(squish_error.get("severity"))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)

    @staticmethod
    def _serialize_enum(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        return value

    @staticmethod
    def _resolve_squish_error(record: logging.LogRecord) -> Optional[dict[str, Any]]:
        squish_error = getattr(record, "squish_error", None)
        if squish_error is None:
            return None
        if isinstance(squish_error, dict):
            return squish_error
        to_dict = getattr(squish_error, "to_dict", None)
        if callable(to_dict):
            return to_dict()
        return {"detail": str(squish_error)}


class PlainTextFormatter(logging.Formatter):
    """Human-friendly formatter for terminal use."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        image_index = _resolve_context_value(record, "image_index")
        if image_index:
            message = f"{message} [image={image_index}]"
        return message


def init_logging(
    *,
    level: Optional[int] = None,
    json_enabled: Optional[bool] = None,
    stream: Optional[Any] = None,
) -> None:
    """Initialize shared logging configuration."""

    if level is None:
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        level = logging.getLevelName(level_name)
        if isinstance(level, str):
            level = logging.INFO

    if json_enabled is None:
        json_enabled = _should_use_json(os.environ)

    handler_stream = stream if stream is not None else sys.stderr
    handler = logging.StreamHandler(handler_stream)
    if json_enabled:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(PlainTextFormatter("%(levelname)s %(name)s: %(message)s"))

    logging.basicConfig(level=level, handlers=[handler], force=True)
