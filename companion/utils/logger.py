"""Logging for the cooking companion core.

One package logger ("cooking_companion") writes to stdout as colored text or
one JSON object per line. Endpoint calls log through a RequestLogger, which
stamps every record with the endpoint and its last-request-wins sequence
number so interleaved calls can be told apart:

    log = request_logger("caption", 3)
    log.info("POST /caption attempt 1/3")
    # text: ... [caption#3] POST /caption attempt 1/3
    # json: {..., "endpoint": "caption", "sequence": 3}

Configured via environment variables:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_TYPE: text, json (default: text)
"""

import json
import logging
import os
import sys
from typing import Any, MutableMapping, Optional, Tuple

LOGGER_NAME = "cooking_companion"

# Record attributes set by RequestLogger, in display order
CONTEXT_FIELDS = ("endpoint", "sequence")


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Request context attached to a record, if any."""
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(record_context(record))
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


class RichTextFormatter(logging.Formatter):
    """Colored single-line text with a level icon and an [endpoint#seq] tag."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
    }
    RESET = "\033[0m"

    ICONS = {
        "DEBUG": "🔍",
        "INFO": "ℹ️",
        "WARNING": "⚠️",
        "ERROR": "❌",
    }

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        color = self.COLORS.get(level, self.RESET)
        icon = self.ICONS.get(level, "")
        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")

        context = record_context(record)
        tag = ""
        if "endpoint" in context:
            tag = f"[{context['endpoint']}#{context.get('sequence', '?')}] "

        message = f"{color}{icon} {timestamp} {level:<8} {record.name:<20} {tag}{record.getMessage()}{self.RESET}"
        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"
        return message


class RequestLogger(logging.LoggerAdapter):
    """Logger bound to one endpoint call.

    Context given here is merged under any ``extra=`` passed at the call site,
    so a single record can still override it.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def request_logger(endpoint: str, sequence: Optional[int] = None) -> RequestLogger:
    """Package logger tagged with an endpoint call's context."""
    context: dict[str, Any] = {"endpoint": endpoint}
    if sequence is not None:
        context["sequence"] = sequence
    return RequestLogger(logger, context)


def get_logger(name: str) -> logging.Logger:
    """Return a stdout logger configured from LOG_LEVEL and LOG_TYPE.

    Handlers are attached once; later calls return the same logger unchanged.
    """
    logger_instance = logging.getLogger(name)
    if logger_instance.handlers:
        return logger_instance

    log_level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logger_instance.setLevel(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if os.getenv("LOG_TYPE", "text").lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(RichTextFormatter())
    logger_instance.addHandler(handler)

    return logger_instance


logger = get_logger(LOGGER_NAME)

# aiohttp client chatter is debug noise for an embedded client
logging.getLogger("aiohttp").setLevel(logging.WARNING)
