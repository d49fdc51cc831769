"""
Logging setup for Chat Relay using Python's standard logging
with JSON formatting for structured logs.

Log destinations:
- Console (stderr): Human-readable format for debugging
- logs/conversations.jsonl: JSON format for chat turns and stream lifecycle
- logs/errors.jsonl: JSON format for error tracking
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys

from typing import Any, cast

from pythonjsonlogger import json as jsonlogger

from api.middleware.request_context import get_request_context
from core.constants import LOGS_PATH

#: Rotate log files at this size
LOG_MAX_SIZE = 10 * 1024 * 1024

#: Rotated files kept for conversations.jsonl / errors.jsonl
LOG_BACKUP_COUNT_CONVERSATIONS = 5
LOG_BACKUP_COUNT_ERRORS = 3

#: Characters of user/assistant text included in turn logs
LOG_PREVIEW_LENGTH = 80

# PII Redaction patterns
REDACTION_PATTERNS = [
    (r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", "[EMAIL]"),
    (r"\b(?:\d{4}[- ]?){3}\d{4}\b", "[CARD]"),
    (r"\b(sk-|pk-|api[-_]?key[-_]?)[A-Za-z0-9]{20,}\b", "[API_KEY]"),
    (r"\b(password|secret|token)\s*[:=]\s*\S+", "[REDACTED]"),
]


class ErrorFilter(logging.Filter):
    """Only ERROR and CRITICAL records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level and standardizes console lines.
    Format: HH:MM:SS [LEVEL] logger_name - message
    """

    GREY = "\x1b[38;20m"
    GREEN = "\x1b[32;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        level_fmt = f"{color}[{record.levelname}]{self.RESET}" if color else f"[{record.levelname}]"
        record.asctime = self.formatTime(record, "%H:%M:%S")

        # uvicorn access records carry (client_addr, method, full_path, http_version, status_code)
        if record.name == "uvicorn.access" and record.args and len(record.args) == 5:
            client_addr, method, full_path, http_version, status_code = record.args
            status_num = int(cast(Any, status_code))
            if status_num < 400:
                status_fmt = f"{self.GREEN}{status_code}{self.RESET}"
            elif status_num < 500:
                status_fmt = f"{self.YELLOW}{status_code}{self.RESET}"
            else:
                status_fmt = f"{self.RED}{status_code}{self.RESET}"
            message = f'{client_addr} - "\x1b[1m{method}\x1b[0m {full_path} HTTP/{http_version}" {status_fmt}'
            return f"{record.asctime} {level_fmt} {record.name} - {message}"

        line = f"{record.asctime} {level_fmt} {record.name} - {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_uvicorn_logging() -> None:
    """Route uvicorn's access and error loggers through the colored console formatter."""
    formatter = ColoredConsoleFormatter()

    logging.getLogger("uvicorn").handlers = []
    logging.getLogger("uvicorn").setLevel(logging.INFO)

    for name in ("uvicorn.access", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers = []
        uv_logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        uv_logger.addHandler(handler)
        uv_logger.propagate = False


def setup_logging(name: str = "chat-relay", debug: bool | None = None) -> logging.Logger:
    """
    Set up logging with console and rotating JSON file handlers.

    Args:
        name: Logger name
        debug: Enable debug logging (overrides DEBUG env var)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers = []
    logger.propagate = False

    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    logger.addHandler(console_handler)

    LOGS_PATH.mkdir(exist_ok=True)

    conv_handler = logging.handlers.RotatingFileHandler(
        LOGS_PATH / "conversations.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_CONVERSATIONS,
        encoding="utf-8",
    )
    conv_handler.setLevel(logging.INFO)
    conv_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(message)s %(chat_id)s %(request_id)s",
            timestamp=True,
        )
    )
    logger.addHandler(conv_handler)

    error_handler = logging.handlers.RotatingFileHandler(
        LOGS_PATH / "errors.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_ERRORS,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.addFilter(ErrorFilter())
    error_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s",
            timestamp=True,
        )
    )
    logger.addHandler(error_handler)

    return logger


class ChatLogger:
    """
    High-level logging interface for Chat Relay.

    Keyword arguments on every call are attached as structured ``extra``
    fields; the active request context (request id, chat id, user id) is
    merged in automatically.
    """

    def __init__(self, name: str = "chat-relay"):
        self.logger = setup_logging(name)

    def _enrich_context(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        if ctx := get_request_context():
            for key, value in ctx.to_log_context().items():
                kwargs.setdefault(key, value)
        return kwargs

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Error level logging with optional exception info"""
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    @staticmethod
    def redact(text: str) -> str:
        """Mask emails, card numbers and credentials in free text."""
        if not text:
            return text
        redacted = text
        for pattern, replacement in REDACTION_PATTERNS:
            redacted = re.sub(pattern, replacement, redacted)
        return redacted

    def _preview(self, text: str) -> str:
        preview = self.redact(text[:LOG_PREVIEW_LENGTH].replace("\n", " "))
        return preview + "..." if len(text) > LOG_PREVIEW_LENGTH else preview

    def log_turn(
        self,
        chat_id: str,
        user_input: str,
        response: str,
        tool_names: list[str] | None = None,
        duration_ms: float | None = None,
        outcome: str = "completed",
    ) -> None:
        """Log a finished chat turn with redacted previews."""
        msg_parts = [f"User: {self._preview(user_input)} → AI: {self._preview(response)}"]
        if tool_names:
            msg_parts.append(f"[{len(tool_names)} tools]")
        if duration_ms is not None:
            msg_parts.append(f"[{duration_ms:.0f}ms]")

        extra_data: dict[str, Any] = {
            "chat_turn": True,
            "chat_id": chat_id,
            "chars_input": len(user_input),
            "chars_response": len(response),
            "outcome": outcome,
        }
        if tool_names:
            extra_data["tool_names"] = tool_names
        if duration_ms is not None:
            extra_data["ms"] = int(duration_ms)

        self.logger.info(" ".join(msg_parts), extra=self._enrich_context(extra_data))

    def log_tool_call(self, tool_name: str, arguments: dict[str, Any], succeeded: bool) -> None:
        """Log a tool invocation with arguments redacted."""
        args_preview = self.redact(str(arguments))[:LOG_PREVIEW_LENGTH]
        status = "ok" if succeeded else "failed"
        self.logger.info(
            f"Tool call: {tool_name}({args_preview}) -> {status}",
            extra=self._enrich_context({"tool": tool_name, "tool_ok": succeeded}),
        )


# Global logger instance
logger = ChatLogger()
