"""JSON logging configuration and action-scoped loggers."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from handoff.config import get_settings

ROOT_LOGGER_NAME = "handoff"


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "context") and record.context:
            log_data["context"] = record.context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class LoggingConfig:
    """Install the JSON handler on the root logger at the configured level."""

    def __init__(self, level: Optional[str] = None) -> None:
        self.level = (level or get_settings().log_level).upper()
        self.configure()

    def configure(self) -> None:
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, self.level, logging.INFO))

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root_logger.addHandler(handler)

        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the handoff namespace."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class ActionLogger(logging.LoggerAdapter):
    """
    Logger bound to a handler module label (e.g. MESSAGE_ADDED).

    Every record carries {"module", "action", ...} in its context so a single
    invocation can be followed from INIT to SUCCESS/ERROR.
    """

    def __init__(self, module: str, logger: Optional[logging.Logger] = None) -> None:
        super().__init__(logger or get_logger("commands"), {"module": module})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        combined_context = {**self.extra, **(context or {})}
        kwargs["extra"] = {"context": combined_context}
        return msg, kwargs

    def action(
        self, level: int, action: str, context: Optional[dict[str, Any]] = None
    ) -> None:
        self.log(level, action, context={"action": action, **(context or {})})

    def init(self, **context: Any) -> None:
        self.action(logging.INFO, "INIT", context)

    def step(self, action: str, **context: Any) -> None:
        self.action(logging.INFO, action, context)

    def failure(self, action: str, error: Optional[BaseException] = None, **context: Any) -> None:
        if error is not None:
            context = {"error": str(error), "error_type": type(error).__name__, **context}
        self.action(logging.ERROR, action, context)
