"""
Structured logging utilities for application and audit logging
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "teleconsult"


class StructuredLogger:
    """
    Structured logger that attaches keyword fields to each record so the
    JSON formatter can emit them as top-level keys
    """

    def __init__(self, name: str, level: Optional[int] = None):
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)

    def log(self, level: str, message: str, exc_info: bool = False, **fields: Any) -> None:
        """Log message with fields attached as structured data"""
        log_level = getattr(logging, level.upper(), logging.INFO)
        if self.logger.isEnabledFor(log_level):
            self.logger.log(log_level, message, exc_info=exc_info, extra={"extra_data": fields})

    def info(self, message: str, **fields: Any) -> None:
        """Log info level"""
        self.log("info", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        """Log warning level"""
        self.log("warning", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        """Log error level"""
        self.log("error", message, **fields)

    def debug(self, message: str, **fields: Any) -> None:
        """Log debug level"""
        self.log("debug", message, **fields)

    def critical(self, message: str, **fields: Any) -> None:
        """Log critical level"""
        self.log("critical", message, **fields)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
        }

        # Add exception info if present
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        if hasattr(record, "extra_data"):
            log_obj.update(record.extra_data)

        return json.dumps(log_obj, default=str)


class TextFormatter(logging.Formatter):
    """Plain text formatter that appends structured fields as key=value pairs"""

    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        extra = getattr(record, "extra_data", None)
        if extra:
            text += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        return text


def configure_logging(level: str = "INFO", fmt: str = "json") -> logging.Logger:
    """Configure the application root logger once; repeated calls only adjust the level."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def get_logger(name: str) -> StructuredLogger:
    """Get or create a structured logger under the application namespace"""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return StructuredLogger(name)
