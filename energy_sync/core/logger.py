"""
Centralized logging configuration for the energy sync services.

Structured entries carry the service, environment and the correlation ID of
the message (or request) being processed. Console output is coloured for
development; JSON is used for production and always for log files.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from energy_sync.core.config import config

# Correlation ID of the delivery or request currently being handled
correlation_id_context: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> Optional[str]:
    """Return the correlation ID bound to the current task, if any"""
    return correlation_id_context.get("") or None


def set_correlation_id(correlation_id: Optional[str]) -> None:
    """Bind a correlation ID to the current task"""
    correlation_id_context.set(correlation_id or "")


class StructuredLogger:
    """
    Logger with structured entries and correlation IDs.
    """

    def __init__(self, service_name: str, environment: str, level: str, log_format: str):
        self.service_name = service_name
        self.environment = environment
        self.level = level.upper()
        self.log_format = log_format
        self._logger = logging.getLogger(service_name)
        self._setup_logging()

    def _setup_logging(self):
        """Configure Python logging with handlers"""
        self._logger.handlers.clear()
        self._logger.setLevel(getattr(logging, self.level, logging.INFO))
        self._logger.propagate = False

        if config.log_to_console:
            console_handler = logging.StreamHandler(sys.stdout)
            if self.log_format == "json":
                console_handler.setFormatter(JSONFormatter(self.service_name))
            else:
                console_handler.setFormatter(ConsoleFormatter())
            self._logger.addHandler(console_handler)

        if config.log_to_file:
            log_file_path = config.log_file_path or f"logs/{self.service_name}.log"
            os.makedirs(os.path.dirname(log_file_path) or ".", exist_ok=True)

            file_handler = logging.FileHandler(log_file_path)
            file_handler.setFormatter(JSONFormatter(self.service_name))  # Always JSON for files
            self._logger.addHandler(file_handler)

    def _build_log_entry(
        self,
        level: str,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Build structured log entry"""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "service": self.service_name,
            "environment": self.environment,
            "message": message,
            "correlationId": correlation_id or get_correlation_id(),
        }

        if metadata:
            entry["metadata"] = metadata

        return entry

    def _log(
        self,
        level: str,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        """Internal logging method"""
        log_entry = self._build_log_entry(level, message, correlation_id, metadata)
        log_method = getattr(self._logger, level.lower())

        if self.log_format == "json":
            log_method(json.dumps(log_entry, default=str))
        else:
            # 'message' would clash with the LogRecord attribute
            extra_data = {k: v for k, v in log_entry.items() if k != "message"}
            log_method(message, extra=extra_data)

    def debug(self, message: str, correlation_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
        self._log("DEBUG", message, correlation_id, metadata)

    def info(self, message: str, correlation_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
        self._log("INFO", message, correlation_id, metadata)

    def warning(self, message: str, correlation_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
        self._log("WARNING", message, correlation_id, metadata)

    def error(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        error: Optional[Union[str, Exception]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        """Error level logging"""
        if metadata is None:
            metadata = {}

        if error:
            if isinstance(error, Exception):
                metadata["error"] = {
                    "type": type(error).__name__,
                    "message": str(error),
                }
            else:
                metadata["error"] = {"message": str(error)}

        self._log("ERROR", message, correlation_id, metadata)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    RESERVED = {
        "name", "msg", "args", "created", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
        "processName", "relativeCreated", "thread", "threadName", "exc_info",
        "exc_text", "stack_info", "taskName",
    }

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record):
        message = record.getMessage()
        if message.startswith("{"):
            # Already rendered by StructuredLogger
            return message

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "message": message,
        }
        for key, value in record.__dict__.items():
            if key not in self.RESERVED:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for development"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        line = f"{color}[{timestamp}] {record.levelname}{reset} - {record.getMessage()}"
        correlation_id = getattr(record, "correlationId", None)
        if correlation_id:
            line += f" [{correlation_id}]"
        metadata = getattr(record, "metadata", None)
        if metadata:
            line += f" {json.dumps(metadata, default=str)}"
        return line


logger = StructuredLogger(
    service_name=config.service_name,
    environment=config.environment,
    level=config.log_level,
    log_format=config.log_format,
)
