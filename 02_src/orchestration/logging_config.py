"""Structured logging configuration for the agent system."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH, resolve_project_path
from .models import LoggerConfig

LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
    "critical": "CRITICAL",
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra context if present
        if hasattr(record, "context"):
            log_data["context"] = record.context

        return json.dumps(log_data, default=str)


def setup_logging(
    logger_config: LoggerConfig | None = None,
    log_level: str | None = None,
    log_file: str | None = None,
) -> None:
    """
    Setup structured logging for the application.

    Args:
        logger_config: Handler selection (console/file) and level.
                       Defaults to console-only at INFO.
        log_level: Overrides the configured level. Falls back to the
                   LOG_LEVEL env var, then to logger_config.level.
        log_file: Overrides logger_config.file_path. Defaults to
                  04_logs/agent-system.log when file logging is on.
    """
    logger_config = logger_config or LoggerConfig()

    # Determine log level
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", logger_config.level)
    level = LEVELS.get(log_level.lower(), "INFO")

    handlers: dict[str, dict] = {}
    if logger_config.console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }

    if logger_config.file or log_file:
        log_path = Path(log_file) if log_file else resolve_project_path(
            logger_config.file_path, DEFAULT_LOG_PATH
        )
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_path),
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        }

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "orchestration.logging_config.JSONFormatter",
            },
        },
        "handlers": handlers,
        "root": {
            "level": level,
            "handlers": list(handlers),
        },
    }

    logging.config.dictConfig(logging_config)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
