"""Structured logging configuration using structlog.

Why this exists:
- Provides consistent, structured logging across the gateway, submitters and tracker
- Enables easy filtering of request/poll events
- Keeps the organization secret out of every log line
- Supports file output with rotation

How to use:
    from replica_studio.observability.logging import get_logger

    logger = get_logger(__name__)
    logger.info("knowledge_refresh_completed", replica_id=replica_id, item_count=3)

Logs go to stderr so stdout stays free for command output.
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from replica_studio.config.schema import AppConfig

LOG_FILE_NAME = "replica-studio.log"

# Event keys whose values are replaced before rendering
SECRET_KEYS = frozenset({"secret", "organization_secret", "api_key", "x-organization-secret", "authorization"})
REDACTED = "***"


class TimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """Midnight-rotating file handler that prunes old rotations."""

    def __init__(self, filename: str, max_days: int = 30, **kwargs):
        """Initialize handler.

        Args:
            filename: Log file path
            max_days: Rotated files older than this many days are deleted
            **kwargs: Passed through to logging.handlers.TimedRotatingFileHandler
        """
        super().__init__(filename, when="midnight", interval=1, **kwargs)
        self.max_days = max_days

    def doRollover(self) -> None:
        super().doRollover()
        self._cleanup_old_files()

    def _cleanup_old_files(self) -> None:
        directory, base_name = os.path.split(self.baseFilename)
        cutoff = datetime.now(timezone.utc).timestamp() - self.max_days * 86400

        for filename in os.listdir(directory):
            if not filename.startswith(base_name + "."):
                continue
            path = os.path.join(directory, filename)
            try:
                if os.path.getmtime(path) < cutoff:
                    os.remove(path)
            except OSError:
                # Another process may have rotated it away already
                continue


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to log events."""
    event_dict["app"] = "replica-studio"
    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential values, including inside header dicts."""
    for key, value in event_dict.items():
        if key.lower() in SECRET_KEYS and value:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if str(k).lower() in SECRET_KEYS and v else v for k, v in value.items()
            }
    return event_dict


def _processors(json_logs: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def _attach_file_handler(log_dir: Path, log_level: int, max_days: int) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        if isinstance(handler, logging.FileHandler):
            root_logger.removeHandler(handler)
            handler.close()

    file_handler = TimedRotatingFileHandler(str(log_dir / LOG_FILE_NAME), max_days=max_days, encoding="utf-8")
    file_handler.setLevel(log_level)
    root_logger.addHandler(file_handler)


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_dir: Optional[Path] = None,
    max_days: int = 30,
    enable_file: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output logs as JSON; otherwise use console format
        log_dir: Directory for log files (if None, file logging is disabled)
        max_days: Number of days to retain log files
        enable_file: Whether to enable file logging
    """
    log_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    logger_factory: Any = structlog.PrintLoggerFactory(file=sys.stderr)
    if enable_file and log_dir:
        try:
            _attach_file_handler(log_dir, log_level, max_days)
            logger_factory = structlog.stdlib.LoggerFactory()
        except OSError as e:
            logging.warning(f"Failed to enable file logging: {e}. Using console-only mode.")

    structlog.configure(
        processors=_processors(json_logs),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def configure_from_config(config: AppConfig) -> None:
    """Configure logging from the application config.

    Args:
        config: Loaded application configuration
    """
    configure_logging(
        level=config.log_level.value,
        json_logs=config.json_logs,
        log_dir=config.logging.log_dir if config.logging.enable_file else None,
        max_days=config.logging.max_days,
        enable_file=config.logging.enable_file,
    )
