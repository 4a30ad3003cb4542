"""
Structured Logging Framework

This module provides the logging setup for discovery runs using structlog on
top of the standard library. Records from the core modules, which log through
``logging.getLogger(__name__)``, pass through the same processors so console
and file output look the same for both.
"""

import logging
import logging.handlers
import sys
import traceback
from pathlib import Path
from typing import List, Optional

import structlog

from ..config.schema import LoggingConfig


class StructuredLogger:
    """Structured logger using structlog with console or JSON rendering."""

    def __init__(self, config: LoggingConfig):
        """Initialize structured logger.

        Args:
            config: Logging configuration
        """
        self.config = config
        self._configured = False
        self.logger = None

    def _shared_processors(self) -> List:
        return [
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
        ]

    def _get_renderer(self):
        if self.config.format == "json":
            return structlog.processors.JSONRenderer()
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    def _get_processors(self) -> List:
        """Processor chain used to render a log entry."""
        return self._shared_processors() + [
            structlog.processors.format_exc_info,
            self._get_renderer(),
        ]

    def _make_formatter(self, renderer) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=self._shared_processors(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )

    def configure(self) -> None:
        """Configure structlog and the root logger handlers."""
        if self._configured:
            return

        # Clear any existing handlers
        root_logger = logging.getLogger()
        root_logger.handlers.clear()

        log_level = getattr(logging, self.config.level.upper())
        root_logger.setLevel(log_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(self._make_formatter(self._get_renderer()))
        root_logger.addHandler(console_handler)

        structlog.configure(
            processors=self._shared_processors()
            + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        if self.config.file:
            self._setup_file_logging(root_logger, log_level)

        self._configured = True
        self.logger = structlog.get_logger("mdns_discovery")

    def _setup_file_logging(self, root_logger: logging.Logger, log_level: int) -> None:
        """Add a rotating JSON file handler."""
        log_path = Path(self.config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=self.config.file,
            maxBytes=self.config.max_size_mb * 1024 * 1024,
            backupCount=self.config.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            self._make_formatter(structlog.processors.JSONRenderer())
        )
        root_logger.addHandler(file_handler)

    def get_logger(self, name: str = "mdns_discovery") -> structlog.stdlib.BoundLogger:
        """Get a structured logger instance."""
        if not self._configured:
            self.configure()

        return structlog.get_logger(name)


# Global logger instance
_logger_instance: Optional[StructuredLogger] = None


def setup_logging(config: LoggingConfig) -> None:
    """Setup global logging configuration.

    Args:
        config: Logging configuration
    """
    global _logger_instance
    _logger_instance = StructuredLogger(config)
    _logger_instance.configure()


def get_logger(name: str = "mdns_discovery") -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Raises:
        RuntimeError: If logging hasn't been configured
    """
    if _logger_instance is None:
        raise RuntimeError("Logging not configured. Call setup_logging() first.")

    return _logger_instance.get_logger(name)


def log_exception(
    logger: structlog.stdlib.BoundLogger,
    message: str,
    exc: Optional[BaseException] = None,
) -> None:
    """Log an exception with its type, message and traceback.

    Args:
        logger: Logger instance
        message: Log message
        exc: Exception instance (optional, will use current exception if None)
    """
    if exc is None:
        exc = sys.exc_info()[1]

    if exc is None:
        logger.error(message)
        return

    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        message,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=tb_str,
    )
