"""
Discovery Logging Module

This module provides structured logging for discovery runs.
"""

from .logger import (
    StructuredLogger,
    get_logger,
    log_exception,
    setup_logging,
)

__all__ = [
    "StructuredLogger",
    "setup_logging",
    "get_logger",
    "log_exception",
]
