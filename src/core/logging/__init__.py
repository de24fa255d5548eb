"""
Structured logging for the ingest service.

Provides JSON and console formatters, context variables injected into
every record, logging setup, and a periodic stats logger.
"""

from core.logging.context import clear_log_context, get_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.periodic_logger import PeriodicStatsLogger
from core.logging.setup import get_log_file_path, log_worker_startup, setup_logging
from core.logging.utilities import format_cycle_output, log_exception

__all__ = [
    # Setup
    "setup_logging",
    "get_log_file_path",
    "log_worker_startup",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Utilities
    "log_exception",
    "format_cycle_output",
    "PeriodicStatsLogger",
]
