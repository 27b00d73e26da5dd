"""Setup and configuration for the structured logging system."""

import logging
from pathlib import Path
from typing import Optional, Any

from .structured_logger import get_logger, run_context
from .handlers import ConsoleHandler, FileHandler


def setup_logging(settings: Any = None,
                  log_file: Optional[str] = None,
                  console: Optional[bool] = None,
                  log_level: Optional[str] = None,
                  run_id: Optional[str] = None):
    """Configure the structured logging system.

    Args:
        settings: Config instance (anything with a dotted ``get``); defaults apply if None
        log_file: Log file path; enables file logging when given
        console: Whether to enable console logging (config default if None)
        log_level: Minimum log level (config default if None)
        run_id: Optional run identifier for context
    """
    def setting(key, default):
        return settings.get(key, default) if settings is not None else default

    log_level = log_level or setting('logging.level', 'INFO')
    if console is None:
        console = setting('logging.console', True)

    root_logger = logging.getLogger()
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if console:
        console_handler = ConsoleHandler(show_context=True)
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

    if log_file is None and setting('logging.file_logging', False):
        log_file = setting('logging.log_file', None) or str(
            Path(setting('logging.logs_dir', 'logs')) / 'price_tools.log'
        )

    if log_file is not None:
        file_handler = FileHandler(
            filename=str(log_file),
            max_bytes=setting('logging.max_file_size', 100 * 1024 * 1024),
            backup_count=setting('logging.backup_count', 5),
            use_json=True
        )
        file_handler.setLevel(logging.DEBUG)  # Capture everything in files
        root_logger.addHandler(file_handler)

    if run_id:
        run_context.set(run_id)

    logger = get_logger(__name__)
    logger.debug(
        "Structured logging system initialized",
        extra={
            'context': {
                'log_level': log_level,
                'handlers': {
                    'console': bool(console),
                    'file': str(log_file) if log_file else None
                }
            }
        }
    )


def setup_simple_logging(log_level: str = 'INFO'):
    """Setup console-only logging for scripts and debugging."""
    root_logger = logging.getLogger()
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = ConsoleHandler(show_context=True)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)
