"""Structured logging with context propagation for Price partition runs."""

import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Optional

# Context variables for correlating records of one pairwise run
run_context: ContextVar[Optional[str]] = ContextVar('run_id', default=None)
reference_context: ContextVar[Optional[str]] = ContextVar('reference', default=None)
stage_context: ContextVar[Optional[str]] = ContextVar('stage', default=None)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + 'Z'


class StructuredLogger(logging.Logger):
    """Logger that attaches run context and performance data to each record.

    Features:
    - Automatic context injection (run_id, reference community, stage)
    - Performance metrics with item rates
    - Full traceback capture for errors
    """

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False, **kwargs):
        """Override to add context and structure to every record."""
        context = {
            'run_id': run_context.get(),
            'reference': reference_context.get(),
            'stage': stage_context.get(),
            'logger_name': self.name,
            'timestamp': _utc_timestamp(),
        }
        context = {k: v for k, v in context.items() if v is not None}

        if extra and isinstance(extra, dict):
            extra = dict(extra)
            performance = extra.pop('performance', None)
            context.update(extra.pop('context', None) or {})
            traceback_str = extra.pop('traceback', None)
        else:
            extra = {}
            performance = None
            traceback_str = None

        if not traceback_str and exc_info:
            if isinstance(exc_info, BaseException):
                exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
            elif not isinstance(exc_info, tuple):
                exc_info = sys.exc_info()
            if exc_info[0] is not None:
                traceback_str = ''.join(traceback.format_exception(*exc_info))

        extra.update({
            'context': context,
            'performance': performance,
            'traceback': traceback_str
        })

        super()._log(level, msg, args, exc_info=False, extra=extra,
                     stack_info=stack_info, **kwargs)

    def log_performance(self, operation: str, duration: float, **metrics):
        """Log performance metrics for an operation.

        Args:
            operation: Operation name
            duration: Duration in seconds
            **metrics: Additional metrics (items_processed, n_communities, etc.)

        Example:
            logger.log_performance('pairwise_price', 1.23, items_processed=90)
        """
        performance_data = {
            'operation': operation,
            'duration_seconds': round(duration, 3),
            'timestamp': _utc_timestamp(),
            **metrics
        }

        if 'items_processed' in metrics and duration > 0:
            performance_data['items_per_second'] = round(
                metrics['items_processed'] / duration, 2
            )

        self.info(
            f"Performance: {operation} completed in {duration:.3f}s",
            extra={'performance': performance_data}
        )

    def log_error_with_context(self, error: Exception, operation: Optional[str] = None, **context):
        """Log an error with its type, traceback and extra context."""
        error_context = {
            'error_type': type(error).__name__,
            'error_module': type(error).__module__,
            **context
        }

        if operation:
            error_context['operation'] = operation

        self.error(
            f"{type(error).__name__}: {str(error)}",
            exc_info=error,
            extra={'context': error_context}
        )


# Global logger cache
_logger_cache: Dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Get or create a structured logger instance.

    Example:
        from price_tools.infrastructure.logging import get_logger
        logger = get_logger(__name__)
    """
    if name in _logger_cache:
        return _logger_cache[name]

    original_class = logging.getLoggerClass()
    logging.setLoggerClass(StructuredLogger)

    try:
        logger = logging.getLogger(name)
        if not isinstance(logger, StructuredLogger):
            raise TypeError(
                f"Logger '{name}' was created before structured logging; "
                f"use get_logger() for this module"
            )
        _logger_cache[name] = logger
        return logger
    finally:
        logging.setLoggerClass(original_class)
