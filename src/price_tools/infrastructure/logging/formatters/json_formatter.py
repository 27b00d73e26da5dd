"""JSON formatter for structured machine-readable logs."""

import json
import logging
import traceback
from datetime import datetime


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON with context and metrics."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'process': record.process
        }

        context = getattr(record, 'context', None)
        if context:
            log_data['context'] = context

        performance = getattr(record, 'performance', None)
        if performance:
            log_data['performance'] = performance

        tb = getattr(record, 'traceback', None)
        if tb:
            log_data['traceback'] = tb
        elif record.exc_info:
            log_data['traceback'] = ''.join(traceback.format_exception(*record.exc_info))

        # numpy scalars and keys tuples fall back to str()
        return json.dumps(log_data, separators=(',', ':'), default=str)
