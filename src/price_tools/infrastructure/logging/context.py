"""Logging context management for correlating records of a pairwise run."""

import time
import uuid
from contextlib import contextmanager
from typing import Optional

from .structured_logger import (
    run_context, reference_context, stage_context, get_logger
)


class LoggingContext:
    """Manages logging context throughout a pairwise Price run.

    Provides hierarchical context for:
    - Runs (one orchestration call)
    - Stages (grouping, evaluation, assembly)
    - The reference community being evaluated

    Context is propagated to every record logged inside the scope.
    """

    def __init__(self, run_id: Optional[str] = None):
        """Initialize logging context.

        Args:
            run_id: Run identifier (generated if not provided)
        """
        self.run_id = run_id or str(uuid.uuid4())
        self.logger = get_logger(__name__)

    @contextmanager
    def run(self, name: str, **metadata):
        """Context for one orchestration run.

        Example:
            with ctx.run('pairwise_price', n_communities=12):
                ...
        """
        token = run_context.set(self.run_id)
        start_time = time.time()

        self.logger.info(
            f"Run started: {name}",
            extra={'context': {'run_name': name, **metadata}}
        )

        status = 'completed'
        try:
            yield self
        except Exception:
            status = 'failed'
            raise
        finally:
            duration = time.time() - start_time
            self.logger.log_performance(f"run_{name}", duration, status=status)
            run_context.reset(token)

    @contextmanager
    def stage(self, name: str, **metadata):
        """Context for a stage inside a run."""
        token = stage_context.set(name)
        start_time = time.time()

        self.logger.debug(
            f"Stage started: {name}",
            extra={'context': {'stage_name': name, **metadata}}
        )

        status = 'completed'
        try:
            yield self
        except Exception as e:
            status = 'failed'
            self.logger.log_error_with_context(e, operation=f"stage_{name}")
            raise
        finally:
            duration = time.time() - start_time
            self.logger.log_performance(f"stage_{name}", duration, status=status)
            stage_context.reset(token)

    @contextmanager
    def reference(self, label: str):
        """Tag records with the reference community currently evaluated."""
        token = reference_context.set(label)
        try:
            yield self
        finally:
            reference_context.reset(token)

    def log_progress(self, completed: int, total: int, message: Optional[str] = None):
        """Log progress update for the current stage."""
        percent = (completed / total * 100) if total > 0 else 0

        log_msg = f"Progress: {percent:.1f}% ({completed}/{total})"
        if message:
            log_msg += f" - {message}"

        self.logger.info(
            log_msg,
            extra={
                'context': {
                    'progress_percent': percent,
                    'completed_units': completed,
                    'total_units': total
                }
            }
        )
