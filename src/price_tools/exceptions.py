"""Price partition exceptions for consistent error handling."""

from typing import Optional

import numpy as np


class PriceToolsError(Exception):
    """Base error for Price partition calculations."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.original_exception = original_exception


class SchemaError(PriceToolsError):
    """Raised when required columns are missing, misnamed or ambiguous."""
    pass


class GroupingError(PriceToolsError):
    """Raised when a community table has no grouping key."""
    pass


class EmptyCommunityError(PriceToolsError):
    """Raised when one side of a community pair has no species."""
    def __init__(self, message: str, side: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(message, original_exception)
        self.side = side


class ResourceLimitExceeded(PriceToolsError):
    """Raised when a distance matrix would exceed the configured memory threshold."""
    def __init__(self, message: str, estimated_gb: float, threshold_gb: float):
        super().__init__(message)
        self.estimated_gb = estimated_gb
        self.threshold_gb = threshold_gb


class OrchestrationCancelled(PriceToolsError):
    """Raised when a pairwise run is cancelled between pair evaluations."""
    def __init__(self, message: str, completed_pairs: int = 0):
        super().__init__(message)
        self.completed_pairs = completed_pairs


def require_columns(columns, required, table_name: str = 'table') -> None:
    """Check that every required column is present exactly once."""
    columns = list(columns)
    missing = [col for col in required if col not in columns]
    if missing:
        raise SchemaError(
            f"{table_name} is missing required columns {missing}; "
            f"available columns: {columns}"
        )
    duplicated = [col for col in required if columns.count(col) > 1]
    if duplicated:
        raise SchemaError(f"{table_name} has ambiguous (duplicated) columns {duplicated}")


def require_non_negative(values, labels, name: str) -> None:
    """Check that function values are non-negative; presence is a positive value."""
    values = np.asarray(values, dtype=float)
    negative = values < 0
    if negative.any():
        offenders = [str(label) for label in np.asarray(labels)[negative][:5]]
        raise SchemaError(
            f"{name} has negative function values for species {offenders}; "
            f"function values must be non-negative"
        )
