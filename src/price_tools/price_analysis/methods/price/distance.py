"""Distance matrices between community pairs in Price partition space."""

import numpy as np
import pandas as pd
import psutil
from scipy.spatial.distance import pdist, squareform

from price_tools.abstractions.types.price_types import (
    DistanceMatrices, PRIMARY_COMPONENTS, SCAFE_COMPONENTS
)
from price_tools.exceptions import ResourceLimitExceeded, SchemaError, require_columns
from price_tools.infrastructure.logging import get_logger, log_operation

logger = get_logger(__name__)

BYTES_PER_GB = 1024 ** 3


def _euclidean(values: np.ndarray) -> np.ndarray:
    # squareform maps an empty condensed matrix to 1x1
    if len(values) < 2:
        return np.zeros((len(values), len(values)))
    return squareform(pdist(values, metric='euclidean'))


def dist_mat_size(n: int) -> float:
    """Estimated size in GB of a distance matrix over n pairs (8 byte floats)."""
    if n < 0:
        raise ValueError(f"Number of rows must be non-negative, got {n}")
    return n * (n - 1) / 2 * 8 / BYTES_PER_GB


class DistanceMatrixBuilder:
    """Build Euclidean distance matrices over the rows of a pairwise table.

    Two matrices are produced: one over the five primary components
    (SRE.L, SRE.G, SIE.L, SIE.G, CDE) and one over the three-term sCAFE
    components (SL, SG, CDE).
    """

    def __init__(self, max_size_gb: float = 1.0, allow_large_matrix: bool = False):
        """Initialize builder.

        Args:
            max_size_gb: Estimated matrix size above which building is refused
            allow_large_matrix: Build anyway when the estimate exceeds max_size_gb
        """
        if max_size_gb <= 0:
            raise ValueError("max_size_gb must be positive")
        self.max_size_gb = max_size_gb
        self.allow_large_matrix = allow_large_matrix

    def check_size(self, n: int) -> float:
        """Apply the memory guard for n rows and return the size estimate.

        Raises:
            ResourceLimitExceeded: If the estimate is over the threshold and
                large matrices are not allowed
        """
        estimated_gb = dist_mat_size(n)
        if estimated_gb <= self.max_size_gb:
            return estimated_gb

        if not self.allow_large_matrix:
            raise ResourceLimitExceeded(
                f"Distance matrices for {n} pairs need about {estimated_gb:.2f} GB each, "
                f"above the {self.max_size_gb:.2f} GB limit; pass allow_large_matrix=True to build them",
                estimated_gb=estimated_gb,
                threshold_gb=self.max_size_gb
            )

        logger.warning(
            f"Building distance matrices of about {estimated_gb:.2f} GB each "
            f"(limit {self.max_size_gb:.2f} GB)"
        )
        available_gb = psutil.virtual_memory().available / BYTES_PER_GB
        if available_gb < estimated_gb:
            logger.warning(
                f"Only {available_gb:.2f} GB of memory available for a "
                f"{estimated_gb:.2f} GB distance matrix"
            )
        return estimated_gb

    @log_operation("build_distance_matrices")
    def build(self, table: pd.DataFrame) -> DistanceMatrices:
        """Build the distance matrices for a pairwise result table.

        Rows with missing components (pairs that could not be partitioned)
        are dropped; ``covars`` holds the retained rows in matrix order.
        """
        if not isinstance(table, pd.DataFrame):
            raise SchemaError(f"Expected a pairwise result DataFrame, got {type(table).__name__}")

        components = list(dict.fromkeys(PRIMARY_COMPONENTS + SCAFE_COMPONENTS))
        require_columns(table.columns, components, 'Pairwise result table')

        complete = table[components].notna().all(axis=1)
        n_dropped = int((~complete).sum())
        if n_dropped:
            logger.warning(f"Dropping {n_dropped} pairs with missing partition components")
        covars = table.loc[complete].reset_index(drop=True)

        self.check_size(len(covars))

        values5 = covars[list(PRIMARY_COMPONENTS)].to_numpy(dtype=float)
        values3 = covars[list(SCAFE_COMPONENTS)].to_numpy(dtype=float)

        dist5 = _euclidean(values5)
        dist3 = _euclidean(values3)

        logger.debug(f"Built {dist5.shape[0]}x{dist5.shape[1]} distance matrices")
        return DistanceMatrices(covars=covars, dist5=dist5, dist3=dist3)


def get_dist_mats(table: pd.DataFrame,
                  allow_large_matrix: bool = False,
                  max_size_gb: float = 1.0) -> DistanceMatrices:
    """Create distance matrices from a pairwise_price result table."""
    builder = DistanceMatrixBuilder(max_size_gb=max_size_gb, allow_large_matrix=allow_large_matrix)
    return builder.build(table)
