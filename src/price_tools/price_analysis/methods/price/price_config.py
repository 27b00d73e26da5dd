"""Configuration dataclass for Price partition runs."""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Literal, Optional, Union

from price_tools.abstractions.types.price_types import AggregationRule, EmptyCommunityPolicy


@dataclass
class PriceConfig:
    """Configuration for single-pair and pairwise Price partitions.

    Attributes:
        aggregate: Rule for repeated species entries ('sum', 'mean')
        species_col: Name of the species column in grouped input tables
        func_col: Name of the function column in grouped input tables
        empty_community: Behaviour when a community has no species ('raise', 'zero')
        quiet: Silence the no-shared-species warning of single partitions
        species_level: Also return per-species contributions

        strict: Re-raise per-pair computation errors instead of flagging the row
        exclude_zero_partitions: Also drop distinct pairs whose five components are all 0
        n_jobs: Number of parallel jobs (1 = sequential, -1 for all cores)
        backend: joblib backend for the worker pool
        chunk_size: Reference communities dispatched per batch

        max_matrix_gb: Memory threshold for distance matrices
        allow_large_matrix: Build distance matrices above the threshold
    """
    # Partition
    aggregate: Union[AggregationRule, str] = AggregationRule.SUM
    species_col: str = 'Species'
    func_col: str = 'Function'
    empty_community: Union[EmptyCommunityPolicy, str] = EmptyCommunityPolicy.RAISE
    quiet: bool = False
    species_level: bool = False

    # Pairwise orchestration
    strict: bool = False
    exclude_zero_partitions: bool = False
    n_jobs: int = 1
    backend: Literal['loky', 'threading', 'multiprocessing'] = 'loky'
    chunk_size: int = 16

    # Distance matrices
    max_matrix_gb: float = 1.0
    allow_large_matrix: bool = False

    def __post_init__(self):
        """Validate configuration."""
        self.aggregate = AggregationRule(self.aggregate)
        self.empty_community = EmptyCommunityPolicy(self.empty_community)

        if not self.species_col or not self.func_col:
            raise ValueError("species_col and func_col must be non-empty column names")

        if self.species_col == self.func_col:
            raise ValueError("species_col and func_col must name different columns")

        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero (1 for sequential, -1 for all cores)")

        if self.backend not in ('loky', 'threading', 'multiprocessing'):
            raise ValueError(f"Unknown joblib backend: {self.backend}")

        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

        if self.max_matrix_gb <= 0:
            raise ValueError("max_matrix_gb must be positive")

    @property
    def parallel(self) -> bool:
        return self.n_jobs != 1

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['aggregate'] = self.aggregate.value
        data['empty_community'] = self.empty_community.value
        return data

    @classmethod
    def from_settings(cls, settings: Optional[Any] = None, **overrides) -> 'PriceConfig':
        """Create from a Config instance (global config if None) plus overrides."""
        if settings is None:
            from price_tools.config import get_config
            settings = get_config()

        values = {}
        for section in ('partition', 'pairwise', 'distance'):
            values.update(settings.get(section, {}) or {})

        known = cls.__dataclass_fields__
        unknown = set(values) - set(known)
        if unknown:
            raise ValueError(f"Unknown Price settings: {sorted(unknown)}")

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
