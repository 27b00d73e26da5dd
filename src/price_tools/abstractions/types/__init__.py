"""Type definitions for the abstractions layer."""

from .price_types import (
    AggregationRule, EmptyCommunityPolicy, PartitionResult,
    DistanceMatrices, PriceAnalysisResult, CommunityKey,
    PRIMARY_COMPONENTS, DERIVED_COMPONENTS, DESCRIPTIVE_FIELDS,
    PARTITION_FIELDS, SCAFE_COMPONENTS, NORMALIZED_COLUMNS,
    NO_SHARED_FLAG, ERROR_FLAG
)

__all__ = [
    'AggregationRule', 'EmptyCommunityPolicy', 'PartitionResult',
    'DistanceMatrices', 'PriceAnalysisResult', 'CommunityKey',
    'PRIMARY_COMPONENTS', 'DERIVED_COMPONENTS', 'DESCRIPTIVE_FIELDS',
    'PARTITION_FIELDS', 'SCAFE_COMPONENTS', 'NORMALIZED_COLUMNS',
    'NO_SHARED_FLAG', 'ERROR_FLAG',
]
