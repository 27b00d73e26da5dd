"""Price equation partitions for community ecology.

This module splits the change in ecosystem function between two communities
into species richness, species identity and context dependent effects, and
applies the partition to every pair of communities in a grouped table.
"""

from .normalizer import CommunityNormalizer, data_setup
from .partition import PartitionCalculator, price_part, check_identity
from .pairwise import PairwiseOrchestrator, pairwise_price
from .distance import DistanceMatrixBuilder, get_dist_mats, dist_mat_size
from .price_config import PriceConfig
from .analyzer import PriceAnalyzer

__all__ = [
    'CommunityNormalizer', 'data_setup',
    'PartitionCalculator', 'price_part', 'check_identity',
    'PairwiseOrchestrator', 'pairwise_price',
    'DistanceMatrixBuilder', 'get_dist_mats', 'dist_mat_size',
    'PriceConfig', 'PriceAnalyzer',
]
