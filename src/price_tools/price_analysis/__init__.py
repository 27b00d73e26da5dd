"""
Price Analysis Module

Price equation partitions of the change in ecosystem function between
communities, for single pairs and across all pairs of a grouped table.
"""

from .base_analyzer import BasePriceAnalyzer

__version__ = "1.0.0"

__all__ = ['BasePriceAnalyzer']
