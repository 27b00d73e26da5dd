"""
Price equation tools for comparing ecosystem function between communities.

This package partitions the change in ecosystem function between pairs of
communities into species richness, species identity and context dependent
components, and automates the comparison across many grouped communities.
"""

__version__ = "1.0.0"
__description__ = "Price equation partitions for community ecology"

# Note: Subpackages should be imported explicitly when needed so that
# importing the package does not configure logging or read config files.

__all__ = [
    '__version__',
    '__description__',
]
