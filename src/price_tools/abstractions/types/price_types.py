"""Type definitions for Price equation partitions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple

import numpy as np
import pandas as pd


class AggregationRule(Enum):
    """Rules for combining repeated entries of a species within one community."""
    SUM = "sum"
    MEAN = "mean"


class EmptyCommunityPolicy(Enum):
    """What to do when one side of a pair has no species."""
    RAISE = "raise"
    ZERO = "zero"  # quotients over an empty side are defined as 0


# Column labels, in output order
PRIMARY_COMPONENTS: Tuple[str, ...] = ('SRE.L', 'SRE.G', 'SIE.L', 'SIE.G', 'CDE')
DERIVED_COMPONENTS: Tuple[str, ...] = ('SL', 'SG', 'SR', 'CE')
DESCRIPTIVE_FIELDS: Tuple[str, ...] = ('x.func', 'y.func', 'x.rich', 'y.rich', 'c.rich')
PARTITION_FIELDS: Tuple[str, ...] = PRIMARY_COMPONENTS + DERIVED_COMPONENTS + DESCRIPTIVE_FIELDS
SCAFE_COMPONENTS: Tuple[str, ...] = ('SL', 'SG', 'CDE')

NORMALIZED_COLUMNS: Tuple[str, ...] = ('species', 'func.x', 'func.y', 'wvec', 'xvec', 'yvec')

# Diagnostic flag columns of the pairwise table
NO_SHARED_FLAG = 'no.shared'
ERROR_FLAG = 'error'

CommunityKey = Tuple[Any, ...]


@dataclass(frozen=True)
class PartitionResult:
    """Price equation partition of the change in function from X to Y."""
    sre_l: float
    sre_g: float
    sie_l: float
    sie_g: float
    cde: float
    x_func: float
    y_func: float
    x_rich: int
    y_rich: int
    c_rich: int

    @property
    def sl(self) -> float:
        """Species loss effect (SRE.L + SIE.L)."""
        return self.sre_l + self.sie_l

    @property
    def sg(self) -> float:
        """Species gain effect (SRE.G + SIE.G)."""
        return self.sre_g + self.sie_g

    @property
    def sr(self) -> float:
        """Total richness effect (SRE.L + SRE.G)."""
        return self.sre_l + self.sre_g

    @property
    def ce(self) -> float:
        """Composition effect (SIE.L + SIE.G + CDE)."""
        return self.sie_l + self.sie_g + self.cde

    @property
    def total_change(self) -> float:
        """Observed change in function, y.func - x.func."""
        return self.y_func - self.x_func

    @property
    def identity_residual(self) -> float:
        """Difference between the summed components and the observed change."""
        return (self.sre_l + self.sre_g + self.sie_l + self.sie_g + self.cde) - self.total_change

    @property
    def shares_species(self) -> bool:
        return self.c_rich > 0

    def primary(self) -> Tuple[float, float, float, float, float]:
        return (self.sre_l, self.sre_g, self.sie_l, self.sie_g, self.cde)

    def bef(self) -> Dict[str, float]:
        """Two-term aggregation: richness and composition effects."""
        return {'SR': self.sr, 'CE': self.ce}

    def cafe(self) -> Dict[str, float]:
        """Four-term aggregation with the identity effects combined."""
        return {
            'SRE.L': self.sre_l,
            'SRE.G': self.sre_g,
            'SIE': self.sie_l + self.sie_g,
            'CDE': self.cde,
        }

    def scafe(self) -> Dict[str, float]:
        """Three-term aggregation: species loss, species gain and CDE."""
        return {'SL': self.sl, 'SG': self.sg, 'CDE': self.cde}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to an ordered dictionary keyed by the dotted field labels."""
        values = (
            self.sre_l, self.sre_g, self.sie_l, self.sie_g, self.cde,
            self.sl, self.sg, self.sr, self.ce,
            self.x_func, self.y_func, self.x_rich, self.y_rich, self.c_rich,
        )
        return dict(zip(PARTITION_FIELDS, values))

    def to_series(self) -> pd.Series:
        return pd.Series(self.to_dict(), index=list(PARTITION_FIELDS))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PartitionResult':
        """Create from a mapping with dotted labels (derived sums are ignored)."""
        return cls(
            sre_l=float(data['SRE.L']),
            sre_g=float(data['SRE.G']),
            sie_l=float(data['SIE.L']),
            sie_g=float(data['SIE.G']),
            cde=float(data['CDE']),
            x_func=float(data['x.func']),
            y_func=float(data['y.func']),
            x_rich=int(data['x.rich']),
            y_rich=int(data['y.rich']),
            c_rich=int(data['c.rich']),
        )


@dataclass
class DistanceMatrices:
    """Distance matrices between community pairs in partition space."""
    covars: pd.DataFrame  # retained pairwise rows, aligned with the matrices
    dist5: np.ndarray     # full five-component partition
    dist3: np.ndarray     # three-component (SL, SG, CDE) partition

    @property
    def n_pairs(self) -> int:
        return self.dist5.shape[0]


@dataclass
class PriceAnalysisResult:
    """Result of a pairwise Price analysis run."""
    table: pd.DataFrame
    species_table: Optional[pd.DataFrame] = None
    distances: Optional[DistanceMatrices] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def n_pairs(self) -> int:
        return len(self.table)

    @property
    def n_failed(self) -> int:
        if ERROR_FLAG not in self.table.columns:
            return 0
        return int(self.table[ERROR_FLAG].notna().sum())
