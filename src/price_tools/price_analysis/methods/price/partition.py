"""Price equation partition for a pair of communities.

Given the normalized species table of communities X and Y (see
``CommunityNormalizer``), the change in total function from X to Y is split
into five additive components:

    SRE.L  species richness effect of species lost from X
    SRE.G  species richness effect of species gained in Y
    SIE.L  species identity effect of the species lost
    SIE.G  species identity effect of the species gained
    CDE    context dependent effect, the change in function of shared species

and SRE.L + SRE.G + SIE.L + SIE.G + CDE == y.func - x.func.

A positive SIE.L means comparatively weak species of X were lost and strong
ones retained. A positive SIE.G means the weaker members of Y were already in X
while the stronger ones are new.
"""

import logging
import math
from typing import Tuple, Union

import numpy as np
import pandas as pd

from price_tools.abstractions.types.price_types import (
    EmptyCommunityPolicy, PartitionResult, PRIMARY_COMPONENTS, NORMALIZED_COLUMNS
)
from price_tools.exceptions import EmptyCommunityError, require_columns, require_non_negative

logger = logging.getLogger(__name__)

PartitionOutput = Union[PartitionResult, Tuple[PartitionResult, pd.DataFrame]]


def _ratio(numerator: float, denominator: float, policy: EmptyCommunityPolicy, side: str) -> float:
    """Divide, applying the empty-community policy when the denominator is 0."""
    if denominator == 0:
        if policy is EmptyCommunityPolicy.RAISE:
            raise EmptyCommunityError(
                f"Community {side} has no species; the Price partition is undefined", side=side
            )
        return 0.0
    return numerator / denominator


def _masked_mean(values: np.ndarray, mask: np.ndarray) -> float:
    selected = values[mask]
    return float(selected.mean()) if selected.size else 0.0


class PartitionCalculator:
    """Calculate the Price equation partition comparing communities X and Y."""

    def __init__(self,
                 empty_community: Union[EmptyCommunityPolicy, str] = EmptyCommunityPolicy.RAISE,
                 quiet: bool = False):
        """Initialize calculator.

        Args:
            empty_community: 'raise' to fail on a community without species, or
                'zero' to treat every quotient over the empty side as 0
            quiet: Silence the warning for communities sharing no species
        """
        self.empty_community = EmptyCommunityPolicy(empty_community)
        self.quiet = quiet

    def calculate(self, comm: pd.DataFrame, species_level: bool = False) -> PartitionOutput:
        """Partition the change in function between X and Y.

        Args:
            comm: Normalized community pair table
            species_level: Also return species contributions to the 5 components

        Returns:
            PartitionResult, or (PartitionResult, species contributions) when
            species_level is True

        Raises:
            SchemaError: If the table lacks the normalized columns or holds
                negative function values
            EmptyCommunityError: If X or Y has no species and the policy is 'raise'
        """
        require_columns(comm.columns, NORMALIZED_COLUMNS, 'Normalized community table')

        func_x = comm['func.x'].to_numpy(dtype=float)
        func_y = comm['func.y'].to_numpy(dtype=float)
        require_non_negative(func_x, comm['species'], 'Community X')
        require_non_negative(func_y, comm['species'], 'Community Y')
        in_x = comm['xvec'].to_numpy() == 1
        in_y = comm['yvec'].to_numpy() == 1
        in_both = comm['wvec'].to_numpy() == 1
        wvec = in_both.astype(float)

        sx = int(in_x.sum())   # species in X
        sy = int(in_y.sum())   # species in Y
        sc = int(in_both.sum())  # species in both

        if sc < 1 and not self.quiet:
            logger.warning("Caution! Communities share no species in common.")

        totx = float(func_x.sum())
        toty = float(func_y.sum())

        zbarx = _ratio(totx, sx, self.empty_community, 'X')  # mean function per species in X
        zbary = _ratio(toty, sy, self.empty_community, 'Y')
        # probability that a species of X also occurs in Y, and vice versa
        wbarx = _masked_mean(wvec, in_x)
        wbary = _masked_mean(wvec, in_y)

        sre_l_list = _ratio(sc - sx, sx, self.empty_community, 'X') * func_x
        sre_g_list = _ratio(sy - sc, sy, self.empty_community, 'Y') * func_y
        sie_l_list = np.where(in_x, (func_x - zbarx) * (wvec - wbarx), 0.0)
        sie_g_list = np.where(in_y, -1.0 * (func_y - zbary) * (wvec - wbary), 0.0)
        cde_list = np.where(in_both, func_y - func_x, 0.0)

        result = PartitionResult(
            sre_l=float(sre_l_list.sum()),
            sre_g=float(sre_g_list.sum()),
            sie_l=float(sie_l_list.sum()),
            sie_g=float(sie_g_list.sum()),
            cde=float(cde_list.sum()),
            x_func=totx,
            y_func=toty,
            x_rich=sx,
            y_rich=sy,
            c_rich=sc,
        )

        if not species_level:
            return result

        contributions = pd.DataFrame(
            {
                'species': comm['species'].to_numpy(),
                'SRE.L': sre_l_list,
                'SRE.G': sre_g_list,
                'SIE.L': sie_l_list,
                'SIE.G': sie_g_list,
                'CDE': cde_list,
            },
            columns=['species', *PRIMARY_COMPONENTS],
        )
        return result, contributions


def price_part(comm: pd.DataFrame,
               quiet: bool = False,
               species_level: bool = False,
               empty_community: Union[EmptyCommunityPolicy, str] = 'raise') -> PartitionOutput:
    """Calculate the Price equation partition for a normalized community pair.

    Example:
        >>> comm = data_setup([comX, comY])
        >>> price_part(comm).to_dict()['CDE']
    """
    calculator = PartitionCalculator(empty_community=empty_community, quiet=quiet)
    return calculator.calculate(comm, species_level=species_level)


def check_identity(result: PartitionResult, rel_tol: float = 1e-9, abs_tol: float = 1e-12) -> bool:
    """Check that the five components add up to the observed change in function."""
    components = math.fsum(result.primary())
    return math.isclose(components, result.total_change, rel_tol=rel_tol, abs_tol=abs_tol)
