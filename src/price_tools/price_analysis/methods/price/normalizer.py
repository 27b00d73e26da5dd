"""Community data setup for Price equation calculations."""

import logging
from typing import Sequence, Union

import numpy as np
import pandas as pd

from price_tools.abstractions.types.price_types import AggregationRule, NORMALIZED_COLUMNS
from price_tools.exceptions import SchemaError, require_columns, require_non_negative

logger = logging.getLogger(__name__)

CommunityInput = Union[pd.DataFrame, Sequence[pd.DataFrame]]


class CommunityNormalizer:
    """Merge the species lists of two communities into one table.

    The output has one row per species found in either community, with the
    aggregated function of the species in X and Y (0 when absent) and the
    presence indicators used by the partition:

        species, func.x, func.y, wvec, xvec, yvec

    Rows are sorted by species and then by (xvec, yvec) descending, so species
    shared by both communities come first, then species lost from X, then
    species gained in Y.
    """

    def __init__(self,
                 aggregate: Union[AggregationRule, str] = AggregationRule.SUM,
                 species_col: str = 'species',
                 func_col: str = 'func',
                 func_x_col: str = 'func.x',
                 func_y_col: str = 'func.y'):
        """Initialize normalizer.

        Args:
            aggregate: Rule for repeated entries of a species within a community
            species_col: Species column name in every input table
            func_col: Function column name of two-table input
            func_x_col: Community X function column of one-table input
            func_y_col: Community Y function column of one-table input
        """
        self.aggregate = AggregationRule(aggregate)
        self.species_col = species_col
        self.func_col = func_col
        self.func_x_col = func_x_col
        self.func_y_col = func_y_col

        if species_col in (func_col, func_x_col, func_y_col):
            raise SchemaError(f"Species column '{species_col}' is also used as a function column")
        if func_x_col == func_y_col:
            raise SchemaError(f"Community X and Y function columns are both '{func_x_col}'")

    def normalize(self, data: CommunityInput) -> pd.DataFrame:
        """Create a normalized pair table from one or two community tables.

        Args:
            data: Either one DataFrame with species, X function and Y function
                columns, or a sequence of two DataFrames (X then Y) each with
                species and function columns. A sequence holding a single
                DataFrame is treated like the one-table form.

        Returns:
            Normalized table with columns species, func.x, func.y, wvec, xvec, yvec

        Raises:
            SchemaError: If the input shape or columns are invalid, or an
                aggregated function value is negative
        """
        if isinstance(data, pd.DataFrame):
            tables = [data]
        elif isinstance(data, (list, tuple)):
            tables = list(data)
        else:
            raise SchemaError(
                f"Community data must be a DataFrame or a sequence of DataFrames, "
                f"got {type(data).__name__}"
            )

        if not all(isinstance(t, pd.DataFrame) for t in tables):
            raise SchemaError("Every community table must be a pandas DataFrame")

        if len(tables) == 1:
            func_x, func_y = self._from_single_table(tables[0])
        elif len(tables) == 2:
            func_x = self.aggregate_community(tables[0], 'X')
            func_y = self.aggregate_community(tables[1], 'Y')
        else:
            raise SchemaError(f"Expected one or two community tables, got {len(tables)}")

        return self.assemble(func_x, func_y)

    def _from_single_table(self, table: pd.DataFrame):
        require_columns(table.columns, [self.species_col, self.func_x_col, self.func_y_col],
                        'Community pair table')
        self._check_numeric(table, self.func_x_col)
        self._check_numeric(table, self.func_y_col)

        grouped = table.groupby(self.species_col, sort=True)[[self.func_x_col, self.func_y_col]]
        combined = grouped.agg(self.aggregate.value)
        require_non_negative(combined[self.func_x_col], combined.index, "Community X")
        require_non_negative(combined[self.func_y_col], combined.index, "Community Y")
        return combined[self.func_x_col], combined[self.func_y_col]

    def aggregate_community(self, table: pd.DataFrame, label: str) -> pd.Series:
        """Aggregate the function of one community per species (sorted by species)."""
        require_columns(table.columns, [self.species_col, self.func_col], f"Community {label} table")
        self._check_numeric(table, self.func_col)

        func = table.groupby(self.species_col, sort=True)[self.func_col].agg(self.aggregate.value)
        require_non_negative(func, func.index, f"Community {label}")
        return func

    def _check_numeric(self, table: pd.DataFrame, column: str) -> None:
        if len(table) and not pd.api.types.is_numeric_dtype(table[column]):
            raise SchemaError(f"Function column '{column}' must be numeric, got {table[column].dtype}")

    def assemble(self, func_x: pd.Series, func_y: pd.Series) -> pd.DataFrame:
        """Combine aggregated X and Y functions and flag species presence."""
        combined = pd.concat(
            [func_x.rename('func.x'), func_y.rename('func.y')], axis=1, sort=True
        )
        combined = combined.astype(float).fillna(0.0)

        comm = pd.DataFrame({
            'species': combined.index.to_numpy(),
            'func.x': combined['func.x'].to_numpy(),
            'func.y': combined['func.y'].to_numpy(),
        })
        comm['xvec'] = (comm['func.x'] > 0).astype(np.int64)
        comm['yvec'] = (comm['func.y'] > 0).astype(np.int64)
        comm['wvec'] = (comm['xvec'] & comm['yvec']).astype(np.int64)

        comm = comm.sort_values(['xvec', 'yvec'], ascending=False, kind='mergesort')
        comm = comm.reset_index(drop=True)[list(NORMALIZED_COLUMNS)]

        logger.debug(
            f"Normalized community pair: {len(comm)} species, "
            f"{int(comm['xvec'].sum())} in X, {int(comm['yvec'].sum())} in Y, "
            f"{int(comm['wvec'].sum())} shared"
        )
        return comm


def data_setup(data: CommunityInput,
               aggregate: Union[AggregationRule, str] = 'sum',
               species: str = 'species',
               func: str = 'func',
               func_x: str = 'func.x',
               func_y: str = 'func.y') -> pd.DataFrame:
    """Set up one or two community tables for Price partition calculations.

    Example:
        >>> comX = pd.DataFrame({'species': ['A', 'B'], 'func': [2.0, 3.0]})
        >>> comY = pd.DataFrame({'species': ['B', 'C'], 'func': [3.0, 4.0]})
        >>> data_setup([comX, comY])['species'].tolist()
        ['B', 'A', 'C']
    """
    normalizer = CommunityNormalizer(
        aggregate=aggregate,
        species_col=species,
        func_col=func,
        func_x_col=func_x,
        func_y_col=func_y,
    )
    return normalizer.normalize(data)
