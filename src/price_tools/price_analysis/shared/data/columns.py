"""Helpers for reshaping pairwise result tables."""

from typing import Sequence, Union

import numpy as np
import pandas as pd

from price_tools.exceptions import SchemaError, require_columns


def group_columns(table: pd.DataFrame,
                  groups: Union[str, Sequence[str]],
                  drop: bool = False,
                  sep: str = ' ') -> pd.DataFrame:
    """Merge each ``<g>.x`` / ``<g>.y`` pair into a single ``<g>`` label column.

    The label reads "<g.x><sep><g.y>", e.g. "ctrl trt" for a control plot
    compared with a treatment plot. Each new column is inserted at the front,
    so the last group ends up first.

    Args:
        table: Pairwise result table
        groups: Grouping variable name(s), without the .x/.y suffix
        drop: Remove the original .x/.y columns
        sep: Separator between the two labels

    Returns:
        New table with the merged columns
    """
    if isinstance(groups, str):
        groups = [groups]

    result = table.copy()
    for g in groups:
        x_col, y_col = f"{g}.x", f"{g}.y"
        require_columns(result.columns, [x_col, y_col], 'Pairwise result table')
        if g in result.columns:
            raise SchemaError(f"Column '{g}' already exists in the table")

        label = result[x_col].astype(str) + sep + result[y_col].astype(str)
        result.insert(0, g, label)
        if drop:
            result = result.drop(columns=[x_col, y_col])

    return result


def clean_time_vars(table: pd.DataFrame, col: str, cut_point: float) -> pd.DataFrame:
    """Recode ``<col>.x`` and ``<col>.y`` as 1 above cut_point and 0 otherwise.

    Useful for collapsing an ordered variable such as sampling year into
    before/after treatment classes.
    """
    columns = [f"{col}.x", f"{col}.y"]
    require_columns(table.columns, columns, 'Pairwise result table')

    result = table.copy()
    for column in columns:
        result[column] = np.where(result[column] > cut_point, 1, 0)
    return result
