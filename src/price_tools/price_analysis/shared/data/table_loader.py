"""Table loader for Price partition inputs."""

from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd
import logging

from price_tools.exceptions import require_columns

logger = logging.getLogger(__name__)

READERS = {
    '.csv': 'csv',
    '.tsv': 'tsv',
    '.txt': 'tsv',
    '.parquet': 'parquet',
    '.pq': 'parquet',
}


class TableLoader:
    """Load community observation tables from csv, tsv or parquet files."""

    def __init__(self):
        """Initialize table loader."""
        self.last_loaded_path = None

    def load(self,
             data_path: Union[str, Path],
             required_columns: Optional[Sequence[str]] = None,
             columns: Optional[List[str]] = None) -> pd.DataFrame:
        """Load a table from disk.

        Args:
            data_path: Path to a .csv, .tsv/.txt (tab separated) or .parquet file
            required_columns: Columns that must be present
            columns: Subset of columns to read (all if None)

        Returns:
            Loaded DataFrame

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file type is not supported
            SchemaError: If a required column is missing
        """
        path = Path(data_path)
        if not path.exists():
            raise FileNotFoundError(f"Input table not found: {data_path}")

        kind = READERS.get(path.suffix.lower())
        if kind is None:
            raise ValueError(
                f"Unsupported table format '{path.suffix}'; expected one of {sorted(READERS)}"
            )

        logger.info(f"Loading {kind} table: {path}")
        if kind == 'parquet':
            table = pd.read_parquet(path, columns=columns)
        else:
            table = pd.read_csv(path, sep=',' if kind == 'csv' else '\t', usecols=columns)
        logger.info(f"Loaded {len(table)} rows with {len(table.columns)} columns")

        if required_columns:
            require_columns(table.columns, list(required_columns), path.name)

        self.last_loaded_path = str(path)
        return table
