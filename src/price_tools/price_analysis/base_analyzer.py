"""
Base analyzer for Price partition methods.

This provides a common base for analyzers that:
- Load community tables from csv, tsv or parquet files
- Use the price_tools config system
- Report progress through an optional callback
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, List, Callable, Sequence, Union

import pandas as pd

from price_tools.config import get_config
from .shared.data import TableLoader

logger = logging.getLogger(__name__)

TableSource = Union[str, Path, pd.DataFrame]


class BasePriceAnalyzer(ABC):
    """
    Base class for Price partition analyses.

    Provides:
    - Table loading
    - Config integration
    - Progress tracking
    """

    def __init__(self,
                 method_name: str,
                 version: str = "1.0.0",
                 config: Optional[Any] = None,
                 progress_callback: Optional[Callable[[str, float], None]] = None):
        """
        Initialize Price analyzer.

        Args:
            method_name: Name of the analysis method (e.g. 'pairwise_price')
            version: Version of the implementation
            config: Config instance (global config if None)
            progress_callback: Optional callback for progress updates
        """
        self.method_name = method_name
        self.version = version
        self.progress_callback = progress_callback

        self.settings = config if config is not None else get_config()
        self.output_config = self.settings.get('output', {}) or {}

        self.data_loader = TableLoader()

        logger.info(f"Initialized {method_name} analyzer v{version}")

    @abstractmethod
    def analyze(self, data: TableSource, group_cols: Sequence[str], **parameters):
        """
        Run the analysis on a table or a table file.

        Args:
            data: DataFrame or path to a table file
            group_cols: Grouping columns identifying communities
            **parameters: Method-specific parameters
        """
        pass

    @abstractmethod
    def validate_parameters(self, parameters: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Validate analysis parameters.

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        pass

    @abstractmethod
    def get_default_parameters(self) -> Dict[str, Any]:
        pass

    def load_data(self, data: TableSource,
                  required_columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """
        Return the input table, loading it from disk when given a path.

        Args:
            data: DataFrame or path to a table file
            required_columns: Columns the table must contain

        Returns:
            Input DataFrame
        """
        if isinstance(data, pd.DataFrame):
            return data

        self.update_progress("Loading data", 0.1)
        try:
            table = self.data_loader.load(data, required_columns=required_columns)
        except Exception as e:
            logger.error(f"Failed to load data: {e}")
            raise

        self.update_progress("Data loaded successfully", 0.2)
        return table

    def update_progress(self, message: str, progress: float) -> None:
        """
        Update progress with optional callback.

        Args:
            message: Progress message
            progress: Progress value between 0 and 1
        """
        if self.progress_callback:
            self.progress_callback(message, progress)
        else:
            logger.info(f"{message} ({progress*100:.0f}%)")
