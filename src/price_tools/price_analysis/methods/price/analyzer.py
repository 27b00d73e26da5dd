"""Pairwise Price partition analyzer."""

import json
import logging
import threading
import time
from dataclasses import fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from price_tools.abstractions.types.price_types import (
    AggregationRule, EmptyCommunityPolicy, ERROR_FLAG, NO_SHARED_FLAG, PriceAnalysisResult
)
from price_tools.exceptions import ResourceLimitExceeded
from ...base_analyzer import BasePriceAnalyzer, TableSource
from .distance import DistanceMatrixBuilder
from .pairwise import PairwiseOrchestrator
from .price_config import PriceConfig

logger = logging.getLogger(__name__)

RUN_PARAMETERS = ('distances', 'save_results', 'output_dir', 'format')
OUTPUT_FORMATS = ('csv', 'parquet')


class PriceAnalyzer(BasePriceAnalyzer):
    """Pairwise Price partition analysis over a grouped community table.

    Runs the pairwise orchestrator, optionally builds distance matrices over
    the partition components and saves everything to an output directory.
    """

    def __init__(self, config: Optional[Any] = None,
                 progress_callback: Optional[Callable[[str, float], None]] = None):
        super().__init__(method_name='pairwise_price', version='1.0.0',
                         config=config, progress_callback=progress_callback)

    def analyze(self, data: TableSource, group_cols: Sequence[str],
                cancel_event: Optional[threading.Event] = None,
                **parameters) -> PriceAnalysisResult:
        """Compute pairwise Price partitions.

        Args:
            data: DataFrame or path to a csv/tsv/parquet table
            group_cols: Grouping columns identifying communities
            cancel_event: Set to stop the run between pair evaluations
            **parameters: Any PriceConfig field, plus:
                - distances: Build distance matrices (default False)
                - save_results: Save outputs to disk (default False)
                - output_dir: Directory for saved outputs
                - format: Table format of saved outputs ('csv', 'parquet')

        Returns:
            PriceAnalysisResult with the pairwise table and optional outputs

        Raises:
            ValueError: If the parameters are invalid
        """
        is_valid, issues = self.validate_parameters(parameters)
        if not is_valid:
            raise ValueError(f"Invalid parameters for {self.method_name}: {'; '.join(issues)}")

        if isinstance(group_cols, str):
            group_cols = [group_cols]
        group_cols = list(group_cols)

        run_params = {key: parameters.pop(key) for key in RUN_PARAMETERS if key in parameters}
        config = PriceConfig.from_settings(self.settings, **parameters)
        start_time = time.time()

        table = self.load_data(data, required_columns=group_cols + [config.species_col, config.func_col])
        logger.info(f"Running pairwise Price partitions over {len(table)} observations")

        def progress(message: str, fraction: float):
            self.update_progress(message, 0.2 + 0.6 * fraction)

        output = PairwiseOrchestrator(config).run(
            table, group_cols,
            cancel_event=cancel_event,
            progress_callback=progress,
        )
        if config.species_level:
            pairs, species_table = output
        else:
            pairs, species_table = output, None

        warnings = self._collect_warnings(pairs)

        distances = None
        if run_params.get('distances', False):
            self.update_progress("Building distance matrices", 0.85)
            builder = DistanceMatrixBuilder(
                max_size_gb=config.max_matrix_gb,
                allow_large_matrix=config.allow_large_matrix
            )
            try:
                distances = builder.build(pairs)
            except ResourceLimitExceeded as e:
                logger.warning(f"Distance matrices skipped: {e}")
                warnings.append(str(e))

        runtime = time.time() - start_time
        metadata = {
            'method': self.method_name,
            'version': self.version,
            'source': str(data) if not isinstance(data, pd.DataFrame) else None,
            'group_cols': group_cols,
            'parameters': config.to_dict(),
            'n_observations': len(table),
            'n_pairs': len(pairs),
            'n_failed': int(pairs[ERROR_FLAG].notna().sum()),
            'n_no_shared': int(pairs[NO_SHARED_FLAG].sum()),
            'runtime_seconds': runtime,
            'timestamp': time.strftime('%Y-%m-%d %H:%M:%S'),
        }

        result = PriceAnalysisResult(
            table=pairs,
            species_table=species_table,
            distances=distances,
            metadata=metadata,
            warnings=warnings,
        )

        if run_params.get('save_results', False):
            self.save_results(result, run_params.get('output_dir'), run_params.get('format'))

        self.update_progress("Analysis complete", 1.0)
        return result

    def _collect_warnings(self, pairs: pd.DataFrame) -> List[str]:
        warnings = []
        n_no_shared = int(pairs[NO_SHARED_FLAG].sum())
        if n_no_shared:
            warnings.append(f"{n_no_shared} community pairs share no species in common")
        n_failed = int(pairs[ERROR_FLAG].notna().sum())
        if n_failed:
            warnings.append(f"{n_failed} community pairs could not be partitioned")
        return warnings

    def validate_parameters(self, parameters: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """Validate analysis parameters.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []
        known = {f.name for f in fields(PriceConfig)} | set(RUN_PARAMETERS)

        unknown = sorted(set(parameters) - known)
        if unknown:
            errors.append(f"Unknown parameters: {unknown}")

        if 'aggregate' in parameters:
            valid = [rule.value for rule in AggregationRule]
            if str(getattr(parameters['aggregate'], 'value', parameters['aggregate'])) not in valid:
                errors.append(f"aggregate must be one of {valid}")

        if 'empty_community' in parameters:
            valid = [policy.value for policy in EmptyCommunityPolicy]
            value = getattr(parameters['empty_community'], 'value', parameters['empty_community'])
            if str(value) not in valid:
                errors.append(f"empty_community must be one of {valid}")

        if 'n_jobs' in parameters:
            n_jobs = parameters['n_jobs']
            if not isinstance(n_jobs, int) or n_jobs == 0:
                errors.append("n_jobs must be a non-zero integer")

        if 'chunk_size' in parameters:
            chunk_size = parameters['chunk_size']
            if not isinstance(chunk_size, int) or chunk_size < 1:
                errors.append("chunk_size must be an integer >= 1")

        if 'max_matrix_gb' in parameters:
            if not isinstance(parameters['max_matrix_gb'], (int, float)) or parameters['max_matrix_gb'] <= 0:
                errors.append("max_matrix_gb must be a positive number")

        if parameters.get('format') is not None and parameters['format'] not in OUTPUT_FORMATS:
            errors.append(f"format must be one of {list(OUTPUT_FORMATS)}")

        return len(errors) == 0, errors

    def get_default_parameters(self) -> Dict[str, Any]:
        """Get default parameters, including configured overrides."""
        defaults = PriceConfig.from_settings(self.settings).to_dict()
        defaults.update({
            'distances': False,
            'save_results': False,
            'output_dir': self.output_config.get('output_dir'),
            'format': self.output_config.get('format', 'csv'),
        })
        return defaults

    def save_results(self, result: PriceAnalysisResult,
                     output_dir: Optional[str] = None,
                     fmt: Optional[str] = None) -> Dict[str, Path]:
        """Save analysis outputs to disk.

        Writes the pairwise table, the species contributions and distance
        matrices when present (subject to the output config), and
        metadata.json.

        Returns:
            Mapping of output name to written file
        """
        output_path = Path(output_dir or self.output_config.get('output_dir', 'outputs/price'))
        output_path.mkdir(parents=True, exist_ok=True)
        fmt = fmt or self.output_config.get('format', 'csv')
        if fmt not in OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format '{fmt}'; expected one of {list(OUTPUT_FORMATS)}")

        written = {'table': self._write_table(result.table, output_path / f'pairwise_price.{fmt}', fmt)}

        if result.species_table is not None and self.output_config.get('save_species_level', True):
            written['species_table'] = self._write_table(
                result.species_table, output_path / f'species_contributions.{fmt}', fmt
            )

        if result.distances is not None and self.output_config.get('save_distances', True):
            for name in ('dist5', 'dist3'):
                path = output_path / f'{name}.npy'
                np.save(path, getattr(result.distances, name))
                written[name] = path
            written['covars'] = self._write_table(
                result.distances.covars, output_path / f'distance_covars.{fmt}', fmt
            )

        metadata_file = output_path / 'metadata.json'
        with open(metadata_file, 'w') as f:
            json.dump({**result.metadata, 'warnings': result.warnings}, f, indent=2, default=str)
        written['metadata'] = metadata_file

        logger.info(f"Saved {len(written)} outputs to {output_path}")
        return written

    def _write_table(self, table: pd.DataFrame, path: Path, fmt: str) -> Path:
        if fmt == 'parquet':
            table.to_parquet(path, index=False)
        else:
            table.to_csv(path, index=False)
        logger.info(f"Saved {len(table)} rows to {path}")
        return path
