"""Pairwise Price partitions across all communities of a grouped table."""

import threading
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from price_tools.abstractions.types.price_types import (
    CommunityKey, ERROR_FLAG, NO_SHARED_FLAG, PARTITION_FIELDS, PRIMARY_COMPONENTS
)
from price_tools.exceptions import (
    EmptyCommunityError, GroupingError, OrchestrationCancelled, SchemaError, require_columns
)
from price_tools.infrastructure.logging import LoggingContext, get_logger
from .normalizer import CommunityNormalizer
from .partition import PartitionCalculator
from .price_config import PriceConfig

logger = get_logger(__name__)

Community = Tuple[CommunityKey, pd.Series]
PairOutcome = Tuple[Dict[str, Any], Optional[pd.DataFrame]]
ProgressCallback = Callable[[str, float], None]


def _key_label(key: CommunityKey) -> str:
    return ' / '.join(str(value) for value in key)


def _check_cancelled(cancel_event: Optional[threading.Event], completed: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OrchestrationCancelled(
            f"Pairwise run cancelled after {completed} pairs", completed_pairs=completed
        )


class PairEvaluator:
    """Evaluate one reference community against every other community.

    Holds only settings, so it can be shipped to joblib workers.
    """

    def __init__(self, group_cols: Sequence[str], config: PriceConfig):
        self.x_cols = [f"{g}.x" for g in group_cols]
        self.y_cols = [f"{g}.y" for g in group_cols]
        self.normalizer = CommunityNormalizer(aggregate=config.aggregate)
        # per-pair warnings are summarised by the orchestrator
        self.calculator = PartitionCalculator(empty_community=config.empty_community, quiet=True)
        self.species_level = config.species_level
        self.strict = config.strict
        self.exclude_zero_partitions = config.exclude_zero_partitions

    def iter_reference(self, ref_index: int, communities: Sequence[Community]) -> Iterator[PairOutcome]:
        """Yield the outcome of each pair with communities[ref_index] as X.

        Self-comparison is skipped by key identity. Pairs removed by the
        zero-partition filter yield nothing.
        """
        ref_key, ref_func = communities[ref_index]
        for comp_index, (comp_key, comp_func) in enumerate(communities):
            if comp_index == ref_index:
                continue
            outcome = self.evaluate_pair(ref_key, ref_func, comp_key, comp_func)
            if outcome is not None:
                yield outcome

    def evaluate_pair(self, ref_key: CommunityKey, ref_func: pd.Series,
                      comp_key: CommunityKey, comp_func: pd.Series) -> Optional[PairOutcome]:
        keys = dict(zip(self.x_cols, ref_key))
        keys.update(zip(self.y_cols, comp_key))

        comm = self.normalizer.assemble(ref_func, comp_func)
        try:
            output = self.calculator.calculate(comm, species_level=self.species_level)
        except EmptyCommunityError as e:
            if self.strict:
                raise
            record = {**keys, **{name: np.nan for name in PARTITION_FIELDS}}
            record[NO_SHARED_FLAG] = False
            record[ERROR_FLAG] = str(e)
            return record, None

        if self.species_level:
            result, species = output
        else:
            result, species = output, None

        if self.exclude_zero_partitions and not any(result.primary()):
            return None

        record = {**keys, **result.to_dict()}
        record[NO_SHARED_FLAG] = not result.shares_species
        record[ERROR_FLAG] = None

        if species is not None:
            for position, (column, value) in enumerate(keys.items()):
                species.insert(position, column, value)
        return record, species


def _evaluate_reference(evaluator: PairEvaluator, ref_index: int,
                        communities: Sequence[Community]) -> List[PairOutcome]:
    """Worker task: every pair for one reference community."""
    return list(evaluator.iter_reference(ref_index, communities))


class PairwiseOrchestrator:
    """Run the Price partition for every ordered pair of communities.

    Each distinct combination of the grouping columns is one community. Every
    community serves once as reference (X, columns ``<g>.x``) and is compared
    with every other community (Y, columns ``<g>.y``), giving at most n(n-1)
    rows for n communities.
    """

    def __init__(self, config: Optional[PriceConfig] = None):
        self.config = config or PriceConfig()

    def run(self,
            data: pd.DataFrame,
            group_cols: Union[str, Sequence[str]],
            species_col: Optional[str] = None,
            func_col: Optional[str] = None,
            cancel_event: Optional[threading.Event] = None,
            progress_callback: Optional[ProgressCallback] = None
            ) -> Union[pd.DataFrame, Tuple[pd.DataFrame, pd.DataFrame]]:
        """Compute the pairwise result table.

        Args:
            data: Long table with grouping, species and function columns
            group_cols: Grouping column(s) identifying communities
            species_col: Species column (config default if None)
            func_col: Function column (config default if None)
            cancel_event: Set to stop the run between pair evaluations
            progress_callback: Called with (message, fraction completed)

        Returns:
            Pairwise result table, or (table, species table) when
            ``config.species_level`` is set

        Raises:
            GroupingError: If no grouping column is given
            SchemaError: If a column is missing or used twice
            EmptyCommunityError: For an empty community when ``config.strict``
            OrchestrationCancelled: If cancel_event is set during the run
        """
        species_col = species_col or self.config.species_col
        func_col = func_col or self.config.func_col
        group_cols = self._validate(data, group_cols, species_col, func_col)

        ctx = LoggingContext()
        start_time = time.time()
        with ctx.run('pairwise_price', n_jobs=self.config.n_jobs, group_cols=group_cols):
            with ctx.stage('grouping'):
                communities = self._collect_communities(data, group_cols, species_col, func_col)

            n_communities = len(communities)
            logger.info(
                f"Comparing {n_communities} communities "
                f"({n_communities * (n_communities - 1)} ordered pairs)"
            )

            evaluator = PairEvaluator(group_cols, self.config)
            with ctx.stage('evaluation', n_communities=n_communities):
                if self.config.parallel:
                    outcomes = self._run_parallel(evaluator, communities, ctx,
                                                  cancel_event, progress_callback)
                else:
                    outcomes = self._run_sequential(evaluator, communities, ctx,
                                                    cancel_event, progress_callback)

            with ctx.stage('assembly'):
                table = self._assemble_table(outcomes, evaluator)
                species_table = (
                    self._assemble_species_table(outcomes, evaluator)
                    if self.config.species_level else None
                )

        self._report(table)
        logger.log_performance(
            'pairwise_price', time.time() - start_time,
            items_processed=len(table), n_communities=n_communities
        )

        if self.config.species_level:
            return table, species_table
        return table

    def _validate(self, data: pd.DataFrame, group_cols, species_col: str, func_col: str) -> List[str]:
        if not isinstance(data, pd.DataFrame):
            raise SchemaError(f"Pairwise input must be a pandas DataFrame, got {type(data).__name__}")

        if group_cols is None:
            group_cols = []
        elif isinstance(group_cols, str):
            group_cols = [group_cols]
        group_cols = list(group_cols)
        if not group_cols:
            raise GroupingError("At least one grouping column is required to define communities")

        if len(set(group_cols)) != len(group_cols):
            raise SchemaError(f"Grouping columns are repeated: {group_cols}")
        overlap = {species_col, func_col} & set(group_cols)
        if overlap:
            raise SchemaError(f"Columns {sorted(overlap)} cannot be both grouping and data columns")
        if species_col == func_col:
            raise SchemaError(f"Species and function columns are both '{species_col}'")

        require_columns(data.columns, group_cols + [species_col, func_col], 'Pairwise input table')
        return group_cols

    def _collect_communities(self, data: pd.DataFrame, group_cols: List[str],
                             species_col: str, func_col: str) -> List[Community]:
        """Aggregate each community's species function once, ordered by key."""
        normalizer = CommunityNormalizer(
            aggregate=self.config.aggregate, species_col=species_col, func_col=func_col
        )
        communities = []
        for key, frame in data.groupby(group_cols, sort=True, dropna=False):
            key = key if isinstance(key, tuple) else (key,)
            func = normalizer.aggregate_community(frame, _key_label(key))
            communities.append((key, func.rename_axis('species')))
        return communities

    def _run_sequential(self, evaluator: PairEvaluator, communities: List[Community],
                        ctx: LoggingContext, cancel_event, progress_callback) -> List[PairOutcome]:
        outcomes: List[PairOutcome] = []
        n_refs = len(communities)
        evaluated = 0

        for ref_index, (ref_key, _) in enumerate(communities):
            _check_cancelled(cancel_event, evaluated)
            with ctx.reference(_key_label(ref_key)):
                for outcome in evaluator.iter_reference(ref_index, communities):
                    outcomes.append(outcome)
                    evaluated += 1
                    _check_cancelled(cancel_event, evaluated)
            self._progress(ref_index + 1, n_refs, ctx, progress_callback)

        return outcomes

    def _run_parallel(self, evaluator: PairEvaluator, communities: List[Community],
                      ctx: LoggingContext, cancel_event, progress_callback) -> List[PairOutcome]:
        outcomes: List[PairOutcome] = []
        n_refs = len(communities)
        chunk_size = self.config.chunk_size

        logger.debug(
            f"Dispatching {n_refs} reference communities to {self.config.n_jobs} "
            f"{self.config.backend} workers in chunks of {chunk_size}"
        )

        with Parallel(n_jobs=self.config.n_jobs, backend=self.config.backend) as parallel:
            for start in range(0, n_refs, chunk_size):
                _check_cancelled(cancel_event, len(outcomes))
                stop = min(start + chunk_size, n_refs)
                results = parallel(
                    delayed(_evaluate_reference)(evaluator, ref_index, communities)
                    for ref_index in range(start, stop)
                )
                for chunk_outcomes in results:
                    outcomes.extend(chunk_outcomes)
                self._progress(stop, n_refs, ctx, progress_callback)

        return outcomes

    def _progress(self, completed: int, total: int, ctx: LoggingContext,
                  progress_callback: Optional[ProgressCallback]) -> None:
        message = f"Evaluated {completed}/{total} reference communities"
        if progress_callback is not None:
            progress_callback(message, completed / total if total else 1.0)
        elif completed == total or completed % max(1, total // 10) == 0:
            ctx.log_progress(completed, total)

    def _assemble_table(self, outcomes: List[PairOutcome], evaluator: PairEvaluator) -> pd.DataFrame:
        columns = evaluator.x_cols + evaluator.y_cols + list(PARTITION_FIELDS) + [NO_SHARED_FLAG, ERROR_FLAG]
        table = pd.DataFrame([record for record, _ in outcomes], columns=columns)
        table[NO_SHARED_FLAG] = table[NO_SHARED_FLAG].astype(bool)
        return table

    def _assemble_species_table(self, outcomes: List[PairOutcome], evaluator: PairEvaluator) -> pd.DataFrame:
        columns = evaluator.x_cols + evaluator.y_cols + ['species', *PRIMARY_COMPONENTS]
        frames = [species for _, species in outcomes if species is not None]
        if not frames:
            return pd.DataFrame(columns=columns)
        return pd.concat(frames, ignore_index=True)[columns]

    def _report(self, table: pd.DataFrame) -> None:
        n_failed = int(table[ERROR_FLAG].notna().sum())
        n_no_shared = int(table[NO_SHARED_FLAG].sum())

        if n_no_shared and not self.config.quiet:
            logger.warning(f"{n_no_shared} of {len(table)} community pairs share no species in common")
        if n_failed:
            logger.warning(
                f"{n_failed} of {len(table)} community pairs could not be partitioned; "
                f"see the '{ERROR_FLAG}' column"
            )


def pairwise_price(data: pd.DataFrame,
                   group_cols: Union[str, Sequence[str]],
                   species: str = 'Species',
                   func: str = 'Function',
                   cancel_event: Optional[threading.Event] = None,
                   progress_callback: Optional[ProgressCallback] = None,
                   **options) -> Union[pd.DataFrame, Tuple[pd.DataFrame, pd.DataFrame]]:
    """Calculate Price partitions for all pairwise community comparisons.

    Args:
        data: Long table with grouping, species and function columns
        group_cols: Grouping column(s) identifying communities
        species: Species column name
        func: Function column name
        **options: Any other ``PriceConfig`` field (aggregate, species_level,
            empty_community, strict, n_jobs, ...)

    Example:
        >>> res = pairwise_price(cms, group_cols=['Site', 'Year'], n_jobs=4)
        >>> res[['Site.x', 'Site.y', 'SRE.L', 'CDE']].head()
    """
    config = PriceConfig(species_col=species, func_col=func, **options)
    return PairwiseOrchestrator(config).run(
        data, group_cols,
        cancel_event=cancel_event,
        progress_callback=progress_callback,
    )
