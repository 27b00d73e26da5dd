"""Tests for pairwise Price partitions over grouped communities."""

import logging
import threading

import numpy as np
import pandas as pd
import pytest

from price_tools.abstractions.types.price_types import PARTITION_FIELDS, PRIMARY_COMPONENTS
from price_tools.exceptions import (
    EmptyCommunityError, GroupingError, OrchestrationCancelled, SchemaError
)
from price_tools.price_analysis.methods.price.pairwise import PairwiseOrchestrator, pairwise_price
from price_tools.price_analysis.methods.price.partition import check_identity
from price_tools.price_analysis.methods.price.price_config import PriceConfig
from price_tools.abstractions.types.price_types import PartitionResult


def _row(table, **keys):
    mask = np.ones(len(table), dtype=bool)
    for column, value in keys.items():
        mask &= (table[column] == value).to_numpy()
    rows = table[mask]
    assert len(rows) == 1
    return rows.iloc[0]


class TestPairwisePrice:
    """Test pair enumeration and the result table."""

    def test_table_layout(self, site_table):
        """Test columns and row count for three communities."""
        table = pairwise_price(site_table, 'Site')

        expected = ['Site.x', 'Site.y', *PARTITION_FIELDS, 'no.shared', 'error']
        assert list(table.columns) == expected
        assert len(table) == 6

    def test_self_exclusion(self, site_table):
        """Test that no community is compared with itself."""
        table = pairwise_price(site_table, ['Site'])

        assert not (table['Site.x'] == table['Site.y']).any()
        pairs = set(zip(table['Site.x'], table['Site.y']))
        assert pairs == {('a', 'b'), ('a', 'c'), ('b', 'a'), ('b', 'c'), ('c', 'a'), ('c', 'b')}

    def test_pair_values(self, site_table):
        """Test that each row matches the single-pair partition."""
        table = pairwise_price(site_table, 'Site')

        forward = _row(table, **{'Site.x': 'a', 'Site.y': 'b'})
        assert forward['SRE.L'] == pytest.approx(-2.5)
        assert forward['SRE.G'] == pytest.approx(3.5)
        assert forward['SIE.L'] == pytest.approx(0.5)
        assert forward['SIE.G'] == pytest.approx(0.5)
        assert forward['CDE'] == pytest.approx(0.0)

        reverse = _row(table, **{'Site.x': 'b', 'Site.y': 'a'})
        assert reverse['SRE.L'] == pytest.approx(-3.5)
        assert reverse['SRE.G'] == pytest.approx(2.5)

    def test_rows_obey_identity_law(self, random_table):
        """Test the identity law on every pairwise row."""
        table = pairwise_price(random_table, ['Plot', 'Year'], quiet=True)

        assert len(table) == 6 * 5
        for _, row in table.iterrows():
            assert check_identity(PartitionResult.from_dict(row))

    def test_multiple_grouping_columns(self, random_table):
        """Test key columns for two grouping variables."""
        table = pairwise_price(random_table, ['Plot', 'Year'], quiet=True)

        assert list(table.columns[:4]) == ['Plot.x', 'Year.x', 'Plot.y', 'Year.y']
        same = (table['Plot.x'] == table['Plot.y']) & (table['Year.x'] == table['Year.y'])
        assert not same.any()

    def test_communities_ordered_by_key(self, site_table):
        """Test that rows follow the sorted community keys."""
        shuffled = site_table.sample(frac=1.0, random_state=3)
        table = pairwise_price(shuffled, 'Site')

        assert table['Site.x'].tolist() == ['a', 'a', 'b', 'b', 'c', 'c']
        assert table['Site.y'].tolist() == ['b', 'c', 'a', 'c', 'a', 'b']

    def test_no_shared_flag(self, site_table, caplog):
        """Test flagging of pairs without shared species."""
        with caplog.at_level(logging.WARNING):
            table = pairwise_price(site_table, 'Site')

        flagged = table[table['no.shared']]
        assert len(flagged) == 4
        assert ((flagged['Site.x'] == 'c') | (flagged['Site.y'] == 'c')).all()
        assert "4 of 6 community pairs share no species" in caplog.text

    def test_identical_communities_kept(self, site_table):
        """Test that distinct communities with equal data are still compared."""
        extra = pd.DataFrame({'Site': ['d', 'd'], 'Species': ['A', 'B'], 'Function': [2.0, 3.0]})
        data = pd.concat([site_table, extra], ignore_index=True)

        table = pairwise_price(data, 'Site')
        assert len(table) == 12
        row = _row(table, **{'Site.x': 'a', 'Site.y': 'd'})
        assert all(row[name] == 0.0 for name in PRIMARY_COMPONENTS)

    def test_exclude_zero_partitions(self, site_table):
        """Test the optional filter for all-zero partitions."""
        extra = pd.DataFrame({'Site': ['d', 'd'], 'Species': ['A', 'B'], 'Function': [2.0, 3.0]})
        data = pd.concat([site_table, extra], ignore_index=True)

        table = pairwise_price(data, 'Site', exclude_zero_partitions=True)
        assert len(table) == 10
        pairs = set(zip(table['Site.x'], table['Site.y']))
        assert ('a', 'd') not in pairs
        assert ('d', 'a') not in pairs

    def test_missing_grouping_key(self, site_table):
        """Test that missing key values form their own community."""
        extra = pd.DataFrame({'Site': [np.nan], 'Species': ['A'], 'Function': [1.0]})
        data = pd.concat([site_table, extra], ignore_index=True)

        table = pairwise_price(data, 'Site')
        assert len(table) == 12
        assert table['Site.x'].isna().sum() == 3

    def test_species_level(self, site_table):
        """Test stacked species contributions."""
        table, species = pairwise_price(site_table, 'Site', species_level=True)

        assert list(species.columns) == [
            'Site.x', 'Site.y', 'species', 'SRE.L', 'SRE.G', 'SIE.L', 'SIE.G', 'CDE'
        ]
        totals = species.groupby(['Site.x', 'Site.y'])['SRE.L'].sum()
        for _, row in table.iterrows():
            assert totals[(row['Site.x'], row['Site.y'])] == pytest.approx(row['SRE.L'])

    def test_mean_aggregation(self):
        """Test that the aggregation rule applies within each community."""
        data = pd.DataFrame({
            'Site': ['a', 'a', 'b'],
            'Species': ['A', 'A', 'A'],
            'Function': [1.0, 3.0, 2.0],
        })
        summed = pairwise_price(data, 'Site')
        averaged = pairwise_price(data, 'Site', aggregate='mean')

        assert _row(summed, **{'Site.x': 'a'})['x.func'] == 4.0
        assert _row(averaged, **{'Site.x': 'a'})['x.func'] == 2.0


class TestPairwiseErrors:
    """Test validation and per-pair failure handling."""

    @pytest.fixture
    def with_empty_site(self, site_table):
        extra = pd.DataFrame({'Site': ['e'], 'Species': ['A'], 'Function': [0.0]})
        return pd.concat([site_table, extra], ignore_index=True)

    def test_no_grouping_columns(self, site_table):
        """Test that a grouping key is required."""
        with pytest.raises(GroupingError):
            pairwise_price(site_table, [])
        with pytest.raises(GroupingError):
            pairwise_price(site_table, None)

    def test_missing_columns(self, site_table):
        """Test that absent columns raise SchemaError."""
        with pytest.raises(SchemaError):
            pairwise_price(site_table, 'Plot')
        with pytest.raises(SchemaError):
            pairwise_price(site_table, 'Site', func='Biomass')

    def test_grouping_on_data_column(self, site_table):
        """Test that the species column cannot be a grouping column."""
        with pytest.raises(SchemaError):
            pairwise_price(site_table, ['Site', 'Species'])

    def test_negative_function_rejected(self, site_table):
        """Test that a negative function value aborts the run."""
        data = site_table.copy()
        data.loc[4, 'Function'] = -1.0
        with pytest.raises(SchemaError, match="negative"):
            pairwise_price(data, 'Site')

    def test_empty_community_flagged(self, with_empty_site, caplog):
        """Test that pairs with an empty community become error rows."""
        with caplog.at_level(logging.WARNING):
            table = pairwise_price(with_empty_site, 'Site')

        assert len(table) == 12
        failed = table[table['error'].notna()]
        assert len(failed) == 6
        assert ((failed['Site.x'] == 'e') | (failed['Site.y'] == 'e')).all()
        assert failed[list(PRIMARY_COMPONENTS)].isna().all().all()
        assert table.loc[table['error'].isna(), 'SRE.L'].notna().all()
        assert "could not be partitioned" in caplog.text

    def test_strict_reraises(self, with_empty_site):
        """Test that strict mode stops at the first failing pair."""
        with pytest.raises(EmptyCommunityError):
            pairwise_price(with_empty_site, 'Site', strict=True)

    def test_zero_policy(self, with_empty_site):
        """Test the zero convention across all pairs."""
        table = pairwise_price(with_empty_site, 'Site', empty_community='zero')

        assert table['error'].isna().all()
        row = _row(table, **{'Site.x': 'e', 'Site.y': 'a'})
        assert row['SRE.L'] == 0.0
        assert row['SRE.G'] == pytest.approx(5.0)


class TestOrchestration:
    """Test worker pool, cancellation and progress reporting."""

    def test_parallel_matches_sequential(self, random_table):
        """Test that the worker pool gives the same table."""
        sequential = pairwise_price(random_table, ['Plot', 'Year'], quiet=True)
        parallel = pairwise_price(
            random_table, ['Plot', 'Year'], quiet=True,
            n_jobs=2, backend='threading', chunk_size=2
        )

        pd.testing.assert_frame_equal(parallel, sequential)

    def test_parallel_species_level(self, site_table):
        """Test species contributions through the worker pool."""
        _, sequential = pairwise_price(site_table, 'Site', species_level=True)
        _, parallel = pairwise_price(site_table, 'Site', species_level=True,
                                     n_jobs=2, backend='threading', chunk_size=1)

        pd.testing.assert_frame_equal(parallel, sequential)

    def test_cancel_before_start(self, site_table):
        """Test that a set event stops the run before any pair."""
        event = threading.Event()
        event.set()

        with pytest.raises(OrchestrationCancelled) as exc_info:
            pairwise_price(site_table, 'Site', cancel_event=event)
        assert exc_info.value.completed_pairs == 0

    def test_cancel_between_references(self, site_table):
        """Test cancelling after the first reference community."""
        event = threading.Event()

        def on_progress(message, fraction):
            event.set()

        with pytest.raises(OrchestrationCancelled) as exc_info:
            pairwise_price(site_table, 'Site', cancel_event=event, progress_callback=on_progress)
        assert exc_info.value.completed_pairs == 2

    def test_cancel_parallel(self, site_table):
        """Test that the worker pool checks the event between chunks."""
        event = threading.Event()
        event.set()

        with pytest.raises(OrchestrationCancelled):
            pairwise_price(site_table, 'Site', cancel_event=event, n_jobs=2, backend='threading')

    def test_progress_callback(self, site_table):
        """Test progress reports for each reference community."""
        reports = []
        pairwise_price(site_table, 'Site', progress_callback=lambda msg, frac: reports.append(frac))

        assert reports == pytest.approx([1 / 3, 2 / 3, 1.0])

    def test_orchestrator_uses_config_columns(self, site_table):
        """Test that column names default to the config."""
        data = site_table.rename(columns={'Species': 'taxon', 'Function': 'biomass'})
        config = PriceConfig(species_col='taxon', func_col='biomass')

        table = PairwiseOrchestrator(config).run(data, ['Site'])
        assert len(table) == 6
