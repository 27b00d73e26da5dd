"""Tests for the Price partition of a single community pair."""

import logging

import numpy as np
import pandas as pd
import pytest

from price_tools.abstractions.types.price_types import PartitionResult, PARTITION_FIELDS
from price_tools.exceptions import EmptyCommunityError, SchemaError
from price_tools.price_analysis.methods.price.normalizer import data_setup
from price_tools.price_analysis.methods.price.partition import (
    PartitionCalculator, check_identity, price_part
)


def _community(**functions):
    return pd.DataFrame({'species': list(functions), 'func': [float(v) for v in functions.values()]})


def _empty_community():
    return pd.DataFrame({
        'species': pd.Series([], dtype=object),
        'func': pd.Series([], dtype=float),
    })


class TestPricePartition:
    """Test the five-component partition."""

    def test_worked_example(self, comm_x, comm_y):
        """Test X={A:2,B:3}, Y={B:3,C:4} against hand-computed values."""
        result = price_part(data_setup([comm_x, comm_y]))

        assert result.sre_l == pytest.approx(-2.5)
        assert result.sre_g == pytest.approx(3.5)
        assert result.sie_l == pytest.approx(0.5)
        assert result.sie_g == pytest.approx(0.5)
        assert result.cde == pytest.approx(0.0)
        assert sum(result.primary()) == pytest.approx(2.0)

        assert result.sl == pytest.approx(-2.0)
        assert result.sg == pytest.approx(4.0)
        assert result.sr == pytest.approx(1.0)
        assert result.ce == pytest.approx(1.0)

        assert result.x_func == 5.0
        assert result.y_func == 7.0
        assert (result.x_rich, result.y_rich, result.c_rich) == (2, 2, 1)

    def test_asymmetry(self, comm_x, comm_y):
        """Test that swapping X and Y changes the partition."""
        forward = price_part(data_setup([comm_x, comm_y]))
        reverse = price_part(data_setup([comm_y, comm_x]))

        assert reverse.sre_l == pytest.approx(-3.5)
        assert reverse.sre_g == pytest.approx(2.5)
        assert reverse.sie_l == pytest.approx(-0.5)
        assert reverse.sie_g == pytest.approx(-0.5)
        assert sum(reverse.primary()) == pytest.approx(-2.0)
        assert forward.primary() != reverse.primary()

    def test_context_dependent_effect(self):
        """Test that shared species changing function give a CDE only."""
        result = price_part(data_setup([_community(A=2, B=3), _community(A=4, B=5)]))

        assert result.cde == pytest.approx(4.0)
        assert result.sre_l == pytest.approx(0.0)
        assert result.sre_g == pytest.approx(0.0)
        assert result.sie_l == pytest.approx(0.0)
        assert result.sie_g == pytest.approx(0.0)

    def test_disjoint_communities(self, comm_x, caplog):
        """Test communities with no species in common."""
        y = _community(C=4)
        with caplog.at_level(logging.WARNING):
            result = price_part(data_setup([comm_x, y]))

        assert result.cde == 0.0
        assert result.sie_l == pytest.approx(0.0)
        assert result.sie_g == pytest.approx(0.0)
        assert result.sre_l == pytest.approx(-5.0)
        assert result.sre_g == pytest.approx(4.0)
        assert not result.shares_species
        assert "share no species in common" in caplog.text

    def test_quiet_suppresses_warning(self, comm_x, caplog):
        """Test that quiet silences the no-shared-species warning."""
        with caplog.at_level(logging.WARNING):
            price_part(data_setup([comm_x, _community(C=4)]), quiet=True)

        assert "share no species" not in caplog.text

    def test_identical_communities(self, comm_x):
        """Test that identical communities give an all-zero partition."""
        result = price_part(data_setup([comm_x, comm_x.copy()]))

        assert all(value == pytest.approx(0.0) for value in result.primary())

    def test_identity_law_random_communities(self):
        """Test that the components sum to the change in function."""
        rng = np.random.default_rng(7)
        pool = [f"sp{i}" for i in range(30)]
        calculator = PartitionCalculator(quiet=True)

        for _ in range(50):
            x_species = rng.choice(pool, size=rng.integers(1, 20), replace=False)
            y_species = rng.choice(pool, size=rng.integers(1, 20), replace=False)
            x = pd.DataFrame({'species': x_species, 'func': rng.exponential(10.0, len(x_species))})
            y = pd.DataFrame({'species': y_species, 'func': rng.exponential(10.0, len(y_species))})

            result = calculator.calculate(data_setup([x, y]))

            assert check_identity(result)
            assert result.sl == pytest.approx(result.sre_l + result.sie_l)
            assert result.sg == pytest.approx(result.sre_g + result.sie_g)
            assert result.sr == pytest.approx(result.sre_l + result.sre_g)
            assert result.ce == pytest.approx(result.sie_l + result.sie_g + result.cde)

    def test_species_level(self, comm_x, comm_y):
        """Test species contributions add up to the components."""
        result, species = price_part(data_setup([comm_x, comm_y]), species_level=True)

        assert list(species.columns) == ['species', 'SRE.L', 'SRE.G', 'SIE.L', 'SIE.G', 'CDE']
        assert species['species'].tolist() == ['B', 'A', 'C']
        assert species['SRE.L'].tolist() == pytest.approx([-1.5, -1.0, 0.0])
        assert species['SRE.G'].tolist() == pytest.approx([1.5, 0.0, 2.0])
        assert species['SIE.L'].tolist() == pytest.approx([0.25, 0.25, 0.0])
        assert species['SIE.G'].tolist() == pytest.approx([0.25, 0.0, 0.25])

        sums = species[['SRE.L', 'SRE.G', 'SIE.L', 'SIE.G', 'CDE']].sum()
        assert tuple(sums) == pytest.approx(result.primary())

    def test_empty_community_raises(self, comm_y):
        """Test the default policy for a community without species."""
        comm = data_setup([_empty_community(), comm_y])

        with pytest.raises(EmptyCommunityError) as exc_info:
            price_part(comm)
        assert exc_info.value.side == 'X'

    def test_empty_community_zero_policy(self):
        """Test that the zero convention keeps the identity law."""
        comm = data_setup([_empty_community(), _community(A=2)])
        result = price_part(comm, empty_community='zero', quiet=True)

        assert result.sre_l == 0.0
        assert result.sre_g == pytest.approx(2.0)
        assert result.sie_l == 0.0
        assert result.sie_g == pytest.approx(0.0)
        assert check_identity(result)

        both_empty = data_setup([_empty_community(), _empty_community()])
        result = price_part(both_empty, empty_community='zero', quiet=True)
        assert result.primary() == (0.0, 0.0, 0.0, 0.0, 0.0)
        assert not any(np.isnan(result.primary()))

    def test_missing_columns(self):
        """Test that a table without the normalized columns is rejected."""
        with pytest.raises(SchemaError):
            price_part(pd.DataFrame({'species': ['A'], 'func.x': [1.0]}))

    def test_negative_function_rejected(self):
        """Test that a normalized table with a negative function value is rejected."""
        comm = pd.DataFrame({
            'species': ['B', 'A', 'N', 'C'],
            'func.x': [3.0, 2.0, -1.0, 0.0],
            'func.y': [3.0, 0.0, 0.0, 4.0],
            'wvec': [1, 0, 0, 0],
            'xvec': [1, 1, 0, 0],
            'yvec': [1, 0, 0, 1],
        })
        with pytest.raises(SchemaError, match=r"\['N'\]"):
            price_part(comm)

    def test_invalid_policy(self):
        """Test that an unknown empty-community policy is rejected."""
        with pytest.raises(ValueError):
            PartitionCalculator(empty_community='ignore')


class TestPartitionResult:
    """Test result conversions and aggregations."""

    @pytest.fixture
    def result(self, comm_x, comm_y):
        return price_part(data_setup([comm_x, comm_y]))

    def test_to_dict_order(self, result):
        """Test the dotted field labels and their order."""
        data = result.to_dict()
        assert list(data) == list(PARTITION_FIELDS)
        assert data['SRE.L'] == pytest.approx(-2.5)
        assert data['c.rich'] == 1

    def test_round_trip(self, result):
        """Test rebuilding a result from its dictionary."""
        assert PartitionResult.from_dict(result.to_dict()) == result

    def test_to_series(self, result):
        """Test the series view used for tabular output."""
        series = result.to_series()
        assert list(series.index) == list(PARTITION_FIELDS)
        assert series['SG'] == pytest.approx(4.0)

    def test_aggregations(self, result):
        """Test the BEF, CAFE and sCAFE groupings."""
        assert result.bef() == pytest.approx({'SR': 1.0, 'CE': 1.0})
        assert result.cafe() == pytest.approx({'SRE.L': -2.5, 'SRE.G': 3.5, 'SIE': 1.0, 'CDE': 0.0})
        assert result.scafe() == pytest.approx({'SL': -2.0, 'SG': 4.0, 'CDE': 0.0})

    def test_identity_residual(self, result):
        """Test the residual of the identity law."""
        assert result.identity_residual == pytest.approx(0.0, abs=1e-12)
        assert result.total_change == 2.0
