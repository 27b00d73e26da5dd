"""Tests for the price-tools command line."""

import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

from price_tools.cli import cli
from price_tools.price_analysis.methods.price.distance import dist_mat_size


@pytest.fixture
def runner(restore_root_logger):
    return CliRunner()


@pytest.fixture
def site_csv(tmp_path, site_table):
    path = tmp_path / 'sites.csv'
    site_table.to_csv(path, index=False)
    return path


class TestPairwiseCommand:
    """Test the pairwise command."""

    def test_pairwise(self, runner, site_csv, tmp_path):
        out_dir = tmp_path / 'out'
        result = runner.invoke(cli, [
            '--log-level', 'WARNING',
            'pairwise', str(site_csv), '-g', 'Site', '-o', str(out_dir), '--distances',
        ])

        assert result.exit_code == 0, result.output
        assert "Partitioned 6 community pairs" in result.output
        table = pd.read_csv(out_dir / 'pairwise_price.csv')
        assert len(table) == 6
        assert (out_dir / 'dist5.npy').exists()
        assert (out_dir / 'metadata.json').exists()

    def test_pairwise_config_file(self, runner, site_table, tmp_path):
        data = site_table.rename(columns={'Species': 'taxon'})
        data_path = tmp_path / 'sites.tsv'
        data.to_csv(data_path, index=False, sep='\t')
        config_path = tmp_path / 'custom.yml'
        config_path.write_text(yaml.safe_dump({'partition': {'species_col': 'taxon'}}))

        result = runner.invoke(cli, [
            '--config', str(config_path), '--log-level', 'WARNING',
            'pairwise', str(data_path), '-g', 'Site', '-o', str(tmp_path / 'out'),
            '--format', 'parquet', '--species-level',
        ])

        assert result.exit_code == 0, result.output
        assert (tmp_path / 'out' / 'pairwise_price.parquet').exists()
        assert (tmp_path / 'out' / 'species_contributions.parquet').exists()

    def test_pairwise_missing_column(self, runner, site_csv, tmp_path):
        result = runner.invoke(cli, [
            '--log-level', 'ERROR',
            'pairwise', str(site_csv), '-g', 'Plot', '-o', str(tmp_path / 'out'),
        ])

        assert result.exit_code != 0
        assert "Failed to run pairwise partitions" in result.output

    def test_pairwise_requires_group(self, runner, site_csv):
        result = runner.invoke(cli, ['pairwise', str(site_csv)])
        assert result.exit_code != 0


class TestPartitionCommand:
    """Test the single-pair partition command."""

    def test_two_tables(self, runner, comm_x, comm_y, tmp_path):
        comm_x.to_csv(tmp_path / 'x.csv', index=False)
        comm_y.to_csv(tmp_path / 'y.csv', index=False)

        result = runner.invoke(cli, [
            '--log-level', 'WARNING',
            'partition', str(tmp_path / 'x.csv'), str(tmp_path / 'y.csv'),
        ])

        assert result.exit_code == 0, result.output
        lines = dict(line.split() for line in result.output.splitlines() if len(line.split()) == 2)
        assert float(lines['SRE.L']) == pytest.approx(-2.5)
        assert float(lines['SRE.G']) == pytest.approx(3.5)
        assert float(lines['SIE.L']) == pytest.approx(0.5)
        assert float(lines['c.rich']) == 1

    def test_one_table_species_level(self, runner, tmp_path):
        table = pd.DataFrame({'species': ['A', 'B'], 'func.x': [2.0, 3.0], 'func.y': [0.0, 3.0]})
        table.to_csv(tmp_path / 'pair.csv', index=False)

        result = runner.invoke(cli, [
            '--log-level', 'WARNING',
            'partition', str(tmp_path / 'pair.csv'), '--species-level',
        ])

        assert result.exit_code == 0, result.output
        assert "species" in result.output
        assert "CDE" in result.output

    def test_empty_community(self, runner, tmp_path):
        table = pd.DataFrame({'species': ['A'], 'func.x': [0.0], 'func.y': [2.0]})
        table.to_csv(tmp_path / 'pair.csv', index=False)
        args = ['--log-level', 'ERROR', 'partition', str(tmp_path / 'pair.csv')]

        result = runner.invoke(cli, args)
        assert result.exit_code != 0
        assert "Failed to partition communities" in result.output

        result = runner.invoke(cli, args + ['--empty-community', 'zero'])
        assert result.exit_code == 0, result.output


class TestMatrixSizeCommand:
    """Test the matrix-size command."""

    def test_small(self, runner):
        result = runner.invoke(cli, ['--log-level', 'WARNING', 'matrix-size', '100'])

        assert result.exit_code == 0
        assert "0.0000 GB" in result.output
        assert "Above" not in result.output

    def test_over_limit(self, runner):
        result = runner.invoke(cli, ['--log-level', 'WARNING', 'matrix-size', '20000'])

        assert result.exit_code == 0
        assert f"{dist_mat_size(20000):.4f} GB" in result.output
        assert "--allow-large-matrix" in result.output
