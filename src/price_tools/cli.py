"""
Price partition CLI tool.

This tool provides command-line access to single-pair and pairwise Price
equation partitions and to the distance matrix size estimate.
"""

import click

from price_tools.config.config import Config
from price_tools.exceptions import PriceToolsError
from price_tools.infrastructure.logging import setup_logging
from price_tools.price_analysis.methods.price import (
    PriceAnalyzer, data_setup, dist_mat_size, price_part
)
from price_tools.price_analysis.shared.data import TableLoader

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


def _fail(action: str, error: Exception):
    click.echo(f"❌ Failed to {action}: {error}", err=True)
    raise click.Abort()


@click.group()
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='YAML configuration file')
@click.option('--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False),
              help='Minimum log level')
@click.option('--log-file', type=click.Path(dir_okay=False), help='Also write JSON logs to this file')
@click.pass_context
def cli(ctx, config_file, log_level, log_file):
    """Price equation partitions for community ecology."""
    settings = Config(config_file)
    setup_logging(settings, log_file=log_file, log_level=log_level)
    ctx.obj = {'settings': settings}


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--group', '-g', 'groups', multiple=True, required=True,
              help='Grouping column (repeat for several)')
@click.option('--species', '-s', help='Species column name')
@click.option('--func', '-f', help='Function column name')
@click.option('--aggregate', type=click.Choice(['sum', 'mean']), help='Rule for repeated species entries')
@click.option('--n-jobs', type=int, help='Parallel jobs (1 = sequential, -1 = all cores)')
@click.option('--strict', is_flag=True, help='Fail on the first pair that cannot be partitioned')
@click.option('--species-level', is_flag=True, help='Also save species contributions')
@click.option('--distances', is_flag=True, help='Also build distance matrices')
@click.option('--allow-large-matrix', is_flag=True, help='Build distance matrices above the size limit')
@click.option('--empty-community', type=click.Choice(['raise', 'zero']),
              help='Handling of communities without species')
@click.option('--output-dir', '-o', type=click.Path(file_okay=False), help='Output directory')
@click.option('--format', 'fmt', type=click.Choice(['csv', 'parquet']), help='Output table format')
@click.pass_context
def pairwise(ctx, input_path, groups, species, func, aggregate, n_jobs, strict, species_level,
             distances, allow_large_matrix, empty_community, output_dir, fmt):
    """Partition every pair of communities in INPUT_PATH."""
    settings = ctx.obj['settings']
    parameters = {
        'species_col': species,
        'func_col': func,
        'aggregate': aggregate,
        'n_jobs': n_jobs,
        'empty_community': empty_community,
        # flags only switch settings on; configured values apply otherwise
        'strict': True if strict else None,
        'species_level': True if species_level else None,
        'allow_large_matrix': True if allow_large_matrix else None,
    }
    parameters = {key: value for key, value in parameters.items() if value is not None}

    try:
        analyzer = PriceAnalyzer(config=settings)
        result = analyzer.analyze(
            input_path, list(groups),
            distances=distances,
            save_results=True,
            output_dir=output_dir,
            format=fmt,
            **parameters
        )
    except (PriceToolsError, FileNotFoundError, ValueError) as e:
        _fail("run pairwise partitions", e)

    click.echo(f"✅ Partitioned {result.n_pairs} community pairs "
               f"({result.metadata['runtime_seconds']:.2f}s)")
    for warning in result.warnings:
        click.echo(f"⚠️  {warning}")
    click.echo(f"Results saved to {output_dir or settings.get('output.output_dir')}")


@cli.command()
@click.argument('input_x', type=click.Path(exists=True, dir_okay=False))
@click.argument('input_y', type=click.Path(exists=True, dir_okay=False), required=False)
@click.option('--species', '-s', default='species', show_default=True, help='Species column name')
@click.option('--func', '-f', default='func', show_default=True,
              help='Function column name of two-table input')
@click.option('--func-x', default='func.x', show_default=True,
              help='Community X function column of one-table input')
@click.option('--func-y', default='func.y', show_default=True,
              help='Community Y function column of one-table input')
@click.option('--aggregate', type=click.Choice(['sum', 'mean']), default='sum', show_default=True)
@click.option('--empty-community', type=click.Choice(['raise', 'zero']), default='raise', show_default=True)
@click.option('--species-level', is_flag=True, help='Also print species contributions')
def partition(input_x, input_y, species, func, func_x, func_y, aggregate, empty_community, species_level):
    """Partition the change in function between two communities.

    INPUT_X alone is a table with species, X function and Y function columns;
    INPUT_X and INPUT_Y are two tables with species and function columns.
    """
    loader = TableLoader()
    try:
        tables = [loader.load(input_x)]
        if input_y is not None:
            tables.append(loader.load(input_y))

        comm = data_setup(tables, aggregate=aggregate, species=species, func=func,
                          func_x=func_x, func_y=func_y)
        output = price_part(comm, species_level=species_level, empty_community=empty_community)
    except (PriceToolsError, FileNotFoundError, ValueError) as e:
        _fail("partition communities", e)

    result, species_table = output if species_level else (output, None)

    for name, value in result.to_dict().items():
        click.echo(f"{name:<8} {value:g}")

    if species_table is not None:
        click.echo("")
        click.echo(species_table.to_string(index=False))


@cli.command('matrix-size')
@click.argument('n', type=click.IntRange(min=0))
@click.pass_context
def matrix_size(ctx, n):
    """Estimate the size of a distance matrix over N pairs."""
    size_gb = dist_mat_size(n)
    limit_gb = ctx.obj['settings'].get('distance.max_matrix_gb', 1.0)

    click.echo(f"{size_gb:.4f} GB")
    if size_gb > limit_gb:
        click.echo(f"⚠️  Above the {limit_gb} GB limit; building requires --allow-large-matrix")


if __name__ == '__main__':
    cli()
