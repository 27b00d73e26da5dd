# src/price_tools/config/defaults.py
"""Default configuration values for Price partition runs."""

from pathlib import Path

LOGS_DIR = Path.cwd() / 'logs'
OUTPUT_DIR = Path.cwd() / 'outputs' / 'price'

# Single-pair partition settings
PARTITION = {
    'aggregate': 'sum',          # sum, mean
    'species_col': 'Species',
    'func_col': 'Function',
    'empty_community': 'raise',  # raise, zero
    'species_level': False,
    'quiet': False               # silence the no-shared-species warning
}

# Pairwise orchestration settings
PAIRWISE = {
    'strict': False,                   # re-raise per-pair computation errors
    'exclude_zero_partitions': False,  # legacy filter: drop all-zero partitions
    'n_jobs': 1,                       # 1 = sequential, -1 = all cores
    'backend': 'loky',                 # joblib backend: loky, threading, multiprocessing
    'chunk_size': 16                   # reference communities per dispatched batch
}

# Distance matrix settings
DISTANCE = {
    'max_matrix_gb': 1.0,
    'allow_large_matrix': False
}

LOGGING = {
    'level': 'INFO',
    'console': True,
    'log_file': None,  # defaults to <logs_dir>/price_tools.log when file logging is on
    'file_logging': False,
    'logs_dir': str(LOGS_DIR),
    'max_file_size': 100 * 1024 * 1024,  # 100MB
    'backup_count': 5
}

OUTPUT = {
    'output_dir': str(OUTPUT_DIR),
    'format': 'csv',  # csv, parquet
    'save_species_level': True,
    'save_distances': True
}
