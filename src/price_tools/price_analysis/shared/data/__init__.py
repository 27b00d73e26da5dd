"""Data loading and table utilities for Price analyses."""

from .table_loader import TableLoader
from .columns import group_columns, clean_time_vars

__all__ = ['TableLoader', 'group_columns', 'clean_time_vars']
