"""Shared fixtures for Price partition tests."""

import logging

import numpy as np
import pandas as pd
import pytest

from price_tools.config import reset_config
from price_tools.infrastructure.logging.handlers import ConsoleHandler, FileHandler


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests independent of any config file on the machine."""
    monkeypatch.delenv('PRICE_TOOLS_CONFIG', raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def restore_root_logger():
    """Remove handlers installed by setup_logging and restore the root level."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if isinstance(handler, (ConsoleHandler, FileHandler)):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def comm_x():
    """Community X: A=2, B=3."""
    return pd.DataFrame({'species': ['A', 'B'], 'func': [2.0, 3.0]})


@pytest.fixture
def comm_y():
    """Community Y: B=3, C=4."""
    return pd.DataFrame({'species': ['B', 'C'], 'func': [3.0, 4.0]})


@pytest.fixture
def site_table():
    """Long table of three sites; site c shares no species with a or b."""
    return pd.DataFrame({
        'Site': ['a', 'a', 'b', 'b', 'c'],
        'Species': ['A', 'B', 'B', 'C', 'D'],
        'Function': [2.0, 3.0, 3.0, 4.0, 1.0],
    })


@pytest.fixture
def random_table():
    """Long table of 6 plots over 2 years with overlapping random species pools."""
    rng = np.random.default_rng(42)
    rows = []
    for plot in ['p1', 'p2', 'p3']:
        for year in [2019, 2020]:
            species = rng.choice(list('ABCDEFGHIJ'), size=6, replace=False)
            for sp in species:
                rows.append({
                    'Plot': plot,
                    'Year': year,
                    'Species': sp,
                    'Function': float(rng.gamma(2.0, 3.0)),
                })
    return pd.DataFrame(rows)
