"""
Shared fixtures for tidydiag tests.

Provides small synthetic tables with known structure so each test module
can focus on verifying logic against known inputs.
"""

import os
import tempfile

import numpy as np
import pandas as pd
import pytest

from tidydiag.logging_config import reset_logging


@pytest.fixture(autouse=True)
def _isolate_logging():
    """Keep root-logger handlers from leaking between tests."""
    yield
    reset_logging()


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory(prefix="tidydiag_test_") as d:
        yield d


@pytest.fixture
def wide_df():
    """Three series over four years, one missing cell (B, 2021)."""
    return pd.DataFrame({
        "series": ["A", "B", "C"],
        2020: [1.0, 10.0, 100.0],
        2021: [2.0, np.nan, 200.0],
        2022: [3.0, 30.0, 300.0],
        2023: [4.0, 40.0, 400.0],
    })


@pytest.fixture
def long_df():
    """Tidy equivalent of wide_df (missing cell kept as NaN)."""
    rows = []
    values = {
        "A": [1.0, 2.0, 3.0, 4.0],
        "B": [10.0, np.nan, 30.0, 40.0],
        "C": [100.0, 200.0, 300.0, 400.0],
    }
    for series, vals in values.items():
        for year, val in zip(range(2020, 2024), vals):
            rows.append({"series": series, "year": year, "value": val})
    return pd.DataFrame(rows)


@pytest.fixture
def grouped_curves():
    """Two groups with known shapes: a straight line and a sine curve.

    - line: y = 1 + 0.5·x + small noise
    - wave: y = sin(x) + small noise
    """
    rng = np.random.default_rng(42)
    x = np.linspace(0.0, 10.0, 50)
    line = 1.0 + 0.5 * x + rng.normal(0, 0.05, x.size)
    wave = np.sin(x) + rng.normal(0, 0.05, x.size)
    return pd.concat([
        pd.DataFrame({"group": "line", "x": x, "y": line}),
        pd.DataFrame({"group": "wave", "x": x, "y": wave}),
    ], ignore_index=True)


@pytest.fixture
def regression_df():
    """Linear data y = 2 + 3·x + noise with one gross outlier at row 'r7'."""
    rng = np.random.default_rng(7)
    n = 30
    x = np.linspace(0.0, 10.0, n)
    y = 2.0 + 3.0 * x + rng.normal(0, 0.5, n)
    y[7] += 15.0
    return pd.DataFrame(
        {"x": x, "y": y, "group": np.where(np.arange(n) % 2 == 0, "even", "odd")},
        index=[f"r{i}" for i in range(n)],
    )


@pytest.fixture
def output_dir(tmp_dir):
    """Run-level output directory inside tmp_dir."""
    path = os.path.join(tmp_dir, "outputs")
    os.makedirs(path, exist_ok=True)
    return path
