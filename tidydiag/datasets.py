"""
Synthetic example datasets.

Every generator is deterministic for a given seed so the runner reproduces
the same tables and figures on each invocation.
"""

import numpy as np
import pandas as pd

from tidydiag import config


def make_wide_timeseries(series=None, years=None, seed=None,
                         noise_sd=None, missing_fraction=None):
    """Build a wide table: one row per series, one column per year.

    Parameters
    ----------
    series : dict, optional
        name → (starting level, annual growth rate).
        Default: config.EXAMPLE_SERIES.
    years : iterable of int, optional
        Default: config.EXAMPLE_YEARS.
    seed : int, optional
        Default: config.RANDOM_SEED.
    noise_sd : float, optional
        Multiplicative log-normal noise sd. Default: config.EXAMPLE_NOISE_SD.
    missing_fraction : float, optional
        Share of year cells set to NaN. Default:
        config.EXAMPLE_MISSING_FRACTION.

    Returns
    -------
    pd.DataFrame
        Columns: ``series`` followed by one column per year (int labels).
    """
    if series is None:
        series = config.EXAMPLE_SERIES
    if years is None:
        years = config.EXAMPLE_YEARS
    if seed is None:
        seed = config.RANDOM_SEED
    if noise_sd is None:
        noise_sd = config.EXAMPLE_NOISE_SD
    if missing_fraction is None:
        missing_fraction = config.EXAMPLE_MISSING_FRACTION

    years = list(years)
    rng = np.random.default_rng(seed)
    t = np.arange(len(years))

    rows = []
    for name, (level, growth) in series.items():
        values = level * np.exp(growth * t) * rng.lognormal(0.0, noise_sd, len(years))
        rows.append([name] + list(np.round(values, 3)))

    wide = pd.DataFrame(rows, columns=["series"] + years)

    n_cells = len(series) * len(years)
    n_missing = int(round(n_cells * missing_fraction))
    if n_missing:
        flat = rng.choice(n_cells, size=n_missing, replace=False)
        for cell in flat:
            row, col = divmod(int(cell), len(years))
            wide.iat[row, col + 1] = np.nan

    return wide


def make_grouped_curves(groups=None, n_per_group=None, seed=None, noise_sd=None):
    """Build a long table of noisy nonlinear curves, one per group.

    Each group follows its own response shape over x in [0, 10]:
    a saturating curve, a hump and a damped oscillation (cycled when
    more groups are requested).

    Returns
    -------
    pd.DataFrame
        Columns: group, x, y. Sorted by group then x.
    """
    if groups is None:
        groups = config.EXAMPLE_CURVE_GROUPS
    if n_per_group is None:
        n_per_group = config.EXAMPLE_POINTS_PER_GROUP
    if seed is None:
        seed = config.RANDOM_SEED
    if noise_sd is None:
        noise_sd = config.EXAMPLE_CURVE_NOISE_SD

    shapes = [
        lambda x: 3.0 * (1 - np.exp(-0.5 * x)),
        lambda x: 4.0 * np.exp(-((x - 5.0) ** 2) / 6.0),
        lambda x: 2.0 + np.sin(x) * np.exp(-0.15 * x) * 2.0,
    ]

    rng = np.random.default_rng(seed)
    frames = []
    for i, group in enumerate(groups):
        x = np.sort(rng.uniform(0.0, 10.0, n_per_group))
        y = shapes[i % len(shapes)](x) + rng.normal(0.0, noise_sd, n_per_group)
        frames.append(pd.DataFrame({"group": group, "x": x, "y": y}))

    return pd.concat(frames, ignore_index=True)


def make_regression_data(n=None, seed=None, n_outliers=1, coefs=None, noise_sd=None):
    """Build a regression dataset from a known linear model.

    y = intercept + x1·b1 + x2·b2 + category effect + noise, with
    ``n_outliers`` rows shifted far from the regression surface and placed
    at high-leverage x1 values.

    Returns
    -------
    pd.DataFrame
        Columns: x1, x2, category, y, is_outlier.
    """
    if n is None:
        n = config.EXAMPLE_REGRESSION_N
    if seed is None:
        seed = config.RANDOM_SEED
    if coefs is None:
        coefs = config.EXAMPLE_REGRESSION_COEFS
    if noise_sd is None:
        noise_sd = config.EXAMPLE_REGRESSION_NOISE_SD
    if n_outliers < 0 or n_outliers >= n:
        raise ValueError(f"n_outliers must be in [0, {n}), got {n_outliers}")

    rng = np.random.default_rng(seed)
    x1 = rng.normal(5.0, 2.0, n)
    x2 = rng.uniform(0.0, 10.0, n)
    category = rng.choice(["a", "b", "c"], size=n)
    category_effect = pd.Series(category).map({"a": 0.0, "b": 1.0, "c": -1.0}).to_numpy()

    y = (
        coefs["intercept"]
        + coefs["x1"] * x1
        + coefs["x2"] * x2
        + category_effect
        + rng.normal(0.0, noise_sd, n)
    )

    is_outlier = np.zeros(n, dtype=bool)
    if n_outliers:
        idx = rng.choice(n, size=n_outliers, replace=False)
        x1[idx] = x1.max() + 3.0
        y[idx] = (
            coefs["intercept"] + coefs["x1"] * x1[idx] + coefs["x2"] * x2[idx]
            + category_effect[idx]
            - config.EXAMPLE_OUTLIER_SHIFT * noise_sd
        )
        is_outlier[idx] = True

    return pd.DataFrame({
        "x1": x1,
        "x2": x2,
        "category": category,
        "y": y,
        "is_outlier": is_outlier,
    })
