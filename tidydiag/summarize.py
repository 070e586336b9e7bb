"""
Filtering, mutating and grouped summaries of tidy tables.

Thin, predictable wrappers over pandas boolean indexing, ``assign`` and
``groupby`` that return fresh frames with stable column order.
"""

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats

from tidydiag import config
from tidydiag.logging_config import get_run_logger
from tidydiag.reshape import _as_list, _require_columns

log = get_run_logger(__name__)

SUMMARY_COLUMNS = ["n", "mean", "sd", "se", "median", "min", "max", "ci_low", "ci_high"]


def filter_rows(df, query=None, **equals):
    """Keep rows matching a query string and/or column equalities.

    Args:
        df: Input DataFrame.
        query: Optional pandas query expression, e.g. ``"year >= 2015"``.
        **equals: column=value pairs; list, tuple or set values test
            membership instead of equality.

    Returns:
        Filtered copy of df (original index kept).
    """
    _require_columns(df, list(equals))

    mask = pd.Series(True, index=df.index)
    for col, expected in equals.items():
        if isinstance(expected, (list, tuple, set, frozenset)):
            mask &= df[col].isin(list(expected))
        else:
            mask &= df[col] == expected

    out = df[mask]
    if query:
        out = out.query(query)

    log.debug("filter_rows: kept %d of %d rows", len(out), len(df))
    return out.copy()


def mutate(df, **columns):
    """Return a copy of df with new or replaced columns.

    Values may be scalars, array-likes or callables that receive the
    (partially mutated) frame, as with ``DataFrame.assign``.
    """
    return df.assign(**columns)


def count_by(df, by):
    """Number of rows per group, with group columns first and ``n`` last."""
    by = _as_list(by)
    _require_columns(df, by)
    return df.groupby(by, dropna=False, sort=True).size().reset_index(name="n")


def group_summarize(df, by, value, ci_level=None):
    """Summarise a numeric column per group.

    Missing values are excluded before summarising. Groups with a single
    observation get NaN spread and interval columns; groups with no
    observations are dropped.

    Parameters
    ----------
    df : pd.DataFrame
    by : str or list
        Grouping column(s).
    value : str
        Numeric column to summarise.
    ci_level : float, optional
        Two-sided confidence level of the t interval for the mean.
        Default: config.CI_LEVEL.

    Returns
    -------
    pd.DataFrame
        Columns: by + [n, mean, sd, se, median, min, max, ci_low, ci_high],
        sorted by the group keys.
    """
    if ci_level is None:
        ci_level = config.CI_LEVEL
    if not 0 < ci_level < 1:
        raise ValueError(f"ci_level must be in (0, 1), got {ci_level}")

    by = _as_list(by)
    _require_columns(df, by + [value])
    if not pd.api.types.is_numeric_dtype(df[value]):
        raise ValueError(f"Column {value!r} is not numeric (dtype={df[value].dtype})")

    grouped = df.groupby(by, dropna=False, sort=True)[value]
    summary = grouped.agg(
        n="count",
        mean="mean",
        sd="std",
        median="median",
        min="min",
        max="max",
    ).reset_index()

    empty = summary["n"] == 0
    if empty.any():
        log.warning(
            "group_summarize: dropping %d group(s) with no %r values",
            int(empty.sum()), value,
        )
        summary = summary[~empty].reset_index(drop=True)

    n = summary["n"].astype(float)
    summary["se"] = summary["sd"] / np.sqrt(n)

    dof = np.where(n >= 2, n - 1, np.nan)
    t_crit = scipy_stats.t.ppf(1 - (1 - ci_level) / 2, dof)
    summary["ci_low"] = summary["mean"] - t_crit * summary["se"]
    summary["ci_high"] = summary["mean"] + t_crit * summary["se"]

    single = summary["n"] < 2
    summary.loc[single, ["sd", "se", "ci_low", "ci_high"]] = np.nan

    summary["n"] = summary["n"].astype(int)
    return summary[by + SUMMARY_COLUMNS]
