"""
Reshaping between wide and long (tidy) table layouts.

A tidy table stores one observation per row and one variable per column.
Wide tables spread a variable (typically time) across column labels;
gather() folds those columns into key/value pairs and spread() reverses
the operation. The heavy lifting is done by pandas ``melt`` and ``pivot``.
"""

import numbers
import re

import numpy as np
import pandas as pd

from tidydiag.logging_config import get_run_logger

log = get_run_logger(__name__)

_NUMERIC_LABEL = re.compile(r"^[+-]?\d+(\.\d+)?$")


def _as_list(cols):
    if cols is None:
        return []
    if isinstance(cols, (str, numbers.Number)):
        return [cols]
    return list(cols)


def _require_columns(df, cols):
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise KeyError(f"Columns not found: {missing}")


def _looks_like_value(label):
    """True for column labels that are data values (e.g. years)."""
    if isinstance(label, bool):
        return False
    if isinstance(label, numbers.Number):
        return True
    return isinstance(label, str) and bool(_NUMERIC_LABEL.match(label.strip()))


def gather(df, id_cols, key="key", value="value", columns=None,
           dropna=False, convert=True):
    """Fold wide columns into key/value rows.

    Parameters
    ----------
    df : pd.DataFrame
        Wide table.
    id_cols : str or list
        Columns identifying each row; repeated on every output row.
    key, value : str
        Names of the new label and value columns.
    columns : list, optional
        Columns to gather. Default: every column not in id_cols.
    dropna : bool
        Drop rows whose value is missing.
    convert : bool
        Convert key labels to numbers when every label is numeric.

    Returns
    -------
    pd.DataFrame
        Columns: id_cols + [key, value]. Rows keep the original row order,
        and within a row the original column order.
    """
    id_cols = _as_list(id_cols)
    _require_columns(df, id_cols)

    if key == value:
        raise ValueError(f"key and value must differ, both are {key!r}")
    clashes = [c for c in (key, value) if c in id_cols]
    if clashes:
        raise ValueError(f"key/value names collide with id columns: {clashes}")

    if columns is None:
        columns = [c for c in df.columns if c not in id_cols]
    else:
        columns = _as_list(columns)
        _require_columns(df, columns)
    if not columns:
        raise ValueError("No columns to gather")

    long = df.melt(id_vars=id_cols, value_vars=columns,
                   var_name=key, value_name=value)

    # melt emits column-major order; restore row-major order.
    long["_row"] = np.tile(np.arange(len(df)), len(columns))
    long["_col"] = np.repeat(np.arange(len(columns)), len(df))
    long = (
        long.sort_values(["_row", "_col"], kind="mergesort")
        .drop(columns=["_row", "_col"])
        .reset_index(drop=True)
    )

    if convert and not pd.api.types.is_numeric_dtype(long[key]):
        try:
            long[key] = pd.to_numeric(long[key])
        except (ValueError, TypeError):
            log.debug("gather: key labels of %r are not numeric; kept as-is", key)

    if dropna:
        n_before = len(long)
        long = long.dropna(subset=[value]).reset_index(drop=True)
        log.debug("gather: dropped %d missing values", n_before - len(long))

    return long


def spread(df, key, value, id_cols=None, fill=None):
    """Spread key/value rows into one column per distinct key.

    Parameters
    ----------
    df : pd.DataFrame
        Long table.
    key : str
        Column whose distinct values become column labels.
    value : str
        Column supplying the cell values.
    id_cols : list, optional
        Columns identifying an output row. Default: every column other than
        key and value.
    fill : scalar, optional
        Replacement for cells with no observation.

    Returns
    -------
    pd.DataFrame
        Rows in order of first appearance of each identifier, key columns in
        order of first appearance of each key.

    Raises
    ------
    ValueError
        If an identifier/key combination occurs more than once, if the key
        column has missing values, if a key value names an identifier
        column, or if no identifier column remains.
    """
    _require_columns(df, [key, value])
    if id_cols is None:
        id_cols = [c for c in df.columns if c not in (key, value)]
    else:
        id_cols = _as_list(id_cols)
        _require_columns(df, id_cols)
    if not id_cols:
        raise ValueError("spread needs at least one identifier column")

    if df[key].isna().any():
        raise ValueError(f"Key column {key!r} has {int(df[key].isna().sum())} missing values")

    dup = df.duplicated(subset=id_cols + [key], keep=False)
    if dup.any():
        raise ValueError(
            f"{int(dup.sum())} rows share an identifier/key combination; "
            f"each ({', '.join(map(str, id_cols))}, {key}) must be unique"
        )

    keys = list(pd.unique(df[key]))
    clashes = [k for k in keys if k in id_cols]
    if clashes:
        raise ValueError(f"key values of {key!r} collide with id columns: {clashes}")

    wide = df.pivot(index=id_cols, columns=key, values=value)
    wide.columns.name = None
    wide = wide.reset_index()

    order = df[id_cols].drop_duplicates()
    wide = order.merge(wide, on=id_cols, how="left")
    wide = wide[id_cols + keys].reset_index(drop=True)

    if fill is not None:
        wide[keys] = wide[keys].fillna(fill)

    return wide


def check_tidy(df, id_cols):
    """List the ways a table departs from the tidy layout.

    Parameters
    ----------
    df : pd.DataFrame
    id_cols : str or list
        Columns that should jointly identify one observation.

    Returns
    -------
    list[str]
        Human-readable issues; empty when the table is tidy.
    """
    id_cols = _as_list(id_cols)
    _require_columns(df, id_cols)
    issues = []

    for col in id_cols:
        n_missing = int(df[col].isna().sum())
        if n_missing:
            issues.append(f"identifier column {col!r} has {n_missing} missing values")

    if id_cols:
        n_dup = int(df.duplicated(subset=id_cols, keep=False).sum())
        if n_dup:
            issues.append(
                f"{n_dup} rows share identifier values {id_cols}; "
                "each observation should occupy one row"
            )

    value_labels = [c for c in df.columns if c not in id_cols and _looks_like_value(c)]
    if value_labels:
        shown = ", ".join(str(c) for c in value_labels[:5])
        more = "" if len(value_labels) <= 5 else f" (+{len(value_labels) - 5} more)"
        issues.append(
            f"column labels look like values of a variable: {shown}{more}; "
            "gather them into key/value columns"
        )

    return issues


def is_tidy(df, id_cols):
    """Return True when check_tidy() finds no issues."""
    return not check_tidy(df, id_cols)
