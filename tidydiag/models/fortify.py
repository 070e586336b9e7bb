"""
Model fortification: per-observation diagnostics from a fitted linear model.

``fortify()`` returns the rows the model was fitted on, augmented with
columns named after the conventional fortified-model layout:

    .hat       leverage (diagonal of the hat matrix)
    .sigma     residual standard deviation with the observation left out
    .cooksd    Cook's distance
    .fitted    fitted values
    .resid     raw residuals
    .stdresid  internally studentized (standardized) residuals
    .studresid externally studentized residuals
    .dffits    DFFITS influence measure

All statistics come from statsmodels' ``OLSInfluence``.
"""

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from statsmodels.stats.outliers_influence import OLSInfluence

from tidydiag import config
from tidydiag.logging_config import get_run_logger
from tidydiag.reshape import _require_columns

log = get_run_logger(__name__)

AUGMENT_COLUMNS = [
    ".hat", ".sigma", ".cooksd", ".fitted", ".resid",
    ".stdresid", ".studresid", ".dffits",
]

_CONSTANT_NAMES = ("const", "Intercept")


def fit_linear_model(data, formula):
    """Fit an OLS model from a formula such as ``"y ~ x1 + C(group)"``.

    Rows with missing values in any model variable are dropped.
    """
    results = smf.ols(formula, data=data).fit()
    log.debug(
        "OLS %s: n=%d, R²=%.3f", formula, int(results.nobs), results.rsquared,
    )
    return results


def _model_rows(results, data):
    """Rows of the model's data, in model order."""
    model_data = results.model.data
    row_labels = getattr(model_data, "row_labels", None)
    nobs = int(results.nobs)

    if data is None:
        data = getattr(model_data, "frame", None)

    if data is None:
        base = pd.DataFrame(
            np.asarray(results.model.exog),
            columns=results.model.exog_names,
            index=row_labels,
        )
        base = base.drop(columns=[c for c in _CONSTANT_NAMES if c in base.columns])
        base.insert(0, results.model.endog_names, np.asarray(results.model.endog))
        return base

    if row_labels is None:
        if len(data) != nobs:
            raise ValueError(
                f"data has {len(data)} rows but the model used {nobs}; "
                "pass the exact rows the model was fitted on"
            )
        return data.copy()

    if not data.index.is_unique:
        n_dup = int(data.index.duplicated().sum())
        raise ValueError(
            f"data index has {n_dup} duplicate labels; model rows are matched "
            "by label, so give each row a unique label (e.g. reset_index())"
        )
    missing = pd.Index(row_labels).difference(data.index)
    if len(missing):
        raise KeyError(
            f"{len(missing)} model rows are not in data (e.g. {list(missing[:3])})"
        )
    return data.loc[row_labels].copy()


def fortify(results, data=None):
    """Augment the model's data with per-observation diagnostics.

    Parameters
    ----------
    results : statsmodels RegressionResults
        A fitted OLS/WLS model.
    data : pd.DataFrame, optional
        Table to augment. Must contain every row label the model used.
        Default: the frame the model was built from, or a frame assembled
        from endog/exog for array-built models.

    Returns
    -------
    pd.DataFrame
        The model's rows with AUGMENT_COLUMNS appended.

    Raises
    ------
    TypeError
        If the results object does not provide OLS influence measures.
    ValueError
        If ``data`` has duplicate index labels.
    KeyError
        If ``data`` lacks some of the model's rows.
    """
    get_influence = getattr(results, "get_influence", None)
    if get_influence is None:
        raise TypeError(f"{type(results).__name__} has no influence measures")
    influence = get_influence()
    if not isinstance(influence, OLSInfluence):
        raise TypeError(
            f"fortify supports least-squares models; got {type(influence).__name__}"
        )

    augmented = _model_rows(results, data)

    augmented[".hat"] = np.asarray(influence.hat_matrix_diag)
    augmented[".sigma"] = np.sqrt(np.asarray(influence.sigma2_not_obsi))
    augmented[".cooksd"] = np.asarray(influence.cooks_distance[0])
    augmented[".fitted"] = np.asarray(results.fittedvalues)
    augmented[".resid"] = np.asarray(results.resid)
    augmented[".stdresid"] = np.asarray(influence.resid_studentized_internal)
    augmented[".studresid"] = np.asarray(influence.resid_studentized_external)
    augmented[".dffits"] = np.asarray(influence.dffits[0])

    return augmented


def fortify_groups(data, formula, group, min_rows=None):
    """Fit the same formula per group and stack the fortified tables.

    Groups with fewer than ``min_rows`` rows, or with no residual degrees of
    freedom, are skipped with a warning.

    Returns
    -------
    pd.DataFrame
        Concatenated fortified rows; the group column is kept.
    """
    if min_rows is None:
        min_rows = config.MIN_ROWS_FOR_DIAGNOSTICS
    _require_columns(data, [group])

    frames = []
    for label, sub in data.groupby(group, sort=True):
        if len(sub) < min_rows:
            log.warning("fortify skipped for %s=%r: %d rows < %d",
                        group, label, len(sub), min_rows)
            continue
        try:
            results = fit_linear_model(sub, formula)
        except (ValueError, KeyError, np.linalg.LinAlgError) as exc:
            log.warning("fortify skipped for %s=%r: %s", group, label, exc)
            continue
        if results.df_resid < 1:
            log.warning("fortify skipped for %s=%r: no residual degrees of freedom",
                        group, label)
            continue
        frames.append(fortify(results, sub))

    if not frames:
        return pd.DataFrame(columns=list(data.columns) + AUGMENT_COLUMNS)
    return pd.concat(frames)
