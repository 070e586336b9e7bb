"""
Linear-model diagnostics: goodness of fit, residual checks, influence.

Everything is computed from a fortified table (see
tidydiag.models.fortify) so the same numbers back both the summary
tables and the diagnostic figures.
"""

import os

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats
from statsmodels.stats.stattools import durbin_watson

from tidydiag import config
from tidydiag.logging_config import get_run_logger
from tidydiag.models import thresholds
from tidydiag.models.fortify import fit_linear_model, fortify
from tidydiag.reshape import _require_columns

log = get_run_logger(__name__)

_REQUIRED = [".fitted", ".resid", ".hat", ".cooksd", ".stdresid"]


def _insufficient(n_obs, reason):
    return {
        "n_obs": n_obs,
        "n_params": np.nan,
        "r_squared": np.nan,
        "adj_r_squared": np.nan,
        "durbin_watson": np.nan,
        "jarque_bera_p": np.nan,
        "cooks_distance_max": np.nan,
        "outlier_rows": [],
        "high_leverage_rows": [],
        "influential_rows": [],
        "model_warnings": [reason],
    }


def compute_model_diagnostics(augmented, response):
    """Summarise a fortified table into model-level diagnostics.

    Args:
        augmented: Output of fortify() (must include the response column).
        response: Name of the response column.

    Returns:
        Dict with n_obs, n_params, r_squared, adj_r_squared, durbin_watson,
        jarque_bera_p, cooks_distance_max, outlier_rows, high_leverage_rows,
        influential_rows (lists of row labels) and model_warnings.
    """
    _require_columns(augmented, [response] + _REQUIRED)

    n = len(augmented)
    if n < config.MIN_ROWS_FOR_DIAGNOSTICS:
        return _insufficient(
            n, f"insufficient data (<{config.MIN_ROWS_FOR_DIAGNOSTICS} rows)",
        )

    y = augmented[response].to_numpy(dtype=float)
    resid = augmented[".resid"].to_numpy(dtype=float)
    hat = augmented[".hat"].to_numpy(dtype=float)
    cooks_d = augmented[".cooksd"].to_numpy(dtype=float)
    std_resid = augmented[".stdresid"].to_numpy(dtype=float)

    # Trace of the hat matrix equals the number of fitted parameters.
    p = float(np.sum(hat))
    n_params = int(round(p))

    ss_res = float(np.sum(resid ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else np.nan
    if n > n_params and not np.isnan(r_squared):
        adj_r_squared = 1.0 - (1.0 - r_squared) * (n - 1) / (n - n_params)
    else:
        adj_r_squared = np.nan

    dw = float(durbin_watson(resid))

    try:
        _, jb_p = scipy_stats.jarque_bera(resid)
        jb_p = float(jb_p)
    except ValueError:
        jb_p = np.nan

    max_cooks = float(np.nanmax(cooks_d)) if np.isfinite(cooks_d).any() else np.nan

    labels = augmented.index
    outlier_rows = labels[np.abs(std_resid) > thresholds.OUTLIER_Z_THRESHOLD].tolist()
    leverage_cut = thresholds.LEVERAGE_MULTIPLIER * p / n
    high_leverage_rows = labels[hat > leverage_cut].tolist()
    cooks_cut = thresholds.COOKS_D_SCREEN_NUMERATOR / n
    influential_rows = labels[cooks_d > cooks_cut].tolist()

    warnings_list = []
    if dw < thresholds.DW_WARNING_LOW or dw > thresholds.DW_WARNING_HIGH:
        warnings_list.append("high autocorrelation (DW={:.2f})".format(dw))
    if not np.isnan(jb_p) and jb_p < thresholds.JB_P_THRESHOLD:
        warnings_list.append("non-normal residuals (JB p={:.3f})".format(jb_p))
    if not np.isnan(max_cooks) and max_cooks > thresholds.COOKS_D_THRESHOLD:
        warnings_list.append("high-influence observation (Cook's D={:.2f})".format(max_cooks))
    if not np.isnan(r_squared) and r_squared < thresholds.R_SQUARED_WARNING:
        warnings_list.append("poor model fit (R²={:.3f})".format(r_squared))

    return {
        "n_obs": n,
        "n_params": n_params,
        "r_squared": round(r_squared, 4) if not np.isnan(r_squared) else np.nan,
        "adj_r_squared": round(adj_r_squared, 4) if not np.isnan(adj_r_squared) else np.nan,
        "durbin_watson": round(dw, 4),
        "jarque_bera_p": round(jb_p, 4) if not np.isnan(jb_p) else np.nan,
        "cooks_distance_max": round(max_cooks, 4) if not np.isnan(max_cooks) else np.nan,
        "outlier_rows": outlier_rows,
        "high_leverage_rows": high_leverage_rows,
        "influential_rows": influential_rows,
        "model_warnings": warnings_list,
    }


def _with_response(augmented, results):
    """Add the model response (e.g. ``np.log(y)``) when it is not a column."""
    response = results.model.endog_names
    if response not in augmented.columns:
        augmented[response] = augmented[".fitted"] + augmented[".resid"]
    return augmented, response


def diagnose_model(results):
    """Diagnostics for a fitted statsmodels least-squares result."""
    augmented, response = _with_response(fortify(results), results)
    return compute_model_diagnostics(augmented, response)


def compute_group_diagnostics(data, formula, group, output_csv=None):
    """Fit ``formula`` per group and return one diagnostics row per group.

    List-valued fields are flattened to "; "-joined strings for CSV output.
    """
    _require_columns(data, [group])

    results = []
    for label, sub in data.groupby(group, sort=True):
        if len(sub) < config.MIN_ROWS_FOR_DIAGNOSTICS:
            diag = _insufficient(
                len(sub), f"insufficient data (<{config.MIN_ROWS_FOR_DIAGNOSTICS} rows)",
            )
        else:
            try:
                model = fit_linear_model(sub, formula)
            except (ValueError, KeyError, np.linalg.LinAlgError) as exc:
                log.warning("Diagnostics skipped for %s=%r: %s", group, label, exc)
                diag = _insufficient(len(sub), f"model fit failed: {exc}")
            else:
                if model.df_resid < 1:
                    diag = _insufficient(len(sub), "no residual degrees of freedom")
                else:
                    augmented, response = _with_response(fortify(model, sub), model)
                    diag = compute_model_diagnostics(augmented, response)

        flat = {group: label}
        for key, val in diag.items():
            flat[key] = "; ".join(str(v) for v in val) if isinstance(val, list) else val
        results.append(flat)

    df = pd.DataFrame(results)
    if output_csv:
        out_dir = os.path.dirname(output_csv)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        df.to_csv(output_csv, index=False)
        log.info("Saved diagnostics: %s", output_csv)

    return df
