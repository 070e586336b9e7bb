"""
Chapter step functions.

Each function regenerates one group of the chapter's worked examples with
explicit inputs/outputs and StepResult tracking. Boilerplate (timing,
error handling, logging) is handled by ``run_step()``.
"""

import json
import os

import numpy as np
import pandas as pd

from tidydiag import config
from tidydiag.logging_config import get_run_logger
from tidydiag.step_runner import run_step

log = get_run_logger(__name__)

# Intermediate CSV file names, shared with single-step mode.
WIDE_CSV = "wide_series.csv"
TIDY_CSV = "tidy_series.csv"
SUMMARY_CSV = "series_summary.csv"
CURVES_CSV = "grouped_curves.csv"
PREDICTIONS_CSV = "smooth_predictions.csv"
AUGMENTED_CSV = "augmented_model.csv"
GROUP_DIAGNOSTICS_CSV = "category_diagnostics.csv"
MODEL_DIAGNOSTICS_JSON = "model_diagnostics.json"

# First year of the "late" period in the grouped summary example.
PERIOD_SPLIT_YEAR = 2015


def step_tidy(csv_dir: str, seed: int | None = None) -> tuple:
    """Build the wide example table and gather it into tidy form."""
    from tidydiag.datasets import make_wide_timeseries
    from tidydiag.reshape import check_tidy, gather

    def _work():
        os.makedirs(csv_dir, exist_ok=True)
        wide = make_wide_timeseries(seed=seed)
        wide.to_csv(os.path.join(csv_dir, WIDE_CSV), index=False)
        for issue in check_tidy(wide, "series"):
            log.info("Wide table: %s", issue)

        long = gather(wide, "series", key="year", value="value")
        issues = check_tidy(long, ["series", "year"])
        if issues:
            raise ValueError(f"Gathered table is not tidy: {issues}")

        long.to_csv(os.path.join(csv_dir, TIDY_CSV), index=False)
        return long

    return run_step(
        "tidy", _work,
        input_summary={"seed": seed},
        output_summary_fn=lambda df: {
            "rows": len(df),
            "series": int(df["series"].nunique()),
            "missing_values": int(df["value"].isna().sum()),
        },
    )


def step_summarize(long_df: pd.DataFrame, csv_dir: str) -> tuple:
    """Label early/late periods and summarise each series per period."""
    from tidydiag.summarize import filter_rows, group_summarize, mutate

    def _work():
        os.makedirs(csv_dir, exist_ok=True)
        # Missing values fail the comparison and drop out with non-positive ones.
        observed = filter_rows(long_df, query="value > 0")
        labelled = mutate(
            observed,
            period=lambda d: np.where(d["year"] >= PERIOD_SPLIT_YEAR, "late", "early"),
        )
        summary = group_summarize(labelled, ["series", "period"], "value")
        summary.to_csv(os.path.join(csv_dir, SUMMARY_CSV), index=False)
        return summary

    return run_step(
        "summarize", _work,
        input_summary={"rows": len(long_df)},
        output_summary_fn=lambda df: {"groups": len(df)},
    )


def step_smooth(csv_dir: str, method: str | None = None, seed: int | None = None) -> tuple:
    """Fit per-group smooths to the grouped curves example."""
    from tidydiag.datasets import make_grouped_curves
    from tidydiag.models.smoothing import fit_group_smooths, predictions_frame

    if method is None:
        method = config.DEFAULT_SMOOTH_METHOD

    def _work():
        os.makedirs(csv_dir, exist_ok=True)
        curves = make_grouped_curves(seed=seed)
        curves.to_csv(os.path.join(csv_dir, CURVES_CSV), index=False)

        params = {"seed": seed} if method == "loess" else {}
        results = fit_group_smooths(curves, "x", "y", group="group",
                                    method=method, **params)
        predictions = predictions_frame(results, group="group")
        if predictions.empty:
            raise ValueError(f"No group could be smoothed with method {method!r}")
        predictions.to_csv(os.path.join(csv_dir, PREDICTIONS_CSV), index=False)
        return predictions

    return run_step(
        "smooth", _work,
        input_summary={"method": method, "seed": seed},
        output_summary_fn=lambda df: {
            "groups": int(df["group"].nunique()),
            "grid_points": len(df),
        },
    )


def step_fortify(csv_dir: str, seed: int | None = None,
                 formula: str | None = None) -> tuple:
    """Fit the example regression and fortify it with diagnostics."""
    from tidydiag.datasets import make_regression_data
    from tidydiag.models.fortify import fit_linear_model, fortify

    if formula is None:
        formula = config.EXAMPLE_FORMULA

    def _work():
        os.makedirs(csv_dir, exist_ok=True)
        data = make_regression_data(seed=seed)
        results = fit_linear_model(data, formula)
        log.info("Fitted %s: R²=%.3f, n=%d", formula, results.rsquared, int(results.nobs))
        augmented = fortify(results, data)
        augmented.to_csv(os.path.join(csv_dir, AUGMENTED_CSV), index_label="row")
        return augmented

    return run_step(
        "fortify", _work,
        input_summary={"formula": formula, "seed": seed},
        output_summary_fn=lambda df: {
            "rows": len(df),
            "max_cooksd": round(float(df[".cooksd"].max()), 4),
        },
    )


def step_diagnostics(augmented: pd.DataFrame, diagnostics_dir: str,
                     response: str = "y", group: str = "category",
                     group_formula: str = "y ~ x1 + x2") -> tuple:
    """Model-level diagnostics, overall and per category."""
    from tidydiag.diagnostics import compute_group_diagnostics, compute_model_diagnostics
    from tidydiag.models.fortify import AUGMENT_COLUMNS

    def _work():
        os.makedirs(diagnostics_dir, exist_ok=True)
        diag = compute_model_diagnostics(augmented, response)
        path = os.path.join(diagnostics_dir, MODEL_DIAGNOSTICS_JSON)
        with open(path, "w") as f:
            json.dump(diag, f, indent=2, default=str)
        log.info("Saved model diagnostics: %s", path)
        for warning in diag["model_warnings"]:
            log.warning("Model diagnostics: %s", warning)

        data = augmented.drop(columns=[c for c in AUGMENT_COLUMNS if c in augmented.columns])
        compute_group_diagnostics(
            data, group_formula, group,
            output_csv=os.path.join(diagnostics_dir, GROUP_DIAGNOSTICS_CSV),
        )
        return diag

    return run_step(
        "diagnostics", _work,
        input_summary={"rows": len(augmented)},
        output_summary_fn=lambda d: {
            "r_squared": d["r_squared"],
            "outliers": len(d["outlier_rows"]),
            "influential": len(d["influential_rows"]),
        },
    )


def step_figures(figures_dir: str, long_df: pd.DataFrame, summary_df: pd.DataFrame,
                 curves_df: pd.DataFrame, predictions_df: pd.DataFrame,
                 augmented: pd.DataFrame) -> tuple:
    """Draw every chapter figure whose input is available."""
    from tidydiag.outputs.figures import (
        plot_diagnostic_panel,
        plot_group_summary,
        plot_smooth_predictions,
        plot_tidy_series,
    )

    def _work():
        os.makedirs(figures_dir, exist_ok=True)
        paths = []
        if long_df is not None:
            paths.append(plot_tidy_series(
                long_df, "year", "value", "series",
                os.path.join(figures_dir, "tidy_series.png"),
                title="Gathered series (one row per series-year)",
            ))
        if summary_df is not None:
            paths.append(plot_group_summary(
                summary_df, ["series", "period"],
                os.path.join(figures_dir, "series_summary.png"),
                value_label="mean value",
            ))
        if curves_df is not None and predictions_df is not None:
            paths.append(plot_smooth_predictions(
                curves_df, predictions_df, "x", "y", "group",
                os.path.join(figures_dir, "smooth_predictions.png"),
            ))
        if augmented is not None:
            paths.append(plot_diagnostic_panel(
                augmented, os.path.join(figures_dir, "model_diagnostics.png"),
            ))
        if not paths:
            raise ValueError("No figure inputs available")
        return paths

    return run_step(
        "figures", _work,
        output_summary_fn=lambda paths: {"figures": len(paths)},
    )
