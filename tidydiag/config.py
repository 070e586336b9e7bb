"""
Centralized configuration for the tidy-data and model-diagnostics examples.

All runtime parameters, example-data settings, smoothing defaults and
output paths are defined here. Diagnostic thresholds live in
tidydiag.models.thresholds.
"""

import os

# ─── REPRODUCIBILITY ─────────────────────────────────────────────────────
RANDOM_SEED = 42  # Seed shared by example data and bootstrap resampling

# ─── INTERVAL ESTIMATION ─────────────────────────────────────────────────
# Two-sided confidence level for group summaries and smoothing bands.
CI_LEVEL = 0.95

# ─── EXAMPLE DATA: WIDE TIME SERIES ──────────────────────────────────────
# One row per series, one column per year.
EXAMPLE_SERIES = {
    # name: (starting level, annual growth rate)
    "Aurora":   (12.0, 0.06),
    "Borealis": (30.0, 0.01),
    "Cascade":  (5.0, 0.12),
    "Delta":    (18.0, -0.03),
}
EXAMPLE_YEARS = range(2010, 2021)  # 2010-2020 inclusive
EXAMPLE_NOISE_SD = 0.05  # Multiplicative noise on the wide series
EXAMPLE_MISSING_FRACTION = 0.05  # Share of wide cells blanked out

# ─── EXAMPLE DATA: GROUPED CURVES ────────────────────────────────────────
EXAMPLE_CURVE_GROUPS = ["control", "low_dose", "high_dose"]
EXAMPLE_POINTS_PER_GROUP = 60
EXAMPLE_CURVE_NOISE_SD = 0.3

# ─── EXAMPLE DATA: REGRESSION ────────────────────────────────────────────
EXAMPLE_REGRESSION_N = 80
EXAMPLE_REGRESSION_COEFS = {"intercept": 2.0, "x1": 1.5, "x2": -0.8}
EXAMPLE_REGRESSION_NOISE_SD = 1.0
EXAMPLE_OUTLIER_SHIFT = 8.0  # Residual shift (in noise sd units) for outliers

# ─── SMOOTHING PARAMETERS ────────────────────────────────────────────────
SMOOTH_METHODS = ("gam", "loess", "lm")
DEFAULT_SMOOTH_METHOD = "gam"

# GAM: cubic regression spline basis, statsmodels GLMGam.
GAM_DF = 6         # Basis dimension per smooth term
GAM_DEGREE = 3     # Cubic B-splines
GAM_ALPHA = 0.0    # Penalty weight; 0 = unpenalized regression spline

# LOESS: statsmodels lowess with bootstrap bands.
LOESS_FRAC = 2.0 / 3.0          # Span, fraction of points per local fit
LOESS_ITERATIONS = 0            # Robustifying iterations
LOESS_BOOTSTRAP_RESAMPLES = 200

# Minimum non-missing points before a per-group smooth is attempted.
MIN_POINTS = {
    "gam": GAM_DF + 2,
    "loess": 5,
    "lm": 3,
}

PREDICTION_GRID_SIZE = 80  # Evaluation points across the observed x range

# ─── MODEL FORTIFICATION ─────────────────────────────────────────────────
EXAMPLE_FORMULA = "y ~ x1 + x2 + C(category)"
MIN_ROWS_FOR_DIAGNOSTICS = 4

# ─── VISUALIZATION PARAMETERS ────────────────────────────────────────────
FIGURE_DPI = 150
FIGURE_SIZE = (9, 6)
PANEL_FIGURE_SIZE = (12, 10)
BAND_ALPHA = 0.25  # Transparency of uncertainty bands

# ─── OUTPUT PATHS ─────────────────────────────────────────────────────────
DEFAULT_OUTPUT_DIR = os.environ.get("TIDYDIAG_OUTPUT_DIR", "outputs")

OUTPUT_DIRS = {
    "csv": "csv",
    "figures": "figures",
    "diagnostics": "diagnostics",
}


def get_output_dirs(output_dir, create=True):
    """Return the subdirectory paths of a run directory.

    Parameters
    ----------
    output_dir : str
        Run-level output directory.
    create : bool
        Create missing directories when True.

    Returns
    -------
    dict
        OUTPUT_DIRS key → absolute or relative path under output_dir.
    """
    dirs = {
        key: os.path.join(output_dir, sub) for key, sub in OUTPUT_DIRS.items()
    }
    if create:
        for path in dirs.values():
            os.makedirs(path, exist_ok=True)
    return dirs
