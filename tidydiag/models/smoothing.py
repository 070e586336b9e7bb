"""
Per-group smoothing models with prediction bands.

Three smoothers are offered, all fitted with statsmodels:

- ``gam``: Gaussian GLMGam with a cubic B-spline basis. Bands come from the
  model's mean prediction standard errors.
- ``loess``: locally weighted regression (lowess) evaluated on the
  prediction grid. Standard errors come from a seeded row bootstrap and
  bands are normal intervals around the point smooth.
- ``lm``: ordinary least squares straight line with analytic bands.

Predictions are always returned on a regular grid spanning the observed
x range of the group, as columns ``x, fit, se, lower, upper``.
"""

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats as scipy_stats
from statsmodels.gam.api import BSplines, GLMGam
from statsmodels.nonparametric.smoothers_lowess import lowess

from tidydiag import config
from tidydiag.logging_config import get_run_logger
from tidydiag.reshape import _require_columns

log = get_run_logger(__name__)

PREDICTION_COLUMNS = ["x", "fit", "se", "lower", "upper"]


@dataclass
class SmoothResult:
    """Outcome of fitting one group's smooth."""

    group: Any
    method: str
    n_obs: int
    status: str  # "success" or "skipped"
    message: str = ""
    model: Optional[Any] = None
    predictions: Optional[pd.DataFrame] = None

    @property
    def ok(self):
        return self.status == "success"


def _clean_xy(x, y):
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"x and y lengths differ: {x.shape} vs {y.shape}")
    keep = np.isfinite(x) & np.isfinite(y)
    return x[keep], y[keep]


def _min_points(method, params):
    if method == "gam":
        return int(params.get("df", config.GAM_DF)) + 2
    return config.MIN_POINTS[method]


def _make_grid(x, grid, grid_size):
    if grid is None:
        return np.linspace(x.min(), x.max(), grid_size)
    grid = np.sort(np.asarray(grid, dtype=float))
    if grid.size == 0:
        raise ValueError("Prediction grid is empty")
    return grid


def _fit_gam(x, y, grid, ci_level, df=None, degree=None, alpha=None,
             select_alpha=False):
    if df is None:
        df = config.GAM_DF
    if degree is None:
        degree = config.GAM_DEGREE
    if alpha is None:
        alpha = config.GAM_ALPHA

    if grid.min() < x.min() or grid.max() > x.max():
        raise ValueError(
            f"GAM grid [{grid.min():.4g}, {grid.max():.4g}] extends beyond "
            f"the data range [{x.min():.4g}, {x.max():.4g}]"
        )

    smoother = BSplines(x[:, None], df=[df], degree=[degree])
    intercept = np.ones((len(x), 1))
    model = GLMGam(y, exog=intercept, smoother=smoother, alpha=alpha)
    if select_alpha:
        alpha = model.select_penweight()[0]
        log.debug("GAM penalty weight selected: %s", alpha)
        model = GLMGam(y, exog=intercept, smoother=smoother, alpha=alpha)
    result = model.fit()

    frame = result.get_prediction(
        exog=np.ones((len(grid), 1)), exog_smooth=grid[:, None],
    ).summary_frame(alpha=1 - ci_level)

    return result, pd.DataFrame({
        "x": grid,
        "fit": np.asarray(frame["mean"]),
        "se": np.asarray(frame["mean_se"]),
        "lower": np.asarray(frame["mean_ci_lower"]),
        "upper": np.asarray(frame["mean_ci_upper"]),
    })


def _fit_loess(x, y, grid, ci_level, frac=None, it=None, n_bootstrap=None,
               seed=None):
    if frac is None:
        frac = config.LOESS_FRAC
    if it is None:
        it = config.LOESS_ITERATIONS
    if n_bootstrap is None:
        n_bootstrap = config.LOESS_BOOTSTRAP_RESAMPLES
    if seed is None:
        seed = config.RANDOM_SEED

    fit = lowess(y, x, frac=frac, it=it, xvals=grid)

    rng = np.random.default_rng(seed)
    boot_fits = []
    for _ in range(n_bootstrap):
        idx = rng.choice(len(x), size=len(x), replace=True)
        try:
            boot_fits.append(lowess(y[idx], x[idx], frac=frac, it=it, xvals=grid))
        except (np.linalg.LinAlgError, ValueError):
            continue

    if len(boot_fits) < 2:
        raise ValueError(
            f"LOESS bootstrap produced {len(boot_fits)} usable resamples; need at least 2"
        )

    boot_fits = np.vstack(boot_fits)
    se = np.nan_to_num(np.nanstd(boot_fits, axis=0, ddof=1), nan=0.0)
    z = scipy_stats.norm.ppf(1 - (1 - ci_level) / 2)

    predictions = pd.DataFrame({
        "x": grid,
        "fit": fit,
        "se": se,
        "lower": fit - z * se,
        "upper": fit + z * se,
    })
    # lowess returns NaN at grid points with no usable neighbourhood.
    predictions = predictions.dropna(subset=["fit"]).reset_index(drop=True)
    if predictions.empty:
        raise ValueError("LOESS produced no finite predictions on the grid")
    return None, predictions


def _fit_lm(x, y, grid, ci_level):
    X = sm.add_constant(x, has_constant="add")
    result = sm.OLS(y, X).fit()
    frame = result.get_prediction(
        sm.add_constant(grid, has_constant="add"),
    ).summary_frame(alpha=1 - ci_level)

    return result, pd.DataFrame({
        "x": grid,
        "fit": np.asarray(frame["mean"]),
        "se": np.asarray(frame["mean_se"]),
        "lower": np.asarray(frame["mean_ci_lower"]),
        "upper": np.asarray(frame["mean_ci_upper"]),
    })


_FITTERS = {
    "gam": _fit_gam,
    "loess": _fit_loess,
    "lm": _fit_lm,
}


def _fit_smooth(x, y, method, grid=None, ci_level=None, grid_size=None, **params):
    if method not in _FITTERS:
        raise ValueError(
            f"Unknown smoothing method {method!r}; expected one of {sorted(_FITTERS)}"
        )
    if ci_level is None:
        ci_level = config.CI_LEVEL
    if not 0 < ci_level < 1:
        raise ValueError(f"ci_level must be in (0, 1), got {ci_level}")
    if grid_size is None:
        grid_size = config.PREDICTION_GRID_SIZE

    x, y = _clean_xy(x, y)
    needed = _min_points(method, params)
    n_unique = np.unique(x).size
    if len(x) < needed or n_unique < needed:
        raise ValueError(
            f"{method} smooth needs at least {needed} points with distinct x; "
            f"got {len(x)} points, {n_unique} distinct"
        )

    grid = _make_grid(x, grid, grid_size)
    return _FITTERS[method](x, y, grid, ci_level, **params)


def fit_smooth(x, y, method=None, grid=None, ci_level=None, grid_size=None, **params):
    """Fit a single smooth of y on x and predict over a grid.

    Parameters
    ----------
    x, y : array-like
        Predictor and response. Pairs with a missing value are dropped.
    method : str, optional
        "gam", "loess" or "lm". Default: config.DEFAULT_SMOOTH_METHOD.
    grid : array-like, optional
        Prediction points. Default: ``grid_size`` evenly spaced points over
        the observed x range.
    ci_level : float, optional
        Band coverage. Default: config.CI_LEVEL.
    grid_size : int, optional
        Default: config.PREDICTION_GRID_SIZE.
    **params
        Method options: gam (df, degree, alpha, select_alpha),
        loess (frac, it, n_bootstrap, seed).

    Returns
    -------
    pd.DataFrame
        Columns: x, fit, se, lower, upper.

    Raises
    ------
    ValueError
        Unknown method, too few points, or a grid outside the data range
        for the GAM basis.
    """
    if method is None:
        method = config.DEFAULT_SMOOTH_METHOD
    _, predictions = _fit_smooth(x, y, method, grid=grid, ci_level=ci_level,
                                 grid_size=grid_size, **params)
    return predictions


def fit_group_smooths(df, x, y, group=None, method=None, ci_level=None,
                      grid_size=None, **params):
    """Fit one smooth per group.

    Groups that are too small or whose fit fails are reported with status
    "skipped" rather than aborting the others.

    Returns
    -------
    list[SmoothResult]
        One entry per group, sorted by group label. With ``group=None`` a
        single result labelled "all".
    """
    if method is None:
        method = config.DEFAULT_SMOOTH_METHOD
    if method not in _FITTERS:
        raise ValueError(
            f"Unknown smoothing method {method!r}; expected one of {sorted(_FITTERS)}"
        )
    _require_columns(df, [x, y] + ([group] if group is not None else []))

    if group is None:
        groups = [("all", df)]
    else:
        groups = df.groupby(group, sort=True)

    results = []
    for label, sub in groups:
        n_obs = int((sub[x].notna() & sub[y].notna()).sum())
        try:
            model, predictions = _fit_smooth(
                sub[x], sub[y], method, ci_level=ci_level,
                grid_size=grid_size, **params,
            )
        except (ValueError, np.linalg.LinAlgError) as exc:
            log.warning(
                "%s smooth skipped for %s=%r: %s", method, group or "group", label, exc,
                extra={"group": str(label)},
            )
            results.append(SmoothResult(
                group=label, method=method, n_obs=n_obs,
                status="skipped", message=str(exc),
            ))
            continue

        log.debug("%s smooth fitted for %r (n=%d)", method, label, n_obs)
        results.append(SmoothResult(
            group=label, method=method, n_obs=n_obs, status="success",
            model=model, predictions=predictions,
        ))

    n_ok = sum(r.ok for r in results)
    log.info("Fitted %d/%d %s smooths", n_ok, len(results), method)
    return results


def predictions_frame(results, group="group"):
    """Concatenate successful predictions into one long frame.

    Returns
    -------
    pd.DataFrame
        Columns: group + PREDICTION_COLUMNS.
    """
    frames = [
        r.predictions.assign(**{group: r.group})
        for r in results if r.ok and r.predictions is not None
    ]
    columns = [group] + PREDICTION_COLUMNS
    if not frames:
        return pd.DataFrame(columns=columns)
    return pd.concat(frames, ignore_index=True)[columns]
