"""
Chapter figures: tidy series, group summaries, smooths and model diagnostics.

Every function draws one figure with matplotlib, saves it to
``output_path`` and returns that path.
"""

import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from scipy import stats as scipy_stats
from statsmodels.nonparametric.smoothers_lowess import lowess

from tidydiag import config
from tidydiag.logging_config import get_run_logger
from tidydiag.reshape import _as_list, _require_columns

log = get_run_logger(__name__)


def _save(fig, output_path):
    out_dir = os.path.dirname(output_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    fig.savefig(output_path, dpi=config.FIGURE_DPI, bbox_inches="tight")
    plt.close(fig)
    log.info("Saved figure: %s", output_path)
    return output_path


def _colors(n):
    cmap = plt.get_cmap("tab10")
    return [cmap(i % 10) for i in range(n)]


def plot_tidy_series(long_df, x, y, group, output_path, title=None):
    """One line per group from a long-form table. Missing values leave gaps."""
    _require_columns(long_df, [x, y, group])

    fig, ax = plt.subplots(figsize=config.FIGURE_SIZE)
    groups = list(long_df.groupby(group, sort=True))
    for color, (label, sub) in zip(_colors(len(groups)), groups):
        sub = sub.sort_values(x)
        ax.plot(sub[x], sub[y], "o-", color=color, markersize=4, label=str(label))

    ax.set_xlabel(x)
    ax.set_ylabel(y)
    ax.set_title(title or f"{y} by {x}")
    ax.legend(title=group, fontsize=8)
    ax.grid(True, alpha=0.3)
    return _save(fig, output_path)


def plot_group_summary(summary_df, by, output_path, value_label="mean", title=None):
    """Group means as bars with confidence-interval error bars."""
    by = _as_list(by)
    _require_columns(summary_df, by + ["mean", "ci_low", "ci_high"])

    labels = summary_df[by].astype(str).agg(" / ".join, axis=1)
    mean = summary_df["mean"].to_numpy(dtype=float)
    err_low = np.nan_to_num(mean - summary_df["ci_low"].to_numpy(dtype=float))
    err_high = np.nan_to_num(summary_df["ci_high"].to_numpy(dtype=float) - mean)
    positions = np.arange(len(summary_df))

    fig, ax = plt.subplots(figsize=config.FIGURE_SIZE)
    ax.bar(positions, mean, color="steelblue", edgecolor="grey",
           yerr=[err_low, err_high], capsize=4)
    ax.set_xticks(positions)
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.set_xlabel(" / ".join(by))
    ax.set_ylabel(value_label)
    ax.set_title(title or f"{value_label} by {' / '.join(by)}")
    ax.grid(True, axis="y", alpha=0.3)
    return _save(fig, output_path)


def plot_smooth_predictions(data, predictions, x, y, group, output_path,
                            pred_group="group", title=None):
    """Raw points with each group's fitted curve and uncertainty band.

    Args:
        data: Observations with columns x, y and (optionally) group.
        predictions: Output of predictions_frame() (columns pred_group,
            x, fit, lower, upper).
        group: Group column in data, or None for a single group.
    """
    _require_columns(data, [x, y] + ([group] if group is not None else []))
    _require_columns(predictions, [pred_group, "x", "fit", "lower", "upper"])

    if group is None:
        data = data.assign(_group="all")
        group = "_group"

    labels = sorted(set(data[group].dropna()) | set(predictions[pred_group]), key=str)
    colors = dict(zip(labels, _colors(len(labels))))

    fig, ax = plt.subplots(figsize=config.FIGURE_SIZE)
    for label, sub in data.groupby(group, sort=True):
        ax.scatter(sub[x], sub[y], s=12, alpha=0.6, color=colors[label])

    for label, pred in predictions.groupby(pred_group, sort=True):
        pred = pred.sort_values("x")
        ax.fill_between(pred["x"], pred["lower"], pred["upper"],
                        color=colors[label], alpha=config.BAND_ALPHA, linewidth=0)
        ax.plot(pred["x"], pred["fit"], color=colors[label], linewidth=2,
                label=str(label))

    ax.set_xlabel(x)
    ax.set_ylabel(y)
    ax.set_title(title or f"Smoothed {y} by {x}")
    if not predictions.empty:
        ax.legend(fontsize=8)
    ax.grid(True, alpha=0.3)
    return _save(fig, output_path)


def plot_diagnostic_panel(augmented, output_path, label_top=3, title=None):
    """4-panel diagnostic plot from a fortified table.

    Panel 1: Residuals vs fitted (with lowess trend)
    Panel 2: Normal Q-Q of standardized residuals
    Panel 3: Scale-location
    Panel 4: Standardized residuals vs leverage, sized by Cook's distance
    """
    _require_columns(augmented, [".fitted", ".resid", ".stdresid", ".hat", ".cooksd"])

    fitted = augmented[".fitted"].to_numpy(dtype=float)
    residuals = augmented[".resid"].to_numpy(dtype=float)
    std_resid = augmented[".stdresid"].to_numpy(dtype=float)
    hat = augmented[".hat"].to_numpy(dtype=float)
    cooks_d = np.nan_to_num(augmented[".cooksd"].to_numpy(dtype=float))

    n_label = min(label_top, len(augmented))
    top = np.argsort(cooks_d)[::-1][:n_label]
    row_labels = [str(v) for v in augmented.index]

    def _annotate(ax, xs, ys):
        for i in top:
            ax.annotate(row_labels[i], (xs[i], ys[i]), fontsize=8,
                        xytext=(4, 4), textcoords="offset points")

    fig, axes = plt.subplots(2, 2, figsize=config.PANEL_FIGURE_SIZE)

    # Panel 1: Residuals vs fitted
    ax = axes[0, 0]
    ax.scatter(fitted, residuals, c="steelblue", edgecolors="grey", s=30)
    ax.axhline(y=0, color="grey", linestyle="--", linewidth=1)
    if len(fitted) >= 3:
        trend = lowess(residuals, fitted, frac=config.LOESS_FRAC)
        ax.plot(trend[:, 0], trend[:, 1], color="red", linewidth=1.5)
    _annotate(ax, fitted, residuals)
    ax.set_xlabel("Fitted values")
    ax.set_ylabel("Residuals")
    ax.set_title("Residuals vs Fitted")
    ax.grid(True, alpha=0.3)

    # Panel 2: Q-Q plot
    ax = axes[0, 1]
    scipy_stats.probplot(std_resid[np.isfinite(std_resid)], plot=ax)
    ax.set_title("Normal Q-Q")
    ax.set_ylabel("Standardized residuals")
    ax.grid(True, alpha=0.3)

    # Panel 3: Scale-location
    ax = axes[1, 0]
    root_abs = np.sqrt(np.abs(std_resid))
    ax.scatter(fitted, root_abs, c="steelblue", edgecolors="grey", s=30)
    if len(fitted) >= 3:
        trend = lowess(root_abs, fitted, frac=config.LOESS_FRAC)
        ax.plot(trend[:, 0], trend[:, 1], color="red", linewidth=1.5)
    _annotate(ax, fitted, root_abs)
    ax.set_xlabel("Fitted values")
    ax.set_ylabel("√|Standardized residuals|")
    ax.set_title("Scale-Location")
    ax.grid(True, alpha=0.3)

    # Panel 4: Residuals vs leverage
    ax = axes[1, 1]
    sizes = 20 + 400 * cooks_d / max(cooks_d.max(), 1e-12)
    ax.scatter(hat, std_resid, s=sizes, c="steelblue", edgecolors="grey", alpha=0.7)
    ax.axhline(y=0, color="grey", linestyle="--", linewidth=1)
    p = float(np.sum(hat))
    h_grid = np.linspace(max(hat.min(), 1e-3), min(hat.max() * 1.05, 0.999), 100)
    for level in (0.5, 1.0):
        bound = np.sqrt(level * p * (1 - h_grid) / h_grid)
        ax.plot(h_grid, bound, color="red", linestyle=":", linewidth=1)
        ax.plot(h_grid, -bound, color="red", linestyle=":", linewidth=1)
    ax.set_ylim(np.nanmin(std_resid) - 1, np.nanmax(std_resid) + 1)
    _annotate(ax, hat, std_resid)
    ax.set_xlabel("Leverage")
    ax.set_ylabel("Standardized residuals")
    ax.set_title("Residuals vs Leverage (Cook's D contours 0.5, 1)")
    ax.grid(True, alpha=0.3)

    fig.suptitle(title or f"Model diagnostics (n={len(augmented)})", fontsize=14, y=1.02)
    plt.tight_layout()
    return _save(fig, output_path)
