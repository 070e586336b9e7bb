#!/usr/bin/env python3
"""
Chapter runner with validation gates and single-step execution.

Regenerates every table and figure of the chapter's worked examples:

- ``tidy``:        gather a wide time-series table into long form
- ``summarize``:   filter, mutate and summarise the tidy table per group
- ``smooth``:      fit per-group smooths with prediction bands
- ``fortify``:     fit a linear model and augment its rows with diagnostics
- ``diagnostics``: model-level and per-category diagnostic summaries
- ``figures``:     draw the chapter figures

Usage:
    # Run everything
    python3 -m tidydiag.chapter_runner --output-dir outputs

    # Re-run one step from saved intermediate CSVs
    python3 -m tidydiag.chapter_runner --step figures

    # Abort on schema violations
    python3 -m tidydiag.chapter_runner --strict-validation
"""

import argparse
import json
import os
import sys
import time

import pandas as pd

from tidydiag import config
from tidydiag import chapter_steps as steps
from tidydiag.logging_config import (
    get_run_logger,
    log_step_summary,
    set_run_id,
    setup_logging,
)
from tidydiag.pipeline_types import ChapterRunResult, StepResult
from tidydiag.schemas import (
    AugmentedSchema,
    GroupSummarySchema,
    SmoothPredictionSchema,
    TidySeriesSchema,
    validate_schema,
)

log = get_run_logger(__name__)

CHAPTER_STEPS = [
    "tidy",
    "summarize",
    "smooth",
    "fortify",
    "diagnostics",
    "figures",
]

_SCHEMAS = {
    "tidy": TidySeriesSchema,
    "summarize": GroupSummarySchema,
    "smooth": SmoothPredictionSchema,
    "fortify": AugmentedSchema,
}


# Figure inputs for single-step mode: argument name → (CSV, read_csv options).
# A missing CSV only drops the figure drawn from it.
_FIGURE_INPUTS = {
    "long_df": (steps.TIDY_CSV, {}),
    "summary_df": (steps.SUMMARY_CSV, {}),
    "curves_df": (steps.CURVES_CSV, {}),
    "predictions_df": (steps.PREDICTIONS_CSV, {}),
    "augmented": (steps.AUGMENTED_CSV, {"index_col": "row"}),
}


# ── NaN tracking helper ──────────────────────────────────────────────────


def track_nan_counts(df, step_name, prev_nan_counts=None):
    """Track NaN counts per column and warn on propagation.

    Parameters
    ----------
    df : pd.DataFrame or None
        DataFrame to inspect.
    step_name : str
        Step name for logging.
    prev_nan_counts : dict or None
        NaN counts from an earlier step for delta comparison.

    Returns
    -------
    dict
        Column → NaN count mapping for this step (non-zero counts only).
    """
    if df is None:
        return {}

    nan_counts = {k: int(v) for k, v in df.isna().sum().items() if v > 0}
    if nan_counts:
        log.debug("[%s] NaN counts: %s", step_name, nan_counts,
                  extra={"step": step_name, "nan_counts": nan_counts})

    for col, count in nan_counts.items():
        if prev_nan_counts and col in prev_nan_counts and count > prev_nan_counts[col]:
            prev = prev_nan_counts[col]
            log.warning(
                "[%s] NaN count increased for '%s': %d → %d (+%d)",
                step_name, col, prev, count, count - prev,
            )

    return nan_counts


def _gate(step_result, df, strict, prev_nan_counts=None):
    """Schema validation and NaN tracking after a successful step.

    Lenient schema warnings are appended to ``step_result.warnings``.
    Returns False when strict validation failed and the run must stop.
    """
    schema = _SCHEMAS.get(step_result.step_name)
    if schema is not None:
        try:
            step_result.warnings.extend(
                validate_schema(df, schema, step_result.step_name, strict=strict)
            )
        except ValueError as exc:
            log.error("Validation failed after %s: %s", step_result.step_name, exc)
            step_result.fail(str(exc))
            return False
    step_result.nan_summary = track_nan_counts(df, step_result.step_name, prev_nan_counts)
    return True


def _finish(run_result, step_result):
    """Record a finished step and log its summary."""
    run_result.step_results.append(step_result)
    log_step_summary(log, step_result)


def _read_csv(csv_dir, name, **kwargs):
    path = os.path.join(csv_dir, name)
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"{path} not found; run the step that produces it first"
        )
    return pd.read_csv(path, **kwargs)


def _load_inputs(step_name, dirs):
    """Load a single step's inputs from saved intermediate CSVs."""
    csv_dir = dirs["csv"]
    if step_name == "summarize":
        return {"long_df": _read_csv(csv_dir, steps.TIDY_CSV)}
    if step_name == "diagnostics":
        return {"augmented": _read_csv(csv_dir, steps.AUGMENTED_CSV, index_col="row")}
    if step_name == "figures":
        inputs = {}
        for arg, (name, kwargs) in _FIGURE_INPUTS.items():
            try:
                inputs[arg] = _read_csv(csv_dir, name, **kwargs)
            except FileNotFoundError:
                log.info("[figures] %s not saved yet; its figure is left out", name)
                inputs[arg] = None
        return inputs
    return {}


def _run_one(step_name, dirs, seed, smooth_method, inputs):
    """Dispatch one step; returns (StepResult, data)."""
    if step_name == "tidy":
        return steps.step_tidy(dirs["csv"], seed=seed)
    if step_name == "summarize":
        return steps.step_summarize(inputs["long_df"], dirs["csv"])
    if step_name == "smooth":
        return steps.step_smooth(dirs["csv"], method=smooth_method, seed=seed)
    if step_name == "fortify":
        return steps.step_fortify(dirs["csv"], seed=seed)
    if step_name == "diagnostics":
        return steps.step_diagnostics(inputs["augmented"], dirs["diagnostics"])
    if step_name == "figures":
        return steps.step_figures(
            dirs["figures"],
            **{arg: inputs.get(arg) for arg in _FIGURE_INPUTS},
        )
    raise ValueError(f"Unknown step {step_name!r}; expected one of {CHAPTER_STEPS}")


def _run_single_step(step_name, dirs, seed, smooth_method, strict, run_result):
    try:
        inputs = _load_inputs(step_name, dirs)
    except FileNotFoundError as exc:
        log.error("Cannot run %s: %s", step_name, exc)
        _finish(run_result, StepResult.failed(step_name, str(exc)))
        return run_result

    result, data = _run_one(step_name, dirs, seed, smooth_method, inputs)
    if result.ok and isinstance(data, pd.DataFrame):
        _gate(result, data, strict)
    elif result.ok and step_name == "figures":
        run_result.output_files.extend(data)
    _finish(run_result, result)
    return run_result


def run_chapter(output_dir=None, seed=None, smooth_method=None,
                single_step=None, strict=False):
    """Run the chapter steps and return a ChapterRunResult.

    Parameters
    ----------
    output_dir : str, optional
        Run directory. Default: config.DEFAULT_OUTPUT_DIR.
    seed : int, optional
        Seed for example data and bootstrap. Default: config.RANDOM_SEED.
    smooth_method : str, optional
        "gam", "loess" or "lm". Default: config.DEFAULT_SMOOTH_METHOD.
    single_step : str, optional
        Run only this step, reading its inputs from saved CSVs.
    strict : bool
        Stop at the first schema violation.
    """
    if output_dir is None:
        output_dir = config.DEFAULT_OUTPUT_DIR
    if seed is None:
        seed = config.RANDOM_SEED
    if smooth_method is None:
        smooth_method = config.DEFAULT_SMOOTH_METHOD
    if smooth_method not in config.SMOOTH_METHODS:
        raise ValueError(
            f"Unknown smoothing method {smooth_method!r}; "
            f"expected one of {config.SMOOTH_METHODS}"
        )
    if single_step is not None and single_step not in CHAPTER_STEPS:
        raise ValueError(f"Unknown step {single_step!r}; expected one of {CHAPTER_STEPS}")

    run_result = ChapterRunResult(
        run_dir=output_dir, seed=seed, smooth_method=smooth_method,
    )
    start_time = time.time()
    dirs = config.get_output_dirs(output_dir)

    if single_step:
        _run_single_step(single_step, dirs, seed, smooth_method, strict, run_result)
        run_result.total_time_seconds = time.time() - start_time
        return run_result

    # ── Full run ─────────────────────────────────────────────────────
    inputs = {}
    outputs_key = {
        "tidy": "long_df",
        "summarize": "summary_df",
        "smooth": "predictions_df",
        "fortify": "augmented",
    }
    needs = {
        "summarize": ["long_df"],
        "diagnostics": ["augmented"],
    }
    prev_nan_counts = None

    for step_name in CHAPTER_STEPS:
        missing = [k for k in needs.get(step_name, []) if inputs.get(k) is None]
        if missing:
            _finish(run_result, StepResult.skipped(
                step_name, f"missing input from an earlier step: {missing}",
            ))
            continue

        result, data = _run_one(step_name, dirs, seed, smooth_method, inputs)
        passed = True
        if result.ok:
            if step_name in outputs_key:
                inputs[outputs_key[step_name]] = data
            if step_name == "smooth":
                inputs["curves_df"] = _read_csv(dirs["csv"], steps.CURVES_CSV)
            if step_name == "figures":
                run_result.output_files.extend(data)
            if isinstance(data, pd.DataFrame):
                passed = _gate(result, data, strict, prev_nan_counts)
                prev_nan_counts = result.nan_summary
        _finish(run_result, result)

        if not passed:
            log.error("Run aborted at %s (strict validation)", step_name)
            break

    for name in sorted(os.listdir(dirs["csv"])):
        run_result.output_files.append(os.path.join(dirs["csv"], name))

    run_result.total_time_seconds = time.time() - start_time
    return run_result


def save_run_result(run_result, output_dir):
    """Save ChapterRunResult as JSON for provenance."""
    os.makedirs(output_dir, exist_ok=True)
    result_path = os.path.join(output_dir, "chapter_run.json")
    with open(result_path, "w") as f:
        json.dump(run_result.to_dict(), f, indent=2, default=str)
    log.info("Run result saved: %s", result_path)
    return result_path


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Regenerate the chapter's tidy-data and model-diagnostic examples"
    )
    parser.add_argument(
        "--output-dir",
        default=config.DEFAULT_OUTPUT_DIR,
        help="Output directory",
    )
    parser.add_argument(
        "--step",
        choices=CHAPTER_STEPS,
        default=None,
        help="Run a single step from saved CSVs (e.g., 'figures')",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=config.RANDOM_SEED,
        help="Random seed for example data and bootstrap resampling",
    )
    parser.add_argument(
        "--smooth-method",
        choices=list(config.SMOOTH_METHODS),
        default=config.DEFAULT_SMOOTH_METHOD,
        dest="smooth_method",
        help="Smoother for the per-group curves",
    )
    parser.add_argument(
        "--strict-validation",
        action="store_true",
        default=False,
        dest="strict_validation",
        help="Abort on schema validation failures (default: warn only)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    run_id = set_run_id()
    setup_logging(run_dir=args.output_dir)

    log.info("Chapter runner (run_id=%s, seed=%d, smooth=%s)",
             run_id, args.seed, args.smooth_method)
    if args.step:
        log.info("Single step mode: %s", args.step)

    result = run_chapter(
        output_dir=args.output_dir,
        seed=args.seed,
        smooth_method=args.smooth_method,
        single_step=args.step,
        strict=args.strict_validation,
    )
    save_run_result(result, args.output_dir)

    log.info("Run complete in %.1fs", result.total_time_seconds)
    if result.skipped_steps:
        log.warning("Skipped steps: %s", [s.step_name for s in result.skipped_steps])
    if result.failed_steps:
        log.warning("Failed steps: %s", [s.step_name for s in result.failed_steps])
        return 1
    log.info("All steps succeeded.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
