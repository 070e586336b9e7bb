"""
Pandera DataFrame schemas for the runner's validation gates.

Each schema checks both structure and statistical sanity of one step's
output (non-negative spreads, ordered interval bounds, leverage in [0, 1]).

Usage:
    from tidydiag.schemas import AugmentedSchema
    AugmentedSchema.validate(df)  # raises pa.errors.SchemaError on failure
"""

import pandera as pa
from pandera import Column, Check, DataFrameSchema

from tidydiag.logging_config import get_run_logger

log = get_run_logger(__name__)

# Slack for floating-point round-off in bound comparisons.
_TOL = 1e-8


def _ordered(low, high):
    """Frame-level check: low <= high wherever both are present."""
    def check(df):
        either_missing = df[low].isna() | df[high].isna()
        return either_missing | (df[low] <= df[high] + _TOL)
    return Check(check, name=f"{low}_le_{high}")


# ── Tidy (long-form) series ─────────────────────────────────────────────

TidySeriesSchema = DataFrameSchema(
    columns={
        "series": Column(str, nullable=False),
        "year": Column(int, Check.in_range(1800, 2200), nullable=False),
        "value": Column(float, Check.greater_than_or_equal_to(0.0), nullable=True),
    },
    unique=["series", "year"],
    strict=False,
    coerce=False,
    name="TidySeriesSchema",
)


# ── Grouped summaries ───────────────────────────────────────────────────

GroupSummarySchema = DataFrameSchema(
    columns={
        "n": Column(int, Check.greater_than_or_equal_to(1), nullable=False),
        "mean": Column(float, nullable=False),
        "sd": Column(float, Check.greater_than_or_equal_to(0.0), nullable=True),
        "se": Column(float, Check.greater_than_or_equal_to(0.0), nullable=True),
        "ci_low": Column(float, nullable=True),
        "ci_high": Column(float, nullable=True),
    },
    checks=[_ordered("ci_low", "ci_high"), _ordered("min", "max")],
    # Group key columns vary by call.
    strict=False,
    coerce=False,
    name="GroupSummarySchema",
)


# ── Smooth predictions ──────────────────────────────────────────────────

SmoothPredictionSchema = DataFrameSchema(
    columns={
        "x": Column(float, nullable=False),
        "fit": Column(float, nullable=False),
        "se": Column(float, Check.greater_than_or_equal_to(0.0), nullable=False),
        "lower": Column(float, nullable=False),
        "upper": Column(float, nullable=False),
    },
    checks=[_ordered("lower", "fit"), _ordered("fit", "upper")],
    strict=False,
    coerce=False,
    name="SmoothPredictionSchema",
)


# ── Fortified model rows ────────────────────────────────────────────────

AugmentedSchema = DataFrameSchema(
    columns={
        ".hat": Column(float, Check.in_range(0.0, 1.0 + _TOL), nullable=False),
        ".sigma": Column(float, Check.greater_than_or_equal_to(0.0), nullable=False),
        ".cooksd": Column(float, Check.greater_than_or_equal_to(0.0), nullable=True),
        ".fitted": Column(float, nullable=False),
        ".resid": Column(float, nullable=False),
        ".stdresid": Column(float, nullable=True),
    },
    strict=False,
    coerce=False,
    name="AugmentedSchema",
)


# ── Convenience validation function ─────────────────────────────────────

def validate_schema(df, schema, step_name, strict=False):
    """Validate a DataFrame against a Pandera schema.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to validate.
    schema : pa.DataFrameSchema
        Schema to validate against.
    step_name : str
        Runner step name for error messages.
    strict : bool
        If True, raise on failure. If False, return warnings list.

    Returns
    -------
    list[str]
        Validation warning messages (empty if all pass).

    Raises
    ------
    ValueError
        Only if strict=True and validation fails.
    """
    warnings_list = []

    if df is None:
        msg = f"[{step_name}] DataFrame is None"
        if strict:
            raise ValueError(msg)
        return [msg]

    if len(df) == 0:
        msg = f"[{step_name}] DataFrame is empty (0 rows)"
        if strict:
            raise ValueError(msg)
        return [msg]

    try:
        schema.validate(df, lazy=True)
    except pa.errors.SchemaErrors as exc:
        for failure in exc.failure_cases.itertuples():
            msg = (
                f"[{step_name}] Schema violation: "
                f"column='{failure.column}' check='{failure.check}' "
                f"failure_case={failure.failure_case}"
            )
            warnings_list.append(msg)

        for msg in warnings_list:
            log.warning(msg)

        if strict:
            raise ValueError(
                f"[{step_name}] Schema validation failed with "
                f"{len(warnings_list)} errors"
            ) from exc

    return warnings_list
