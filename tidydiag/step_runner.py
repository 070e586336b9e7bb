"""
Run one chapter step and capture its outcome as a StepResult.

A failing step never raises out of ``run_step()``: the runner records the
error, skips the steps that needed its output and carries on with the
rest. Logging the step summary is left to the runner, after the schema
gate has added its warnings.
"""

import time
import traceback
from typing import Callable, TypeVar

import pandas as pd
import pandera as pa

from tidydiag.logging_config import get_run_logger
from tidydiag.pipeline_types import StepResult, utc_now

T = TypeVar("T")

log = get_run_logger(__name__)

# Failures caused by bad or missing inputs; logged without a traceback.
EXPECTED_STEP_ERRORS = (
    FileNotFoundError,
    ValueError,
    KeyError,
    TypeError,
    pd.errors.EmptyDataError,
    pa.errors.SchemaError,
)


class StepTimer:
    """Wall-clock seconds spent inside the ``with`` block."""

    elapsed = 0.0

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc):
        self.elapsed = time.perf_counter() - self._start
        return False


def run_step(
    step_name: str,
    fn: Callable[..., T],
    *args,
    input_summary: dict | None = None,
    output_summary_fn: Callable[[T], dict] | None = None,
    expected_exceptions: tuple[type[Exception], ...] = EXPECTED_STEP_ERRORS,
    **kwargs,
) -> tuple[StepResult, T | None]:
    """Call ``fn(*args, **kwargs)`` as the step ``step_name``.

    Parameters
    ----------
    input_summary : dict, optional
        What the step was run on (seed, method, row count). Stored on the
        result whether or not the step succeeds.
    output_summary_fn : callable, optional
        Maps fn's return value to the output summary. Not called when fn
        fails or returns None.
    expected_exceptions : tuple
        Exceptions logged as a one-line error. Anything else is logged
        with its traceback. Both end the step with status "error".

    Returns
    -------
    tuple[StepResult, T | None]
        The data is None when the step failed.
    """
    result = StepResult(step_name, input_summary=dict(input_summary or {}))
    data = None

    with StepTimer() as timer:
        try:
            data = fn(*args, **kwargs)
        except expected_exceptions as exc:
            log.error("[%s] %s: %s", step_name, type(exc).__name__, exc)
            result.fail(traceback.format_exc())
        except Exception:
            log.exception("[%s] unexpected failure", step_name)
            result.fail(traceback.format_exc())

    result.timing_seconds = timer.elapsed
    result.completed_at = utc_now()

    if result.ok and data is not None and output_summary_fn is not None:
        result.output_summary = output_summary_fn(data)
    return result, data
