"""
Model fitting helpers: per-group smoothers and linear-model fortification.
"""

from tidydiag.models.smoothing import (
    SmoothResult,
    fit_smooth,
    fit_group_smooths,
    predictions_frame,
)
from tidydiag.models.fortify import (
    AUGMENT_COLUMNS,
    fit_linear_model,
    fortify,
    fortify_groups,
)

__all__ = [
    # smoothing
    "SmoothResult",
    "fit_smooth",
    "fit_group_smooths",
    "predictions_frame",
    # fortification
    "AUGMENT_COLUMNS",
    "fit_linear_model",
    "fortify",
    "fortify_groups",
]
