"""
Tests for Pandera schema validation gates and runner bookkeeping.

Verifies that:
- Schemas reject invalid data (missing columns, wrong types, out-of-range,
  unordered interval bounds)
- validate_schema() returns warnings in lenient mode
- validate_schema() raises in strict mode
- Result types survive a to_dict()/from_dict() round trip
- NaN tracking reports counts and warns when they grow
"""

import logging

import numpy as np
import pandas as pd
import pytest

from tidydiag.chapter_runner import track_nan_counts
from tidydiag.pipeline_types import ChapterRunResult, StepResult
from tidydiag.schemas import (
    AugmentedSchema,
    GroupSummarySchema,
    SmoothPredictionSchema,
    TidySeriesSchema,
    validate_schema,
)


# ── TidySeriesSchema ────────────────────────────────────────────────────


class TestTidySeriesSchema:

    def test_valid_data_passes(self, long_df):
        TidySeriesSchema.validate(long_df)

    def test_missing_value_allowed(self, long_df):
        assert long_df["value"].isna().any()
        TidySeriesSchema.validate(long_df)

    def test_duplicate_observation_fails(self, long_df):
        doubled = pd.concat([long_df, long_df.iloc[[0]]], ignore_index=True)
        with pytest.raises(Exception):
            TidySeriesSchema.validate(doubled)

    def test_negative_value_fails(self, long_df):
        df = long_df.copy()
        df.loc[0, "value"] = -1.0
        with pytest.raises(Exception):
            TidySeriesSchema.validate(df)

    def test_implausible_year_fails(self, long_df):
        df = long_df.copy()
        df.loc[0, "year"] = 20200
        with pytest.raises(Exception):
            TidySeriesSchema.validate(df)

    def test_wide_table_fails(self, wide_df):
        with pytest.raises(Exception):
            TidySeriesSchema.validate(wide_df)


# ── GroupSummarySchema ──────────────────────────────────────────────────


class TestGroupSummarySchema:

    def _valid_df(self):
        return pd.DataFrame({
            "series": ["A", "B"],
            "n": [4, 1],
            "mean": [2.5, 10.0],
            "sd": [1.29, np.nan],
            "se": [0.645, np.nan],
            "median": [2.5, 10.0],
            "min": [1.0, 10.0],
            "max": [4.0, 10.0],
            "ci_low": [0.45, np.nan],
            "ci_high": [4.55, np.nan],
        })

    def test_valid_data_passes(self):
        GroupSummarySchema.validate(self._valid_df())

    def test_reversed_interval_fails(self):
        df = self._valid_df()
        df.loc[0, ["ci_low", "ci_high"]] = [4.55, 0.45]
        with pytest.raises(Exception):
            GroupSummarySchema.validate(df)

    def test_negative_sd_fails(self):
        df = self._valid_df()
        df.loc[0, "sd"] = -0.1
        with pytest.raises(Exception):
            GroupSummarySchema.validate(df)

    def test_zero_count_fails(self):
        df = self._valid_df()
        df.loc[1, "n"] = 0
        with pytest.raises(Exception):
            GroupSummarySchema.validate(df)


# ── SmoothPredictionSchema ──────────────────────────────────────────────


class TestSmoothPredictionSchema:

    def _valid_df(self):
        return pd.DataFrame({
            "group": ["a", "a"],
            "x": [0.0, 1.0],
            "fit": [1.0, 2.0],
            "se": [0.1, 0.2],
            "lower": [0.8, 1.6],
            "upper": [1.2, 2.4],
        })

    def test_valid_data_passes(self):
        SmoothPredictionSchema.validate(self._valid_df())

    def test_fit_outside_band_fails(self):
        df = self._valid_df()
        df.loc[1, "fit"] = 3.0
        with pytest.raises(Exception):
            SmoothPredictionSchema.validate(df)

    def test_missing_fit_fails(self):
        df = self._valid_df()
        df.loc[0, "fit"] = np.nan
        with pytest.raises(Exception):
            SmoothPredictionSchema.validate(df)


# ── AugmentedSchema ─────────────────────────────────────────────────────


class TestAugmentedSchema:

    def test_fortified_rows_pass(self, regression_df):
        from tidydiag.models.fortify import fit_linear_model, fortify

        aug = fortify(fit_linear_model(regression_df, "y ~ x"), regression_df)
        AugmentedSchema.validate(aug)

    def test_leverage_above_one_fails(self, regression_df):
        from tidydiag.models.fortify import fit_linear_model, fortify

        aug = fortify(fit_linear_model(regression_df, "y ~ x"), regression_df)
        aug.loc["r0", ".hat"] = 1.5
        with pytest.raises(Exception):
            AugmentedSchema.validate(aug)

    def test_missing_column_fails(self, regression_df):
        with pytest.raises(Exception):
            AugmentedSchema.validate(regression_df)


# ── validate_schema() function ──────────────────────────────────────────


class TestValidateSchemaFunction:

    def test_none_df_returns_warning(self):
        warnings = validate_schema(None, TidySeriesSchema, "test", strict=False)
        assert len(warnings) == 1
        assert "None" in warnings[0]

    def test_none_df_raises_in_strict_mode(self):
        with pytest.raises(ValueError, match="None"):
            validate_schema(None, TidySeriesSchema, "test", strict=True)

    def test_empty_df_returns_warning(self):
        df = pd.DataFrame(columns=["series", "year", "value"])
        warnings = validate_schema(df, TidySeriesSchema, "test", strict=False)
        assert len(warnings) == 1
        assert "empty" in warnings[0].lower()

    def test_empty_df_raises_in_strict_mode(self):
        df = pd.DataFrame(columns=["series", "year", "value"])
        with pytest.raises(ValueError, match="empty"):
            validate_schema(df, TidySeriesSchema, "test", strict=True)

    def test_invalid_data_returns_warnings_lenient(self, long_df):
        df = long_df.copy()
        df.loc[0, "value"] = -5.0
        warnings = validate_schema(df, TidySeriesSchema, "tidy", strict=False)
        assert len(warnings) > 0
        assert all(w.startswith("[tidy]") for w in warnings)

    def test_invalid_data_raises_in_strict_mode(self, long_df):
        df = long_df.copy()
        df.loc[0, "value"] = -5.0
        with pytest.raises(ValueError, match="Schema validation failed"):
            validate_schema(df, TidySeriesSchema, "tidy", strict=True)

    def test_valid_data_returns_no_warnings(self, long_df):
        assert validate_schema(long_df, TidySeriesSchema, "tidy") == []


# ── Result types ────────────────────────────────────────────────────────


class TestResultTypesDeserialization:

    def test_step_result_roundtrip(self):
        original = StepResult(
            step_name="smooth",
            status="success",
            input_summary={"method": "gam"},
            output_summary={"groups": 3},
            timing_seconds=1.5,
            warnings=["low_dose skipped"],
            nan_summary={"se": 2},
        )
        restored = StepResult.from_dict(original.to_dict())

        assert restored.step_name == original.step_name
        assert restored.status == original.status
        assert restored.input_summary == original.input_summary
        assert restored.timing_seconds == original.timing_seconds
        assert restored.warnings == original.warnings
        assert restored.nan_summary == original.nan_summary

    def test_chapter_run_result_roundtrip(self):
        original = ChapterRunResult(
            run_dir="/tmp/test",
            seed=7,
            smooth_method="loess",
            total_time_seconds=10.0,
        )
        original.step_results.append(
            StepResult(step_name="tidy", status="success", timing_seconds=5.0)
        )
        original.step_results.append(
            StepResult(step_name="summarize", status="error", error="boom")
        )
        original.step_results.append(
            StepResult(step_name="figures", status="skipped")
        )

        restored = ChapterRunResult.from_dict(original.to_dict())

        assert restored.seed == 7
        assert restored.smooth_method == "loess"
        assert len(restored.step_results) == 3
        assert restored.step_results[1].error == "boom"
        assert not restored.all_ok
        assert [s.step_name for s in restored.failed_steps] == ["summarize"]


# ── NaN tracking ────────────────────────────────────────────────────────


class TestNanTracking:

    def test_no_nans(self):
        df = pd.DataFrame({"a": [1, 2, 3], "b": [4, 5, 6]})
        assert track_nan_counts(df, "test") == {}

    def test_with_nans(self):
        df = pd.DataFrame({"a": [1, np.nan, 3], "b": [np.nan, np.nan, 6]})
        result = track_nan_counts(df, "test")
        assert result == {"a": 1, "b": 2}

    def test_none_df(self):
        assert track_nan_counts(None, "test") == {}

    def test_nan_propagation_warning(self, caplog):
        prev = {"a": 1}
        df = pd.DataFrame({"a": [np.nan, np.nan, 3.0]})

        with caplog.at_level(logging.WARNING):
            track_nan_counts(df, "test_step", prev_nan_counts=prev)

        assert any("NaN count increased" in msg for msg in caplog.messages)
