"""
Tests for the synthetic example datasets.

Covers shape, determinism under a fixed seed, and the structure each
chapter step relies on (wide year columns, one curve per group, a
planted regression outlier).
"""

import numpy as np
import pandas as pd
import pytest

from tidydiag import config
from tidydiag.datasets import (
    make_grouped_curves,
    make_regression_data,
    make_wide_timeseries,
)
from tidydiag.reshape import check_tidy


class TestWideTimeseries:

    def test_layout(self):
        wide = make_wide_timeseries()

        assert wide.columns[0] == "series"
        assert list(wide.columns[1:]) == list(config.EXAMPLE_YEARS)
        assert wide["series"].tolist() == list(config.EXAMPLE_SERIES)

    def test_is_not_tidy(self):
        assert check_tidy(make_wide_timeseries(), "series")

    def test_missing_cells(self):
        wide = make_wide_timeseries(missing_fraction=0.1)
        n_cells = len(config.EXAMPLE_SERIES) * len(config.EXAMPLE_YEARS)

        assert wide.iloc[:, 1:].isna().sum().sum() == round(n_cells * 0.1)

    def test_no_missing_cells(self):
        wide = make_wide_timeseries(missing_fraction=0.0)
        assert not wide.isna().any().any()

    def test_values_positive(self):
        wide = make_wide_timeseries()
        assert (wide.iloc[:, 1:].stack() > 0).all()

    def test_deterministic(self):
        pd.testing.assert_frame_equal(make_wide_timeseries(seed=3),
                                      make_wide_timeseries(seed=3))

    def test_seed_changes_values(self):
        a = make_wide_timeseries(seed=1, missing_fraction=0.0)
        b = make_wide_timeseries(seed=2, missing_fraction=0.0)
        assert not a.equals(b)

    def test_custom_series(self):
        wide = make_wide_timeseries(series={"only": (1.0, 0.0)}, years=[2000, 2001],
                                    noise_sd=0.0, missing_fraction=0.0)

        assert wide.iloc[0, 1:].tolist() == [1.0, 1.0]


class TestGroupedCurves:

    def test_layout(self):
        curves = make_grouped_curves()

        assert list(curves.columns) == ["group", "x", "y"]
        assert curves["group"].value_counts().to_dict() == {
            g: config.EXAMPLE_POINTS_PER_GROUP for g in config.EXAMPLE_CURVE_GROUPS
        }

    def test_sorted_within_group(self):
        curves = make_grouped_curves()
        for _, sub in curves.groupby("group"):
            assert sub["x"].is_monotonic_increasing

    def test_x_range(self):
        curves = make_grouped_curves()
        assert curves["x"].between(0.0, 10.0).all()

    def test_shapes_cycle(self):
        curves = make_grouped_curves(groups=list("abcd"), n_per_group=10, noise_sd=0.0)
        a = curves[curves["group"] == "a"]
        d = curves[curves["group"] == "d"]

        np.testing.assert_allclose(a["y"], 3.0 * (1 - np.exp(-0.5 * a["x"])))
        np.testing.assert_allclose(d["y"], 3.0 * (1 - np.exp(-0.5 * d["x"])))


class TestRegressionData:

    def test_layout(self):
        data = make_regression_data()

        assert list(data.columns) == ["x1", "x2", "category", "y", "is_outlier"]
        assert len(data) == config.EXAMPLE_REGRESSION_N
        assert set(data["category"]) <= {"a", "b", "c"}

    def test_outliers_planted_at_high_leverage(self):
        data = make_regression_data(n_outliers=2)

        assert data["is_outlier"].sum() == 2
        assert (data.loc[data["is_outlier"], "x1"]
                > data.loc[~data["is_outlier"], "x1"].max()).all()

    def test_no_outliers(self):
        assert not make_regression_data(n_outliers=0)["is_outlier"].any()

    def test_bad_outlier_count_raises(self):
        with pytest.raises(ValueError):
            make_regression_data(n=10, n_outliers=10)

    def test_deterministic(self):
        pd.testing.assert_frame_equal(make_regression_data(seed=5),
                                      make_regression_data(seed=5))
