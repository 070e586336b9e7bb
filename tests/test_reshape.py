"""
Tests for wide/long reshaping.

Verifies that:
1. gather() folds year columns into key/value rows in row-major order
2. Numeric key labels are converted and missing values handled
3. spread() restores the wide layout and rejects duplicate observations
4. check_tidy() reports each departure from the tidy layout
"""

import os

import numpy as np
import pandas as pd
import pytest

from tidydiag import config
from tidydiag.datasets import make_wide_timeseries
from tidydiag.reshape import check_tidy, gather, is_tidy, spread


class TestGather:

    def test_one_row_per_observation(self, wide_df):
        long = gather(wide_df, "series", key="year", value="value")

        assert list(long.columns) == ["series", "year", "value"]
        assert len(long) == 3 * 4

    def test_row_major_order(self, wide_df):
        """Rows follow the wide table: all of series A first, years ascending."""
        long = gather(wide_df, "series", key="year", value="value")

        assert long["series"].tolist()[:4] == ["A"] * 4
        assert long["year"].tolist()[:4] == [2020, 2021, 2022, 2023]

    def test_numeric_labels_converted(self):
        wide = pd.DataFrame({"id": ["x"], "2001": [1.0], "2002": [2.0]})
        long = gather(wide, "id", key="year", value="v")

        assert pd.api.types.is_integer_dtype(long["year"])
        assert long["year"].tolist() == [2001, 2002]

    def test_non_numeric_labels_kept(self):
        wide = pd.DataFrame({"id": ["x"], "height": [1.0], "width": [2.0]})
        long = gather(wide, "id", key="measure", value="v")

        assert long["measure"].tolist() == ["height", "width"]

    def test_convert_disabled(self):
        wide = pd.DataFrame({"id": ["x"], "2001": [1.0]})
        long = gather(wide, "id", key="year", value="v", convert=False)

        assert long["year"].tolist() == ["2001"]

    def test_labels_read_back_from_csv_converted(self, tmp_dir):
        """Year labels are strings after a CSV round trip, whatever the string dtype."""
        path = os.path.join(tmp_dir, "wide.csv")
        make_wide_timeseries(seed=1).to_csv(path, index=False)
        wide = pd.read_csv(path)

        long = gather(wide, "series", key="year", value="value")

        assert pd.api.types.is_integer_dtype(long["year"])
        assert long["year"].unique().tolist() == list(config.EXAMPLE_YEARS)

    def test_string_dtype_labels_converted(self):
        wide = pd.DataFrame({"id": ["x"], "2001": [1.0], "2002": [2.0]})
        wide.columns = pd.Index(wide.columns, dtype="string")
        long = gather(wide, "id", key="year", value="v")

        assert pd.api.types.is_integer_dtype(long["year"])

    def test_missing_values_kept_by_default(self, wide_df):
        long = gather(wide_df, "series", key="year", value="value")

        assert long["value"].isna().sum() == 1

    def test_dropna(self, wide_df):
        long = gather(wide_df, "series", key="year", value="value", dropna=True)

        assert len(long) == 11
        assert not long["value"].isna().any()

    def test_explicit_columns(self, wide_df):
        long = gather(wide_df, "series", key="year", value="value",
                      columns=[2020, 2023])

        assert sorted(long["year"].unique()) == [2020, 2023]
        assert len(long) == 6

    def test_unknown_id_column_raises(self, wide_df):
        with pytest.raises(KeyError):
            gather(wide_df, "country")

    def test_key_clashing_with_id_raises(self, wide_df):
        with pytest.raises(ValueError, match="collide"):
            gather(wide_df, "series", key="series")

    def test_same_key_and_value_raises(self, wide_df):
        with pytest.raises(ValueError):
            gather(wide_df, "series", key="v", value="v")

    def test_nothing_to_gather_raises(self):
        with pytest.raises(ValueError, match="No columns"):
            gather(pd.DataFrame({"id": [1, 2]}), "id")


class TestSpread:

    def test_restores_wide_layout(self, wide_df, long_df):
        wide = spread(long_df, key="year", value="value")

        assert list(wide.columns) == ["series", 2020, 2021, 2022, 2023]
        pd.testing.assert_frame_equal(wide, wide_df, check_dtype=False)

    def test_first_appearance_order(self):
        long = pd.DataFrame({
            "id": ["z", "z", "a", "a"],
            "k": ["second", "first", "second", "first"],
            "v": [1, 2, 3, 4],
        })
        wide = spread(long, key="k", value="v")

        assert wide["id"].tolist() == ["z", "a"]
        assert list(wide.columns) == ["id", "second", "first"]

    def test_fill_missing_combinations(self):
        long = pd.DataFrame({"id": ["a", "b"], "k": ["x", "y"], "v": [1.0, 2.0]})
        wide = spread(long, key="k", value="v", fill=0.0)

        assert wide.loc[wide["id"] == "a", "y"].item() == 0.0
        assert wide.loc[wide["id"] == "b", "x"].item() == 0.0

    def test_duplicate_observations_raise(self, long_df):
        doubled = pd.concat([long_df, long_df.iloc[[0]]], ignore_index=True)

        with pytest.raises(ValueError, match="2 rows share"):
            spread(doubled, key="year", value="value")

    def test_missing_key_raises(self, long_df):
        broken = long_df.copy()
        broken["year"] = broken["year"].astype(float)
        broken.loc[0, "year"] = np.nan

        with pytest.raises(ValueError, match="missing values"):
            spread(broken, key="year", value="value")

    def test_no_identifier_raises(self):
        with pytest.raises(ValueError, match="identifier"):
            spread(pd.DataFrame({"k": ["a"], "v": [1]}), key="k", value="v")

    def test_key_value_naming_id_column_raises(self):
        long = pd.DataFrame({"id": ["a", "a"], "k": ["id", "z"], "v": [1, 2]})

        with pytest.raises(ValueError, match="collide with id columns"):
            spread(long, key="k", value="v")


class TestCheckTidy:

    def test_long_table_is_tidy(self, long_df):
        assert check_tidy(long_df, ["series", "year"]) == []
        assert is_tidy(long_df, ["series", "year"])

    def test_wide_table_flags_value_labels(self, wide_df):
        issues = check_tidy(wide_df, "series")

        assert len(issues) == 1
        assert "look like values" in issues[0]
        assert not is_tidy(wide_df, "series")

    def test_string_year_labels_flagged(self):
        wide = pd.DataFrame({"id": ["a"], "1999": [1], "2000": [2]})

        assert any("look like values" in i for i in check_tidy(wide, "id"))

    def test_duplicate_observations_flagged(self, long_df):
        doubled = pd.concat([long_df, long_df.iloc[[3]]], ignore_index=True)
        issues = check_tidy(doubled, ["series", "year"])

        assert any("2 rows share" in i for i in issues)

    def test_missing_identifier_flagged(self, long_df):
        broken = long_df.copy()
        broken.loc[0, "series"] = None
        issues = check_tidy(broken, ["series", "year"])

        assert any("missing values" in i for i in issues)
