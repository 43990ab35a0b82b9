#!/usr/bin/env python3
"""
Tests for threshold classification and scale validation.

Covers:
1. First-match rule with ties going to the lower bucket
2. No-data and overflow colors (distinct from every bucket color)
3. classify_many agrees with classify
4. ThresholdScale rejects malformed scales
"""

import math

import numpy as np
import pandas as pd
import pytest

from choropleth_viz.classification import bucket_index, classify, classify_many
from choropleth_viz.map_config_types import PaletteConfig
from choropleth_viz.models import ThresholdScale

from conftest import COLORS, THRESHOLDS

PALETTE = PaletteConfig()


class TestClassify:
    """classify(): one value at a time."""

    @pytest.mark.parametrize("value", [-10, -0.5, 0])
    def test_at_or_below_first_threshold_is_first_color(self, scale, value):
        assert classify(value, scale) == COLORS[0]

    def test_ties_go_to_lower_bucket(self, scale):
        for i, threshold in enumerate(THRESHOLDS):
            assert classify(threshold, scale) == COLORS[i], (
                f"value {threshold} should land in bucket {i}"
            )

    def test_value_between_thresholds(self, scale):
        assert classify(3, scale) == COLORS[2]
        assert classify(40, scale) == "#E31A1C"
        assert classify(62, scale) == "#BD0026"
        assert classify(99.9, scale) == COLORS[7]

    def test_above_last_threshold_is_overflow(self, scale):
        color = classify(101, scale, PALETTE)
        assert color == PALETTE.overflow_color
        assert color not in COLORS

    @pytest.mark.parametrize("value", [None, math.nan])
    def test_absent_is_no_data(self, scale, value):
        color = classify(value, scale, PALETTE)
        assert color == PALETTE.no_data_color
        assert color not in COLORS

    def test_custom_palette(self, scale):
        palette = PaletteConfig(no_data_color="#ffffff", overflow_color="#000000")
        assert classify(None, scale, palette) == "#ffffff"
        assert classify(1000, scale, palette) == "#000000"

    def test_single_threshold_scale(self):
        single = ThresholdScale([10], ["#abcdef"])
        assert classify(10, single) == "#abcdef"
        assert classify(11, single) == PALETTE.overflow_color


class TestBucketIndex:
    def test_bucket_numbers(self, scale):
        assert bucket_index(None, scale) is None
        assert bucket_index(0, scale) == 0
        assert bucket_index(1, scale) == 1
        assert bucket_index(2, scale) == 2
        assert bucket_index(500, scale) == len(scale)

    @pytest.mark.parametrize("value", [np.float32("nan"), np.float64("nan"), pd.NA])
    def test_numpy_and_pandas_missing_values(self, scale, value):
        assert bucket_index(value, scale) is None
        assert classify(value, scale, PALETTE) == PALETTE.no_data_color


class TestClassifyMany:
    """Vectorized classification must match the scalar rule."""

    def test_matches_scalar(self, scale):
        values = [-1, 0, 0.5, 1, 5, 7, 62, 100, 101, math.nan]
        series = pd.Series(values, index=[f"g{i}" for i in range(len(values))])

        result = classify_many(series, scale, PALETTE)

        expected = [classify(v, scale, PALETTE) for v in values]
        assert result.tolist() == expected
        assert list(result.index) == list(series.index)

    def test_empty_series(self, scale):
        result = classify_many(pd.Series([], dtype=float), scale)
        assert result.empty


class TestThresholdScaleValidation:
    """Malformed scales are rejected at construction."""

    def test_accepts_lists_and_normalizes_to_tuples(self):
        s = ThresholdScale([1, 2], ["#a", "#b"])
        assert s.thresholds == (1, 2)
        assert s.colors == ("#a", "#b")
        assert len(s) == 2

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            ThresholdScale([], [])

    def test_rejects_length_mismatch(self):
        with pytest.raises(ValueError, match="length mismatch"):
            ThresholdScale([0, 1, 2], ["#a", "#b"])

    @pytest.mark.parametrize("thresholds", [[0, 5, 1], [0, 1, 1]])
    def test_rejects_unsorted_or_duplicate(self, thresholds):
        with pytest.raises(ValueError, match="strictly ascending"):
            ThresholdScale(thresholds, ["#a", "#b", "#c"])

    @pytest.mark.parametrize("bad", ["5", None, True, math.inf])
    def test_rejects_non_numeric(self, bad):
        with pytest.raises(ValueError, match="must be numbers"):
            ThresholdScale([0, bad], ["#a", "#b"])

    def test_from_dict_round_trip_shape(self):
        s = ThresholdScale.from_dict({"thresholds": THRESHOLDS, "colors": COLORS})
        assert s.to_dict() == {"thresholds": THRESHOLDS, "colors": COLORS}
