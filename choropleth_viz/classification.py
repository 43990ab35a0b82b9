#!/usr/bin/env python3
"""
Choropleth Visualization - Classification

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Map a metric value onto a bucket color of a ThresholdScale.

Rules:
- absent value                       -> palette.no_data_color
- first i with value <= thresholds[i] -> colors[i]  (ties go to the lower bucket)
- value above every threshold        -> palette.overflow_color

Thresholds are strictly ascending (enforced by ThresholdScale), so the
first-match scan is a left bisection.

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from bisect import bisect_left
from typing import Optional

import numpy as np
import pandas as pd

from choropleth_viz.map_config_types import PaletteConfig
from choropleth_viz.models import ThresholdScale

DEFAULT_PALETTE = PaletteConfig()


def bucket_index(value: Optional[float], scale: ThresholdScale) -> Optional[int]:
    """
    Bucket number for a value.

    Returns:
        None for an absent value, ``len(scale)`` for overflow, otherwise the
        index of the first threshold >= value.
    """
    if value is None or pd.isna(value):
        return None
    return bisect_left(scale.thresholds, value)


def classify(
    value: Optional[float],
    scale: ThresholdScale,
    palette: PaletteConfig = DEFAULT_PALETTE,
) -> str:
    """Color for one value."""
    idx = bucket_index(value, scale)
    if idx is None:
        return palette.no_data_color
    if idx >= len(scale.colors):
        return palette.overflow_color
    return scale.colors[idx]


def classify_many(
    values: pd.Series,
    scale: ThresholdScale,
    palette: PaletteConfig = DEFAULT_PALETTE,
) -> pd.Series:
    """
    Vectorized classify() over a float Series (NaN = absent).

    Used once per render for the whole feature collection.

    Returns:
        Series of color strings with the same index as ``values``.
    """
    arr = values.to_numpy(dtype=float)
    idx = np.searchsorted(np.asarray(scale.thresholds, dtype=float), arr, side="left")

    # Overflow slot at the end, no-data handled by mask
    lookup = np.asarray(list(scale.colors) + [palette.overflow_color], dtype=object)
    colors = lookup[idx]
    colors[np.isnan(arr)] = palette.no_data_color
    return pd.Series(colors, index=values.index, dtype=object)
