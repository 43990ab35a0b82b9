#!/usr/bin/env python3
"""
Choropleth Visualization - Style Resolver

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Combine MetricIndex + classification + SelectionState into
a StyleDescriptor per feature.

Three visually distinct states:
1. Unloaded  - nothing selected / data not loaded: flat gray, low opacity
2. Normal    - classified fill, baseline stroke
3. Active    - classified fill, emphasized stroke (the clicked feature)

Registry and index are passed in explicitly; nothing here reads globals.

Navigation Guide:
- resolve_style: One feature
- resolve_styles: Whole collection per render (vectorized classification)

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Dict, Iterable, Optional

from choropleth_viz.classification import classify, classify_many
from choropleth_viz.map_config_types import PaletteConfig, PathStyleConfig, StyleConfig
from choropleth_viz.metric_index import MetricIndex, lookup_metric
from choropleth_viz.models import StyleDescriptor
from choropleth_viz.registry import DatasetRegistry
from choropleth_viz.selection import PHASE_DATASET_AND_METRIC, SelectionState

DEFAULT_STYLES = StyleConfig()
DEFAULT_PALETTE = PaletteConfig()


def unloaded_style(styles: StyleConfig = DEFAULT_STYLES) -> StyleDescriptor:
    """Fixed style for features when no metric can be shown."""
    s = styles.unloaded
    return StyleDescriptor(
        fill_color=s.fill_color or "#cccccc",
        stroke_color=s.stroke_color,
        stroke_weight=s.stroke_weight,
        fill_opacity=s.fill_opacity,
        stroke_opacity=s.stroke_opacity,
    )


def _classified_style(fill_color: str, s: PathStyleConfig) -> StyleDescriptor:
    return StyleDescriptor(
        fill_color=fill_color,
        stroke_color=s.stroke_color,
        stroke_weight=s.stroke_weight,
        fill_opacity=s.fill_opacity,
        stroke_opacity=s.stroke_opacity,
    )


def resolve_style(
    geoid: Optional[str],
    metric_index: Optional[MetricIndex],
    registry: Optional[DatasetRegistry],
    selection: SelectionState,
    styles: StyleConfig = DEFAULT_STYLES,
    palette: PaletteConfig = DEFAULT_PALETTE,
) -> StyleDescriptor:
    """
    Style descriptor for one feature.

    Args:
        geoid: Feature geoid (None for features without one)
        metric_index: Loaded index, or None while loading / after a failure
        registry: Loaded registry, or None while loading / after a failure
        selection: Current selection snapshot
        styles: Presentation constants for the three states
        palette: No-data / overflow colors

    Returns:
        StyleDescriptor; never raises for missing data.
    """
    if metric_index is None or registry is None or geoid is None:
        return unloaded_style(styles)
    if selection.phase != PHASE_DATASET_AND_METRIC:
        return unloaded_style(styles)

    scale = registry.get_scale(selection.active_dataset_id, selection.active_metric_id)
    if scale is None:
        return unloaded_style(styles)

    value = lookup_metric(
        metric_index, geoid, selection.active_dataset_id, selection.active_metric_id
    )
    fill = classify(value, scale, palette)
    emphasis = styles.active if geoid == selection.active_feature_id else styles.normal
    return _classified_style(fill, emphasis)


def resolve_styles(
    geoids: Iterable[str],
    metric_index: Optional[MetricIndex],
    registry: Optional[DatasetRegistry],
    selection: SelectionState,
    styles: StyleConfig = DEFAULT_STYLES,
    palette: PaletteConfig = DEFAULT_PALETTE,
) -> Dict[str, StyleDescriptor]:
    """
    Style descriptors for a whole feature collection.

    Equivalent to calling resolve_style() per geoid, but classifies every
    value in one vectorized pass.
    """
    geoids = list(geoids)
    scale = (
        registry.get_scale(selection.active_dataset_id, selection.active_metric_id)
        if registry is not None and selection.phase == PHASE_DATASET_AND_METRIC
        else None
    )
    if metric_index is None or scale is None:
        fallback = unloaded_style(styles)
        return {geoid: fallback for geoid in geoids}

    values = metric_index.values_for(
        selection.active_dataset_id, selection.active_metric_id, geoids
    )
    fills = classify_many(values, scale, palette)

    result: Dict[str, StyleDescriptor] = {}
    for geoid, fill in zip(geoids, fills.tolist()):
        emphasis = styles.active if geoid == selection.active_feature_id else styles.normal
        result[geoid] = _classified_style(fill, emphasis)
    return result
