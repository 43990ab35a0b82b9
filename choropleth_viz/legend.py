"""
Legend derivation from threshold scales.

Entries are ordered highest bucket first:
- top bucket:    "> {t[n-1]}"
- bottom bucket: "{t[0]}"
- middle bucket: "{t[i]}-{t[i+1]-1}"

Middle labels assume integer metric granularity (counts of households);
non-integer thresholds still render, just with a fractional upper bound.
"""

from typing import List, Optional

from choropleth_viz.map_config_types import LegendConfig, PaletteConfig
from choropleth_viz.models import LegendEntry, ThresholdScale
from choropleth_viz.registry import DatasetRegistry
from choropleth_viz.selection import SelectionState


def format_threshold(value: float) -> str:
    """Render 5.0 as "5", keep real fractions."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def build_legend(
    scale: Optional[ThresholdScale],
    legend_config: Optional[LegendConfig] = None,
    palette: Optional[PaletteConfig] = None,
) -> List[LegendEntry]:
    """
    Legend entries for a scale, highest bucket first.

    Returns an empty list when no scale is selected. With
    ``legend_config.include_no_data`` a trailing no-data row is appended.
    """
    if scale is None:
        return []

    thresholds = scale.thresholds
    last = len(thresholds) - 1
    entries: List[LegendEntry] = []

    for i in range(last, -1, -1):
        if i == last:
            label = f"> {format_threshold(thresholds[i])}"
        elif i == 0:
            label = format_threshold(thresholds[0])
        else:
            label = (
                f"{format_threshold(thresholds[i])}-"
                f"{format_threshold(thresholds[i + 1] - 1)}"
            )
        entries.append(LegendEntry(label=label, color=scale.colors[i]))

    if legend_config is not None and legend_config.include_no_data:
        no_data_color = (palette or PaletteConfig()).no_data_color
        entries.append(LegendEntry(label=legend_config.no_data_label, color=no_data_color))

    return entries


def legend_for_selection(
    registry: Optional[DatasetRegistry],
    selection: SelectionState,
    legend_config: Optional[LegendConfig] = None,
    palette: Optional[PaletteConfig] = None,
) -> List[LegendEntry]:
    """Legend for the currently selected dataset/metric, [] when unselected."""
    if registry is None:
        return []
    scale = registry.get_scale(selection.active_dataset_id, selection.active_metric_id)
    return build_legend(scale, legend_config, palette)


def legend_title(registry: Optional[DatasetRegistry], selection: SelectionState) -> str:
    """Title shown above the legend: metric label, or dataset label alone."""
    if registry is None:
        return ""
    dataset = registry.get(selection.active_dataset_id)
    if dataset is None:
        return ""
    if selection.active_metric_id is None:
        return dataset.label
    return dataset.column_label(selection.active_metric_id)
