"""
Census Block Group Choropleth Module

═══════════════════════════════════════════════════════════════════════════════
ARCHITECTURAL OVERVIEW
═══════════════════════════════════════════════════════════════════════════════

Responsibility: Decide how every census block group polygon is colored,
which legend is shown and which feature is highlighted, given a dataset
registry, a metrics payload and the user's selection.

Key Features:
- Threshold classification with explicit no-data and overflow colors
- Legend derived from the same scale that colors the map
- Pure selection reducer + thread-safe interaction controller
- Concurrent loading with stale-result discarding
- Flask JSON API for a Leaflet frontend, Plotly HTML export for snapshots

Usage:
    from choropleth_viz import DataLoader, InteractionController, resolve_styles

    loader = DataLoader(CHOROPLETH_CONFIG.data, base_dir="public")
    loader.reload()
    styles = resolve_styles(loader.get_feature_ids(), loader.metric_index,
                            loader.registry, selection)

For Navigation: Use VS Code outline (Ctrl+Shift+O)

═══════════════════════════════════════════════════════════════════════════════
"""

from .classification import bucket_index, classify, classify_many
from .data_loader import DataLoader, LoadedData, LoadFailure
from .interaction import (
    InteractionController,
    fit_bounds_command,
    raise_feature_command,
)
from .legend import build_legend, legend_for_selection, legend_title
from .map_config_types import (
    CHOROPLETH_CONFIG,
    ChoroplethConfig,
    get_frontend_config,
)
from .metric_index import MetricIndex, lookup_metric
from .models import (
    DatasetDefinition,
    GeoFeature,
    LegendEntry,
    MetricRecord,
    StyleDescriptor,
    ThresholdScale,
)
from .registry import DatasetRegistry
from .selection import SelectionState, apply_event
from .style_resolver import resolve_style, resolve_styles

__all__ = [
    "bucket_index",
    "classify",
    "classify_many",
    "DataLoader",
    "LoadedData",
    "LoadFailure",
    "InteractionController",
    "fit_bounds_command",
    "raise_feature_command",
    "build_legend",
    "legend_for_selection",
    "legend_title",
    "CHOROPLETH_CONFIG",
    "ChoroplethConfig",
    "get_frontend_config",
    "MetricIndex",
    "lookup_metric",
    "DatasetDefinition",
    "GeoFeature",
    "LegendEntry",
    "MetricRecord",
    "StyleDescriptor",
    "ThresholdScale",
    "DatasetRegistry",
    "SelectionState",
    "apply_event",
    "resolve_style",
    "resolve_styles",
]
