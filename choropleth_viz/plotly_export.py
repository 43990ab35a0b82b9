#!/usr/bin/env python3
"""
Choropleth Visualization - Plotly Export

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Paint the engine's output (resolved styles + legend) into a
standalone Plotly figure, for sharing a snapshot without the server.

One go.Choroplethmap trace per distinct fill color, each with a constant
color scale, so legend rows map 1:1 onto classification buckets (plus the
no-data / overflow / unloaded fills when present). The active feature gets
an extra outline-only trace drawn last (on top).

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import plotly.graph_objects as go

from choropleth_viz.legend import legend_for_selection, legend_title
from choropleth_viz.map_config_types import ChoroplethConfig
from choropleth_viz.models import StyleDescriptor
from choropleth_viz.data_loader import LoadedData
from choropleth_viz.selection import SelectionState
from choropleth_viz.style_resolver import resolve_styles

logger = logging.getLogger(__name__)


def _trace_name(
    color: str,
    legend_labels: Dict[str, str],
    config: ChoroplethConfig,
) -> str:
    if color in legend_labels:
        return legend_labels[color]
    if color == config.palette.no_data_color:
        return config.legend.no_data_label
    if color == config.palette.overflow_color:
        return "Above range"
    return "Not classified"


def build_choropleth_figure(
    loaded: LoadedData,
    selection: SelectionState,
    config: ChoroplethConfig,
    geojson: Dict[str, Any],
) -> go.Figure:
    """
    Build the figure for one selection.

    Args:
        loaded: Published load snapshot
        selection: Selection to render
        config: Choropleth configuration
        geojson: Geometry FeatureCollection (WGS84)

    Returns:
        Plotly Figure; an empty base map when the overlay is hidden.
    """
    geoid_key = f"properties.{config.data.geoid_field}"
    fig = go.Figure()

    geoids = list(loaded.features)
    styles: Dict[str, StyleDescriptor] = {}
    if selection.overlay_visible:
        styles = resolve_styles(
            geoids,
            loaded.metric_index,
            loaded.registry,
            selection,
            config.styles,
            config.palette,
        )

    legend = legend_for_selection(loaded.registry, selection)
    legend_labels = {entry.color: entry.label for entry in legend}
    # Legend order first (highest bucket on top), then any other fills
    order: List[str] = [entry.color for entry in legend]

    by_color: Dict[str, List[str]] = {}
    for geoid, style in styles.items():
        by_color.setdefault(style.fill_color, []).append(geoid)
    for color in by_color:
        if color not in order:
            order.append(color)

    for color in order:
        members = by_color.get(color)
        if not members:
            continue
        sample = styles[members[0]]
        fig.add_trace(
            go.Choroplethmap(
                geojson=geojson,
                locations=members,
                featureidkey=geoid_key,
                z=[1] * len(members),
                zmin=0,
                zmax=1,
                colorscale=[[0.0, color], [1.0, color]],
                showscale=False,
                marker_opacity=sample.fill_opacity,
                marker_line_width=config.styles.normal.stroke_weight,
                marker_line_color=config.styles.normal.stroke_color,
                name=_trace_name(color, legend_labels, config),
                showlegend=True,
                hovertemplate="%{location}<extra>%{fullData.name}</extra>",
            )
        )

    active = selection.active_feature_id
    if active is not None and active in styles:
        active_style = config.styles.active
        fig.add_trace(
            go.Choroplethmap(
                geojson=geojson,
                locations=[active],
                featureidkey=geoid_key,
                z=[1],
                zmin=0,
                zmax=1,
                colorscale=[[0.0, styles[active].fill_color], [1.0, styles[active].fill_color]],
                showscale=False,
                marker_opacity=active_style.fill_opacity,
                marker_line_width=active_style.stroke_weight,
                marker_line_color=active_style.stroke_color,
                name=f"Selected: {active}",
                showlegend=False,
            )
        )

    title = legend_title(loaded.registry, selection)
    fig.update_layout(
        map_style="open-street-map",
        map_center={"lat": config.map.center_lat, "lon": config.map.center_lon},
        map_zoom=config.map.zoom,
        margin={"l": 0, "r": 0, "t": 40 if title else 0, "b": 0},
        title=title or None,
        legend_title_text=title,
    )
    return fig


def write_choropleth_html(
    loaded: LoadedData,
    selection: SelectionState,
    config: ChoroplethConfig,
    geojson: Dict[str, Any],
    output_path: Path,
    include_plotlyjs: Optional[str] = "cdn",
) -> Path:
    """Write the figure to a standalone HTML file and return its path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig = build_choropleth_figure(loaded, selection, config, geojson)
    fig.write_html(str(output_path), include_plotlyjs=include_plotlyjs)
    logger.info(f"💾 Choropleth written to {output_path} ({len(fig.data)} traces)")
    return output_path
