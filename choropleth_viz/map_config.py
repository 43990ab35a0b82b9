#!/usr/bin/env python3
"""
Choropleth Visualization - Configuration

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Configuration dictionary for the block group choropleth.
This is the user-facing configuration file - edit values here.

Pattern:
- map_config.py defines the MAP_CONFIG_DATA dictionary (edit this)
- map_config_types.py defines typed dataclasses and loads from MAP_CONFIG_DATA

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Dict, Any

# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ CHOROPLETH CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

MAP_CONFIG_DATA: Dict[str, Any] = {
    # ═══════════════════════════════════════════════════════════════════════
    # 🗺️ MAP SETTINGS
    # ═══════════════════════════════════════════════════════════════════════
    "map": {
        "center": [20.6427, -157.5769],  # [lat, lon] - Hawaiian islands
        "zoom": 8,
        "min_zoom": 7,
        "max_bounds": [[18.0, -161.0], [23.0, -154.0]],  # [[south, west], [north, east]]
        "max_bounds_viscosity": 0.5,
        "tile_url": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "tile_attribution": "&copy; OpenStreetMap contributors",
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 📂 DATA SOURCES (local paths or http(s) URLs)
    # ═══════════════════════════════════════════════════════════════════════
    "data": {
        "geometry_path": "data/2020_Census_Block_Groups_WGS84.geojson",
        "metrics_path": "data/metrics/metrics.json",
        "registry_path": "data/datasets.json",
        "geoid_field": "geoid20",
        "request_timeout_s": 30.0,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🎨 CLASSIFICATION COLORS
    # ═══════════════════════════════════════════════════════════════════════
    "palette": {
        "no_data_color": "#9e9e9e",  # Geoid or metric column missing
        "overflow_color": "#333333",  # Value above every threshold
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🖌️ FEATURE STYLES
    # ═══════════════════════════════════════════════════════════════════════
    # Nothing selected / data not loaded: flat gray, low opacity
    "unloaded_style": {
        "fill_color": "#cccccc",
        "stroke_color": "#333333",
        "stroke_weight": 0.5,
        "stroke_opacity": 1.0,
        "fill_opacity": 0.3,
    },
    "normal_style": {
        "stroke_color": "#333333",
        "stroke_weight": 0.5,
        "stroke_opacity": 1.0,
        "fill_opacity": 0.7,
    },
    # Clicked feature
    "active_style": {
        "stroke_color": "#1a73e8",
        "stroke_weight": 3.0,
        "stroke_opacity": 1.0,
        "fill_opacity": 0.9,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🏷️ LEGEND
    # ═══════════════════════════════════════════════════════════════════════
    "legend": {
        "include_no_data": False,
        "no_data_label": "No data",
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🖱️ INITIAL SELECTION (ignored if not present in the loaded registry)
    # ═══════════════════════════════════════════════════════════════════════
    "initial_selection": {
        "dataset_id": "computers",
        "metric_id": "No Computer",
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🌐 SERVER
    # ═══════════════════════════════════════════════════════════════════════
    "server": {
        "host": "127.0.0.1",
        "port": 5052,
        "load_workers": 3,  # geometry, metrics, registry in parallel
    },
}
