#!/usr/bin/env python3
"""
Choropleth Visualization - Flask Server

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Lightweight Flask server exposing the choropleth engine as a
JSON API for the browser-side map (Leaflet). The browser paints; the server
decides colors, legend and selection.

Key Interactions:
- DataLoader publishes geometry + metrics + registry snapshots
- InteractionController is the single writer of the selection
- style_resolver / legend derive per-render output from the snapshot

Navigation Guide:
- ROUTES: API endpoints (/api/config, /api/styles, /api/legend, /api/events/...)
- STARTUP: initialize_services() and main()

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import logging
import sys

from flask import Flask, jsonify, request, Response
from flask_cors import CORS

from choropleth_viz.classification import bucket_index, classify
from choropleth_viz.data_loader import DataLoader
from choropleth_viz.interaction import InteractionController
from choropleth_viz.legend import build_legend, legend_for_selection, legend_title
from choropleth_viz.map_config_types import (
    CHOROPLETH_CONFIG,
    ChoroplethConfig,
    get_frontend_config,
)
from choropleth_viz.metric_index import lookup_metric
from choropleth_viz.selection import SelectionState
from choropleth_viz.style_resolver import resolve_styles

# ═══════════════════════════════════════════════════════════════════════════
# 🌐 FLASK APPLICATION
# ═══════════════════════════════════════════════════════════════════════════

app = Flask(__name__)
CORS(app)

# Global services - initialized on startup
config: ChoroplethConfig = CHOROPLETH_CONFIG
data_loader: Optional[DataLoader] = None
controller: Optional[InteractionController] = None

# Logging setup
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
logger = logging.getLogger(__name__)


def _not_initialized() -> Tuple[Response, int]:
    return jsonify({"error": "Server not initialized"}), 500


def _still_loading() -> Tuple[Response, int]:
    return jsonify({"error": "Data still loading", "status": data_loader.status()}), 503


def _selection_response(state: SelectionState, **extra: Any) -> Response:
    payload: Dict[str, Any] = {"selection": state.to_dict()}
    payload.update(extra)
    return jsonify(payload)


# ═══════════════════════════════════════════════════════════════════════════
# 🛣️ API ROUTES - READ
# ═══════════════════════════════════════════════════════════════════════════


@app.route("/api/config")
def get_config() -> Response:
    """Frontend configuration (map view, geoid field, style constants)."""
    return jsonify(get_frontend_config(config))


@app.route("/api/status")
def get_status() -> Any:
    """Loading flag, readiness, load failures and counts."""
    if data_loader is None:
        return _not_initialized()
    return jsonify(data_loader.status())


@app.route("/api/datasets")
def get_datasets() -> Any:
    """Dataset registry: options for the dataset and metric pickers."""
    if data_loader is None:
        return _not_initialized()
    registry = data_loader.registry
    return jsonify(registry.to_dict() if registry is not None else {})


@app.route("/api/geometry")
def get_geometry() -> Any:
    """Block group FeatureCollection (WGS84)."""
    if data_loader is None:
        return _not_initialized()
    return jsonify(data_loader.get_geometry_geojson())


@app.route("/api/styles")
def get_styles() -> Any:
    """
    Leaflet path options per geoid for the current selection.

    Returns:
        {
            "overlayVisible": bool,
            "styles": {geoid: {fillColor, color, weight, opacity, fillOpacity}}
        }
        While the overlay is hidden or data is degraded, styles is empty and
        the map renders without an overlay.
    """
    if data_loader is None or controller is None:
        return _not_initialized()
    if data_loader.loading:
        return _still_loading()

    state = controller.state
    loaded = data_loader.data
    if not state.overlay_visible or loaded is None or not loaded.is_ready:
        return jsonify({"overlayVisible": False, "styles": {}})

    styles = resolve_styles(
        loaded.features,
        loaded.metric_index,
        loaded.registry,
        state,
        config.styles,
        config.palette,
    )
    return jsonify(
        {
            "overlayVisible": True,
            "styles": {geoid: style.to_leaflet() for geoid, style in styles.items()},
        }
    )


@app.route("/api/legend")
def get_legend() -> Any:
    """Legend for the current selection: {title, entries: [{label, color}]}."""
    if data_loader is None or controller is None:
        return _not_initialized()
    if data_loader.loading:
        return _still_loading()

    state = controller.state
    registry = data_loader.registry
    entries = legend_for_selection(registry, state, config.legend, config.palette)
    return jsonify(
        {
            "title": legend_title(registry, state),
            "entries": [entry.to_dict() for entry in entries],
        }
    )


@app.route("/api/selection")
def get_selection() -> Any:
    if controller is None:
        return _not_initialized()
    return _selection_response(controller.state)


@app.route("/api/feature/<geoid>")
def get_feature(geoid: str) -> Any:
    """
    Popup info for one block group.

    Returns:
        {
            "geoid": str,
            "properties": GeoFeature fields or null,
            "geoinfo": {blockGroup, censusTract, county} or null,
            "value": number or null (current dataset/metric),
            "color": current fill color,
            "bucket": legend label of the value's bucket or null
        }
    """
    if data_loader is None or controller is None:
        return _not_initialized()

    loaded = data_loader.data
    properties = data_loader.get_feature_properties(geoid)
    state = controller.state
    index = loaded.metric_index if loaded is not None else None
    registry = loaded.registry if loaded is not None else None

    record = index.get(geoid) if index is not None else None
    value = lookup_metric(index, geoid, state.active_dataset_id, state.active_metric_id)

    color = None
    bucket_label = None
    scale = (
        registry.get_scale(state.active_dataset_id, state.active_metric_id)
        if registry is not None
        else None
    )
    if scale is not None:
        color = classify(value, scale, config.palette)
        idx = bucket_index(value, scale)
        if idx is not None and idx < len(scale):
            # Legend is highest bucket first
            bucket_label = build_legend(scale)[len(scale) - 1 - idx].label

    if properties is None and record is None:
        return jsonify({"error": f"Unknown geoid: {geoid}"}), 404

    return jsonify(
        {
            "geoid": geoid,
            "properties": properties,
            "geoinfo": record.geoinfo.to_dict() if record is not None else None,
            "value": value,
            "color": color,
            "bucket": bucket_label,
        }
    )


# ═══════════════════════════════════════════════════════════════════════════
# 🛣️ API ROUTES - EVENTS
# ═══════════════════════════════════════════════════════════════════════════


@app.route("/api/events/feature-click", methods=["POST"])
def feature_click() -> Any:
    """
    Select a feature (replaces any previously active feature).

    Request Body:
        {"geoid": str}

    Returns:
        {"selection": {...}, "commands": [{command: "bringToFront"|"fitBounds", ...}]}
    """
    if controller is None:
        return _not_initialized()

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data.get("geoid"):
        return jsonify({"error": "Missing geoid in request body"}), 400

    state, commands = controller.on_feature_click(str(data["geoid"]))
    return _selection_response(state, commands=commands)


@app.route("/api/events/background-click", methods=["POST"])
def background_click() -> Any:
    """Clear the active feature."""
    if controller is None:
        return _not_initialized()
    return _selection_response(controller.on_background_click())


@app.route("/api/events/dataset", methods=["POST"])
def dataset_change() -> Any:
    """
    Select a dataset (always clears the metric).

    Request Body:
        {"datasetId": str}
    """
    if controller is None:
        return _not_initialized()

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "datasetId" not in data:
        return jsonify({"error": "Missing datasetId in request body"}), 400

    return _selection_response(controller.on_dataset_change(str(data["datasetId"])))


@app.route("/api/events/metric", methods=["POST"])
def metric_change() -> Any:
    """
    Select a metric of the current dataset (ignored if not one of its columns).

    Request Body:
        {"metricId": str}
    """
    if controller is None:
        return _not_initialized()

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "metricId" not in data:
        return jsonify({"error": "Missing metricId in request body"}), 400

    return _selection_response(controller.on_metric_change(str(data["metricId"])))


@app.route("/api/events/overlay", methods=["POST"])
def overlay_toggle() -> Any:
    """Show/hide the choropleth overlay."""
    if controller is None:
        return _not_initialized()
    return _selection_response(controller.on_overlay_toggle())


@app.route("/api/reload", methods=["POST"])
def reload_data() -> Any:
    """Start a background reload; a newer reload supersedes this one."""
    if data_loader is None or controller is None:
        return _not_initialized()

    future = data_loader.reload_async()
    future.add_done_callback(lambda f: _after_reload(f.result()))
    return jsonify({"started": True, "status": data_loader.status()}), 202


def _after_reload(published: bool) -> None:
    if published and controller is not None and data_loader is not None:
        registry = data_loader.registry
        if registry is not None:
            controller.on_registry_reload(registry)


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 SERVER INITIALIZATION
# ═══════════════════════════════════════════════════════════════════════════


def initialize_services(
    app_config: ChoroplethConfig = CHOROPLETH_CONFIG,
    base_dir: Optional[Path] = None,
) -> bool:
    """
    Initialize data loader and interaction controller, then run the first load.

    Args:
        app_config: Choropleth configuration
        base_dir: Directory relative data paths resolve against

    Returns:
        True if every input loaded, False if running in degraded mode.
    """
    global config, data_loader, controller

    config = app_config
    logger.info(f"🚀 Initializing services from: {base_dir or Path.cwd()}")

    data_loader = DataLoader(
        config.data,
        base_dir=base_dir,
        max_workers=config.server.load_workers,
        palette=config.palette,
    )
    controller = InteractionController(
        registry_provider=lambda: data_loader.registry,
        bounds_lookup=data_loader.get_feature_bounds,
    )

    data_loader.reload()

    initial = config.initial_selection
    if initial.dataset_id is not None:
        controller.on_dataset_change(initial.dataset_id)
        if initial.metric_id is not None:
            controller.on_metric_change(initial.metric_id)
        logger.info(f"Initial selection: {controller.state.to_dict()}")

    ready = data_loader.is_ready
    if ready:
        logger.info(f"✅ Loaded {len(data_loader.get_feature_ids())} block groups")
    else:
        logger.error("❌ Data incomplete - serving map without overlay")
    return ready


def main() -> None:
    """Main entry point - initialize and start server."""
    # Optional data directory from command line
    base_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else None

    # Degraded mode still serves the base map
    initialize_services(CHOROPLETH_CONFIG, base_dir)

    host, port = config.server.host, config.server.port
    logger.info(f"🌐 Starting server at http://{host}:{port}")
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    main()
