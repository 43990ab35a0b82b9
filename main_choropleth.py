#!/usr/bin/env python3
"""
Block Group Choropleth Export Entry Point

═══════════════════════════════════════════════════════════════════════════════
ARCHITECTURAL OVERVIEW
═══════════════════════════════════════════════════════════════════════════════

Responsibility: Load geometry, metrics and registry once, apply a
dataset/metric selection and write a standalone Plotly HTML map.

Usage:
    python main_choropleth.py [DATA_DIR] [DATASET_ID] [METRIC_ID]

    DATA_DIR defaults to the current directory; DATASET_ID / METRIC_ID
    default to the initial selection in choropleth_viz/map_config.py.

Output:
    Output/choropleth.html

For Navigation: Use VS Code outline (Ctrl+Shift+O)

═══════════════════════════════════════════════════════════════════════════════
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

# Fix Windows console encoding for emoji support
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

from choropleth_viz.data_loader import DataLoader
from choropleth_viz.map_config_types import CHOROPLETH_CONFIG, ChoroplethConfig
from choropleth_viz.plotly_export import write_choropleth_html
from choropleth_viz.registry import DatasetRegistry
from choropleth_viz.selection import (
    DatasetSelected,
    MetricSelected,
    SelectionState,
    apply_event,
)


# ═══════════════════════════════════════════════════════════════════════════════
# 📋 LOGGING SETUP
# ═══════════════════════════════════════════════════════════════════════════════


def setup_logging() -> logging.Logger:
    """Configure logging with console output.

    Engine modules log under ``choropleth_viz``; both go to stdout.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("Choropleth")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(ch)

    engine_logger = logging.getLogger("choropleth_viz")
    engine_logger.setLevel(logging.INFO)
    engine_logger.handlers.clear()
    engine_logger.addHandler(ch)

    return logger


# ═══════════════════════════════════════════════════════════════════════════════
# 🖱️ SELECTION
# ═══════════════════════════════════════════════════════════════════════════════


def build_selection(
    registry: Optional[DatasetRegistry],
    dataset_id: Optional[str],
    metric_id: Optional[str],
) -> SelectionState:
    """Apply dataset then metric; unknown ids leave the selection unchanged."""
    state = SelectionState()
    if dataset_id is not None:
        state = apply_event(state, DatasetSelected(dataset_id), registry)
    if metric_id is not None:
        state = apply_event(state, MetricSelected(metric_id), registry)
    return state


# ═══════════════════════════════════════════════════════════════════════════════
# 🚀 MAIN ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════════


def run(
    base_dir: Path,
    output_path: Path,
    dataset_id: Optional[str] = None,
    metric_id: Optional[str] = None,
    config: ChoroplethConfig = CHOROPLETH_CONFIG,
    logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Load data and write the choropleth HTML.

    Raises:
        RuntimeError: If geometry could not be loaded (nothing to draw).
    """
    logger = logger or logging.getLogger("Choropleth")

    loader = DataLoader(
        config.data,
        base_dir=base_dir,
        max_workers=config.server.load_workers,
        palette=config.palette,
    )
    try:
        loader.reload()
    finally:
        loader.shutdown()

    loaded = loader.data
    if loaded is None or loaded.geometry is None:
        raise RuntimeError("Geometry failed to load - nothing to draw")
    for failure in loaded.failures:
        logger.warning(f"⚠️ {failure.source}: {failure.message}")

    selection = build_selection(
        loaded.registry,
        dataset_id or config.initial_selection.dataset_id,
        metric_id or config.initial_selection.metric_id,
    )
    logger.info(f"🖱️ Selection: {selection.to_dict()}")

    return write_choropleth_html(
        loaded,
        selection,
        config,
        loader.get_geometry_geojson(),
        output_path,
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the static choropleth export."""
    args = sys.argv[1:] if argv is None else argv
    logger = setup_logging()

    logger.info("=" * 60)
    logger.info("🚀 BLOCK GROUP CHOROPLETH EXPORT")
    logger.info("=" * 60)
    logger.info(f"⏰ Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("")

    base_dir = Path(args[0]) if len(args) > 0 else Path.cwd()
    dataset_id = args[1] if len(args) > 1 else None
    metric_id = args[2] if len(args) > 2 else None
    output_path = Path(__file__).parent / "Output" / "choropleth.html"

    try:
        result_path = run(base_dir, output_path, dataset_id, metric_id, logger=logger)

        logger.info("")
        logger.info("=" * 60)
        logger.info("✅ EXPORT COMPLETE")
        logger.info(f"📄 Output: {result_path}")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"❌ ERROR: {e}")
        import traceback

        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
