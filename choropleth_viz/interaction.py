#!/usr/bin/env python3
"""
Choropleth Visualization - Interaction Controller

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Single writer of SelectionState. Translates the mapping
library's pointer/select events into reducer events and issues the view
side effects of a feature click (raise to front, fit bounds).

Dispatch interface (all the map layer needs to call):
- on_feature_click(geoid)  -> (state, view commands for this click)
- on_background_click()
- on_dataset_change(dataset_id)
- on_metric_change(metric_id)
- on_overlay_toggle()
- on_registry_reload(registry)

Writes are serialized with a lock (the Flask server handles requests on
threads); readers take the immutable ``state`` snapshot. View commands are
built per click and returned to that caller only.

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import threading

from choropleth_viz.registry import DatasetRegistry
from choropleth_viz.selection import (
    BackgroundClicked,
    DatasetSelected,
    FeatureClicked,
    MetricSelected,
    OverlayToggled,
    RegistryReloaded,
    SelectionEvent,
    SelectionState,
    apply_event,
)

logger = logging.getLogger(__name__)

# ((south, west), (north, east)) in WGS84
Bounds = Tuple[Tuple[float, float], Tuple[float, float]]

# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ VIEW COMMANDS
# ═══════════════════════════════════════════════════════════════════════════


# Side effects requested from the external map view; the server returns
# them in the click response for the browser to execute.
ViewCommand = Dict[str, Any]


def raise_feature_command(geoid: str) -> ViewCommand:
    return {"command": "bringToFront", "geoid": geoid}


def fit_bounds_command(bounds: Bounds) -> ViewCommand:
    return {"command": "fitBounds", "bounds": [list(bounds[0]), list(bounds[1])]}


# ═══════════════════════════════════════════════════════════════════════════
# 🖱️ INTERACTION CONTROLLER
# ═══════════════════════════════════════════════════════════════════════════


class InteractionController:
    """
    Owns the current SelectionState and applies UI events to it.

    Args:
        registry_provider: Returns the current registry (None while loading)
        bounds_lookup: geoid -> bounds, None for unknown features
        initial_state: Starting selection
    """

    def __init__(
        self,
        registry_provider: Callable[[], Optional[DatasetRegistry]],
        bounds_lookup: Optional[Callable[[str], Optional[Bounds]]] = None,
        initial_state: Optional[SelectionState] = None,
    ) -> None:
        self._registry_provider = registry_provider
        self._bounds_lookup = bounds_lookup
        self._state = initial_state or SelectionState()
        self._lock = threading.Lock()

    @property
    def state(self) -> SelectionState:
        return self._state

    def dispatch(
        self, event: SelectionEvent, registry: Optional[DatasetRegistry] = None
    ) -> SelectionState:
        """Apply one event under the write lock and publish the new state."""
        with self._lock:
            return self._apply(event, registry)

    def _apply(
        self, event: SelectionEvent, registry: Optional[DatasetRegistry]
    ) -> SelectionState:
        # Caller holds self._lock
        if registry is None:
            registry = self._registry_provider()
        new_state = apply_event(self._state, event, registry)
        if new_state != self._state:
            logger.debug(f"Selection {self._state} -> {new_state}")
        self._state = new_state
        return new_state

    # ═══════════════════════════════════════════════════════════════════════
    # 📨 EVENT HANDLERS
    # ═══════════════════════════════════════════════════════════════════════

    def on_feature_click(self, geoid: str) -> Tuple[SelectionState, List[ViewCommand]]:
        """
        Make ``geoid`` the single active feature.

        Returns:
            The new state and this click's view commands: raise the feature,
            then fit to its bounds when they are known.
        """
        with self._lock:
            state = self._apply(FeatureClicked(geoid), None)
            commands = [raise_feature_command(geoid)]
            bounds = self._bounds_lookup(geoid) if self._bounds_lookup else None
            if bounds is not None:
                commands.append(fit_bounds_command(bounds))
            else:
                logger.debug(f"No bounds for feature '{geoid}' - fit skipped")
        return state, commands

    def on_background_click(self) -> SelectionState:
        return self.dispatch(BackgroundClicked())

    def on_dataset_change(self, dataset_id: str) -> SelectionState:
        return self.dispatch(DatasetSelected(dataset_id))

    def on_metric_change(self, metric_id: str) -> SelectionState:
        return self.dispatch(MetricSelected(metric_id))

    def on_overlay_toggle(self) -> SelectionState:
        return self.dispatch(OverlayToggled())

    def on_registry_reload(self, registry: DatasetRegistry) -> SelectionState:
        """Drop a dataset/metric selection that the new registry invalidates."""
        return self.dispatch(RegistryReloaded(), registry)
