#!/usr/bin/env python3
"""
Choropleth Visualization - Selection State

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Immutable selection state plus a pure reducer
``apply_event(state, event, registry) -> state'``.

Two independent axes:
- (dataset, metric):  Unselected -> DatasetOnly(d) -> DatasetAndMetric(d, m)
- active feature:     Idle <-> Active(geoid)

Rules:
- DatasetSelected(d) always clears the metric; unknown d is ignored
- MetricSelected(m) needs a selected dataset whose columns contain m;
  otherwise ignored (InvalidSelection is absorbed, never raised)
- RegistryReloaded drops a dataset/metric that no longer exists
- FeatureClicked(g) replaces the active feature; BackgroundClicked clears it
- Neither axis ever touches the other

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Union
import logging

from choropleth_viz.registry import DatasetRegistry

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# 🔧 CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

PHASE_UNSELECTED = "unselected"
PHASE_DATASET_ONLY = "dataset_only"
PHASE_DATASET_AND_METRIC = "dataset_and_metric"

# ═══════════════════════════════════════════════════════════════════════════
# 📦 STATE
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class SelectionState:
    """Snapshot of everything the user has selected.

    Attributes:
        active_dataset_id: Selected dataset, or None
        active_metric_id: Selected column of that dataset, or None
        active_feature_id: Geoid of the highlighted feature, or None
        overlay_visible: Whether the choropleth overlay is shown
    """

    active_dataset_id: Optional[str] = None
    active_metric_id: Optional[str] = None
    active_feature_id: Optional[str] = None
    overlay_visible: bool = True

    @property
    def phase(self) -> str:
        return selection_phase(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "datasetId": self.active_dataset_id,
            "metricId": self.active_metric_id,
            "featureId": self.active_feature_id,
            "overlayVisible": self.overlay_visible,
            "phase": self.phase,
        }


def selection_phase(state: SelectionState) -> str:
    if state.active_dataset_id is None:
        return PHASE_UNSELECTED
    if state.active_metric_id is None:
        return PHASE_DATASET_ONLY
    return PHASE_DATASET_AND_METRIC


# ═══════════════════════════════════════════════════════════════════════════
# ✉️ EVENTS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DatasetSelected:
    dataset_id: str


@dataclass(frozen=True)
class MetricSelected:
    metric_id: str


@dataclass(frozen=True)
class FeatureClicked:
    geoid: str


@dataclass(frozen=True)
class BackgroundClicked:
    pass


@dataclass(frozen=True)
class OverlayToggled:
    pass


@dataclass(frozen=True)
class RegistryReloaded:
    """Re-validate dataset/metric against the registry passed to apply_event."""


SelectionEvent = Union[
    DatasetSelected,
    MetricSelected,
    FeatureClicked,
    BackgroundClicked,
    OverlayToggled,
    RegistryReloaded,
]

# ═══════════════════════════════════════════════════════════════════════════
# 🔁 REDUCER
# ═══════════════════════════════════════════════════════════════════════════


def apply_event(
    state: SelectionState,
    event: SelectionEvent,
    registry: Optional[DatasetRegistry],
) -> SelectionState:
    """
    Pure transition function.

    Args:
        state: Current state
        event: One of the SelectionEvent types
        registry: Current dataset registry (None while loading)

    Returns:
        The next state (``state`` itself when the event is a no-op).
    """
    if isinstance(event, FeatureClicked):
        return replace(state, active_feature_id=event.geoid)

    if isinstance(event, BackgroundClicked):
        if state.active_feature_id is None:
            return state
        return replace(state, active_feature_id=None)

    if isinstance(event, OverlayToggled):
        return replace(state, overlay_visible=not state.overlay_visible)

    if isinstance(event, DatasetSelected):
        if registry is None or event.dataset_id not in registry:
            logger.debug(f"Ignoring unknown dataset '{event.dataset_id}'")
            return state
        return replace(state, active_dataset_id=event.dataset_id, active_metric_id=None)

    if isinstance(event, MetricSelected):
        if registry is None or not registry.has_metric(
            state.active_dataset_id, event.metric_id
        ):
            logger.debug(
                f"Ignoring metric '{event.metric_id}' for dataset "
                f"'{state.active_dataset_id}'"
            )
            return state
        return replace(state, active_metric_id=event.metric_id)

    if isinstance(event, RegistryReloaded):
        return _revalidate(state, registry)

    raise TypeError(f"Unknown selection event: {event!r}")


def _revalidate(
    state: SelectionState, registry: Optional[DatasetRegistry]
) -> SelectionState:
    """Clear a dataset or metric the registry no longer contains."""
    if state.active_dataset_id is None:
        return state
    if registry is None or state.active_dataset_id not in registry:
        logger.info(
            f"Selected dataset '{state.active_dataset_id}' no longer available - cleared"
        )
        return replace(state, active_dataset_id=None, active_metric_id=None)
    if state.active_metric_id is not None and not registry.has_metric(
        state.active_dataset_id, state.active_metric_id
    ):
        logger.info(
            f"Metric '{state.active_metric_id}' no longer in dataset "
            f"'{state.active_dataset_id}' - cleared"
        )
        return replace(state, active_metric_id=None)
    return state
