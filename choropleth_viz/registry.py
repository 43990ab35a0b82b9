#!/usr/bin/env python3
"""
Choropleth Visualization - Dataset Registry

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Parse the dataset registry JSON into immutable
DatasetDefinition objects and answer "which metrics does dataset X have,
and how is each one classified?".

Accepted payload shapes:
1. Canonical:  {datasetId: {label, columnThresholds: {metricId: {thresholds, colors}}}}
2. Legacy single-metric:  {datasetId: {metricName, metricLabel, thresholds,
   colors, datasetPath}}  (one column per dataset, metrics file per dataset)

Malformed scales (length mismatch, empty, unsorted or duplicate thresholds,
or a bucket color equal to the no-data or overflow color) are rejected at
load time: logged and dropped, the rest of the registry still loads.

Navigation Guide:
- DatasetRegistry: Main registry class
- DatasetRegistry.from_dict: Payload parsing + validation

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
import logging

from choropleth_viz.map_config_types import PaletteConfig
from choropleth_viz.models import DatasetDefinition, ThresholdScale

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# 📚 DATASET REGISTRY
# ═══════════════════════════════════════════════════════════════════════════


class DatasetRegistry:
    """
    Read-only catalog: dataset id -> DatasetDefinition.

    Built once per load cycle and never mutated; a reload produces a new
    registry instance.
    """

    def __init__(self, datasets: Optional[Mapping[str, DatasetDefinition]] = None) -> None:
        self._datasets: Dict[str, DatasetDefinition] = dict(datasets or {})

    # ═══════════════════════════════════════════════════════════════════════
    # 📥 PARSING
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def from_dict(
        cls,
        payload: Mapping[str, Any],
        palette: Optional[PaletteConfig] = None,
    ) -> "DatasetRegistry":
        """
        Build a registry from the raw registry JSON.

        Args:
            payload: Registry JSON object keyed by dataset id
            palette: No-data / overflow colors; scales that reuse either are
                rejected (defaults to PaletteConfig())

        Returns:
            DatasetRegistry with every well-formed dataset/scale.

        Raises:
            ValueError: If the payload is not a JSON object at all.
        """
        if not isinstance(payload, Mapping):
            raise ValueError(
                f"Dataset registry must be a JSON object, got {type(payload).__name__}"
            )

        reserved = _reserved_colors(palette or PaletteConfig())
        datasets: Dict[str, DatasetDefinition] = {}
        rejected = 0

        for dataset_id, entry in payload.items():
            if not isinstance(entry, Mapping):
                logger.warning(f"Skipping dataset '{dataset_id}': entry is not an object")
                rejected += 1
                continue

            if "columnThresholds" in entry:
                raw_scales = entry.get("columnThresholds") or {}
                raw_labels = entry.get("columnLabels") or {}
                if not isinstance(raw_labels, Mapping):
                    logger.warning(
                        f"Dataset '{dataset_id}': columnLabels is not an object, ignored"
                    )
                    raw_labels = {}
                column_labels = dict(raw_labels)
            elif "thresholds" in entry:
                # Legacy single-metric dataset
                metric_name = entry.get("metricName", dataset_id)
                if not isinstance(metric_name, str):
                    logger.warning(
                        f"Skipping dataset '{dataset_id}': metricName must be a string"
                    )
                    rejected += 1
                    continue
                raw_scales = {
                    metric_name: {
                        "thresholds": entry.get("thresholds"),
                        "colors": entry.get("colors"),
                    }
                }
                column_labels = {metric_name: entry.get("metricLabel", metric_name)}
            else:
                logger.warning(
                    f"Skipping dataset '{dataset_id}': no columnThresholds or thresholds"
                )
                rejected += 1
                continue

            metrics_path = entry.get("datasetPath")
            if metrics_path is not None and not isinstance(metrics_path, str):
                logger.warning(f"Dataset '{dataset_id}': datasetPath is not a string, ignored")
                metrics_path = None

            scales, dropped = _parse_scales(str(dataset_id), raw_scales, reserved)
            rejected += dropped

            label = entry.get("label") or entry.get("metricLabel") or str(dataset_id)
            datasets[str(dataset_id)] = DatasetDefinition(
                dataset_id=str(dataset_id),
                label=str(label),
                column_thresholds=scales,
                column_labels={k: str(v) for k, v in column_labels.items() if k in scales},
                metrics_path=metrics_path,
            )

        n_columns = sum(len(d.column_thresholds) for d in datasets.values())
        logger.info(
            f"📚 Registry loaded: {len(datasets)} datasets, {n_columns} metric columns"
            + (f", {rejected} rejected" if rejected else "")
        )
        return cls(datasets)

    # ═══════════════════════════════════════════════════════════════════════
    # 📤 PUBLIC API
    # ═══════════════════════════════════════════════════════════════════════

    def __contains__(self, dataset_id: object) -> bool:
        return dataset_id in self._datasets

    def __len__(self) -> int:
        return len(self._datasets)

    def __iter__(self) -> Iterator[DatasetDefinition]:
        return iter(self._datasets.values())

    def dataset_ids(self) -> List[str]:
        return list(self._datasets)

    def get(self, dataset_id: Optional[str]) -> Optional[DatasetDefinition]:
        if dataset_id is None:
            return None
        return self._datasets.get(dataset_id)

    def columns(self, dataset_id: Optional[str]) -> Tuple[str, ...]:
        """Metric ids of a dataset, empty for unknown datasets."""
        dataset = self.get(dataset_id)
        return dataset.columns if dataset is not None else ()

    def has_metric(self, dataset_id: Optional[str], metric_id: Optional[str]) -> bool:
        return metric_id is not None and metric_id in self.columns(dataset_id)

    def get_scale(
        self, dataset_id: Optional[str], metric_id: Optional[str]
    ) -> Optional[ThresholdScale]:
        """Threshold scale for a dataset/metric pair, None if either is unknown."""
        dataset = self.get(dataset_id)
        if dataset is None or metric_id is None:
            return None
        return dataset.column_thresholds.get(metric_id)

    def metrics_paths(self) -> Dict[str, str]:
        """Per-dataset metrics files declared by legacy entries."""
        return {
            d.dataset_id: d.metrics_path for d in self._datasets.values() if d.metrics_path
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the /api/datasets endpoint."""
        return {
            dataset_id: dataset.to_dict() for dataset_id, dataset in self._datasets.items()
        }


def _reserved_colors(palette: PaletteConfig) -> Dict[str, str]:
    """Lower-cased palette colors that no bucket may reuse."""
    return {
        palette.no_data_color.lower(): "no-data",
        palette.overflow_color.lower(): "overflow",
    }


def _parse_scales(
    dataset_id: str, raw_scales: Any, reserved: Mapping[str, str]
) -> Tuple[Dict[str, ThresholdScale], int]:
    """Validate every column scale of one dataset; return (scales, n_rejected)."""
    scales: Dict[str, ThresholdScale] = {}
    rejected = 0

    if not isinstance(raw_scales, Mapping):
        logger.warning(f"Dataset '{dataset_id}': columnThresholds is not an object")
        return scales, 1

    for metric_id, raw in raw_scales.items():
        if not isinstance(raw, Mapping):
            logger.warning(f"Rejected scale {dataset_id}/{metric_id}: not an object")
            rejected += 1
            continue
        try:
            scale = ThresholdScale.from_dict(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Rejected scale {dataset_id}/{metric_id}: {e}")
            rejected += 1
            continue

        clashes = [c for c in scale.colors if c.lower() in reserved]
        if clashes:
            logger.warning(
                f"Rejected scale {dataset_id}/{metric_id}: colors {clashes} reuse the "
                + " / ".join(sorted({reserved[c.lower()] for c in clashes}))
                + " color"
            )
            rejected += 1
            continue
        scales[str(metric_id)] = scale

    return scales, rejected
