#!/usr/bin/env python3
"""
Choropleth Visualization - Metric Index

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Build the geoid -> MetricRecord lookup from a raw metrics
payload and resolve (geoid, dataset, metric) to a value.

Accepted payload shapes (per record, so mixed payloads are tolerated):
1. Nested (canonical):  {geoid: {geoinfo: {...}, metrics: {datasetId: {metricId: number}}}}
2. Flat (legacy):       {geoid: {metricName: number}}  -> filed under one dataset id

Absent geoid, dataset or column is a valid "no data" state, never an error.
Non-numeric or non-finite leaves are skipped (they read back as absent).

Navigation Guide:
- MetricIndex: Immutable index
- lookup_metric: Explicit multi-level optional lookup used by the resolver

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple
import logging
import math

import pandas as pd

from choropleth_viz.models import GeoInfo, MetricRecord

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# 🔧 CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

# Dataset id used for flat payloads when the caller does not name one
FLAT_PAYLOAD_DATASET_ID = "default"

# ═══════════════════════════════════════════════════════════════════════════
# 🗂️ METRIC INDEX
# ═══════════════════════════════════════════════════════════════════════════


class MetricIndex:
    """
    Read-only geoid -> MetricRecord mapping.

    Built once per load; merge() returns a new index rather than mutating.
    """

    def __init__(self, records: Optional[Mapping[str, MetricRecord]] = None) -> None:
        self._records: Dict[str, MetricRecord] = dict(records or {})

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        default_dataset_id: Optional[str] = None,
    ) -> "MetricIndex":
        """
        Build an index from a raw metrics payload.

        Args:
            payload: Metrics JSON object keyed by geoid
            default_dataset_id: Dataset id for flat (legacy) records

        Returns:
            MetricIndex

        Raises:
            ValueError: If the payload is not a JSON object.
        """
        if not isinstance(payload, Mapping):
            raise ValueError(
                f"Metrics payload must be a JSON object, got {type(payload).__name__}"
            )

        flat_dataset_id = default_dataset_id or FLAT_PAYLOAD_DATASET_ID
        records: Dict[str, MetricRecord] = {}
        skipped_values = 0
        flat_records = 0

        for geoid, entry in payload.items():
            if not isinstance(entry, Mapping):
                skipped_values += 1
                continue

            raw_metrics = entry.get("metrics")
            if isinstance(raw_metrics, Mapping):
                metrics: Dict[str, Dict[str, float]] = {}
                for dataset_id, columns in raw_metrics.items():
                    if not isinstance(columns, Mapping):
                        skipped_values += 1
                        continue
                    values, skipped = _numeric_columns(columns)
                    skipped_values += skipped
                    metrics[str(dataset_id)] = values
                geoinfo = GeoInfo.from_dict(entry.get("geoinfo"))
            else:
                flat_records += 1
                values, skipped = _numeric_columns(
                    {k: v for k, v in entry.items() if k != "geoinfo"}
                )
                skipped_values += skipped
                metrics = {flat_dataset_id: values}
                geoinfo = GeoInfo.from_dict(entry.get("geoinfo"))

            records[str(geoid)] = MetricRecord(
                geoid=str(geoid), geoinfo=geoinfo, metrics=metrics
            )

        if flat_records and default_dataset_id is None:
            logger.warning(
                f"{flat_records} flat metric records filed under dataset "
                f"'{FLAT_PAYLOAD_DATASET_ID}' (no dataset id given)"
            )
        if skipped_values:
            logger.debug(f"Skipped {skipped_values} non-numeric metric values")

        logger.info(f"🗂️ Metric index built: {len(records)} geoids")
        return cls(records)

    def merge(self, other: "MetricIndex") -> "MetricIndex":
        """
        Combine two indices into a new one.

        Dataset maps are merged per geoid; on a clash the other index wins
        for that dataset. Geoinfo is kept from whichever side has it.
        """
        merged: Dict[str, MetricRecord] = dict(self._records)
        for geoid, record in other._records.items():
            existing = merged.get(geoid)
            if existing is None:
                merged[geoid] = record
                continue
            metrics = {**existing.metrics, **record.metrics}
            geoinfo = record.geoinfo if record.geoinfo != GeoInfo() else existing.geoinfo
            merged[geoid] = MetricRecord(geoid=geoid, geoinfo=geoinfo, metrics=metrics)
        return MetricIndex(merged)

    # ═══════════════════════════════════════════════════════════════════════
    # 📤 PUBLIC API
    # ═══════════════════════════════════════════════════════════════════════

    def __contains__(self, geoid: object) -> bool:
        return geoid in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def geoids(self) -> List[str]:
        return list(self._records)

    def get(self, geoid: Optional[str]) -> Optional[MetricRecord]:
        if geoid is None:
            return None
        return self._records.get(geoid)

    def dataset_ids(self) -> List[str]:
        """Every dataset id that appears in at least one record."""
        seen: Dict[str, None] = {}
        for record in self._records.values():
            for dataset_id in record.metrics:
                seen.setdefault(dataset_id)
        return list(seen)

    def values_for(
        self,
        dataset_id: str,
        metric_id: str,
        geoids: Optional[Iterable[str]] = None,
    ) -> pd.Series:
        """
        Values of one metric column as a float Series indexed by geoid.

        Args:
            dataset_id: Dataset to read
            metric_id: Column within the dataset
            geoids: Index of the result (defaults to every indexed geoid).
                Absent values are NaN.
        """
        keys = list(geoids) if geoids is not None else self.geoids()
        values = [lookup_metric(self, g, dataset_id, metric_id) for g in keys]
        return pd.Series(
            [math.nan if v is None else v for v in values],
            index=pd.Index(keys, dtype=object, name="geoid"),
            dtype=float,
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🔎 LOOKUP
# ═══════════════════════════════════════════════════════════════════════════


def lookup_metric(
    index: Optional[MetricIndex],
    geoid: Optional[str],
    dataset_id: Optional[str],
    metric_id: Optional[str],
) -> Optional[float]:
    """
    Resolve one value, or None when any level is absent.

    Levels:
        1. index not loaded          -> None
        2. geoid has no record       -> None
        3. record lacks the dataset  -> None
        4. dataset lacks the column  -> None
    """
    if index is None or dataset_id is None or metric_id is None:
        return None
    record = index.get(geoid)
    if record is None:
        return None
    columns = record.metrics.get(dataset_id)
    if columns is None:
        return None
    return columns.get(metric_id)


def _numeric_columns(columns: Mapping[str, Any]) -> Tuple[Dict[str, float], int]:
    """Keep finite numeric leaves; return (values, n_skipped)."""
    values: Dict[str, float] = {}
    skipped = 0
    for metric_id, value in columns.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            skipped += 1
            continue
        if not math.isfinite(value):
            skipped += 1
            continue
        values[str(metric_id)] = value
    return values, skipped
