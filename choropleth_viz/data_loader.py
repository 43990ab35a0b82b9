#!/usr/bin/env python3
"""
Choropleth Visualization - Data Loader

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Load block group geometry, the metrics payload and the
dataset registry, concurrently, and publish them as one immutable snapshot.

Key Features:
1. Three independent loads run in a thread pool (geometry, metrics, registry)
2. Legacy per-dataset metrics files (registry ``datasetPath``) merged into one index
3. Sources may be local paths or http(s) URLs
4. Every reload carries a request token; a load that finishes after a newer
   one started is discarded instead of overwriting fresher data
5. LoadFailure is recorded and logged, never raised: the map falls back to
   degraded mode (no overlay) and the server keeps running

Navigation Guide:
- LoadedData: Immutable published snapshot
- DataLoader: begin_load / fetch / publish (reload() runs all three)
- get_feature_bounds / get_geometry_geojson: Geometry accessors for the view

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple
import json
import logging
import math
import threading
import time

import geopandas as gpd
import requests

from choropleth_viz.map_config_types import DataSourceConfig, PaletteConfig
from choropleth_viz.metric_index import MetricIndex
from choropleth_viz.models import GeoFeature
from choropleth_viz.registry import DatasetRegistry

# ═══════════════════════════════════════════════════════════════════════════
# 🔧 CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

CRS_WGS84 = "EPSG:4326"

SOURCE_GEOMETRY = "geometry"
SOURCE_METRICS = "metrics"
SOURCE_REGISTRY = "registry"

logger = logging.getLogger(__name__)

# ((south, west), (north, east))
Bounds = Tuple[Tuple[float, float], Tuple[float, float]]

# ═══════════════════════════════════════════════════════════════════════════
# 📦 LOAD RESULTS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LoadFailure:
    """A network/parse/schema error on one input."""

    source: str
    location: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "location": self.location, "message": self.message}


@dataclass(frozen=True)
class LoadedData:
    """Everything one load cycle produced. Never mutated after publish."""

    token: int
    geometry: Optional[gpd.GeoDataFrame] = None
    features: Dict[str, GeoFeature] = field(default_factory=dict)
    metric_index: Optional[MetricIndex] = None
    registry: Optional[DatasetRegistry] = None
    failures: Tuple[LoadFailure, ...] = ()
    loaded_at: datetime = field(default_factory=datetime.now)

    @property
    def is_ready(self) -> bool:
        """All three inputs available: classification may be queried."""
        return (
            self.geometry is not None
            and self.metric_index is not None
            and self.registry is not None
        )


# ═══════════════════════════════════════════════════════════════════════════
# 📂 DATA LOADER
# ═══════════════════════════════════════════════════════════════════════════


class DataLoader:
    """
    Load geometry, metrics and registry; publish the newest complete snapshot.

    Args:
        sources: Data source configuration
        base_dir: Directory that relative paths are resolved against
        max_workers: Thread pool size for the concurrent loads
        palette: No-data / overflow colors, reserved when validating scales
    """

    def __init__(
        self,
        sources: DataSourceConfig,
        base_dir: Optional[Path] = None,
        max_workers: int = 3,
        palette: Optional[PaletteConfig] = None,
    ) -> None:
        self.sources = sources
        self.palette = palette or PaletteConfig()
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.max_workers = max_workers

        self._lock = threading.Lock()
        self._latest_token = 0
        self._in_flight: Set[int] = set()
        self._data: Optional[LoadedData] = None

        # Background reloads triggered from the API
        self._reload_executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="choropleth-reload"
        )

    # ═══════════════════════════════════════════════════════════════════════
    # 🔁 LOAD CYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def begin_load(self) -> int:
        """Issue a new request token; any older in-flight load becomes stale."""
        with self._lock:
            self._latest_token += 1
            token = self._latest_token
            self._in_flight.add(token)
        logger.info(f"🔄 Load #{token} started")
        return token

    def fetch(self, token: int) -> LoadedData:
        """
        Load all inputs for one request token. Never raises.

        Geometry, registry and the main metrics payload load in parallel;
        per-dataset metrics files named by the registry load once the
        registry is known.
        """
        t_start = time.perf_counter()
        failures: List[LoadFailure] = []

        geometry: Optional[gpd.GeoDataFrame] = None
        registry: Optional[DatasetRegistry] = None
        metric_index: Optional[MetricIndex] = None

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix=f"choropleth-load-{token}"
        ) as pool:
            geometry_future = pool.submit(self._load_geometry, self.sources.geometry_path)
            registry_future = pool.submit(self._load_registry, self.sources.registry_path)
            metrics_future: Optional[Future] = None
            if self.sources.metrics_path:
                metrics_future = pool.submit(
                    self._load_metrics, self.sources.metrics_path, None
                )

            registry = self._collect(
                registry_future, SOURCE_REGISTRY, self.sources.registry_path, failures
            )

            # Legacy configs: one metrics file per dataset
            per_dataset: List[Tuple[str, str, Future]] = []
            if registry is not None:
                for dataset_id, path in registry.metrics_paths().items():
                    per_dataset.append(
                        (dataset_id, path, pool.submit(self._load_metrics, path, dataset_id))
                    )

            indices: List[MetricIndex] = []
            if metrics_future is not None:
                index = self._collect(
                    metrics_future, SOURCE_METRICS, self.sources.metrics_path, failures
                )
                if index is not None:
                    indices.append(index)
            for dataset_id, path, future in per_dataset:
                index = self._collect(future, SOURCE_METRICS, path, failures)
                if index is not None:
                    indices.append(index)

            if indices:
                metric_index = indices[0]
                for other in indices[1:]:
                    metric_index = metric_index.merge(other)
            elif metrics_future is None and not per_dataset:
                failures.append(
                    LoadFailure(SOURCE_METRICS, "", "No metrics source configured")
                )
                logger.error("❌ No metrics source configured")

            geometry = self._collect(
                geometry_future, SOURCE_GEOMETRY, self.sources.geometry_path, failures
            )

        features = self._build_features(geometry) if geometry is not None else {}

        elapsed = (time.perf_counter() - t_start) * 1000
        logger.info(
            f"📂 Load #{token} finished in {elapsed:.0f}ms: "
            f"{len(features)} features, "
            f"{len(metric_index) if metric_index is not None else 0} metric records, "
            f"{len(registry) if registry is not None else 0} datasets"
            + (f", {len(failures)} failures" if failures else "")
        )

        return LoadedData(
            token=token,
            geometry=geometry,
            features=features,
            metric_index=metric_index,
            registry=registry,
            failures=tuple(failures),
        )

    def publish(self, loaded: LoadedData) -> bool:
        """
        Make a load result current unless a newer load has been requested.

        Returns:
            True if published, False if discarded as stale.
        """
        with self._lock:
            self._in_flight.discard(loaded.token)
            if loaded.token != self._latest_token:
                logger.warning(
                    f"⏭️ Discarding stale load #{loaded.token} "
                    f"(latest is #{self._latest_token})"
                )
                return False
            self._data = loaded
        if loaded.failures:
            logger.warning(
                f"⚠️ Load #{loaded.token} published in degraded mode: "
                + "; ".join(f"{f.source}: {f.message}" for f in loaded.failures)
            )
        else:
            logger.info(f"✅ Load #{loaded.token} published")
        return True

    def reload(self) -> bool:
        """Run a full load cycle synchronously. Returns True if published."""
        token = self.begin_load()
        return self.publish(self.fetch(token))

    def reload_async(self) -> "Future[bool]":
        """Run reload() on the background thread."""
        token = self.begin_load()
        return self._reload_executor.submit(lambda: self.publish(self.fetch(token)))

    def shutdown(self) -> None:
        self._reload_executor.shutdown(wait=False)

    # ═══════════════════════════════════════════════════════════════════════
    # 📥 SOURCE LOADERS
    # ═══════════════════════════════════════════════════════════════════════

    def _collect(
        self,
        future: Future,
        source: str,
        location: str,
        failures: List[LoadFailure],
    ) -> Any:
        """Result of a load future, or None with a LoadFailure recorded."""
        try:
            return future.result()
        except Exception as e:
            failures.append(LoadFailure(source, str(location), f"{type(e).__name__}: {e}"))
            logger.error(f"❌ Failed to load {source} from {location}: {e}")
            return None

    def _is_url(self, location: str) -> bool:
        return location.startswith(("http://", "https://"))

    def _resolve(self, location: str) -> Path:
        path = Path(location)
        return path if path.is_absolute() else self.base_dir / path

    def _read_json(self, location: str) -> Any:
        """Fetch and parse a JSON document from a URL or a file."""
        if self._is_url(location):
            response = requests.get(location, timeout=self.sources.request_timeout_s)
            response.raise_for_status()
            return response.json()
        with open(self._resolve(location), "r", encoding="utf-8") as f:
            return json.load(f)

    def _load_registry(self, location: str) -> DatasetRegistry:
        return DatasetRegistry.from_dict(self._read_json(location), self.palette)

    def _load_metrics(self, location: str, dataset_id: Optional[str]) -> MetricIndex:
        return MetricIndex.from_payload(
            self._read_json(location), default_dataset_id=dataset_id
        )

    def _load_geometry(self, location: str) -> gpd.GeoDataFrame:
        """
        Load the block group FeatureCollection in WGS84.

        Raises:
            ValueError: If the geoid property is missing.
        """
        if self._is_url(location):
            collection = self._read_json(location)
            gdf = gpd.GeoDataFrame.from_features(
                collection.get("features", []), crs=CRS_WGS84
            )
        else:
            gdf = gpd.read_file(self._resolve(location))

        geoid_field = self.sources.geoid_field
        if gdf.empty:
            logger.warning(f"Geometry source {location} has no features")
            return gpd.GeoDataFrame(
                {geoid_field: []}, geometry=[], crs=CRS_WGS84
            )
        if geoid_field not in gdf.columns:
            raise ValueError(
                f"Geometry is missing geoid property '{geoid_field}' "
                f"(columns: {[c for c in gdf.columns if c != 'geometry']})"
            )

        if gdf.crs is None:
            logger.warning("Geometry has no CRS, assuming EPSG:4326")
            gdf = gdf.set_crs(CRS_WGS84)
        elif gdf.crs.to_string() != CRS_WGS84:
            logger.info(f"Converting geometry from {gdf.crs} to {CRS_WGS84}")
            gdf = gdf.to_crs(CRS_WGS84)

        gdf[geoid_field] = gdf[geoid_field].astype(str)
        return gdf

    def _build_features(self, gdf: gpd.GeoDataFrame) -> Dict[str, GeoFeature]:
        """geoid -> GeoFeature; duplicate geoids keep the first feature."""
        geoid_field = self.sources.geoid_field
        features: Dict[str, GeoFeature] = {}
        duplicates = 0
        for _, row in gdf.iterrows():
            geoid = row[geoid_field]
            if geoid in features:
                duplicates += 1
                continue
            props = {k: _plain(v) for k, v in row.items() if k != "geometry"}
            features[geoid] = GeoFeature.from_properties(geoid, props, row.geometry)
        if duplicates:
            logger.warning(f"{duplicates} features with duplicate geoids ignored")
        return features

    # ═══════════════════════════════════════════════════════════════════════
    # 📤 PUBLIC API
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def data(self) -> Optional[LoadedData]:
        """Latest published snapshot (None before the first publish)."""
        return self._data

    @property
    def loading(self) -> bool:
        """True while the most recently requested load is still running."""
        with self._lock:
            return self._latest_token in self._in_flight

    @property
    def is_ready(self) -> bool:
        data = self._data
        return data is not None and data.is_ready and not self.loading

    @property
    def registry(self) -> Optional[DatasetRegistry]:
        data = self._data
        return data.registry if data is not None else None

    @property
    def metric_index(self) -> Optional[MetricIndex]:
        data = self._data
        return data.metric_index if data is not None else None

    def get_feature_ids(self) -> List[str]:
        data = self._data
        return list(data.features) if data is not None else []

    def get_feature(self, geoid: str) -> Optional[GeoFeature]:
        data = self._data
        return data.features.get(geoid) if data is not None else None

    def get_feature_properties(self, geoid: str) -> Optional[Dict[str, Any]]:
        """Popup properties of one feature, None if unknown."""
        feature = self.get_feature(geoid)
        return feature.to_dict() if feature is not None else None

    def get_feature_bounds(self, geoid: str) -> Optional[Bounds]:
        """Feature bounds as ((south, west), (north, east)), None if unknown."""
        feature = self.get_feature(geoid)
        if feature is None or feature.geometry is None or feature.geometry.is_empty:
            return None
        minx, miny, maxx, maxy = feature.geometry.bounds
        return ((miny, minx), (maxy, maxx))

    def get_geometry_geojson(self) -> Dict[str, Any]:
        """Geometry as a GeoJSON FeatureCollection in WGS84."""
        data = self._data
        if data is None or data.geometry is None or data.geometry.empty:
            return {"type": "FeatureCollection", "features": []}
        return json.loads(data.geometry.to_json(na="null", drop_id=True))

    def status(self) -> Dict[str, Any]:
        """Loading flag, readiness, failures and counts for /api/status."""
        data = self._data
        return {
            "loading": self.loading,
            "ready": self.is_ready,
            "token": data.token if data is not None else None,
            "loadedAt": data.loaded_at.isoformat() if data is not None else None,
            "featureCount": len(data.features) if data is not None else 0,
            "metricRecordCount": (
                len(data.metric_index)
                if data is not None and data.metric_index is not None
                else 0
            ),
            "datasetCount": (
                len(data.registry) if data is not None and data.registry is not None else 0
            ),
            "failures": [f.to_dict() for f in data.failures] if data is not None else [],
        }


def _plain(value: Any) -> Any:
    """numpy scalars -> Python, NaN -> None (JSON-safe property values)."""
    if hasattr(value, "item") and callable(value.item):
        try:
            value = value.item()
        except (ValueError, TypeError):
            return value
    if isinstance(value, float) and math.isnan(value):
        return None
    return value
