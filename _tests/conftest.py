"""
Shared fixtures: a small Hawaii registry, metrics payload and block group
geometry, as in-memory payloads and as files under tmp_path.
"""

import json

import pytest

from choropleth_viz.map_config_types import ChoroplethConfig, DataSourceConfig
from choropleth_viz.metric_index import MetricIndex
from choropleth_viz.models import ThresholdScale
from choropleth_viz.registry import DatasetRegistry

THRESHOLDS = [0, 1, 5, 10, 25, 50, 75, 100]
COLORS = [
    "#FFEDA0",
    "#FED976",
    "#FEB24C",
    "#FD8D3C",
    "#FC4E2A",
    "#E31A1C",
    "#BD0026",
    "#800026",
]

GEOID_62 = "150010309002"
GEOID_ZERO = "150010309001"
GEOID_TENURE_ONLY = "150010310001"
GEOID_NO_METRICS = "150010399001"


def _square(x: float, y: float, size: float = 0.01):
    return [[[x, y], [x + size, y], [x + size, y + size], [x, y + size], [x, y]]]


# ============================================================================
# PAYLOADS
# ============================================================================


@pytest.fixture
def scale():
    return ThresholdScale(THRESHOLDS, COLORS)


@pytest.fixture
def registry_payload():
    """Registry JSON with two canonical datasets."""
    return {
        "computers": {
            "label": "Households without computers",
            "columnThresholds": {
                "No Computer": {"thresholds": THRESHOLDS, "colors": COLORS},
                "Smartphone Only": {"thresholds": THRESHOLDS, "colors": COLORS},
            },
            "columnLabels": {"No Computer": "Households without a computer"},
        },
        "tenure": {
            "label": "Tenure",
            "columnThresholds": {
                "Renter occupied": {"thresholds": THRESHOLDS, "colors": COLORS},
            },
        },
    }


@pytest.fixture
def metrics_payload():
    """Nested metrics keyed by geoid."""
    return {
        GEOID_62: {
            "geoinfo": {
                "block_group": "Block Group 2",
                "census_tract": "Census Tract 309",
                "county": "Hawaii County",
            },
            "metrics": {
                "computers": {"No Computer": 62, "Smartphone Only": 140},
                "tenure": {"Renter occupied": 30},
            },
        },
        GEOID_ZERO: {
            "geoinfo": {"county": "Hawaii County"},
            "metrics": {"computers": {"No Computer": 0}},
        },
        GEOID_TENURE_ONLY: {
            "metrics": {"tenure": {"Renter occupied": 12}},
        },
    }


@pytest.fixture
def geometry_payload():
    """FeatureCollection of four square block groups (WGS84)."""
    geoids = [GEOID_62, GEOID_ZERO, GEOID_TENURE_ONLY, GEOID_NO_METRICS]
    features = []
    for i, geoid in enumerate(geoids):
        features.append(
            {
                "type": "Feature",
                "properties": {
                    "objectid": i + 1,
                    "geoid20": geoid,
                    "aland20": 1000000 + i,
                    "awater20": 0,
                    "pop20": 800 + i,
                },
                "geometry": {
                    "type": "Polygon",
                    "coordinates": _square(-155.1 + 0.02 * i, 19.7),
                },
            }
        )
    return {"type": "FeatureCollection", "features": features}


@pytest.fixture
def registry(registry_payload):
    return DatasetRegistry.from_dict(registry_payload)


@pytest.fixture
def metric_index(metrics_payload):
    return MetricIndex.from_payload(metrics_payload)


# ============================================================================
# FILES
# ============================================================================


@pytest.fixture
def data_dir(tmp_path, registry_payload, metrics_payload, geometry_payload):
    """tmp_path laid out like the app's public data folder."""
    (tmp_path / "data" / "metrics").mkdir(parents=True)
    (tmp_path / "data" / "datasets.json").write_text(json.dumps(registry_payload))
    (tmp_path / "data" / "metrics" / "metrics.json").write_text(
        json.dumps(metrics_payload)
    )
    (tmp_path / "data" / "blockgroups.geojson").write_text(json.dumps(geometry_payload))
    return tmp_path


@pytest.fixture
def sources():
    return DataSourceConfig(
        geometry_path="data/blockgroups.geojson",
        metrics_path="data/metrics/metrics.json",
        registry_path="data/datasets.json",
    )


@pytest.fixture
def test_config(sources):
    """Default config pointed at the tmp_path data files."""
    return ChoroplethConfig.from_dict(
        {
            "data": {
                "geometry_path": sources.geometry_path,
                "metrics_path": sources.metrics_path,
                "registry_path": sources.registry_path,
            },
            "initial_selection": {"dataset_id": "computers", "metric_id": "No Computer"},
        }
    )
