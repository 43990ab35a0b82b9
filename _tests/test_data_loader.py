#!/usr/bin/env python3
"""
Tests for DataLoader: concurrent load, degraded mode and stale-load discarding.

Uses tmp_path data folders (see conftest.data_dir); http sources are
exercised by monkeypatching requests.get.
"""

import json

import pytest

from choropleth_viz import data_loader as data_loader_module
from choropleth_viz.data_loader import (
    SOURCE_GEOMETRY,
    SOURCE_METRICS,
    SOURCE_REGISTRY,
    DataLoader,
)
from choropleth_viz.map_config_types import DataSourceConfig
from choropleth_viz.metric_index import lookup_metric

from conftest import COLORS, GEOID_62, GEOID_NO_METRICS, THRESHOLDS


@pytest.fixture
def loader(data_dir, sources):
    loader = DataLoader(sources, base_dir=data_dir)
    yield loader
    loader.shutdown()


# ============================================================================
# SUCCESSFUL LOAD
# ============================================================================


class TestReload:
    def test_loads_all_inputs(self, loader):
        assert loader.data is None
        assert loader.reload() is True

        assert loader.is_ready
        assert not loader.loading
        assert loader.data.failures == ()
        assert len(loader.get_feature_ids()) == 4
        assert len(loader.metric_index) == 3
        assert loader.registry.dataset_ids() == ["computers", "tenure"]
        assert lookup_metric(loader.metric_index, GEOID_62, "computers", "No Computer") == 62

    def test_feature_properties(self, loader):
        loader.reload()

        props = loader.get_feature_properties(GEOID_62)
        assert props["geoid"] == GEOID_62
        assert props["objectId"] == 1
        assert props["population"] == 800
        assert loader.get_feature_properties("nope") is None

    def test_feature_bounds_leaflet_order(self, loader):
        loader.reload()

        (south, west), (north, east) = loader.get_feature_bounds(GEOID_62)
        assert (south, west) == pytest.approx((19.7, -155.1))
        assert (north, east) == pytest.approx((19.71, -155.09))
        assert loader.get_feature_bounds("nope") is None

    def test_geometry_geojson(self, loader):
        assert loader.get_geometry_geojson()["features"] == []
        loader.reload()

        collection = loader.get_geometry_geojson()
        assert collection["type"] == "FeatureCollection"
        geoids = [f["properties"]["geoid20"] for f in collection["features"]]
        assert GEOID_NO_METRICS in geoids
        assert len(geoids) == 4

    def test_status(self, loader):
        loader.reload()
        status = loader.status()

        assert status["ready"] is True
        assert status["loading"] is False
        assert status["featureCount"] == 4
        assert status["metricRecordCount"] == 3
        assert status["datasetCount"] == 2
        assert status["failures"] == []
        assert status["token"] == 1

    def test_numeric_geoids_read_as_strings(self, tmp_path, sources, geometry_payload):
        for i, feature in enumerate(geometry_payload["features"]):
            feature["properties"]["geoid20"] = 150010309000 + i
        (tmp_path / "data" / "metrics").mkdir(parents=True)
        (tmp_path / "data" / "blockgroups.geojson").write_text(json.dumps(geometry_payload))
        (tmp_path / "data" / "datasets.json").write_text("{}")
        (tmp_path / "data" / "metrics" / "metrics.json").write_text("{}")

        loader = DataLoader(sources, base_dir=tmp_path)
        loader.reload()
        assert "150010309000" in loader.get_feature_ids()


# ============================================================================
# DEGRADED MODE
# ============================================================================


class TestLoadFailures:
    """LoadFailure is recorded and logged, never raised."""

    def test_missing_registry(self, loader, data_dir):
        (data_dir / "data" / "datasets.json").unlink()

        assert loader.reload() is True, "degraded loads still publish"

        assert not loader.is_ready
        assert loader.registry is None
        assert loader.data.geometry is not None, "geometry still served"
        assert [f.source for f in loader.data.failures] == [SOURCE_REGISTRY]

    def test_invalid_metrics_json(self, loader, data_dir):
        (data_dir / "data" / "metrics" / "metrics.json").write_text("{not json")

        loader.reload()

        assert loader.metric_index is None
        assert [f.source for f in loader.data.failures] == [SOURCE_METRICS]
        assert "JSONDecodeError" in loader.data.failures[0].message

    def test_geometry_without_geoid_field(self, data_dir):
        sources = DataSourceConfig(
            geometry_path="data/blockgroups.geojson",
            metrics_path="data/metrics/metrics.json",
            registry_path="data/datasets.json",
            geoid_field="GEOID",
        )
        loader = DataLoader(sources, base_dir=data_dir)
        loader.reload()

        failures = loader.data.failures
        assert [f.source for f in failures] == [SOURCE_GEOMETRY]
        assert "GEOID" in failures[0].message
        assert loader.get_feature_ids() == []

    def test_no_metrics_source(self, data_dir):
        sources = DataSourceConfig(
            geometry_path="data/blockgroups.geojson",
            metrics_path="",
            registry_path="data/datasets.json",
        )
        loader = DataLoader(sources, base_dir=data_dir)
        loader.reload()

        assert loader.metric_index is None
        assert loader.data.failures[0].message == "No metrics source configured"
        assert loader.status()["failures"][0]["source"] == SOURCE_METRICS


# ============================================================================
# REQUEST TOKENS
# ============================================================================


class TestStaleLoads:
    def test_older_load_is_discarded(self, loader):
        first = loader.begin_load()
        second = loader.begin_load()
        assert loader.loading

        assert loader.publish(loader.fetch(first)) is False
        assert loader.data is None, "stale result must not be published"
        assert loader.loading, "newer load still in flight"

        assert loader.publish(loader.fetch(second)) is True
        assert loader.data.token == second
        assert not loader.loading

    def test_stale_load_does_not_overwrite_newer(self, loader, data_dir):
        first = loader.begin_load()
        stale = loader.fetch(first)

        loader.reload()
        current = loader.data

        assert loader.publish(stale) is False
        assert loader.data is current

    def test_reload_async(self, loader):
        future = loader.reload_async()
        assert future.result(timeout=30) is True
        assert loader.is_ready


# ============================================================================
# LEGACY / REMOTE SOURCES
# ============================================================================


class TestLegacyPerDatasetMetrics:
    """Registry entries with datasetPath load their own flat metrics file."""

    def test_per_dataset_files_merged(self, data_dir):
        registry = {
            "computers": {
                "metricName": "No Computer",
                "metricLabel": "Households without computers",
                "datasetPath": "data/metrics/households_w_computer.json",
                "thresholds": THRESHOLDS,
                "colors": COLORS,
            },
            "tenure": {
                "metricName": "Renter occupied",
                "metricLabel": "Renter occupied",
                "datasetPath": "data/metrics/tenure.json",
                "thresholds": THRESHOLDS,
                "colors": COLORS,
            },
        }
        (data_dir / "data" / "legacy.json").write_text(json.dumps(registry))
        (data_dir / "data" / "metrics" / "households_w_computer.json").write_text(
            json.dumps({GEOID_62: {"No Computer": 62}})
        )
        (data_dir / "data" / "metrics" / "tenure.json").write_text(
            json.dumps({GEOID_62: {"Renter occupied": 30}})
        )
        sources = DataSourceConfig(
            geometry_path="data/blockgroups.geojson",
            metrics_path="",
            registry_path="data/legacy.json",
        )

        loader = DataLoader(sources, base_dir=data_dir)
        loader.reload()

        assert loader.is_ready
        index = loader.metric_index
        assert lookup_metric(index, GEOID_62, "computers", "No Computer") == 62
        assert lookup_metric(index, GEOID_62, "tenure", "Renter occupied") == 30


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise data_loader_module.requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self._payload


class TestUrlSources:
    @pytest.fixture
    def url_sources(self):
        return DataSourceConfig(
            geometry_path="https://example.org/blockgroups.geojson",
            metrics_path="https://example.org/metrics.json",
            registry_path="https://example.org/datasets.json",
        )

    def test_loads_over_http(
        self, monkeypatch, url_sources, geometry_payload, metrics_payload, registry_payload
    ):
        responses = {
            url_sources.geometry_path: geometry_payload,
            url_sources.metrics_path: metrics_payload,
            url_sources.registry_path: registry_payload,
        }
        calls = []

        def fake_get(url, timeout):
            calls.append((url, timeout))
            return FakeResponse(responses[url])

        monkeypatch.setattr(data_loader_module.requests, "get", fake_get)

        loader = DataLoader(url_sources)
        loader.reload()

        assert loader.is_ready
        assert len(loader.get_feature_ids()) == 4
        assert {timeout for _, timeout in calls} == {url_sources.request_timeout_s}

    def test_http_error_is_a_load_failure(
        self, monkeypatch, url_sources, geometry_payload, registry_payload
    ):
        def fake_get(url, timeout):
            if url == url_sources.metrics_path:
                return FakeResponse(None, status_code=404)
            if url == url_sources.geometry_path:
                return FakeResponse(geometry_payload)
            return FakeResponse(registry_payload)

        monkeypatch.setattr(data_loader_module.requests, "get", fake_get)

        loader = DataLoader(url_sources)
        loader.reload()

        assert not loader.is_ready
        failure = loader.data.failures[0]
        assert failure.source == SOURCE_METRICS
        assert failure.location == url_sources.metrics_path
        assert "404" in failure.message
