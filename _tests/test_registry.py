#!/usr/bin/env python3
"""
Tests for DatasetRegistry parsing and lookups.
"""

import logging

import pytest

from choropleth_viz.map_config_types import PaletteConfig
from choropleth_viz.registry import DatasetRegistry

from conftest import COLORS, THRESHOLDS


class TestCanonicalPayload:
    def test_datasets_and_columns(self, registry):
        assert len(registry) == 2
        assert registry.dataset_ids() == ["computers", "tenure"]
        assert "computers" in registry
        assert "bogus" not in registry
        assert registry.columns("computers") == ("No Computer", "Smartphone Only")
        assert registry.columns("bogus") == ()

    def test_get_scale(self, registry):
        scale = registry.get_scale("computers", "No Computer")
        assert scale is not None
        assert list(scale.thresholds) == THRESHOLDS
        assert list(scale.colors) == COLORS

    @pytest.mark.parametrize(
        "dataset_id,metric_id",
        [(None, None), ("computers", None), ("computers", "Renter occupied"), ("x", "y")],
    )
    def test_get_scale_missing(self, registry, dataset_id, metric_id):
        assert registry.get_scale(dataset_id, metric_id) is None

    def test_has_metric(self, registry):
        assert registry.has_metric("tenure", "Renter occupied")
        assert not registry.has_metric("computers", "Renter occupied")
        assert not registry.has_metric("computers", None)

    def test_to_dict_for_pickers(self, registry):
        payload = registry.to_dict()
        assert payload["computers"]["label"] == "Households without computers"
        assert payload["computers"]["columns"] == [
            {"id": "No Computer", "label": "Households without a computer"},
            {"id": "Smartphone Only", "label": "Smartphone Only"},
        ]
        assert payload["tenure"]["columnThresholds"]["Renter occupied"]["colors"] == COLORS

    def test_iteration_yields_definitions(self, registry):
        labels = [d.label for d in registry]
        assert labels == ["Households without computers", "Tenure"]


class TestLegacyPayload:
    """One metric per dataset, each with its own metrics file."""

    @pytest.fixture
    def legacy_payload(self):
        return {
            "computers": {
                "metricName": "No Computer",
                "metricLabel": "Households without computers",
                "datasetPath": "/data/metrics/households_w_computer.json",
                "thresholds": THRESHOLDS,
                "colors": COLORS,
            },
            "tenure": {
                "metricName": "Renter occupied",
                "metricLabel": "Renter occupied",
                "datasetPath": "/data/metrics/tenure.json",
                "thresholds": THRESHOLDS,
                "colors": COLORS,
            },
        }

    def test_single_column_per_dataset(self, legacy_payload):
        registry = DatasetRegistry.from_dict(legacy_payload)

        assert registry.columns("computers") == ("No Computer",)
        assert registry.get("computers").label == "Households without computers"
        assert registry.get_scale("tenure", "Renter occupied") is not None

    def test_metrics_paths(self, legacy_payload):
        registry = DatasetRegistry.from_dict(legacy_payload)
        assert registry.metrics_paths() == {
            "computers": "/data/metrics/households_w_computer.json",
            "tenure": "/data/metrics/tenure.json",
        }

    def test_canonical_has_no_metrics_paths(self, registry):
        assert registry.metrics_paths() == {}


class TestMalformedScales:
    """Bad scales are dropped with a warning; the rest still loads."""

    def test_rejected_scales_dropped(self, registry_payload, caplog):
        cols = registry_payload["computers"]["columnThresholds"]
        cols["Mismatch"] = {"thresholds": [0, 1, 2], "colors": ["#a", "#b"]}
        cols["Unsorted"] = {"thresholds": [0, 10, 5], "colors": ["#a", "#b", "#c"]}
        cols["Empty"] = {"thresholds": [], "colors": []}
        cols["NotAnObject"] = [1, 2, 3]

        with caplog.at_level(logging.WARNING, logger="choropleth_viz.registry"):
            registry = DatasetRegistry.from_dict(registry_payload)

        assert registry.columns("computers") == ("No Computer", "Smartphone Only")
        assert registry.get_scale("tenure", "Renter occupied") is not None
        rejected = [r for r in caplog.records if "Rejected scale" in r.getMessage()]
        assert len(rejected) == 4

    def test_dataset_without_scales_skipped(self, registry_payload):
        registry_payload["broken"] = {"label": "No scales here"}
        registry_payload["not_a_dict"] = "oops"

        registry = DatasetRegistry.from_dict(registry_payload)
        assert registry.dataset_ids() == ["computers", "tenure"]

    def test_non_object_payload_raises(self):
        with pytest.raises(ValueError, match="JSON object"):
            DatasetRegistry.from_dict([1, 2, 3])

    def test_column_label_for_rejected_column_dropped(self, registry_payload):
        registry_payload["computers"]["columnThresholds"]["No Computer"]["colors"] = []
        registry = DatasetRegistry.from_dict(registry_payload)

        assert "No Computer" not in registry.get("computers").column_labels


class TestPaletteClashes:
    """Bucket colors must stay distinct from the no-data and overflow colors."""

    @pytest.mark.parametrize("reserved", ["#333333", "#9e9e9e", "#9E9E9E"])
    def test_scale_reusing_palette_color_rejected(self, registry_payload, reserved, caplog):
        cols = registry_payload["computers"]["columnThresholds"]
        cols["Clash"] = {"thresholds": THRESHOLDS, "colors": COLORS[:-1] + [reserved]}

        with caplog.at_level(logging.WARNING, logger="choropleth_viz.registry"):
            registry = DatasetRegistry.from_dict(registry_payload)

        assert registry.columns("computers") == ("No Computer", "Smartphone Only")
        assert registry.get_scale("computers", "Clash") is None
        assert any("Rejected scale computers/Clash" in r.getMessage() for r in caplog.records)

    def test_custom_palette_respected(self, registry_payload):
        palette = PaletteConfig(no_data_color="#ffffff", overflow_color=COLORS[0])

        registry = DatasetRegistry.from_dict(registry_payload, palette)

        # Every column shares COLORS, so all of them clash with the overflow color
        assert registry.columns("computers") == ()
        assert registry.columns("tenure") == ()

    def test_default_palette_colors_allowed_under_custom_palette(self, registry_payload):
        cols = registry_payload["computers"]["columnThresholds"]
        cols["Gray"] = {"thresholds": THRESHOLDS, "colors": COLORS[:-1] + ["#333333"]}
        palette = PaletteConfig(no_data_color="#ffffff", overflow_color="#000000")

        registry = DatasetRegistry.from_dict(registry_payload, palette)
        assert registry.get_scale("computers", "Gray") is not None


class TestMalformedEntries:
    """Wrongly typed entry fields degrade gracefully instead of raising."""

    @pytest.mark.parametrize("labels", [["No Computer"], "No Computer", 7])
    def test_non_object_column_labels_ignored(self, registry_payload, labels, caplog):
        registry_payload["computers"]["columnLabels"] = labels

        with caplog.at_level(logging.WARNING, logger="choropleth_viz.registry"):
            registry = DatasetRegistry.from_dict(registry_payload)

        assert registry.columns("computers") == ("No Computer", "Smartphone Only")
        columns = registry.to_dict()["computers"]["columns"]
        assert columns[0] == {"id": "No Computer", "label": "No Computer"}
        assert any("columnLabels is not an object" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize("metric_name", [["x"], {}, 3])
    def test_legacy_non_string_metric_name_skips_dataset(self, metric_name, caplog):
        payload = {
            "broken": {"metricName": metric_name, "thresholds": THRESHOLDS, "colors": COLORS},
            "tenure": {
                "metricName": "Renter occupied",
                "thresholds": THRESHOLDS,
                "colors": COLORS,
            },
        }

        with caplog.at_level(logging.WARNING, logger="choropleth_viz.registry"):
            registry = DatasetRegistry.from_dict(payload)

        assert registry.dataset_ids() == ["tenure"]
        assert any("metricName must be a string" in r.getMessage() for r in caplog.records)
