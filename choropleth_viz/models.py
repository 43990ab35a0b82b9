"""
Typed data models for the choropleth engine.

Architectural Overview:
=======================
Immutable dataclasses for everything the engine reads or derives. The raw
JSON payloads (registry, metrics, geometry) are parsed into these once per
load and never mutated afterwards; style descriptors and legend entries are
derived per render and never stored.

Key Interactions:
-----------------
- Input: registry.py / metric_index.py / data_loader.py build these
- Output: to_dict() methods provide the JSON shapes served by server.py
- Navigation: Use VS Code outline (Ctrl+Shift+O) for quick navigation
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple


# ═══════════════════════════════════════════════════════════════════════════
# 📊 THRESHOLD SCALE SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ThresholdScale:
    """Ordered break values paired with bucket colors.

    Bucket ``i`` holds values ``v`` with ``thresholds[i-1] < v <= thresholds[i]``
    (bucket 0 holds everything ``<= thresholds[0]``). Values above the last
    threshold fall outside every bucket and take the overflow color.

    Raises:
        ValueError: On empty scales, non-numeric thresholds, length mismatch,
            or thresholds that are not strictly ascending.
    """

    thresholds: Tuple[float, ...]
    colors: Tuple[str, ...]

    def __post_init__(self) -> None:
        # Normalize lists from JSON into tuples (frozen dataclass)
        object.__setattr__(self, "thresholds", tuple(self.thresholds))
        object.__setattr__(self, "colors", tuple(self.colors))

        if not self.thresholds:
            raise ValueError("ThresholdScale requires at least one threshold")
        for t in self.thresholds:
            if isinstance(t, bool) or not isinstance(t, (int, float)) or not math.isfinite(t):
                raise ValueError(f"thresholds must be numbers, got {t!r}")
        if len(self.thresholds) != len(self.colors):
            raise ValueError(
                f"thresholds/colors length mismatch: "
                f"{len(self.thresholds)} vs {len(self.colors)}"
            )
        for lower, upper in zip(self.thresholds, self.thresholds[1:]):
            if not lower < upper:
                raise ValueError(
                    f"thresholds must be strictly ascending, got {list(self.thresholds)}"
                )

    def __len__(self) -> int:
        return len(self.thresholds)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ThresholdScale":
        """Create from a ``{thresholds: [...], colors: [...]}`` mapping."""
        return cls(
            thresholds=tuple(d.get("thresholds", [])),
            colors=tuple(str(c) for c in d.get("colors", [])),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"thresholds": list(self.thresholds), "colors": list(self.colors)}


# ═══════════════════════════════════════════════════════════════════════════
# 📚 DATASET DEFINITION SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DatasetDefinition:
    """One dataset in the registry.

    Attributes:
        dataset_id: Registry key (e.g. "computers")
        label: Human-readable dataset name
        column_thresholds: metric/column id -> ThresholdScale
        column_labels: Optional display names per column
        metrics_path: Per-dataset metrics file (legacy single-metric configs)
    """

    dataset_id: str
    label: str
    column_thresholds: Dict[str, ThresholdScale] = field(default_factory=dict)
    column_labels: Dict[str, str] = field(default_factory=dict)
    metrics_path: Optional[str] = None

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(self.column_thresholds)

    def column_label(self, metric_id: str) -> str:
        return self.column_labels.get(metric_id, metric_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "label": self.label,
            "columns": [
                {"id": col, "label": self.column_label(col)} for col in self.columns
            ],
            "columnThresholds": {
                col: scale.to_dict() for col, scale in self.column_thresholds.items()
            },
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🧾 METRIC RECORD SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GeoInfo:
    """Descriptive location strings for a block group (read-only)."""

    block_group: Optional[str] = None
    census_tract: Optional[str] = None
    county: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "GeoInfo":
        """Create from the payload's ``geoinfo`` object (keys are loose)."""
        d = d or {}

        def pick(*keys: str) -> Optional[str]:
            for key in keys:
                value = d.get(key)
                if value is not None:
                    return str(value)
            return None

        return cls(
            block_group=pick("block_group", "blockGroup", "Block Group"),
            census_tract=pick("census_tract", "censusTract", "tract", "Census Tract"),
            county=pick("county", "County"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blockGroup": self.block_group,
            "censusTract": self.census_tract,
            "county": self.county,
        }


@dataclass(frozen=True)
class MetricRecord:
    """All metric values recorded for one geoid.

    ``metrics`` maps dataset id -> metric/column id -> value. A missing
    dataset or column is the "no data" state, not an error.
    """

    geoid: str
    geoinfo: GeoInfo = field(default_factory=GeoInfo)
    metrics: Dict[str, Dict[str, float]] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ GEO FEATURE SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GeoFeature:
    """A block group polygon as seen by the engine.

    Geometry is kept opaque (a shapely geometry owned by the loader); only
    its bounds are used, for fit-to-feature requests.
    """

    geoid: str
    geometry: Any = None
    object_id: Optional[int] = None
    land_area: Optional[float] = None
    water_area: Optional[float] = None
    population: Optional[int] = None
    shape_area: Optional[float] = None
    perimeter: Optional[float] = None

    @classmethod
    def from_properties(
        cls, geoid: str, props: Dict[str, Any], geometry: Any = None
    ) -> "GeoFeature":
        """Create from a 2020 block group property bag."""
        return cls(
            geoid=geoid,
            geometry=geometry,
            object_id=props.get("objectid"),
            land_area=props.get("aland20"),
            water_area=props.get("awater20"),
            population=props.get("pop20"),
            shape_area=props.get("st_areasha"),
            perimeter=props.get("st_perimet"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "geoid": self.geoid,
            "objectId": self.object_id,
            "landArea": self.land_area,
            "waterArea": self.water_area,
            "population": self.population,
            "shapeArea": self.shape_area,
            "perimeter": self.perimeter,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🎨 DERIVED OUTPUT SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StyleDescriptor:
    """Per-feature paint instructions, recomputed on every render."""

    fill_color: str
    stroke_color: str
    stroke_weight: float
    fill_opacity: float
    stroke_opacity: float = 1.0

    def to_leaflet(self) -> Dict[str, Any]:
        """Leaflet PathOptions keys."""
        return {
            "fillColor": self.fill_color,
            "color": self.stroke_color,
            "weight": self.stroke_weight,
            "opacity": self.stroke_opacity,
            "fillOpacity": self.fill_opacity,
        }


@dataclass(frozen=True)
class LegendEntry:
    """One legend row."""

    label: str
    color: str

    def to_dict(self) -> Dict[str, str]:
        return {"label": self.label, "color": self.color}
