#!/usr/bin/env python3
"""
Choropleth Visualization - Configuration Types

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Centralized, typed configuration for the choropleth using
frozen dataclasses for immutability and type safety.

This follows the Typed Configuration Architecture pattern:
- map_config.py defines MAP_CONFIG_DATA dictionary (user edits this)
- map_config_types.py defines frozen dataclasses (this file)
- CHOROPLETH_CONFIG module-level instance for orchestrator access
- Business logic receives config objects explicitly, never reads globals

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple

# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ MAP CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class MapConfig:
    """Configuration for map display settings (consumed by the frontend)."""

    center_lat: float = 20.6427
    center_lon: float = -157.5769
    zoom: int = 8
    min_zoom: int = 7
    # ((south, west), (north, east))
    max_bounds: Tuple[Tuple[float, float], Tuple[float, float]] = (
        (18.0, -161.0),
        (23.0, -154.0),
    )
    max_bounds_viscosity: float = 0.5
    tile_url: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
    tile_attribution: str = "&copy; OpenStreetMap contributors"

    def __post_init__(self) -> None:
        if self.min_zoom > self.zoom:
            raise ValueError(
                f"min_zoom ({self.min_zoom}) must be <= zoom ({self.zoom})"
            )
        (south, west), (north, east) = self.max_bounds
        if south >= north or west >= east:
            raise ValueError(f"max_bounds must be [[south, west], [north, east]], got {self.max_bounds}")
        if not 0.0 <= self.max_bounds_viscosity <= 1.0:
            raise ValueError(
                f"max_bounds_viscosity must be in [0, 1], got {self.max_bounds_viscosity}"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MapConfig":
        """Create from dictionary."""
        center = d.get("center", [20.6427, -157.5769])
        bounds = d.get("max_bounds", [[18.0, -161.0], [23.0, -154.0]])
        return cls(
            center_lat=(
                center[0] if isinstance(center, (list, tuple)) else d.get("center_lat", 20.6427)
            ),
            center_lon=(
                center[1] if isinstance(center, (list, tuple)) else d.get("center_lon", -157.5769)
            ),
            zoom=d.get("zoom", 8),
            min_zoom=d.get("min_zoom", 7),
            max_bounds=(tuple(bounds[0]), tuple(bounds[1])),
            max_bounds_viscosity=d.get("max_bounds_viscosity", 0.5),
            tile_url=d.get(
                "tile_url", "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
            ),
            tile_attribution=d.get(
                "tile_attribution", "&copy; OpenStreetMap contributors"
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "center": [self.center_lat, self.center_lon],
            "zoom": self.zoom,
            "minZoom": self.min_zoom,
            "maxBounds": [list(self.max_bounds[0]), list(self.max_bounds[1])],
            "maxBoundsViscosity": self.max_bounds_viscosity,
            "tileUrl": self.tile_url,
            "tileAttribution": self.tile_attribution,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 📂 DATA SOURCE CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DataSourceConfig:
    """Locations of the three independently loaded inputs.

    Attributes:
        geometry_path: Block group FeatureCollection (path or URL)
        metrics_path: Metrics payload keyed by geoid (path or URL). May be
            empty when every dataset in the registry carries its own
            ``datasetPath``.
        registry_path: Dataset registry JSON (path or URL)
        geoid_field: Feature property holding the geoid
        request_timeout_s: Timeout for http(s) sources
    """

    geometry_path: str = "data/2020_Census_Block_Groups_WGS84.geojson"
    metrics_path: str = "data/metrics/metrics.json"
    registry_path: str = "data/datasets.json"
    geoid_field: str = "geoid20"
    request_timeout_s: float = 30.0

    def __post_init__(self) -> None:
        if not self.geoid_field:
            raise ValueError("geoid_field must not be empty")
        if self.request_timeout_s <= 0:
            raise ValueError(
                f"request_timeout_s must be > 0, got {self.request_timeout_s}"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DataSourceConfig":
        """Create from dictionary."""
        return cls(
            geometry_path=d.get(
                "geometry_path", "data/2020_Census_Block_Groups_WGS84.geojson"
            ),
            metrics_path=d.get("metrics_path", "data/metrics/metrics.json"),
            registry_path=d.get("registry_path", "data/datasets.json"),
            geoid_field=d.get("geoid_field", "geoid20"),
            request_timeout_s=d.get("request_timeout_s", 30.0),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🎨 PALETTE & STYLE CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PaletteConfig:
    """Colors used outside the configured threshold buckets."""

    no_data_color: str = "#9e9e9e"
    overflow_color: str = "#333333"

    def __post_init__(self) -> None:
        if self.no_data_color.lower() == self.overflow_color.lower():
            raise ValueError("no_data_color and overflow_color must differ")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PaletteConfig":
        """Create from dictionary."""
        return cls(
            no_data_color=d.get("no_data_color", "#9e9e9e"),
            overflow_color=d.get("overflow_color", "#333333"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "noDataColor": self.no_data_color,
            "overflowColor": self.overflow_color,
        }


@dataclass(frozen=True)
class PathStyleConfig:
    """Stroke/fill presentation constants for one feature state.

    fill_color is only used by the unloaded style; classified features take
    their fill from the threshold scale.
    """

    stroke_color: str = "#333333"
    stroke_weight: float = 0.5
    stroke_opacity: float = 1.0
    fill_opacity: float = 0.7
    fill_color: Optional[str] = None

    def __post_init__(self) -> None:
        if self.stroke_weight < 0:
            raise ValueError(f"stroke_weight must be >= 0, got {self.stroke_weight}")
        for name in ("stroke_opacity", "fill_opacity"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PathStyleConfig":
        """Create from dictionary."""
        return cls(
            stroke_color=d.get("stroke_color", "#333333"),
            stroke_weight=d.get("stroke_weight", 0.5),
            stroke_opacity=d.get("stroke_opacity", 1.0),
            fill_opacity=d.get("fill_opacity", 0.7),
            fill_color=d.get("fill_color"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "strokeColor": self.stroke_color,
            "strokeWeight": self.stroke_weight,
            "strokeOpacity": self.stroke_opacity,
            "fillOpacity": self.fill_opacity,
            "fillColor": self.fill_color,
        }


@dataclass(frozen=True)
class StyleConfig:
    """The three visually distinct feature states."""

    unloaded: PathStyleConfig = field(
        default_factory=lambda: PathStyleConfig(fill_color="#cccccc", fill_opacity=0.3)
    )
    normal: PathStyleConfig = field(default_factory=PathStyleConfig)
    active: PathStyleConfig = field(
        default_factory=lambda: PathStyleConfig(
            stroke_color="#1a73e8", stroke_weight=3.0, fill_opacity=0.9
        )
    )

    def __post_init__(self) -> None:
        if not self.unloaded.fill_color:
            raise ValueError("unloaded style requires a fill_color")
        if (self.normal.stroke_color, self.normal.stroke_weight) == (
            self.active.stroke_color,
            self.active.stroke_weight,
        ):
            raise ValueError("active style must differ from normal style")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StyleConfig":
        """Create from the top-level config dictionary."""
        unloaded = {"fill_color": "#cccccc", "fill_opacity": 0.3}
        unloaded.update(d.get("unloaded_style", {}))
        active = {"stroke_color": "#1a73e8", "stroke_weight": 3.0, "fill_opacity": 0.9}
        active.update(d.get("active_style", {}))
        return cls(
            unloaded=PathStyleConfig.from_dict(unloaded),
            normal=PathStyleConfig.from_dict(d.get("normal_style", {})),
            active=PathStyleConfig.from_dict(active),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "unloaded": self.unloaded.to_dict(),
            "normal": self.normal.to_dict(),
            "active": self.active.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🏷️ LEGEND CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LegendConfig:
    """Configuration for legend derivation."""

    include_no_data: bool = False
    no_data_label: str = "No data"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LegendConfig":
        """Create from dictionary."""
        return cls(
            include_no_data=d.get("include_no_data", False),
            no_data_label=d.get("no_data_label", "No data"),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🖱️ INITIAL SELECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class InitialSelectionConfig:
    """Dataset/metric applied once the first load completes."""

    dataset_id: Optional[str] = None
    metric_id: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InitialSelectionConfig":
        """Create from dictionary."""
        return cls(
            dataset_id=d.get("dataset_id"),
            metric_id=d.get("metric_id"),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🌐 SERVER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ServerConfig:
    """Configuration for the Flask API server."""

    host: str = "127.0.0.1"
    port: int = 5052
    load_workers: int = 3

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be in (0, 65536), got {self.port}")
        if self.load_workers < 1:
            raise ValueError(f"load_workers must be >= 1, got {self.load_workers}")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ServerConfig":
        """Create from dictionary."""
        return cls(
            host=d.get("host", "127.0.0.1"),
            port=d.get("port", 5052),
            load_workers=d.get("load_workers", 3),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 📦 MAIN CHOROPLETH CONFIGURATION CLASS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ChoroplethConfig:
    """
    Main configuration class for the choropleth.

    Access via the module-level CHOROPLETH_CONFIG instance, or build one with
    from_dict() and pass it explicitly (tests do this).
    """

    map: MapConfig
    data: DataSourceConfig
    palette: PaletteConfig
    styles: StyleConfig
    legend: LegendConfig
    initial_selection: InitialSelectionConfig
    server: ServerConfig

    def __post_init__(self) -> None:
        reserved = {
            self.palette.no_data_color.lower(),
            self.palette.overflow_color.lower(),
        }
        if (self.styles.unloaded.fill_color or "").lower() in reserved:
            raise ValueError(
                "unloaded fill_color must differ from the no-data and overflow colors"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ChoroplethConfig":
        """Create from dictionary."""
        return cls(
            map=MapConfig.from_dict(d.get("map", {})),
            data=DataSourceConfig.from_dict(d.get("data", {})),
            palette=PaletteConfig.from_dict(d.get("palette", {})),
            styles=StyleConfig.from_dict(d),
            legend=LegendConfig.from_dict(d.get("legend", {})),
            initial_selection=InitialSelectionConfig.from_dict(
                d.get("initial_selection", {})
            ),
            server=ServerConfig.from_dict(d.get("server", {})),
        )

    @classmethod
    def defaults(cls) -> "ChoroplethConfig":
        """Create with all default values."""
        return cls.from_dict({})

    def to_frontend_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for frontend JSON API."""
        return {
            "map": self.map.to_dict(),
            "geoidField": self.data.geoid_field,
            "palette": self.palette.to_dict(),
            "styles": self.styles.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════════════════
# 📌 MODULE-LEVEL CONFIG INSTANCE
# ═══════════════════════════════════════════════════════════════════════════

# Import configuration data from separate file (user-editable)
from choropleth_viz.map_config import MAP_CONFIG_DATA

# Edit map_config.py to change settings (restart server after changes)
CHOROPLETH_CONFIG: ChoroplethConfig = ChoroplethConfig.from_dict(MAP_CONFIG_DATA)


def get_frontend_config(config: Optional[ChoroplethConfig] = None) -> Dict[str, Any]:
    """
    Get configuration for frontend JavaScript.

    Returns a dict suitable for JSON serialization and use in the frontend.
    This is the coordination boundary function for frontend config access.
    """
    return (config or CHOROPLETH_CONFIG).to_frontend_dict()
