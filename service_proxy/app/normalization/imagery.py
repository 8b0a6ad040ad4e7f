"""
Imagery and analysis overlay descriptors.

These endpoints never contact an upstream: the proxy publishes URL templates
plus static layer metadata and lets the map client fetch tiles itself.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from service_proxy.app.domain.models import Bounds, LayerType, OverlayDescriptor
from service_proxy.app.endpoints import EndpointDescriptor
from service_proxy.app.normalization.coerce import as_float

GLOBAL_BOUNDS: Bounds = ((-90.0, -180.0), (90.0, 180.0))


def parse_bounds(value: Optional[str]) -> Bounds:
    """Parse ``lat1,lon1,lat2,lon2`` into SW/NE corners.

    Anything that is not four in-range numbers gives whole-globe bounds.
    """
    if not value:
        return GLOBAL_BOUNDS

    parts = value.split(",")
    if len(parts) != 4:
        return GLOBAL_BOUNDS

    numbers = [as_float(part.strip(), float("nan")) for part in parts]
    if any(math.isnan(number) for number in numbers):
        return GLOBAL_BOUNDS

    lat1, lon1, lat2, lon2 = numbers
    if not all(-90 <= lat <= 90 for lat in (lat1, lat2)) or not all(-180 <= lon <= 180 for lon in (lon1, lon2)):
        return GLOBAL_BOUNDS
    return ((lat1, lon1), (lat2, lon2))


def radar_color_map() -> Dict[str, str]:
    return {
        "0": "#00000000",
        "5": "#00ff0080",
        "10": "#00ff0080",
        "15": "#ffff0080",
        "20": "#ff800080",
        "25": "#ff000080",
        "30": "#ff00ff80",
        "35": "#ffffff80",
    }


def wind_scale() -> Dict[str, Any]:
    return {
        "min": 0,
        "max": 200,
        "colors": ["#3288bd", "#99d594", "#e6f598", "#fee08b", "#fc8d59", "#d53e4f"],
    }


def pressure_contours() -> Dict[str, Any]:
    return {
        "interval": 4,
        "minValue": 960,
        "maxValue": 1040,
        "colors": {"low": "#ff0000", "normal": "#00ff00", "high": "#0000ff"},
    }


def pressure_color_map() -> Dict[str, str]:
    return {
        "960": "#800080",
        "980": "#ff0000",
        "1000": "#ffff00",
        "1013": "#00ff00",
        "1020": "#00ffff",
        "1030": "#0000ff",
        "1040": "#000080",
    }


def sea_temp_scale() -> Dict[str, Any]:
    return {
        "min": -2,
        "max": 35,
        "units": "C",
        "colors": ["#000080", "#0000ff", "#00ffff", "#00ff00", "#ffff00", "#ff8000", "#ff0000"],
    }


def sea_temp_color_map() -> Dict[str, str]:
    return {
        "-2": "#000080",
        "5": "#0000ff",
        "10": "#00ffff",
        "15": "#00ff00",
        "20": "#ffff00",
        "25": "#ff8000",
        "30": "#ff0000",
        "35": "#800000",
    }


@dataclass(frozen=True)
class LayerSpec:
    """Static metadata for one overlay endpoint."""

    layer_type: LayerType
    url_field: str
    url_suffix: str
    attribution: str
    opacity: float
    min_zoom: Optional[int] = None
    max_zoom: Optional[int] = None
    extras: Callable[[], Dict[str, Any]] = field(default=dict)


LAYERS: Mapping[str, LayerSpec] = {
    "goes-satellite": LayerSpec(
        LayerType.TILE, "tileUrl", "/{z}/{x}/{y}.jpg",
        "NOAA GOES-16/18 Satellite", 0.7, min_zoom=3, max_zoom=10,
    ),
    "nexrad-radar": LayerSpec(
        LayerType.TILE, "tileUrl", "/tile/{z}/{y}/{x}",
        "NOAA NEXRAD Radar", 0.6, min_zoom=3, max_zoom=12,
        extras=lambda: {"colorMap": radar_color_map()},
    ),
    "wind-data": LayerSpec(
        LayerType.VECTOR, "vectorUrl", "",
        "earth.nullschool.net Wind Data", 0.8,
        extras=lambda: {"windScale": wind_scale(), "particleCount": 5000},
    ),
    "pressure-data": LayerSpec(
        LayerType.CONTOUR, "contourUrl", "",
        "earth.nullschool.net Pressure Data", 0.5,
        extras=lambda: {"contourLines": pressure_contours(), "colorMap": pressure_color_map()},
    ),
    "sea-temp-data": LayerSpec(
        LayerType.HEATMAP, "heatmapUrl", "",
        "NOAA Sea Surface Temperature", 0.6,
        extras=lambda: {"temperatureScale": sea_temp_scale(), "colorMap": sea_temp_color_map()},
    ),
}


def build_overlay(endpoint: EndpointDescriptor, params: Mapping[str, str], now: datetime) -> Dict[str, Any]:
    """Synthesize the overlay descriptor for an imagery endpoint."""
    layer = LAYERS[endpoint.identifier]
    descriptor = OverlayDescriptor(
        layer_type=layer.layer_type,
        url_field=layer.url_field,
        url=endpoint.url + layer.url_suffix,
        attribution=layer.attribution,
        opacity=layer.opacity,
        bounds=parse_bounds(params.get("bounds")),
        timestamp=now.isoformat(timespec="seconds"),
        extras=layer.extras(),
        min_zoom=layer.min_zoom,
        max_zoom=layer.max_zoom,
    )
    return descriptor.to_dict()
