"""
Normalized output records served by the proxy.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Basin(str, Enum):
    """Tropical cyclone basins."""
    ATLANTIC = "atlantic"
    EPAC = "epac"
    WPAC = "wpac"
    NIO = "nio"
    SIO = "sio"
    SPC = "spc"


@dataclass(frozen=True)
class Classification:
    """Saffir-Simpson style intensity category."""

    code: str
    name: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "name": self.name, "color": self.color}


@dataclass(frozen=True)
class Movement:
    speed: float
    direction: str

    def to_dict(self) -> Dict[str, Any]:
        return {"speed": self.speed, "direction": self.direction}


@dataclass(frozen=True)
class StormRecord:
    """Active storm in the canonical schema."""

    id: str
    name: str
    basin: Basin
    classification: Classification
    wind_speed: int
    pressure: int
    coordinates: Tuple[float, float]
    movement: Movement
    last_update: str
    forecast_track: List[Tuple[float, float]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the storm to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "basin": self.basin.value,
            "classification": self.classification.to_dict(),
            "windSpeed": self.wind_speed,
            "pressure": self.pressure,
            "coordinates": [self.coordinates[0], self.coordinates[1]],
            "movement": self.movement.to_dict(),
            "lastUpdate": self.last_update,
            "forecastTrack": [[lat, lon] for lat, lon in self.forecast_track],
        }


@dataclass(frozen=True)
class AlertRecord:
    """Weather alert in the canonical schema."""

    id: str
    title: str
    description: str
    severity: str
    urgency: str
    areas: str
    issued: str
    expires: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "urgency": self.urgency,
            "areas": self.areas,
            "issued": self.issued,
            "expires": self.expires,
        }


@dataclass(frozen=True)
class TrackPoint:
    """One six-hourly HURDAT2 observation."""

    date: str
    time: str
    status: str
    lat: float
    lon: float
    wind_speed: int
    pressure: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "time": self.time,
            "status": self.status,
            "lat": self.lat,
            "lon": self.lon,
            "windSpeed": self.wind_speed,
            "pressure": self.pressure,
        }


@dataclass
class HurricaneTrack:
    """Historical storm assembled from a HURDAT2 header and its track lines."""

    id: str
    name: str
    entries: int
    track: List[TrackPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "entries": self.entries,
            "track": [point.to_dict() for point in self.track],
        }


class LayerType(str, Enum):
    """Map overlay rendering type."""
    TILE = "tile"
    VECTOR = "vector"
    CONTOUR = "contour"
    HEATMAP = "heatmap"


Bounds = Tuple[Tuple[float, float], Tuple[float, float]]


@dataclass(frozen=True)
class OverlayDescriptor:
    """Imagery or analysis overlay metadata for the map client.

    ``url_field`` names the key the URL template is published under
    (``tileUrl``, ``vectorUrl``, ...); ``extras`` holds the layer-specific
    colour and scale tables.
    """

    layer_type: LayerType
    url_field: str
    url: str
    attribution: str
    opacity: float
    bounds: Bounds
    timestamp: str
    extras: Dict[str, Any] = field(default_factory=dict)
    min_zoom: Optional[int] = None
    max_zoom: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.layer_type.value,
            self.url_field: self.url,
            "attribution": self.attribution,
            "opacity": self.opacity,
            "bounds": [list(self.bounds[0]), list(self.bounds[1])],
            "timestamp": self.timestamp,
        }
        if self.max_zoom is not None:
            payload["maxZoom"] = self.max_zoom
        if self.min_zoom is not None:
            payload["minZoom"] = self.min_zoom
        payload.update(self.extras)
        return payload
