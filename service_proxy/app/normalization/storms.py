"""
NHC active storm feed normalization.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Tuple

from shared.errors import NormalizationError

from service_proxy.app.domain.models import Basin, Movement, StormRecord
from service_proxy.app.normalization.classification import classify_storm, determine_basin
from service_proxy.app.normalization.coerce import as_float, as_int, first_present, load_json
from service_proxy.app.normalization.sanitize import sanitize_string

DEFAULT_LAT = 25.0
DEFAULT_LON = -75.0
DEFAULT_PRESSURE = 1013
DEFAULT_NAME = "Unknown Storm"

# explicit "storms" arrays win over the live feed's "activeStorms"
STORM_ARRAY_KEYS = ("storms", "activeStorms")


def _forecast_track(raw_track: Any) -> List[Tuple[float, float]]:
    if not isinstance(raw_track, list):
        return []
    track: List[Tuple[float, float]] = []
    for point in raw_track:
        if isinstance(point, dict):
            lat = first_present(point, "lat", "latitude")
            lon = first_present(point, "lon", "lng", "longitude")
        elif isinstance(point, (list, tuple)) and len(point) >= 2:
            lat, lon = point[0], point[1]
        else:
            continue
        lat_value = as_float(lat, float("nan"))
        lon_value = as_float(lon, float("nan"))
        if math.isnan(lat_value) or math.isnan(lon_value):
            continue
        track.append((lat_value, lon_value))
    return track


def normalize_storm(raw: Dict[str, Any], now: datetime) -> StormRecord:
    """Normalize one raw storm object, defaulting whatever is missing."""
    lat = as_float(first_present(raw, "lat", "latitudeNumeric"), DEFAULT_LAT)
    lon = as_float(first_present(raw, "lon", "longitudeNumeric"), DEFAULT_LON)
    wind_speed = as_int(first_present(raw, "windSpeed", "intensity"), 0)
    storm_id = raw.get("id") or f"storm-{int(now.timestamp())}"

    return StormRecord(
        id=sanitize_string(storm_id),
        name=sanitize_string(raw.get("name") or DEFAULT_NAME),
        basin=determine_basin(lat, lon),
        classification=classify_storm(wind_speed),
        wind_speed=wind_speed,
        pressure=as_int(raw.get("pressure"), DEFAULT_PRESSURE),
        coordinates=(lat, lon),
        movement=Movement(
            speed=as_float(raw.get("movementSpeed"), 0.0),
            direction=sanitize_string(first_present(raw, "movementDirection", "movementDir") or "N"),
        ),
        last_update=sanitize_string(raw.get("lastUpdate") or now.isoformat(timespec="seconds")),
        forecast_track=_forecast_track(raw.get("forecastTrack")),
    )


def normalize_storms(endpoint: str, raw: str, now: datetime) -> Dict[str, Any]:
    """Normalize an NHC storm feed into ``{"storms": [...]}``."""
    data = load_json(endpoint, raw)
    if not isinstance(data, dict):
        raise NormalizationError(endpoint, "storm feed is not a JSON object")

    storms = None
    for key in STORM_ARRAY_KEYS:
        if isinstance(data.get(key), list):
            storms = data[key]
            break
    if storms is None:
        raise NormalizationError(endpoint, "no storm array in feed")

    return {
        "storms": [
            normalize_storm(storm, now).to_dict()
            for storm in storms
            if isinstance(storm, dict)
        ]
    }


def fallback_storms(now: datetime) -> Dict[str, Any]:
    """Deterministic placeholder storm served when the feed is unavailable."""
    storm = StormRecord(
        id="demo-storm-1",
        name="Demo Hurricane Alpha",
        basin=Basin.ATLANTIC,
        classification=classify_storm(105),
        wind_speed=105,
        pressure=970,
        coordinates=(DEFAULT_LAT, DEFAULT_LON),
        movement=Movement(speed=15.0, direction="NW"),
        last_update=now.isoformat(timespec="seconds"),
        forecast_track=[(25.0, -75.0), (26.0, -76.0)],
    )
    return {"storms": [storm.to_dict()]}
