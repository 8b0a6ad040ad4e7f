"""
Storm intensity classification and basin assignment.
"""

import math
from typing import Tuple

from service_proxy.app.domain.models import Basin, Classification

# (exclusive upper bound, classification), checked in order; first match wins
INTENSITY_THRESHOLDS: Tuple[Tuple[float, Classification], ...] = (
    (39, Classification("TD", "Tropical Depression", "#64748b")),
    (74, Classification("TS", "Tropical Storm", "#06b6d4")),
    (96, Classification("CAT1", "Category 1", "#fbbf24")),
    (111, Classification("CAT2", "Category 2", "#f97316")),
    (130, Classification("CAT3", "Category 3", "#ef4444")),
    (157, Classification("CAT4", "Category 4", "#dc2626")),
    (math.inf, Classification("CAT5", "Category 5", "#7c2d12")),
)

# (basin, (lat_min, lat_max), (lon_min, lon_max)), open intervals, first match wins.
# A lon range whose minimum exceeds its maximum wraps across the antimeridian.
BASIN_BOXES: Tuple[Tuple[Basin, Tuple[float, float], Tuple[float, float]], ...] = (
    (Basin.ATLANTIC, (0, 60), (-100, 0)),
    (Basin.EPAC, (0, 60), (-180, -80)),
    (Basin.WPAC, (-5, 50), (100, 180)),
    (Basin.NIO, (0, 35), (40, 100)),
    (Basin.SIO, (-50, 0), (20, 115)),
    (Basin.SPC, (-50, 0), (135, -120)),
)

DEFAULT_BASIN = Basin.ATLANTIC


def classify_storm(wind_speed: float) -> Classification:
    """Map a sustained wind speed to its intensity category."""
    wind = int(wind_speed)
    for upper_bound, classification in INTENSITY_THRESHOLDS:
        if wind < upper_bound:
            return classification
    return INTENSITY_THRESHOLDS[-1][1]


def _within(value: float, bounds: Tuple[float, float]) -> bool:
    low, high = bounds
    return low < value < high


def _within_longitude(lon: float, bounds: Tuple[float, float]) -> bool:
    low, high = bounds
    if low <= high:
        return low < lon < high
    return lon > low or lon < high


def determine_basin(lat: float, lon: float) -> Basin:
    """Assign a basin from a storm position, defaulting to the Atlantic."""
    lat = float(lat)
    lon = float(lon)
    for basin, lat_bounds, lon_bounds in BASIN_BOXES:
        if _within(lat, lat_bounds) and _within_longitude(lon, lon_bounds):
            return basin
    return DEFAULT_BASIN
