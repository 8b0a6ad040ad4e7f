"""
Commercial weather API passthrough.
"""

from datetime import datetime
from typing import Any, Dict

from shared.errors import NormalizationError

from service_proxy.app.normalization.coerce import load_json


def normalize_weatherapi(endpoint: str, raw: str) -> Dict[str, Any]:
    """Return the upstream document unchanged once it is known to be JSON."""
    data = load_json(endpoint, raw)
    if not isinstance(data, dict) or not data:
        raise NormalizationError(endpoint, "empty or non-object document")
    return data


def fallback_weatherapi(now: datetime) -> Dict[str, Any]:
    """Demo current-conditions document in the upstream's own shape."""
    return {
        "location": {
            "name": "Demo Location",
            "region": "",
            "country": "",
            "lat": 25.0,
            "lon": -75.0,
            "localtime": now.strftime("%Y-%m-%d %H:%M"),
        },
        "current": {
            "last_updated": now.strftime("%Y-%m-%d %H:%M"),
            "temp_c": 27.0,
            "temp_f": 80.6,
            "condition": {"text": "Partly cloudy", "code": 1003},
            "wind_mph": 12.0,
            "wind_kph": 19.3,
            "wind_dir": "E",
            "pressure_mb": 1013.0,
            "humidity": 70,
        },
        "demo": True,
    }
