"""
NWS active alerts normalization.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List

from shared.errors import NormalizationError

from service_proxy.app.domain.models import AlertRecord
from service_proxy.app.normalization.coerce import load_json
from service_proxy.app.normalization.sanitize import sanitize_string


def _iso(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def normalize_alert(feature: Dict[str, Any], now: datetime) -> AlertRecord:
    """Map one GeoJSON feature onto the alert schema."""
    props = feature.get("properties")
    if not isinstance(props, dict):
        props = {}

    return AlertRecord(
        id=sanitize_string(props.get("id") or feature.get("id") or f"alert-{int(now.timestamp())}"),
        title=sanitize_string(props.get("event") or "Weather Alert"),
        description=sanitize_string(props.get("description") or "No description available"),
        severity=sanitize_string(props.get("severity") or "Unknown"),
        urgency=sanitize_string(props.get("urgency") or "Unknown"),
        areas=sanitize_string(props.get("areaDesc") or "Unknown Area"),
        issued=sanitize_string(props.get("sent") or _iso(now)),
        expires=sanitize_string(props.get("expires") or _iso(now + timedelta(days=1))),
    )


def normalize_alerts(endpoint: str, raw: str, now: datetime) -> Dict[str, Any]:
    """Normalize an NWS alerts feed into ``{"alerts": [...]}``.

    A well-formed feed with no alerts yields the single "operating normally"
    placeholder so the client always has something to render.
    """
    data = load_json(endpoint, raw)
    if not isinstance(data, dict) or not isinstance(data.get("features"), list):
        raise NormalizationError(endpoint, "no features array in feed")

    alerts: List[Dict[str, Any]] = [
        normalize_alert(feature, now).to_dict()
        for feature in data["features"]
        if isinstance(feature, dict)
    ]
    if not alerts:
        return fallback_alerts(now)
    return {"alerts": alerts}


def fallback_alerts(now: datetime) -> Dict[str, Any]:
    """Deterministic placeholder alert list."""
    alert = AlertRecord(
        id="demo-alert-1",
        title="System Operating Normally",
        description="No active weather alerts at this time. System functioning properly.",
        severity="Minor",
        urgency="Future",
        areas="All Areas",
        issued=_iso(now),
        expires=_iso(now + timedelta(days=1)),
    )
    return {"alerts": [alert.to_dict()]}
