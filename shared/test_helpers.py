"""
Test helpers for the TropicsTracker access layer.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from shared.config import ProxySettings


class FakeClock:
    """Settable replacement for ``time.time``."""

    def __init__(self, now: float = 1_725_192_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class UpstreamStub:
    """``httpx.MockTransport`` handler answering from a per-host table.

    Every request is recorded in ``calls``; hosts without an entry get a 404.
    """

    def __init__(self, responses: Optional[Dict[str, httpx.Response]] = None):
        self.responses = responses or {}
        self.calls: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        template = self.responses.get(request.url.host)
        if template is None:
            return httpx.Response(404)
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class WeatherDataFactory:
    """Factory for upstream payloads."""

    @staticmethod
    def storm(
        storm_id: str = "al052024",
        name: str = "Ernesto",
        lat: float = 18.5,
        lon: float = -64.2,
        wind_speed: int = 85,
        **overrides: Any,
    ) -> Dict[str, Any]:
        storm = {
            "id": storm_id,
            "name": name,
            "lat": lat,
            "lon": lon,
            "windSpeed": wind_speed,
            "pressure": 980,
            "movementSpeed": 12,
            "movementDirection": "NNW",
            "lastUpdate": "2024-08-14T15:00:00Z",
            "forecastTrack": [[19.0, -65.0], [20.0, -66.0]],
        }
        storm.update(overrides)
        return storm

    @staticmethod
    def storm_feed(*storms: Dict[str, Any], key: str = "storms") -> Dict[str, Any]:
        return {key: list(storms)}

    @staticmethod
    def alert_feature(event: str = "Hurricane Warning", **properties: Any) -> Dict[str, Any]:
        props = {
            "event": event,
            "description": "Hurricane conditions expected",
            "severity": "Extreme",
            "urgency": "Immediate",
            "areaDesc": "Miami-Dade",
            "sent": "2024-09-01T10:00:00-04:00",
            "expires": "2024-09-02T10:00:00-04:00",
        }
        props.update(properties)
        return {"type": "Feature", "properties": props}

    @staticmethod
    def alert_feed(*features: Dict[str, Any]) -> Dict[str, Any]:
        return {"type": "FeatureCollection", "features": list(features)}

    @staticmethod
    def hurdat2(storm_id: str = "AL092023", name: str = "HERMINE", points: int = 5) -> str:
        """HURDAT2 text in the published layout."""
        lines = [f"{storm_id}, {name:>18}, {points:>6},"]
        for index in range(points):
            day, hour = divmod(index * 6, 24)
            lines.append(
                f"202309{1 + day:02d}, {hour:02d}00,  , TS, {25.0 + index * 0.5:.1f}N,"
                f"  {75.0 + index * 0.5:.1f}W, {40 + index * 5:>3}, {1005 - index * 3:>4},"
            )
        return "\n".join(lines) + "\n"


def make_test_settings(tmp_path: Union[str, Path], **overrides: Any) -> ProxySettings:
    """Settings rooted in a temporary directory."""
    base = Path(tmp_path)
    values: Dict[str, Any] = {
        "cache_dir": str(base / "cache"),
        "log_dir": str(base / "logs"),
    }
    values.update(overrides)
    return ProxySettings(**values)
