"""
Per-endpoint response normalization with deterministic fallbacks.
"""

from datetime import datetime
from typing import Any, Dict, Mapping

from shared.errors import NormalizationError
from shared.logging import get_logger

from service_proxy.app.endpoints import EndpointDescriptor, ResponseKind
from service_proxy.app.normalization.alerts import fallback_alerts, normalize_alerts
from service_proxy.app.normalization.hurdat import fallback_hurdat, normalize_hurdat
from service_proxy.app.normalization.imagery import LAYERS, build_overlay
from service_proxy.app.normalization.storms import fallback_storms, normalize_storms
from service_proxy.app.normalization.weatherapi import fallback_weatherapi, normalize_weatherapi

_STORM_ENDPOINTS = ("nhc-storms", "nhc-sample")


class ResponseNormalizer:
    """Turns raw upstream payloads into the proxy's canonical documents."""

    def __init__(self):
        self.logger = get_logger("proxy.normalizer")

    def normalize(
        self,
        endpoint: EndpointDescriptor,
        raw: str,
        now: datetime,
    ) -> Dict[str, Any]:
        """Normalize a raw upstream body; raises NormalizationError when unusable."""
        identifier = endpoint.identifier
        if identifier in _STORM_ENDPOINTS:
            return normalize_storms(identifier, raw, now)
        if identifier == "nws-alerts":
            return normalize_alerts(identifier, raw, now)
        if identifier == "hurdat2":
            return normalize_hurdat(identifier, raw)
        if identifier == "weatherapi":
            return normalize_weatherapi(identifier, raw)
        raise NormalizationError(identifier, "no normalizer for endpoint")

    def synthesize(
        self,
        endpoint: EndpointDescriptor,
        params: Mapping[str, str],
        now: datetime,
    ) -> Dict[str, Any]:
        """Build an overlay descriptor for endpoints that never call upstream."""
        if endpoint.kind is not ResponseKind.IMAGERY or endpoint.identifier not in LAYERS:
            raise NormalizationError(endpoint.identifier, "not an imagery endpoint")
        return build_overlay(endpoint, params, now)

    def fallback(self, endpoint: EndpointDescriptor, now: datetime) -> Dict[str, Any]:
        """Deterministic substitute document for an endpoint."""
        identifier = endpoint.identifier
        if identifier in _STORM_ENDPOINTS:
            return fallback_storms(now)
        if identifier == "nws-alerts":
            return fallback_alerts(now)
        if identifier == "hurdat2":
            return fallback_hurdat()
        if identifier == "weatherapi":
            return fallback_weatherapi(now)
        if endpoint.kind is ResponseKind.IMAGERY:
            return build_overlay(endpoint, {}, now)
        self.logger.warning("No fallback defined for endpoint", endpoint=identifier)
        return {"error": "Service temporarily unavailable"}
