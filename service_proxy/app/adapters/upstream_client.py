"""
HTTP client for the weather upstreams.
"""

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Mapping, Optional, Union

import httpx

from shared.config import ProxySettings
from shared.errors import UpstreamError
from shared.logging import ERROR_LOGGER, get_logger

from service_proxy.app.endpoints import EndpointDescriptor

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class RawResponse:
    """Body of a successful upstream call."""

    endpoint: str
    url: str
    status_code: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)


class UpstreamClient:
    """Fetches raw documents from upstream weather APIs.

    ``fetch`` never raises for transport or status problems: it returns an
    ``UpstreamError`` and leaves fallback decisions to the caller.
    """

    def __init__(
        self,
        settings: ProxySettings,
        *,
        metrics: Optional["MetricsCollector"] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.metrics = metrics
        self.logger = get_logger("proxy.upstream_client")
        self.error_log = get_logger(ERROR_LOGGER)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.upstream_timeout, connect=settings.upstream_connect_timeout),
            verify=True,
            follow_redirects=True,
            max_redirects=settings.upstream_max_redirects,
            headers={"User-Agent": settings.user_agent},
            transport=transport,
        )

    def build_params(
        self,
        endpoint: EndpointDescriptor,
        params: Mapping[str, str],
        api_key: Optional[str] = None,
    ) -> Dict[str, str]:
        """Query string for the upstream call; only forwarded params are sent."""
        query: Dict[str, str] = {}
        if endpoint.secret and api_key:
            query["key"] = api_key
        for name in endpoint.forwarded_params:
            value = params.get(name)
            if value:
                query[name] = value
        return query

    def build_url(
        self,
        endpoint: EndpointDescriptor,
        params: Mapping[str, str],
        api_key: Optional[str] = None,
    ) -> str:
        query = self.build_params(endpoint, params, api_key)
        return str(httpx.URL(endpoint.url, params=query)) if query else endpoint.url

    def build_headers(self, endpoint: EndpointDescriptor) -> Dict[str, str]:
        if endpoint.identifier == "nws-alerts":
            return {
                "User-Agent": f"{self.settings.user_agent} ({self.settings.contact_email})",
                "Accept": "application/geo+json,application/json",
            }
        if endpoint.identifier == "weatherapi":
            return {"Content-Type": "application/json"}
        return {}

    def _record(self, endpoint: str, outcome: str, duration: float):
        if self.metrics:
            self.metrics.increment_counter("upstream_requests_total", endpoint=endpoint, outcome=outcome)
            self.metrics.observe_histogram("upstream_request_duration_seconds", duration, endpoint=endpoint)

    async def fetch(
        self,
        endpoint: EndpointDescriptor,
        params: Mapping[str, str],
        api_key: Optional[str] = None,
    ) -> Union[RawResponse, UpstreamError]:
        """GET the upstream document for ``endpoint``."""
        url = self.build_url(endpoint, params, api_key)
        start_time = time.time()

        try:
            response = await self._client.get(url, headers=self.build_headers(endpoint))
        except httpx.TimeoutException as e:
            self._record(endpoint.identifier, "timeout", time.time() - start_time)
            self.error_log.error("Upstream timeout", endpoint=endpoint.identifier, error=str(e))
            return UpstreamError(endpoint.identifier, "timeout")
        except httpx.HTTPError as e:
            self._record(endpoint.identifier, "transport_error", time.time() - start_time)
            self.error_log.error("Upstream transport error", endpoint=endpoint.identifier, error=str(e))
            return UpstreamError(endpoint.identifier, f"transport error: {type(e).__name__}")

        duration = time.time() - start_time
        if response.status_code != 200:
            self._record(endpoint.identifier, "bad_status", duration)
            self.error_log.error(
                "Upstream returned non-200 status",
                endpoint=endpoint.identifier,
                status_code=response.status_code,
            )
            return UpstreamError(
                endpoint.identifier,
                f"HTTP {response.status_code}",
                upstream_status=response.status_code,
            )

        self._record(endpoint.identifier, "success", duration)
        self.logger.debug(
            "Upstream document retrieved",
            endpoint=endpoint.identifier,
            duration_ms=round(duration * 1000, 2),
        )
        return RawResponse(
            endpoint=endpoint.identifier,
            url=url,
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )

    async def aclose(self):
        await self._client.aclose()
