"""
Weather data proxy service for TropicsTracker.
"""

import json
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
from fastapi import Request, Response
from starlette.background import BackgroundTask

from shared.base_service import BaseService
from shared.config import ProxyConfig, ProxySettings, resolve_config
from shared.errors import (
    ConfigurationError,
    MethodNotAllowedError,
    NormalizationError,
    ProxyException,
    RateLimitError,
    UpstreamError,
)
from shared.logging import (
    DEBUG_LOGGER,
    ERROR_LOGGER,
    SECURITY_LOGGER,
    configure_event_logs,
    get_logger,
    set_client_context,
)

from service_proxy.app.adapters.upstream_client import UpstreamClient
from service_proxy.app.caching.cache_manager import build_cache_manager
from service_proxy.app.domain.request_policy import (
    ProxyRequest,
    client_address,
    client_identifier,
    validate_request,
)
from service_proxy.app.endpoints import EndpointDescriptor
from service_proxy.app.normalization.normalizer import ResponseNormalizer
from service_proxy.app.ratelimit.fixed_window import build_rate_limiter

PROXY_PATH = "/api/proxy"
JSON_MEDIA_TYPE = "application/json; charset=utf-8"

SOURCE_UPSTREAM = "upstream"
SOURCE_FALLBACK = "fallback"
SOURCE_SYNTHESIZED = "synthesized"

CORS_HEADERS = {
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Requested-With",
    "Access-Control-Max-Age": "3600",
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def render_json(payload: Dict[str, Any]) -> bytes:
    """Serialize a document the same way for fresh and cached responses."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class ProxyService(BaseService):
    """Caching reverse proxy in front of the weather upstreams."""

    def __init__(
        self,
        settings: Optional[ProxySettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[Callable[[], float]] = None,
    ):
        super().__init__("proxy", settings)
        self.clock = clock
        self.security_log = get_logger(SECURITY_LOGGER)
        self.error_log = get_logger(ERROR_LOGGER)
        self.debug_log = get_logger(DEBUG_LOGGER)
        configure_event_logs(self.settings.log_dir)

        self.cache_manager = build_cache_manager(self.settings, metrics=self.metrics, clock=clock, rng=rng)
        self.rate_limiter = build_rate_limiter(self.settings, clock=clock)
        self.upstream_client = UpstreamClient(self.settings, metrics=self.metrics, transport=transport)
        self.normalizer = ResponseNormalizer()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.upstream_client.aclose()
            await self.cache_manager.close()
            await self.rate_limiter.close()

        self._setup_proxy_middleware()
        self._setup_proxy_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.proxy_service = self

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    def _setup_proxy_middleware(self):
        """Resolve per-request policy and apply CORS and security headers."""

        @self.app.middleware("http")
        async def apply_request_policy(request: Request, call_next):
            config = resolve_config(self.settings, request.headers.get("host"))
            request.state.proxy_config = config
            request.state.debug_details = config.debug_details

            client_id = client_identifier(client_address(request, self.settings.trust_forwarded_for))
            request.state.client_id = client_id
            set_client_context(client_id)

            if request.method == "OPTIONS":
                response = Response(status_code=204)
            else:
                response = await call_next(request)

            self._apply_headers(response, config, request.headers.get("origin"))
            return response

    def _apply_headers(self, response: Response, config: ProxyConfig, origin: Optional[str]):
        allowed = config.allowed_origin(origin)
        response.headers["Access-Control-Allow-Origin"] = allowed
        if allowed != "*":
            response.headers["Vary"] = "Origin"
        response.headers.update(CORS_HEADERS)
        response.headers["X-Environment"] = config.environment.value
        if config.security_headers:
            response.headers.update(SECURITY_HEADERS)
        if response.headers.get("content-type") == "application/json":
            response.headers["Content-Type"] = JSON_MEDIA_TYPE

    def _setup_proxy_routes(self):
        """Set up the proxy route."""

        @self.app.api_route(PROXY_PATH, methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
        async def proxy(request: Request):
            """Serve one upstream document through validation, rate limiting and the cache."""
            if request.method != "GET":
                raise MethodNotAllowedError()
            return await self.handle(request)

    async def handle(self, request: Request) -> Response:
        config: ProxyConfig = request.state.proxy_config
        proxy_request = validate_request(request.query_params.multi_items(), config)
        endpoint = proxy_request.endpoint

        rate_result: Optional[Dict[str, Any]] = None
        if config.rate_limit_enabled:
            rate_result = await self._enforce_rate_limit(request.state.client_id, endpoint)

        if config.cache_enabled:
            entry = await self.cache_manager.lookup(endpoint.identifier, proxy_request.cache_params)
            if entry is not None:
                self._debug(config, "Cache hit", endpoint=endpoint.identifier, key=entry.key)
                response = self._document_response(entry.payload, rate_result)
                response.headers["X-Cache"] = "HIT"
                response.headers["X-Cache-Age"] = str(entry.age(self.clock()))
                return response

        payload, source = await self._produce(proxy_request, config)

        if config.cache_enabled and source != SOURCE_FALLBACK:
            await self.cache_manager.store_payload(endpoint.identifier, proxy_request.cache_params, payload)

        self._debug(config, "Served document", endpoint=endpoint.identifier, source=source)
        response = self._document_response(payload, rate_result)
        response.headers["X-Cache"] = "MISS"
        response.headers["X-Data-Source"] = source
        return response

    async def _enforce_rate_limit(self, client_id: str, endpoint: EndpointDescriptor) -> Dict[str, Any]:
        """Count the request against the caller's window."""
        result = await self.rate_limiter.check(client_id)
        if not result.get("allowed", False):
            self.metrics.increment_counter("rate_limit_hits_total", endpoint=endpoint.identifier)
            self.security_log.warning(
                "Rate limit exceeded",
                endpoint=endpoint.identifier,
                current_count=result.get("current_count"),
                limit=result.get("limit"),
            )
            raise RateLimitError(
                retry_after=int(result.get("retry_after", self.settings.rate_limit_window_seconds)),
                limit=int(result.get("limit", self.settings.rate_limit_requests)),
            )
        return result

    async def _produce(self, proxy_request: ProxyRequest, config: ProxyConfig) -> Tuple[Dict[str, Any], str]:
        """Build the document for a cache miss and report where it came from."""
        endpoint = proxy_request.endpoint
        now = self._now()

        if not endpoint.calls_upstream:
            return self.normalizer.synthesize(endpoint, proxy_request.params, now), SOURCE_SYNTHESIZED

        api_key: Optional[str] = None
        if endpoint.secret:
            api_key = getattr(config, endpoint.secret, None)
            if not api_key:
                if not config.is_development:
                    self.security_log.error("Upstream secret not configured", endpoint=endpoint.identifier)
                    raise ConfigurationError()
                return self._fallback(endpoint, now, "not_configured"), SOURCE_FALLBACK

        self._debug(config, "Fetching upstream", endpoint=endpoint.identifier, params=proxy_request.params)
        result = await self.upstream_client.fetch(endpoint, proxy_request.params, api_key)
        if isinstance(result, UpstreamError):
            return self._fallback(endpoint, now, "upstream_error", result.reason), SOURCE_FALLBACK

        try:
            payload = self.normalizer.normalize(endpoint, result.text, now)
        except NormalizationError as exc:
            return self._fallback(endpoint, now, "normalization_error", exc.reason), SOURCE_FALLBACK
        return payload, SOURCE_UPSTREAM

    def _debug(self, config: ProxyConfig, event: str, **fields: Any) -> None:
        if config.debug_details:
            self.debug_log.debug(event, **fields)

    def _fallback(
        self,
        endpoint: EndpointDescriptor,
        now: datetime,
        reason: str,
        detail: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.metrics.increment_counter("fallback_responses_total", endpoint=endpoint.identifier, reason=reason)
        self.error_log.error("Serving fallback data", endpoint=endpoint.identifier, reason=reason, detail=detail)
        return self.normalizer.fallback(endpoint, now)

    def _document_response(self, payload: Dict[str, Any], rate_result: Optional[Dict[str, Any]]) -> Response:
        background = BackgroundTask(self.cache_manager.sweep) if self.cache_manager.should_sweep() else None
        response = Response(content=render_json(payload), media_type=JSON_MEDIA_TYPE, background=background)
        if rate_result:
            self._set_rate_limit_headers(response, rate_result)
        return response

    def _set_rate_limit_headers(self, response: Response, rate_result: Dict[str, Any]) -> None:
        """Propagate rate limiting metadata via standard headers."""
        limit = rate_result.get("limit")
        remaining = rate_result.get("remaining")
        reset = rate_result.get("reset_in_seconds")

        if limit is not None:
            response.headers["X-RateLimit-Limit"] = str(limit)
        if remaining is not None:
            response.headers["X-RateLimit-Remaining"] = str(remaining)
        if reset is not None:
            response.headers["X-RateLimit-Reset"] = str(reset)

    def _error_headers(self, exc: ProxyException) -> Dict[str, str]:
        if isinstance(exc, RateLimitError):
            return {"Retry-After": str(exc.retry_after)}
        if isinstance(exc, MethodNotAllowedError):
            return {"Allow": "GET, OPTIONS"}
        return {}

    def _decorate_error_response(self, request: Request, response: Response) -> None:
        config = getattr(request.state, "proxy_config", None)
        if config is None:
            config = resolve_config(self.settings, request.headers.get("host"))
        self._apply_headers(response, config, request.headers.get("origin"))


def create_app(settings: Optional[ProxySettings] = None):
    """Create FastAPI application."""
    service = ProxyService(settings)
    return service.app


if __name__ == "__main__":
    service = ProxyService()
    service.run()
