"""
Base service class for TropicsTracker access layer services.
"""

import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import ProxySettings, get_settings
from shared.errors import ProxyException, from_http_status
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, settings: Optional[ProxySettings] = None):
        self.service_name = service_name
        self.settings = settings or get_settings()
        self.port = self.settings.port
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)

        configure_logging(service_name, self.settings.log_level)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"TropicsTracker Access Layer - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.settings.debug else None,
            redoc_url=None,
            openapi_url="/openapi.json" if self.settings.debug else None,
        )

    def _setup_middleware(self):
        """Set up middleware."""

        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            start_time = time.time()
            request_id = set_request_id(request.headers.get("X-Request-ID"))

            try:
                response = await call_next(request)
            finally:
                clear_context()

            duration = time.time() - start_time
            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
                request_id=request_id,
            )
            response.headers["X-Request-ID"] = request_id
            return response

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/metrics", include_in_schema=False)
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(self.metrics.registry),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(ProxyException)
        async def proxy_exception_handler(request: Request, exc: ProxyException):
            """Handle ProxyException."""
            return self._proxy_error_response(request, exc)

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            """Render routing errors (unknown path or method) in the canonical error shape."""
            return self._proxy_error_response(request, from_http_status(exc.status_code, exc.detail))

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            response = JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "code": 500,
                    "type": "INTERNAL_ERROR",
                }
            )
            # served outside the http middleware stack
            self._decorate_error_response(request, response)
            return response

    def _proxy_error_response(self, request: Request, exc: ProxyException) -> JSONResponse:
        self.metrics.record_error(exc.code)
        return JSONResponse(
            status_code=exc.status_code,
            content=self._error_body(request, exc.to_response()),
            headers=self._error_headers(exc),
        )

    def _error_body(self, request: Request, body: Dict[str, Any]) -> Dict[str, Any]:
        """Attach request diagnostics when the request policy allows it."""
        if getattr(request.state, "debug_details", False):
            body["debug"] = {
                "request_uri": str(request.url),
                "method": request.method,
                "user_agent": request.headers.get("User-Agent", ""),
            }
        return body

    def _error_headers(self, exc: ProxyException) -> Dict[str, str]:
        """Extra headers for an error response. Override in subclasses."""
        return {}

    def _decorate_error_response(self, request: Request, response: Response) -> None:
        """Hook for headers the middleware would normally add. Override in subclasses."""

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            log_level=self.settings.log_level.lower()
        )
