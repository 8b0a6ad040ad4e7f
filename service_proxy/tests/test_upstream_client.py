"""
Unit tests for the upstream HTTP client.
"""

import httpx
import pytest

from shared.config import ProxySettings
from shared.errors import UpstreamError
from shared.metrics import MetricsCollector

from service_proxy.app.adapters.upstream_client import RawResponse, UpstreamClient
from service_proxy.app.endpoints import ENDPOINTS


@pytest.fixture
def settings():
    return ProxySettings(contact_email="ops@example.com")


def make_client(settings, handler, metrics=None):
    return UpstreamClient(settings, metrics=metrics, transport=httpx.MockTransport(handler))


class TestBuildUrl:
    """Test cases for URL and header construction."""

    def test_weatherapi_receives_key_and_q_only(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200))
        url = httpx.URL(client.build_url(ENDPOINTS["weatherapi"], {"q": "Miami", "zoom": "5"}, "secret"))

        assert url.params["key"] == "secret"
        assert url.params["q"] == "Miami"
        assert "zoom" not in url.params

    def test_alerts_receive_area_only(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200))
        url = httpx.URL(client.build_url(ENDPOINTS["nws-alerts"], {"area": "FL", "q": "x"}))

        assert dict(url.params) == {"area": "FL"}

    def test_other_endpoints_get_no_query(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200))
        url = client.build_url(ENDPOINTS["nhc-storms"], {"area": "FL", "year": "2024"})

        assert url == ENDPOINTS["nhc-storms"].url

    def test_alert_headers(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200))
        headers = client.build_headers(ENDPOINTS["nws-alerts"])

        assert headers["User-Agent"] == "TropicsTracker.net/1.0 (ops@example.com)"
        assert headers["Accept"] == "application/geo+json,application/json"

    def test_weatherapi_headers(self, settings):
        client = make_client(settings, lambda request: httpx.Response(200))
        assert client.build_headers(ENDPOINTS["weatherapi"]) == {"Content-Type": "application/json"}


class TestFetch:
    """Test cases for UpstreamClient.fetch."""

    @pytest.mark.asyncio
    async def test_success(self, settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["user_agent"] = request.headers["User-Agent"]
            return httpx.Response(200, text='{"storms": []}')

        metrics = MetricsCollector("proxy")
        client = make_client(settings, handler, metrics)
        try:
            result = await client.fetch(ENDPOINTS["nhc-storms"], {})
        finally:
            await client.aclose()

        assert isinstance(result, RawResponse)
        assert result.text == '{"storms": []}'
        assert seen["user_agent"] == "TropicsTracker.net/1.0"
        assert metrics.sample_value("upstream_requests_total", endpoint="nhc-storms", outcome="success") == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [403, 404, 500, 503])
    async def test_non_200_is_an_error_value(self, settings, status_code):
        client = make_client(settings, lambda request: httpx.Response(status_code, text="nope"))
        try:
            result = await client.fetch(ENDPOINTS["hurdat2"], {})
        finally:
            await client.aclose()

        assert isinstance(result, UpstreamError)
        assert result.upstream_status == status_code
        assert result.endpoint == "hurdat2"

    @pytest.mark.asyncio
    async def test_transport_failure_is_an_error_value(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(settings, handler)
        try:
            result = await client.fetch(ENDPOINTS["nws-alerts"], {"area": "FL"})
        finally:
            await client.aclose()

        assert isinstance(result, UpstreamError)
        assert result.upstream_status is None

    @pytest.mark.asyncio
    async def test_timeout_is_an_error_value(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        metrics = MetricsCollector("proxy")
        client = make_client(settings, handler, metrics)
        try:
            result = await client.fetch(ENDPOINTS["nhc-storms"], {})
        finally:
            await client.aclose()

        assert isinstance(result, UpstreamError)
        assert result.reason == "timeout"
        assert metrics.sample_value("upstream_requests_total", endpoint="nhc-storms", outcome="timeout") == 1.0

    @pytest.mark.asyncio
    async def test_redirects_are_followed(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/CurrentStorms.json":
                return httpx.Response(301, headers={"Location": "https://www.nhc.noaa.gov/moved.json"})
            return httpx.Response(200, text='{"activeStorms": []}')

        client = make_client(settings, handler)
        try:
            result = await client.fetch(ENDPOINTS["nhc-storms"], {})
        finally:
            await client.aclose()

        assert isinstance(result, RawResponse)
        assert result.text == '{"activeStorms": []}'

    @pytest.mark.asyncio
    async def test_redirect_loop_is_bounded(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": str(request.url)})

        client = make_client(settings, handler)
        try:
            result = await client.fetch(ENDPOINTS["nhc-storms"], {})
        finally:
            await client.aclose()

        assert isinstance(result, UpstreamError)
