"""
Shared error handling for the TropicsTracker access layer.
"""

from typing import Any, Dict, Optional


class ProxyException(Exception):
    """Base exception for access layer services."""

    status_code = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        """Convert to the canonical JSON error body."""
        body: Dict[str, Any] = {
            "error": self.message,
            "code": self.status_code,
            "type": self.code,
        }
        body.update(self.details)
        return body


class ValidationError(ProxyException):
    """Missing or malformed request input."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class MethodNotAllowedError(ProxyException):
    """HTTP method outside the proxy's policy."""

    status_code = 405

    def __init__(self, message: str = "Method not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__("METHOD_NOT_ALLOWED", message, details)


class RateLimitError(ProxyException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, retry_after: int, limit: int, message: str = "Rate limit exceeded"):
        self.retry_after = retry_after
        self.limit = limit
        super().__init__("RATE_LIMIT_ERROR", message, {"retry_after": retry_after, "limit": limit})


class ConfigurationError(ProxyException):
    """A required upstream secret or setting is absent."""

    status_code = 503

    def __init__(self, message: str = "Upstream service not configured", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class UpstreamError(ProxyException):
    """Transport failure or non-200 status from an upstream.

    Never rendered to clients: the proxy substitutes fallback data instead.
    """

    status_code = 502

    def __init__(self, endpoint: str, reason: str, upstream_status: Optional[int] = None):
        self.endpoint = endpoint
        self.reason = reason
        self.upstream_status = upstream_status
        details: Dict[str, Any] = {"endpoint": endpoint}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        super().__init__("UPSTREAM_ERROR", f"{endpoint}: {reason}", details)


class NormalizationError(ProxyException):
    """Upstream payload could not be turned into the canonical schema."""

    status_code = 502

    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__("NORMALIZATION_ERROR", f"{endpoint}: {reason}", {"endpoint": endpoint})


def from_http_status(status_code: int, detail: Any = None) -> ProxyException:
    """Wrap a framework-level HTTP error (unmatched route or method) in the canonical shape."""
    if status_code == 405:
        return MethodNotAllowedError()
    if status_code == 404:
        return ProxyException("NOT_FOUND", str(detail or "Not found"), status_code=404)
    return ProxyException("HTTP_ERROR", str(detail or "Request failed"), status_code=status_code)
