"""
Validation of incoming proxy requests.
"""

import hashlib
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from fastapi import Request

from shared.config import ProxyConfig
from shared.errors import ValidationError
from shared.logging import SECURITY_LOGGER, get_logger

from service_proxy.app.endpoints import ALLOWED_PARAMS, EndpointDescriptor, get_endpoint


MAX_PARAM_LENGTH = 100

_FORBIDDEN_CHARS = re.compile(r"[\x00-\x1f\x7f<>\"'&]")
_PARAM_NAME = re.compile(r"^[A-Za-z0-9_.-]{1,32}$")

security_log = get_logger(SECURITY_LOGGER)


@dataclass(frozen=True)
class ProxyRequest:
    """A validated request.

    ``params`` holds the allow-listed parameters that feed URL building and
    normalization; ``cache_params`` holds every parameter that survived
    sanitization and is what the cache key is derived from.
    """

    endpoint: EndpointDescriptor
    params: Dict[str, str] = field(default_factory=dict)
    cache_params: Dict[str, str] = field(default_factory=dict)


def validate_endpoint(raw: Optional[str]) -> EndpointDescriptor:
    """Resolve the ``endpoint`` query parameter against the allow-list."""
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Missing endpoint parameter")

    descriptor = get_endpoint(raw.strip())
    if descriptor is None:
        security_log.warning("Invalid endpoint attempted", endpoint=raw[:MAX_PARAM_LENGTH])
        raise ValidationError("Invalid endpoint")
    return descriptor


def sanitize_value(name: str, value: str, strict: bool) -> str:
    """Apply the character and length policy to a parameter value.

    Strict mode rejects control and HTML-special characters outright,
    lenient mode strips them.
    """
    if _FORBIDDEN_CHARS.search(value):
        if strict:
            raise ValidationError("Invalid parameter value", {"parameter": name})
        value = _FORBIDDEN_CHARS.sub("", value)
    return value.strip()[:MAX_PARAM_LENGTH]


def validate_params(
    items: Iterable[Tuple[str, str]],
    strict: bool,
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Split query items into (allow-listed params, cache-key params).

    Only allow-listed parameters are held to the strict character policy;
    unknown parameters that would fail it are skipped.
    """
    params: Dict[str, str] = {}
    cache_params: Dict[str, str] = {}

    for name, value in items:
        if name == "endpoint":
            continue
        # names outside the pattern can never be allow-listed
        if not _PARAM_NAME.match(name):
            continue

        known = name in ALLOWED_PARAMS
        if strict and not known and _FORBIDDEN_CHARS.search(value or ""):
            continue

        cleaned = sanitize_value(name, value or "", strict)
        if not cleaned:
            continue

        cache_params[name] = cleaned
        if known:
            params[name] = cleaned
        elif not strict:
            # lenient mode keeps unknown parameters alongside the allow-listed ones
            params[name] = cleaned

    return params, cache_params


def validate_request(items: Iterable[Tuple[str, str]], config: ProxyConfig) -> ProxyRequest:
    """Validate endpoint and parameters for one proxy request."""
    pairs = list(items)
    endpoint = validate_endpoint(dict(pairs).get("endpoint"))
    params, cache_params = validate_params(pairs, config.strict_validation)

    for required in endpoint.required_params:
        if required not in params:
            raise ValidationError(f"Missing {required} parameter")

    return ProxyRequest(endpoint=endpoint, params=params, cache_params=cache_params)


def client_address(request: Request, trust_forwarded_for: bool = False) -> str:
    """Extract the caller address, honouring proxies only when trusted."""
    if trust_forwarded_for:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def client_identifier(address: str) -> str:
    """Stable, non-reversible identifier for a client address."""
    return hashlib.sha256(address.encode("utf-8")).hexdigest()
