"""
Shared configuration management for the TropicsTracker access layer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


WEATHERAPI_KEY_PLACEHOLDER = "your_weatherapi_key_here"

DEVELOPMENT_HOSTS = frozenset({"localhost", "127.0.0.1", "localhost:8000", "127.0.0.1:8000"})

PRODUCTION_ORIGINS = (
    "https://tropicstracker.net",
    "https://www.tropicstracker.net",
)


class Environment(str, Enum):
    """Deployment environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ProxySettings(BaseSettings):
    """Process-level settings read from the environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="production", validation_alias=AliasChoices("PROXY_ENV", "APP_ENV"))
    debug: bool = Field(default=False, validation_alias=AliasChoices("PROXY_DEBUG", "DEBUG"))
    log_level: str = Field(default="info", validation_alias="PROXY_LOG_LEVEL")

    # Service
    host: str = Field(default="0.0.0.0", validation_alias="PROXY_HOST")
    port: int = Field(default=8000, validation_alias="PROXY_PORT")

    # CORS
    cors_origin: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("PROXY_CORS_ORIGIN", "CORS_ORIGIN")
    )

    # Secrets
    weatherapi_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("PROXY_WEATHERAPI_KEY", "WEATHERAPI_KEY")
    )

    # Persistence
    cache_dir: str = Field(default="cache", validation_alias="PROXY_CACHE_DIR")
    log_dir: str = Field(default="logs", validation_alias="PROXY_LOG_DIR")
    cache_enabled: bool = Field(default=True, validation_alias="PROXY_CACHE_ENABLED")
    cache_backend: str = Field(default="file", validation_alias="PROXY_CACHE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="PROXY_REDIS_URL")
    cache_expiry_seconds: int = Field(default=300, validation_alias="PROXY_CACHE_EXPIRY_SECONDS")
    sweep_probability: float = Field(default=0.01, validation_alias="PROXY_SWEEP_PROBABILITY")

    # Rate limiting
    rate_limit_requests: int = Field(default=60, validation_alias="PROXY_RATE_LIMIT_REQUESTS")
    rate_limit_window_seconds: int = Field(default=60, validation_alias="PROXY_RATE_LIMIT_WINDOW_SECONDS")
    trust_forwarded_for: bool = Field(default=False, validation_alias="PROXY_TRUST_FORWARDED_FOR")

    # Upstreams
    upstream_connect_timeout: float = Field(default=10.0, validation_alias="PROXY_UPSTREAM_CONNECT_TIMEOUT")
    upstream_timeout: float = Field(default=30.0, validation_alias="PROXY_UPSTREAM_TIMEOUT")
    upstream_max_redirects: int = Field(default=3, validation_alias="PROXY_UPSTREAM_MAX_REDIRECTS")
    user_agent: str = Field(default="TropicsTracker.net/1.0", validation_alias="PROXY_USER_AGENT")
    contact_email: str = Field(default="admin@tropicstracker.net", validation_alias="PROXY_CONTACT_EMAIL")


@dataclass(frozen=True)
class ProxyConfig:
    """Per-request policy derived from settings and the incoming Host header."""

    environment: Environment
    cors_origins: Tuple[str, ...]
    rate_limit_enabled: bool
    rate_limit_requests: int
    rate_limit_window_seconds: int
    strict_validation: bool
    security_headers: bool
    debug_details: bool
    cache_enabled: bool
    cache_expiry_seconds: int
    weatherapi_key: Optional[str] = None

    @property
    def is_development(self) -> bool:
        return self.environment is Environment.DEVELOPMENT

    @property
    def allows_any_origin(self) -> bool:
        return "*" in self.cors_origins

    def allowed_origin(self, origin: Optional[str]) -> str:
        """Value for Access-Control-Allow-Origin given the request Origin."""
        if self.allows_any_origin:
            return "*"
        if origin and origin in self.cors_origins:
            return origin
        return "null"


def is_development_host(host: Optional[str]) -> bool:
    """Whether the Host header points at a local development server."""
    if not host:
        return False
    host = host.strip().lower()
    if host in DEVELOPMENT_HOSTS:
        return True
    return host.split(":", 1)[0].endswith(".local")


def _secret_value(secret: Optional[SecretStr]) -> Optional[str]:
    if secret is None:
        return None
    value = secret.get_secret_value().strip()
    if not value or value == WEATHERAPI_KEY_PLACEHOLDER:
        return None
    return value


def resolve_config(settings: ProxySettings, host: Optional[str] = None) -> ProxyConfig:
    """Resolve the immutable request policy.

    Pure function of the settings and the Host header: development hosts, an
    explicit development environment or the debug flag relax the policy
    (wildcard CORS, no rate limiting, lenient parameter validation).
    """
    development = (
        is_development_host(host)
        or settings.env.strip().lower() == Environment.DEVELOPMENT.value
        or settings.debug
    )
    environment = Environment.DEVELOPMENT if development else Environment.PRODUCTION

    if development:
        origins: Tuple[str, ...] = ("*",)
    else:
        extra = (settings.cors_origin or PRODUCTION_ORIGINS[0]).strip()
        origins = tuple(dict.fromkeys(PRODUCTION_ORIGINS + (extra,)))

    return ProxyConfig(
        environment=environment,
        cors_origins=origins,
        rate_limit_enabled=not development,
        rate_limit_requests=settings.rate_limit_requests,
        rate_limit_window_seconds=settings.rate_limit_window_seconds,
        strict_validation=not development,
        security_headers=not development,
        debug_details=development,
        cache_enabled=settings.cache_enabled,
        cache_expiry_seconds=settings.cache_expiry_seconds,
        weatherapi_key=_secret_value(settings.weatherapi_key),
    )


def get_settings(**overrides) -> ProxySettings:
    """Load settings for the proxy service."""
    return ProxySettings(**overrides)
