"""
Shared utilities for the TropicsTracker access layer.

This package aggregates common building blocks consumed by the services:

- config: Settings via pydantic-settings and the per-request policy resolver
- logging: Structured logging with request correlation and event log files
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI application scaffolding
- test_helpers: Fake clock, upstream stubs and weather data factories for tests

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
