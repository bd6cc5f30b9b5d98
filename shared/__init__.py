"""
Shared utilities for the Micro Stats Exporter.

This package aggregates common building blocks consumed by the exporter
service:

- config: Exporter configuration via pydantic-settings
- logging: Structured logging with poll-cycle correlation
- metrics: Prometheus self-metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service scaffold with health and metrics routes

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
