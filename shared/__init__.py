"""
Shared utilities for the PostgreSQL distributed cache.

This package aggregates common building blocks consumed by the cache:

- config: Cache configuration via pydantic-settings
- logging: Structured logging with run correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses

Any cross-cutting logic should live here to avoid import cycles. Do not
import from service_cache into shared/.
"""
