"""
Shared utilities for the field authorization layer.

This package aggregates common building blocks consumed by the rule
engine:

- config: Engine settings via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses

Do not import from field_authorization into shared/.
"""
