"""
Shared configuration management for the field authorization layer.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthorizationSettings(BaseSettings):
    """Settings read from FIELD_AUTH_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="FIELD_AUTH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment")
    log_level: str = Field(default="info", description="Root log level")

    # Engine behaviour
    memoize_resolver: bool = Field(
        default=True,
        description="Invoke the resolver at most once per authorization request"
    )
    implicit_fields: List[str] = Field(
        default_factory=lambda: ["__typename", "__meta__"],
        description="Fields copied verbatim by the response filter"
    )
    unauthorized_message: str = Field(default="Unauthorized", description="Error returned on deny")

    # Observability
    enable_metrics: bool = Field(default=False, description="Record Prometheus decision metrics")


def get_settings(**overrides) -> AuthorizationSettings:
    """Get authorization settings, applying keyword overrides."""
    return AuthorizationSettings(**overrides)
