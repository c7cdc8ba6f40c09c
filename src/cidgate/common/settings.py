"""Application configuration for the gateway proxy."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_IPFS_GATEWAY = "https://cloudflare-ipfs.com"
DEFAULT_GROVE_GATEWAY = "https://api.grove.storage"


def env_field(default, *env_names: str):
    if len(env_names) == 1:
        return Field(default, validation_alias=env_names[0])
    return Field(default, validation_alias=AliasChoices(*env_names))


class ProxySettings(BaseSettings):
    """Runtime settings for the content-addressed gateway proxy."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", populate_by_name=True)

    default_ipfs_gateway: str = env_field(DEFAULT_IPFS_GATEWAY, "CIDGATE_IPFS_GATEWAY", "DEFAULT_GATEWAY")
    default_grove_gateway: str = env_field(
        DEFAULT_GROVE_GATEWAY,
        "CIDGATE_GROVE_GATEWAY",
        "DEFAULT_GROVE_GATEWAY",
    )
    upstream_timeout_seconds: float = env_field(30.0, "CIDGATE_UPSTREAM_TIMEOUT")
    upstream_connect_timeout_seconds: float = env_field(10.0, "CIDGATE_UPSTREAM_CONNECT_TIMEOUT")
    max_upstream_connections: int = env_field(100, "CIDGATE_MAX_UPSTREAM_CONNECTIONS")
    metrics_token: Optional[SecretStr] = env_field(None, "CIDGATE_METRICS_TOKEN")
    log_level: str = env_field("INFO", "CIDGATE_LOG_LEVEL")
    otel_exporter_endpoint: Optional[str] = env_field(None, "CIDGATE_OTEL_EXPORTER_ENDPOINT")
    otel_exporter_headers: Optional[str] = env_field(None, "CIDGATE_OTEL_EXPORTER_HEADERS")
    otel_sampler_ratio: float = env_field(0.1, "CIDGATE_OTEL_SAMPLER_RATIO")

    @field_validator("default_ipfs_gateway", "default_grove_gateway", mode="before")
    @classmethod
    def _validate_gateway_origin(cls, value):
        if not isinstance(value, str):
            return value
        candidate = value.strip().rstrip("/")
        parts = urlsplit(candidate)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            raise ValueError(f"gateway must be an absolute http(s) origin: {value!r}")
        if parts.path or parts.query or parts.fragment:
            raise ValueError(f"gateway must not carry a path, query or fragment: {value!r}")
        return candidate

    @field_validator("upstream_timeout_seconds", "upstream_connect_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value
