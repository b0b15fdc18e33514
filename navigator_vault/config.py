"""
Client Configuration — validated settings for the vault client.

Reads settings from environment variables:
    VAULT_CLIENT_CACHE = true|false (default false)
    VAULT_API_URL = <https base url>
    VAULT_API_TOKEN = <bearer token>
    VAULT_LIST_CONCURRENCY = <int, default 1>
    VAULT_CLIENT_NAME / VAULT_PROTOCOL_VERSION

Security Note:
    Never log the API token.
"""
import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("navigator.vault")

_TRUTHY = ("1", "true", "yes", "on")


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


class ClientConfig(BaseModel):
    """Validated vault client configuration."""

    cache: bool = Field(default=False)
    api_url: Optional[str] = None
    api_token: Optional[str] = Field(default=None, repr=False)
    list_concurrency: int = Field(default=1, ge=1, le=64)
    client_name: str = Field(default="navigator-vault")
    protocol_name: str = Field(default="Akord")
    protocol_version: str = Field(default="2.0")
    request_timeout: float = Field(default=60.0, gt=0)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: Optional[str]) -> Optional[str]:
        """Only http(s) endpoints are accepted."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Unsupported API url scheme: {v}")
        return v.rstrip("/")

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create ClientConfig by loading values from environment.

        Returns:
            Populated ClientConfig instance.
        """
        values = {
            "cache": env_flag("VAULT_CLIENT_CACHE"),
            "api_url": os.environ.get("VAULT_API_URL"),
            "api_token": os.environ.get("VAULT_API_TOKEN"),
        }
        concurrency = os.environ.get("VAULT_LIST_CONCURRENCY")
        if concurrency is not None:
            values["list_concurrency"] = int(concurrency)
        for key, env in (
            ("client_name", "VAULT_CLIENT_NAME"),
            ("protocol_version", "VAULT_PROTOCOL_VERSION"),
        ):
            if env in os.environ:
                values[key] = os.environ[env]
        config = cls(**values)
        logger.debug(
            "Loaded client config: cache=%s api_url=%s", config.cache, config.api_url
        )
        return config
