"""Schema registry client configuration from environment variables."""

import os
from dataclasses import dataclass
from typing import Optional

_TRUE_VALUES = ("1", "true", "yes", "on")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class SchemaRegistryConfig:
    """Schema registry connection and caching configuration.

    Load from environment using SchemaRegistryConfig.from_env().
    """

    # Connection
    url: str
    username: Optional[str] = None
    password: Optional[str] = None
    timeout_seconds: float = 30.0

    # Cache policy: retriable errors are cached (and flagged cached) by default;
    # disable to re-issue the request on every call after a transient failure
    cache_retriable_errors: bool = True

    # Guard for reference trees supplied with a schema
    max_reference_depth: int = 32

    def __post_init__(self) -> None:
        self.url = self.url.rstrip("/")
        if self.max_reference_depth < 1:
            raise ValueError("max_reference_depth must be at least 1")

    @classmethod
    def from_env(cls) -> "SchemaRegistryConfig":
        """Load configuration from environment variables.

        Required environment variables:
            SCHEMA_REGISTRY_URL: Registry base URL (e.g. http://registry:8081)

        Optional environment variables (with defaults):
            SCHEMA_REGISTRY_USERNAME: Basic auth user (none)
            SCHEMA_REGISTRY_PASSWORD: Basic auth password (none)
            SCHEMA_REGISTRY_TIMEOUT_SECONDS: 30 (default)
            SCHEMA_REGISTRY_CACHE_RETRIABLE_ERRORS: true (default)
            SCHEMA_REGISTRY_MAX_REFERENCE_DEPTH: 32 (default)

        Raises:
            ValueError: If required environment variables are missing
        """
        url = os.getenv("SCHEMA_REGISTRY_URL")
        if not url:
            raise ValueError("SCHEMA_REGISTRY_URL environment variable is required")

        return cls(
            url=url,
            username=os.getenv("SCHEMA_REGISTRY_USERNAME") or None,
            password=os.getenv("SCHEMA_REGISTRY_PASSWORD") or None,
            timeout_seconds=float(os.getenv("SCHEMA_REGISTRY_TIMEOUT_SECONDS", "30")),
            cache_retriable_errors=_parse_bool(
                os.getenv("SCHEMA_REGISTRY_CACHE_RETRIABLE_ERRORS", "true")
            ),
            max_reference_depth=int(os.getenv("SCHEMA_REGISTRY_MAX_REFERENCE_DEPTH", "32")),
        )
