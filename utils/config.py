"""Configuration management for the NY credits service.

Settings come from environment variables with defaults that work out of the
box against the public data.ny.gov host.  No credential is required: without
``SOCRATA_APP_TOKEN`` the client falls back to the legacy SoQL endpoint when
the versioned query API rejects anonymous access.
"""

import os
from typing import Any, Dict


class Config:
    """Base configuration class for organizing application settings."""

    # Attribute names masked to a bool by to_dict()
    _SECRET_FIELDS: frozenset[str] = frozenset()

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary, masking secret fields.

        Returns:
            Dictionary of all public config attributes
        """
        data = {}
        for key, value in self.__dict__.items():
            if key.startswith("_"):
                continue
            if key in self._SECRET_FIELDS:
                value = bool(value)
            data[key] = value
        return data


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    Environment variables:
        SOCRATA_DOMAIN: Socrata host (default: data.ny.gov)
        SOCRATA_DATASET_ID: Dataset four-by-four id (default: qjqv-zrwt)
        SOCRATA_APP_TOKEN: Optional app token, sent as X-App-Token
        SOCRATA_TIMEOUT: Per-request timeout in seconds (default: 30)
        SOCRATA_CACHE_TTL: Seconds to cache query results, 0 disables (default: 60)
        CREDITS_MAX_ROWS: Row cap on raw queries (default: 50000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_PORT: API server port (default: 8000)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
    """

    _SECRET_FIELDS = frozenset({"app_token"})

    def __init__(self) -> None:
        self.socrata_domain = os.getenv("SOCRATA_DOMAIN", "data.ny.gov").strip()
        self.dataset_id = os.getenv("SOCRATA_DATASET_ID", "qjqv-zrwt").strip()
        self.app_token = os.getenv("SOCRATA_APP_TOKEN", "").strip()
        self.timeout_seconds = _float_env("SOCRATA_TIMEOUT", 30.0)
        self.cache_ttl_seconds = _float_env("SOCRATA_CACHE_TTL", 60.0)
        self.max_rows = _int_env("CREDITS_MAX_ROWS", 50_000)
        self.api_host = os.getenv("APP_HOST", "127.0.0.1")
        self.api_port = _int_env("APP_PORT", 8000)
        self.log_format = os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )

    @property
    def query_url(self) -> str:
        """Versioned query API (primary dialect)."""
        return f"https://{self.socrata_domain}/api/v3/views/{self.dataset_id}/query.json"

    @property
    def soql_url(self) -> str:
        """Legacy SoQL resource API (fallback dialect)."""
        return f"https://{self.socrata_domain}/resource/{self.dataset_id}.json"

    @property
    def metadata_url(self) -> str:
        return f"https://{self.socrata_domain}/api/views/{self.dataset_id}.json"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()
