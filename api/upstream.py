"""
Upstream Socrata collaborators for the API.

Provides ``get_client()`` and ``get_resolver()`` dependencies returning one
process-wide SocrataClient and ColumnResolver, created lazily from
``AppConfig``.  The resolver caches the dataset's ColumnMap for the process
lifetime; ``reset_upstream()`` drops both (tests, config reloads).
"""

import threading

from pipeline.columns import ColumnResolver
from utils.config import AppConfig
from utils.http import SocrataClient

_lock = threading.Lock()
_config: AppConfig | None = None
_client: SocrataClient | None = None
_resolver: ColumnResolver | None = None


def get_config() -> AppConfig:
    """Return the configuration the upstream objects were built from."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def get_client() -> SocrataClient:
    global _client
    with _lock:
        if _client is None:
            _client = SocrataClient(get_config())
        return _client


def get_resolver() -> ColumnResolver:
    global _resolver
    client = get_client()
    with _lock:
        if _resolver is None:
            _resolver = ColumnResolver(client)
        return _resolver


def configure(config: AppConfig | None = None,
              client: SocrataClient | None = None,
              resolver: ColumnResolver | None = None) -> None:
    """Install explicit collaborators (used by create_app() and tests)."""
    global _config, _client, _resolver
    with _lock:
        if _client is not None and _client is not client:
            _client.close()
        _config = config
        _client = client
        _resolver = resolver


def reset_upstream() -> None:
    """Forget the config, client and cached column map."""
    configure(None, None, None)
