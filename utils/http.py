"""HTTP utilities and the Socrata query client.

Provides:
- RetryStrategy / SessionManager: pooled ``requests`` sessions with urllib3
  retries for transient statuses (429, 5xx)
- SocrataClient: runs statements against the dataset with a two-tier
  dialect fallback and a short-lived result cache

Fallback protocol:
    1. Send the statement to the versioned query API
       (``/api/v3/views/<id>/query.json?query=...``).
    2. If that is rejected with 401/403 *and* no app token is configured,
       send the same statement to the legacy SoQL resource API
       (``/resource/<id>.json?$query=...``).
    3. Any other failure is raised immediately as RemoteQueryFailed; a failed
       fallback is raised as RemoteQueryExhausted carrying both statuses.
"""

import logging
from typing import Any, Optional, List

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry as URLRetry

from utils.cache import QUERY_DIALECT, SOQL_DIALECT, QueryCache
from utils.config import AppConfig
from utils.errors import RemoteQueryExhausted, RemoteQueryFailed

logger = logging.getLogger(__name__)

AUTH_STATUSES = frozenset({401, 403})


class RetryStrategy:
    """Defines retry behavior for HTTP requests."""

    def __init__(self, max_retries: int = 2, backoff_factor: float = 0.5,
                 status_forcelist: Optional[List[int]] = None):
        """Initialize retry strategy.

        Args:
            max_retries: Maximum number of retry attempts (default: 2)
            backoff_factor: Exponential backoff multiplier (default: 0.5)
            status_forcelist: HTTP status codes to retry on
                            (default: [429, 500, 502, 503, 504]).
                            Auth statuses are never retried here; the
                            client handles them with the dialect fallback.
        """
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.status_forcelist = [
            s for s in (status_forcelist or [429, 500, 502, 503, 504])
            if s not in AUTH_STATUSES
        ]

    def get_retry_object(self) -> URLRetry:
        """Get urllib3 Retry object configured with this strategy.

        ``raise_on_status=False`` hands the final error response back to
        the caller so its status and body can be reported.
        """
        return URLRetry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.status_forcelist,
            allowed_methods=["GET", "HEAD"],
            raise_on_status=False,
        )


class SessionManager:
    """Manages HTTP sessions with connection pooling and retries."""

    def __init__(self, retry_strategy: Optional[RetryStrategy] = None,
                 pool_connections: int = 4, pool_maxsize: int = 8):
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.pool_connections = pool_connections
        self.pool_maxsize = pool_maxsize
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        """Get or create HTTP session with retries and pooling."""
        if self._session is None:
            self._session = requests.Session()
            adapter = HTTPAdapter(
                max_retries=self.retry_strategy.get_retry_object(),
                pool_connections=self.pool_connections,
                pool_maxsize=self.pool_maxsize,
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)
        return self._session

    def close(self) -> None:
        """Close the session and release resources."""
        if self._session:
            self._session.close()
            self._session = None


class _HttpError(Exception):
    """Internal: a non-2xx response or transport failure for one URL."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class SocrataClient:
    """Query client for one Socrata dataset.

    Args:
        config: Endpoint, credential, timeout and cache settings.
        session_manager: Optional SessionManager (tests inject one whose
            ``session`` is a mock).
    """

    def __init__(self, config: AppConfig,
                 session_manager: Optional[SessionManager] = None) -> None:
        self.config = config
        self.session_manager = session_manager or SessionManager()
        self.cache = QueryCache(ttl_seconds=config.cache_ttl_seconds)

    @property
    def has_token(self) -> bool:
        return bool(self.config.app_token)

    def headers(self) -> dict[str, str]:
        """Request headers; the app token is attached only when configured."""
        headers = {"Accept": "application/json"}
        if self.config.app_token:
            headers["X-App-Token"] = self.config.app_token
        return headers

    def _get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        try:
            resp = self.session_manager.session.get(
                url,
                params=params,
                headers=self.headers(),
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise _HttpError(0, str(exc)) from exc

        if not resp.ok:
            text = (resp.text or "").strip()
            raise _HttpError(resp.status_code, text or resp.reason or "")
        try:
            return resp.json()
        except ValueError as exc:
            raise _HttpError(resp.status_code, f"invalid JSON response: {exc}") from exc

    def query(self, statement: str) -> Any:
        """Run *statement* and return the decoded JSON payload.

        The payload is either a list of keyed row objects or a
        ``{"meta": ..., "data": [...]}`` envelope; see
        ``pipeline.normalize.parse_response``.

        Raises:
            RemoteQueryFailed: primary request failed and no fallback applies.
            RemoteQueryExhausted: primary rejected for auth, fallback failed too.
        """
        endpoint = self.config.query_url
        cached = self.cache.lookup(endpoint, statement)
        if cached is not None:
            logger.debug("socrata cache hit (%s): %s", cached.dialect, statement)
            return cached.payload

        dialect = QUERY_DIALECT
        try:
            payload = self._get_json(endpoint, {"query": statement})
        except _HttpError as primary:
            if primary.status not in AUTH_STATUSES or self.has_token:
                logger.error("socrata query failed status=%s: %s",
                             primary.status, primary.message)
                raise RemoteQueryFailed(primary.status, primary.message) from primary

            logger.warning(
                "socrata query rejected status=%s without app token; "
                "retrying with SoQL endpoint", primary.status,
            )
            try:
                payload = self._get_json(self.config.soql_url, {"$query": statement})
            except _HttpError as fallback:
                logger.error("socrata fallback failed status=%s: %s",
                             fallback.status, fallback.message)
                raise RemoteQueryExhausted(
                    primary.status, fallback.status,
                    [primary.message, fallback.message],
                ) from fallback
            dialect = SOQL_DIALECT

        self.cache.store(endpoint, statement, payload, dialect)
        return payload

    def fetch_metadata(self) -> dict:
        """Return the dataset view metadata (``columns`` with fieldName/name).

        Raises:
            RemoteQueryFailed: the metadata endpoint could not be read.
        """
        try:
            payload = self._get_json(self.config.metadata_url)
        except _HttpError as exc:
            raise RemoteQueryFailed(exc.status, exc.message) from exc
        return payload if isinstance(payload, dict) else {}

    def close(self) -> None:
        self.session_manager.close()
