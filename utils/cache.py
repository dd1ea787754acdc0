"""Short-lived cache of Socrata query payloads.

``SocrataClient`` re-issues the same statements on every dashboard filter
change while the dataset itself refreshes rarely, so successful payloads are
kept for ``SOCRATA_CACHE_TTL`` seconds (60 by default).

Entries are keyed on ``(endpoint, statement)`` and record which dialect
answered them, which ``/health`` reports alongside the hit/miss counters.
Failed requests, auth rejections included, are never stored.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

QUERY_DIALECT = "query"
SOQL_DIALECT = "soql"


@dataclass
class CachedPayload:
    payload: Any
    dialect: str
    expires_at: float


class QueryCache:
    """Least-recently-used payload cache with a fixed time-to-live.

    A ``ttl_seconds`` of 0 turns the cache off: nothing is stored and
    lookups are not counted.
    """

    def __init__(self, ttl_seconds: float = 60.0, max_entries: int = 128) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: "OrderedDict[tuple[str, str], CachedPayload]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0 and self.max_entries > 0

    def lookup(self, endpoint: str, statement: str) -> CachedPayload | None:
        """Return the live entry for *statement* on *endpoint*, if any."""
        if not self.enabled:
            return None
        key = (endpoint, statement)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at <= time.monotonic():
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry

    def store(self, endpoint: str, statement: str, payload: Any, dialect: str) -> None:
        """Keep a successful *payload*, evicting the least recently used entry."""
        if not self.enabled:
            return
        key = (endpoint, statement)
        with self._lock:
            self._entries[key] = CachedPayload(
                payload=payload,
                dialect=dialect,
                expires_at=time.monotonic() + self.ttl_seconds,
            )
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def stats(self) -> dict[str, Any]:
        """Counters and live entries per answering dialect, for ``/health``."""
        now = time.monotonic()
        with self._lock:
            live = [e for e in self._entries.values() if e.expires_at > now]
            by_dialect: dict[str, int] = {}
            for entry in live:
                by_dialect[entry.dialect] = by_dialect.get(entry.dialect, 0) + 1
            return {
                "enabled": self.enabled,
                "ttl_seconds": self.ttl_seconds,
                "entries": len(live),
                "hits": self._hits,
                "misses": self._misses,
                "dialects": by_dialect,
            }
