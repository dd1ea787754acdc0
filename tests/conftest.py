"""
Pytest fixtures for the NY credits service.

Provides a fake ``requests`` session that answers Socrata endpoints from
canned payloads, ready-made SocrataClient/ColumnResolver objects built on it,
and sample dataset payloads in both wire shapes (keyed rows and the
metadata + positional data envelope).  No test touches the network.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pipeline.columns import ColumnMap, ColumnResolver  # noqa: E402
from utils.config import AppConfig  # noqa: E402
from utils.http import SessionManager, SocrataClient  # noqa: E402

_ENV_VARS = (
    "SOCRATA_DOMAIN", "SOCRATA_DATASET_ID", "SOCRATA_APP_TOKEN",
    "SOCRATA_TIMEOUT", "SOCRATA_CACHE_TTL", "CREDITS_MAX_ROWS",
    "APP_HOST", "APP_PORT", "APP_LOG_FORMAT", "APP_CORS_ORIGINS",
)


# ── Fake HTTP layer ───────────────────────────────────────────────────────────

class FakeResponse:
    """Just enough of requests.Response for SocrataClient."""

    def __init__(self, status_code: int = 200, payload=None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = "OK" if status_code < 400 else "Error"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Routes GETs by endpoint kind: 'v3', 'soql' or 'metadata'.

    Each route is a FakeResponse, an exception instance to raise, or a
    callable ``(url, params) -> FakeResponse``.  Every call is recorded.
    """

    def __init__(self, v3=None, soql=None, metadata=None):
        self.routes = {"v3": v3, "soql": soql, "metadata": metadata}
        self.calls: list[dict] = []

    @staticmethod
    def kind(url: str) -> str:
        if "/api/v3/views/" in url:
            return "v3"
        if "/resource/" in url:
            return "soql"
        return "metadata"

    def get(self, url, params=None, headers=None, timeout=None):
        kind = self.kind(url)
        self.calls.append({
            "kind": kind, "url": url, "params": params,
            "headers": headers, "timeout": timeout,
        })
        route = self.routes.get(kind)
        if route is None:
            return FakeResponse(404, text="not found")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(url, params)
        return route

    def close(self):
        pass

    def calls_of(self, kind: str) -> list[dict]:
        return [c for c in self.calls if c["kind"] == kind]


def make_client(session: FakeSession, config: AppConfig | None = None) -> SocrataClient:
    manager = SessionManager()
    manager._session = session
    return SocrataClient(config or AppConfig.from_env(), session_manager=manager)


# ── Sample dataset ────────────────────────────────────────────────────────────

METADATA = {
    "id": "qjqv-zrwt",
    "columns": [
        {"fieldName": "calendar_year", "name": "Calendar Year"},
        {"fieldName": "credit_program", "name": "Credit Program"},
        {"fieldName": "taxpayer_type", "name": "Taxpayer Type"},
        {"fieldName": "credit_amount_claimed", "name": "Credit Amount Claimed"},
        {"fieldName": "credit_amount_used", "name": "Credit Amount Used"},
    ],
}

COLUMN_MAP = ColumnMap(
    year="calendar_year",
    claimed="credit_amount_claimed",
    used="credit_amount_used",
    program="credit_program",
    taxpayer_type="taxpayer_type",
)

RAW_ROWS = [
    {"year": "2021", "program": "Investment Tax Credit", "claimed": "300",
     "used": "150", "taxpayer_type": "Corporation"},
    {"year": "2020", "program": "Investment Tax Credit", "claimed": "100",
     "used": "50", "taxpayer_type": "Corporation"},
    {"year": "2020", "program": "Film, TV & Theatrical", "claimed": "300",
     "used": "150", "taxpayer_type": "Personal Income"},
    {"year": "2018", "program": None, "claimed": "20", "used": "n/a",
     "taxpayer_type": None},
]


def envelope(rows: list[list], columns: list[str]) -> dict:
    """Positional envelope as answered by the versioned query API."""
    return {
        "meta": {"fetchedColumns": [{"fieldName": c, "name": c} for c in columns]},
        "data": rows,
    }


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Run every test with no SOCRATA_/APP_ overrides and caching disabled."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SOCRATA_CACHE_TTL", "0")


@pytest.fixture()
def config() -> AppConfig:
    return AppConfig.from_env()


@pytest.fixture()
def column_map() -> ColumnMap:
    return COLUMN_MAP


@pytest.fixture()
def dataset_session() -> FakeSession:
    """Fake upstream serving METADATA and RAW_ROWS on the v3 endpoint."""
    return FakeSession(
        v3=FakeResponse(200, payload=[dict(r) for r in RAW_ROWS]),
        metadata=FakeResponse(200, payload=METADATA),
    )


@pytest.fixture()
def client(dataset_session, config) -> SocrataClient:
    return make_client(dataset_session, config)


@pytest.fixture()
def resolver(client) -> ColumnResolver:
    return ColumnResolver(client)


@pytest.fixture(autouse=True)
def reset_upstream():
    """Forget process-wide upstream objects between tests."""
    yield
    import api.upstream
    api.upstream.reset_upstream()
