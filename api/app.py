"""
FastAPI application factory for the NY credits API.

Usage:
    python -m api.app                          # Dev server on port 8000
    SOCRATA_APP_TOKEN=... python -m api.app    # Authenticated upstream access

OpenAPI docs available at http://localhost:8000/docs after starting.

Logging: plain text by default, newline-delimited JSON when
APP_LOG_FORMAT=json.  Every request is logged with a short request id that
is also returned in the X-Request-ID header.

Errors: every request-level failure is answered with the uniform
``{"ok": false, "error": "..."}`` envelope, HTTP 500 (422 for invalid
query parameters).
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import api.upstream as upstream
from api.routes import ny_credits
from pipeline.columns import ColumnResolver
from pipeline.serialize import error_payload
from utils.config import AppConfig
from utils.errors import CreditsError
from utils.http import SocrataClient

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


def configure_logging(log_format: str = "text") -> None:
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    logging.basicConfig(handlers=[handler], level=logging.INFO, force=True)


configure_logging(_cfg.log_format)
_logger = logging.getLogger("ny_credits_api")

# Successful dashboard responses may be cached by browsers/CDNs this long,
# matching the upstream result cache window.
_CACHE_MAX_AGE = 60


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the upstream target on startup and release the HTTP session on exit."""
    cfg = upstream.get_config()
    _logger.info(
        "serving dataset %s from %s (app token %s)",
        cfg.dataset_id, cfg.socrata_domain,
        "configured" if cfg.app_token else "not configured",
    )
    yield
    upstream.get_client().close()


def create_app(
    config: AppConfig | None = None,
    client: SocrataClient | None = None,
    resolver: ColumnResolver | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Override the environment configuration.
        client: Override the Socrata client (useful for testing).
        resolver: Override the column resolver (useful for testing).

    Returns:
        Configured FastAPI application instance.
    """
    cfg = config or (client.config if client is not None else _cfg)
    upstream.configure(config=cfg, client=client, resolver=resolver)

    app = FastAPI(
        title="NY Tax Credit Utilization API",
        summary="Claimed vs. used New York tax credits, aggregated from data.ny.gov.",
        description=(
            "## NY Tax Credit Utilization API\n\n"
            "Fetches the public tax credit dataset from the Socrata open-data "
            "host, discovers its columns, and returns yearly totals, "
            "utilization and top programs for dashboards.\n\n"
            "### Key concepts\n"
            "- **Claimed**: credit amount approved/claimed for a program-year.\n"
            "- **Used**: portion of the claimed credit actually applied.\n"
            "- **Utilization**: `used / claimed * 100`, always computed from "
            "sums, never averaged across rows.\n\n"
            "### Upstream access\n"
            "Set `SOCRATA_APP_TOKEN` to query the versioned API with a token; "
            "without one, rejected queries fall back to the legacy SoQL endpoint."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {
                "name": "credits",
                "description": "Aggregated tax credit utilization and CSV export.",
            },
            {
                "name": "meta",
                "description": "Health check and API metadata.",
            },
        ],
    )

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging + cache headers ───────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with its duration and tag it with a request id."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        if path.startswith("/api/") and response.status_code == 200:
            response.headers.setdefault(
                "Cache-Control", f"public, max-age={_CACHE_MAX_AGE}"
            )

        if cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms,
                request_id,
            )
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(CreditsError)
    async def credits_error_handler(request: Request, exc: CreditsError):
        _logger.error("request failed path=%s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content=error_payload(str(exc)))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        ]
        return JSONResponse(status_code=422, content=error_payload("; ".join(messages)))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_payload(str(exc) or exc.__class__.__name__),
        )

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Report configuration and whether the column map is resolved.

        Never contacts the upstream host.
        """
        client = upstream.get_client()
        resolved = upstream.get_resolver().cached
        return {
            "status": "ok",
            "dataset": client.config.dataset_id,
            "domain": client.config.socrata_domain,
            "app_token": client.has_token,
            "columns": resolved.to_dict() if resolved else None,
            "cache": client.cache.stats(),
            "config": client.config.to_dict(),
        }

    # ── Register routers ──────────────────────────────────────────────────────

    app.include_router(ny_credits.router, prefix="/api")

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
