"""
GET /api/ny-credits endpoint.

Returns yearly claimed/used totals, utilization, top programs and filter
options for the NY tax credit dataset, optionally with the normalized raw
rows (``view=raw``), or the raw rows as a CSV download (``format=csv``).

Failures are not handled here: domain errors propagate to the handlers
registered in ``api.app`` which answer ``{"ok": false, "error": ...}``.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from api.models import CreditsResponse, ErrorResponse
from api.upstream import get_client, get_config, get_resolver
from pipeline.columns import ColumnResolver
from pipeline.credits import build_report, fetch_rows
from pipeline.serialize import CSV_FILENAME, to_csv, to_payload
from utils.config import AppConfig
from utils.http import SocrataClient
from utils.query import parse_filter_params

router = APIRouter(tags=["credits"])


@router.get(
    "/ny-credits",
    summary="NY tax credit utilization",
    response_model=None,
    responses={
        200: {
            "model": CreditsResponse,
            "content": {"text/csv": {"example": "year,program,claimed,used,taxpayer_type\n"}},
        },
        500: {"model": ErrorResponse},
    },
)
def ny_credits(
    year_from: int | None = Query(None, description="Inclusive lower year bound"),
    year_to: int | None = Query(None, description="Inclusive upper year bound"),
    program: str | None = Query(None, description="Comma-separated program names"),
    taxpayer_type: str | None = Query(None, description="Taxpayer type"),
    view: str = Query("agg", description="'raw' to include normalized rows, default 'agg'"),
    format: str = Query("json", description="'json' or 'csv'"),
    client: SocrataClient = Depends(get_client),
    resolver: ColumnResolver = Depends(get_resolver),
    config: AppConfig = Depends(get_config),
) -> Response:
    """Aggregate credit utilization for the requested filters."""
    filters = parse_filter_params(
        year_from=year_from,
        year_to=year_to,
        program=program,
        taxpayer_type=taxpayer_type,
        view=view,
        format=format,
    )

    if filters.format == "csv":
        rows = fetch_rows(filters, client, resolver, max_rows=config.max_rows)
        return Response(
            content=to_csv(rows),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f"attachment; filename={CSV_FILENAME}"},
        )

    result = build_report(filters, client, resolver, max_rows=config.max_rows)
    return JSONResponse(content=to_payload(result))
