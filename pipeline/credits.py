"""
End-to-end credit report: resolve columns, query, normalize, aggregate.

Shared by the HTTP route and the ``main.py export`` command so both produce
identical numbers for the same filters.
"""

from __future__ import annotations

import logging
import time

from pipeline.aggregate import AggregationResult, aggregate
from pipeline.columns import ColumnResolver
from pipeline.normalize import NormalizedRow, normalize_rows
from utils.http import SocrataClient
from utils.query import DEFAULT_MAX_ROWS, FilterParams, build_raw_query

logger = logging.getLogger(__name__)


def fetch_rows(
    filters: FilterParams,
    client: SocrataClient,
    resolver: ColumnResolver,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> list[NormalizedRow]:
    """Fetch and normalize every row matching *filters*."""
    columns = resolver.resolve()
    statement = build_raw_query(filters, columns, limit=max_rows)
    start = time.monotonic()
    payload = client.query(statement)
    rows = normalize_rows(payload, columns)
    logger.info(
        "fetched rows=%d duration_ms=%.1f", len(rows),
        (time.monotonic() - start) * 1000,
    )
    if len(rows) >= max_rows:
        logger.warning("row cap reached (%d); aggregates may be partial", max_rows)
    return rows


def build_report(
    filters: FilterParams,
    client: SocrataClient,
    resolver: ColumnResolver,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> AggregationResult:
    """Aggregate the rows matching *filters*; raw rows attached for view=raw."""
    rows = fetch_rows(filters, client, resolver, max_rows=max_rows)
    return aggregate(rows, filters=filters.echo(), include_raw=filters.view == "raw")
