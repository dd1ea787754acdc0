"""
Response serialization: the JSON envelope and the CSV export.

CSV output uses ``csv.writer`` with minimal quoting, so a field is wrapped
in double quotes (inner quotes doubled) only when it holds a comma, a quote
or a line break.  Lines end with ``\\n``.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Iterable

from pipeline.aggregate import AggregationResult
from pipeline.normalize import NormalizedRow

CSV_HEADER = ("year", "program", "claimed", "used", "taxpayer_type")
CSV_FILENAME = "ny-credits.csv"


def to_payload(result: AggregationResult) -> dict[str, Any]:
    """Success envelope: ``{"ok": true, meta, totals, yearly, topPrograms[, raw]}``."""
    return {"ok": True, **result.to_dict()}


def error_payload(message: str) -> dict[str, Any]:
    return {"ok": False, "error": message}


def format_cell(value: Any) -> str:
    """CSV text for one value: None is empty, integral floats drop ``.0``."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_csv(rows: Iterable[NormalizedRow]) -> str:
    """Normalized rows as CSV text with the fixed five-column header."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([
            format_cell(v)
            for v in (row.year, row.program, row.claimed, row.used, row.taxpayer_type)
        ])
    return buf.getvalue()
