"""SoQL statement builders for the NY credits API.

Translates request filters into a WHERE predicate over the resolved dataset
columns and builds the raw-row select consumed by ``SocrataClient.query``.

The Socrata query endpoints take a single statement string, so values are
inlined as literals: identifiers are double-quoted and string literals are
single-quoted with embedded quotes doubled.  Filters whose column is not
resolved are dropped silently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pipeline.columns import ColumnMap

VIEWS = ("agg", "raw")
FORMATS = ("json", "csv")

DEFAULT_MAX_ROWS = 50_000


@dataclass
class FilterParams:
    """Parsed query-string filters for one request."""

    year_from: int | None = None
    year_to: int | None = None
    programs: list[str] = field(default_factory=list)
    taxpayer_type: str | None = None
    view: str = "agg"
    format: str = "json"

    def echo(self) -> dict[str, Any]:
        """Filters as echoed in ``meta.filters``."""
        return {
            "year_from": self.year_from,
            "year_to": self.year_to,
            "program": list(self.programs),
            "taxpayer_type": self.taxpayer_type,
        }


def parse_filter_params(
    year_from: int | None = None,
    year_to: int | None = None,
    program: str | None = None,
    taxpayer_type: str | None = None,
    view: str | None = None,
    format: str | None = None,
) -> FilterParams:
    """Build FilterParams from raw query-string values.

    ``program`` is a comma-separated list: values are trimmed and empties
    dropped. Unknown ``view``/``format`` values fall back to the defaults.
    """
    programs = [p.strip() for p in (program or "").split(",") if p.strip()]
    taxpayer = (taxpayer_type or "").strip() or None
    view = (view or "agg").strip().lower()
    fmt = (format or "json").strip().lower()
    return FilterParams(
        year_from=year_from,
        year_to=year_to,
        programs=programs,
        taxpayer_type=taxpayer,
        view=view if view in VIEWS else "agg",
        format=fmt if fmt in FORMATS else "json",
    )


def quote_literal(value: str) -> str:
    """Single-quote *value* for SoQL, doubling embedded quotes.

    Example:
        "Owner's Credit" -> "'Owner''s Credit'"
    """
    return "'" + str(value).replace("'", "''") + "'"


def quote_identifier(name: str) -> str:
    """Double-quote a field identifier, dropping any quotes inside it."""
    return '"' + str(name).replace('"', "") + '"'


def build_where_clause(filters: FilterParams, columns: ColumnMap) -> str:
    """Build a SoQL WHERE clause from *filters*.

    Args:
        filters: Parsed request filters.
        columns: Resolved dataset columns.

    Returns:
        ``"WHERE a AND b ..."`` if any condition applies, or ``""``.
    """
    conditions: list[str] = []
    year_col = quote_identifier(columns.year)

    if filters.year_from is not None:
        conditions.append(f"{year_col} >= {int(filters.year_from)}")
    if filters.year_to is not None:
        conditions.append(f"{year_col} <= {int(filters.year_to)}")

    if filters.programs and columns.program:
        values = ", ".join(quote_literal(p) for p in filters.programs)
        conditions.append(f"{quote_identifier(columns.program)} IN ({values})")

    if filters.taxpayer_type and columns.taxpayer_type:
        conditions.append(
            f"{quote_identifier(columns.taxpayer_type)} = "
            f"{quote_literal(filters.taxpayer_type)}"
        )

    return "WHERE " + " AND ".join(conditions) if conditions else ""


def build_raw_select(columns: ColumnMap) -> str:
    """SELECT list aliasing each role to its canonical name.

    Unresolved amounts select ``0`` and unresolved labels select ``NULL``.
    """
    def expr(name: str | None, default: str) -> str:
        return quote_identifier(name) if name else default

    return (
        f"SELECT {quote_identifier(columns.year)} AS year, "
        f"{expr(columns.program, 'NULL')} AS program, "
        f"{expr(columns.claimed, '0')} AS claimed, "
        f"{expr(columns.used, '0')} AS used, "
        f"{expr(columns.taxpayer_type, 'NULL')} AS taxpayer_type"
    )


def build_raw_query(
    filters: FilterParams,
    columns: ColumnMap,
    limit: int = DEFAULT_MAX_ROWS,
) -> str:
    """Full raw-row statement: select, filters, newest year first, row cap."""
    parts = [build_raw_select(columns)]
    where = build_where_clause(filters, columns)
    if where:
        parts.append(where)
    parts.append(f"ORDER BY {quote_identifier(columns.year)} DESC")
    parts.append(f"LIMIT {int(limit)}")
    return " ".join(parts)
