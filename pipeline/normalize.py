"""
Row normalization for Socrata query responses.

The query endpoints answer in one of two wire shapes:

    KeyedRows       [{"calendar_year": "2021", "credit_amount": "10.5", ...}, ...]
    PositionalRows  {"meta": {"fetchedColumns": [...]} , "data": [["2021", "10.5"], ...]}

``parse_response`` decides the shape once; everything downstream works on
plain dicts from ``records()`` and never sees the raw payload again.

``normalize_row`` then maps one record onto a NormalizedRow.  It never
raises: non-numeric amounts become 0.0 and an unparseable year is kept as an
opaque label.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from utils.patterns import IDENTIFIER_QUOTES
from utils.strings import clean_label, coerce_year, safe_float

if TYPE_CHECKING:
    from pipeline.columns import ColumnMap


# ── Wire shapes ───────────────────────────────────────────────────────────────


@dataclass
class KeyedRows:
    """A bare list of keyed row objects."""

    rows: list[dict[str, Any]] = field(default_factory=list)

    def records(self) -> Iterator[dict[str, Any]]:
        for row in self.rows:
            yield dict(row)


@dataclass
class PositionalRows:
    """A metadata + data envelope with positional rows."""

    columns: list[str] = field(default_factory=list)
    data: list[Any] = field(default_factory=list)

    def records(self) -> Iterator[dict[str, Any]]:
        for row in self.data:
            if isinstance(row, Mapping):
                yield dict(row)
            elif isinstance(row, (list, tuple)):
                yield {key: row[i] for i, key in enumerate(self.columns) if i < len(row)}
            else:
                yield {}


def normalize_key(column: Mapping[str, Any], index: int) -> str:
    """Canonical key for an envelope column, with identifier quotes removed."""
    raw = column.get("fieldName") or column.get("name") or f"col_{index}"
    return IDENTIFIER_QUOTES.sub("", str(raw))


def parse_response(payload: Any) -> KeyedRows | PositionalRows:
    """Classify an upstream payload into one of the two wire shapes."""
    if isinstance(payload, list):
        return KeyedRows([r for r in payload if isinstance(r, Mapping)])
    if not isinstance(payload, Mapping):
        return KeyedRows([])

    meta = payload.get("meta") or {}
    columns = meta.get("fetchedColumns")
    if columns is None:
        columns = (meta.get("view") or {}).get("columns") or []
    keys = [
        normalize_key(c if isinstance(c, Mapping) else {}, i)
        for i, c in enumerate(columns)
    ]
    return PositionalRows(columns=keys, data=list(payload.get("data") or []))


# ── Canonical record ──────────────────────────────────────────────────────────


def compute_utilization(claimed: float, used: float) -> float:
    """Used as a percentage of claimed; 0 when nothing was claimed."""
    if not claimed:
        return 0.0
    return used / claimed * 100


@dataclass(frozen=True)
class NormalizedRow:
    """One dataset row in canonical form."""

    year: int | str | None
    program: str | None
    claimed: float
    used: float
    taxpayer_type: str | None = None

    @property
    def utilization_pct(self) -> float:
        return compute_utilization(self.claimed, self.used)

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "program": self.program,
            "claimed": self.claimed,
            "used": self.used,
            "taxpayer_type": self.taxpayer_type,
            "utilizationPct": self.utilization_pct,
        }


def _pick(record: Mapping[str, Any], alias: str, field_name: str | None) -> Any:
    """Read a role by its select alias first, then by its dataset field name."""
    value = record.get(alias)
    if value is None and field_name:
        value = record.get(field_name)
    return value


def normalize_row(record: Mapping[str, Any], column_map: ColumnMap) -> NormalizedRow:
    """Map one keyed record onto a NormalizedRow."""
    return NormalizedRow(
        year=coerce_year(_pick(record, "year", column_map.year)),
        program=clean_label(_pick(record, "program", column_map.program)),
        claimed=safe_float(_pick(record, "claimed", column_map.claimed)),
        used=safe_float(_pick(record, "used", column_map.used)),
        taxpayer_type=clean_label(
            _pick(record, "taxpayer_type", column_map.taxpayer_type)
        ),
    )


def normalize_rows(payload: Any, column_map: ColumnMap) -> list[NormalizedRow]:
    """Parse an upstream payload and normalize every row in it."""
    return [normalize_row(r, column_map) for r in parse_response(payload).records()]
