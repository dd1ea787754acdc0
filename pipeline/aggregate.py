"""
Aggregation over normalized credit rows.

All figures are computed here from the full filtered row set, never from
pre-grouped upstream queries, so yearly, total and per-program numbers are
always consistent with each other.

Utilization is a ratio of sums (sum(used) / sum(claimed) * 100) at every
level; per-row percentages are never averaged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from pipeline.normalize import NormalizedRow, compute_utilization

TOP_PROGRAM_LIMIT = 10
UNKNOWN_PROGRAM = "Unknown"


@dataclass
class YearlyAggregate:
    year: int | str | None
    claimed: float = 0.0
    used: float = 0.0

    @property
    def utilization_pct(self) -> float:
        return compute_utilization(self.claimed, self.used)

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "claimed": self.claimed,
            "used": self.used,
            "utilizationPct": self.utilization_pct,
        }


@dataclass
class ProgramTotal:
    program: str
    claimed: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"program": self.program, "claimed": self.claimed}


@dataclass
class Totals:
    claimed: float = 0.0
    used: float = 0.0

    @property
    def utilization_pct(self) -> float:
        return compute_utilization(self.claimed, self.used)

    def to_dict(self) -> dict[str, Any]:
        return {
            "claimed": self.claimed,
            "used": self.used,
            "utilizationPct": self.utilization_pct,
        }


@dataclass
class AggregationMeta:
    years: list[int] = field(default_factory=list)
    programs: list[str] = field(default_factory=list)
    taxpayer_types: list[str] = field(default_factory=list)
    filters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "years": self.years,
            "programs": self.programs,
            "taxpayerTypes": self.taxpayer_types,
            "filters": self.filters,
        }


@dataclass
class AggregationResult:
    """Everything the dashboard needs for one filter selection."""

    meta: AggregationMeta
    totals: Totals
    yearly: list[YearlyAggregate]
    top_programs: list[ProgramTotal]
    raw: list[NormalizedRow] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "meta": self.meta.to_dict(),
            "totals": self.totals.to_dict(),
            "yearly": [y.to_dict() for y in self.yearly],
            "topPrograms": [p.to_dict() for p in self.top_programs],
        }
        if self.raw is not None:
            data["raw"] = [r.to_dict() for r in self.raw]
        return data


# ── Building blocks ───────────────────────────────────────────────────────────


def _year_sort_key(year: int | str | None) -> tuple:
    # Integer years ascending, then opaque labels, then missing years
    if isinstance(year, int):
        return (0, year, "")
    if year is None:
        return (2, 0, "")
    return (1, 0, str(year))


def yearly_totals(rows: Iterable[NormalizedRow]) -> list[YearlyAggregate]:
    """Sum claimed/used per year, sorted ascending by year."""
    groups: dict[Any, YearlyAggregate] = {}
    for row in rows:
        agg = groups.get(row.year)
        if agg is None:
            agg = groups[row.year] = YearlyAggregate(year=row.year)
        agg.claimed += row.claimed
        agg.used += row.used
    return sorted(groups.values(), key=lambda a: _year_sort_key(a.year))


def grand_totals(yearly: Iterable[YearlyAggregate]) -> Totals:
    totals = Totals()
    for agg in yearly:
        totals.claimed += agg.claimed
        totals.used += agg.used
    return totals


def top_programs(rows: Iterable[NormalizedRow],
                 limit: int = TOP_PROGRAM_LIMIT) -> list[ProgramTotal]:
    """Programs ranked by summed claimed amount, descending.

    Rows without a program are counted under ``"Unknown"``.  Ties keep the
    order in which programs were first encountered.
    """
    totals: dict[str, ProgramTotal] = {}
    for row in rows:
        name = row.program or UNKNOWN_PROGRAM
        entry = totals.get(name)
        if entry is None:
            entry = totals[name] = ProgramTotal(program=name)
        entry.claimed += row.claimed
    ranked = sorted(totals.values(), key=lambda p: p.claimed, reverse=True)
    return ranked[:limit]


def distinct_values(values: Iterable[str | None],
                    exclude: Sequence[str] = ()) -> list[str]:
    """Sorted distinct non-empty values, minus anything in *exclude*."""
    seen = {v for v in values if v and v not in exclude}
    return sorted(seen)


def year_range(years: Iterable[Any]) -> list[int]:
    """Every integer year from the smallest to the largest observed one.

    Example:
        {2019, 2022} -> [2019, 2020, 2021, 2022]
    """
    ints = [y for y in years if isinstance(y, int) and not isinstance(y, bool)]
    if not ints:
        return []
    return list(range(min(ints), max(ints) + 1))


# ── Entry point ───────────────────────────────────────────────────────────────


def aggregate(
    rows: Sequence[NormalizedRow],
    filters: dict[str, Any] | None = None,
    include_raw: bool = False,
) -> AggregationResult:
    """Compute the full dashboard aggregate for *rows*.

    Args:
        rows: Normalized rows, already filtered upstream.
        filters: Echoed back verbatim in ``meta.filters``.
        include_raw: Attach the rows themselves (``view=raw``).

    Returns:
        AggregationResult. Pure function; *rows* is not modified.
    """
    yearly = yearly_totals(rows)
    meta = AggregationMeta(
        years=year_range(a.year for a in yearly),
        programs=distinct_values((r.program for r in rows), exclude=(UNKNOWN_PROGRAM,)),
        taxpayer_types=distinct_values(r.taxpayer_type for r in rows),
        filters=dict(filters or {}),
    )
    return AggregationResult(
        meta=meta,
        totals=grand_totals(yearly),
        yearly=yearly,
        top_programs=top_programs(rows),
        raw=list(rows) if include_raw else None,
    )
