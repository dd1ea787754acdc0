"""
Pydantic response models for the NY credits API.

These document the JSON envelope in the OpenAPI schema.  The route builds
the payload from ``pipeline.aggregate`` dataclasses and returns it as-is so
``raw`` can be omitted entirely outside ``view=raw``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AppliedFilters(BaseModel):
    """Filters echoed back from the request."""
    year_from: int | None = Field(None, description="Inclusive lower year bound", examples=[2018])
    year_to: int | None = Field(None, description="Inclusive upper year bound", examples=[2022])
    program: list[str] = Field(default_factory=list, description="Program names filtered on")
    taxpayer_type: str | None = Field(None, description="Taxpayer type filtered on", examples=["Corporation"])


class CreditsMeta(BaseModel):
    years: list[int] = Field(..., description="Contiguous range of years from min to max observed", examples=[[2019, 2020, 2021]])
    programs: list[str] = Field(..., description="Distinct program names in the filtered rows")
    taxpayerTypes: list[str] = Field(..., description="Distinct taxpayer types in the filtered rows")
    filters: AppliedFilters


class CreditTotals(BaseModel):
    claimed: float = Field(..., description="Sum of claimed credit across all years")
    used: float = Field(..., description="Sum of used credit across all years")
    utilizationPct: float = Field(..., description="used / claimed * 100 from the grand totals; 0 when nothing was claimed")


class YearlyRow(BaseModel):
    year: int | str | None = Field(..., description="Tax year; unparseable values are passed through", examples=[2021])
    claimed: float
    used: float
    utilizationPct: float


class ProgramRow(BaseModel):
    program: str = Field(..., examples=["Empire State Film Production Credit"])
    claimed: float


class RawRow(BaseModel):
    """One normalized dataset row (``view=raw``)."""
    year: int | str | None
    program: str | None
    claimed: float
    used: float
    taxpayer_type: str | None
    utilizationPct: float


class CreditsResponse(BaseModel):
    """Response body for GET /api/ny-credits."""
    model_config = ConfigDict(json_schema_extra={"description": "Aggregated credit utilization"})

    ok: bool = Field(True, description="Always true on success")
    meta: CreditsMeta
    totals: CreditTotals
    yearly: list[YearlyRow] = Field(..., description="One row per year, ascending")
    topPrograms: list[ProgramRow] = Field(..., description="Top 10 programs by claimed amount")
    raw: list[RawRow] | None = Field(None, description="Normalized rows, only when view=raw")


class ErrorResponse(BaseModel):
    """Uniform failure envelope (HTTP 500)."""
    ok: bool = Field(False, description="Always false on failure")
    error: str = Field(..., description="Failure message", examples=["Unable to identify year column in Socrata dataset"])
