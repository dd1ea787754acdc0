"""
Tests for pipeline/columns.py: heuristic column discovery

Covers the pattern priority table, the sample-row fallback, the fatal
missing-year case and memoization.
"""
import pytest

from conftest import METADATA, FakeResponse, FakeSession, envelope, make_client
from pipeline.columns import ColumnMap, ColumnResolver, find_column, match_roles
from utils.errors import ColumnResolutionError
from utils.patterns import ROLE_PATTERNS


class TestFindColumn:
    def test_field_name_match(self):
        cols = [{"fieldName": "calendar_year", "name": "Year"}]
        assert find_column(cols, ROLE_PATTERNS["year"]) == "calendar_year"

    def test_display_name_match_returns_field_name(self):
        cols = [{"fieldName": "cy", "name": "Calendar Year"}]
        assert find_column(cols, ROLE_PATTERNS["year"]) == "cy"

    def test_display_name_used_when_no_field_name(self):
        cols = [{"name": "Tax Year"}]
        assert find_column(cols, ROLE_PATTERNS["year"]) == "Tax Year"

    def test_specific_pattern_beats_earlier_generic_column(self):
        cols = ["report_year", "tax_year"]
        assert find_column(cols, ROLE_PATTERNS["year"]) == "tax_year"

    def test_generic_year_when_nothing_specific(self):
        assert find_column(["id", "year"], ROLE_PATTERNS["year"]) == "year"

    def test_excluded_fields_skipped(self):
        cols = ["credit_amount_used", "credit_amount_claimed"]
        assert find_column(cols, ROLE_PATTERNS["used"]) == "credit_amount_used"
        assert find_column(
            ["credit_amount_used"], ROLE_PATTERNS["claimed"],
            exclude=["credit_amount_used"],
        ) is None

    def test_no_match(self):
        assert find_column(["foo", "bar"], ROLE_PATTERNS["taxpayer_type"]) is None


class TestMatchRoles:
    def test_metadata_columns(self):
        roles = match_roles(METADATA["columns"])
        assert roles == {
            "year": "calendar_year",
            "claimed": "credit_amount_claimed",
            "used": "credit_amount_used",
            "program": "credit_program",
            "taxpayer_type": "taxpayer_type",
        }

    def test_claimed_prefers_claimed_over_amount(self):
        roles = match_roles(["amount_used", "total_value", "amount_claimed"])
        assert roles["claimed"] == "amount_claimed"
        assert roles["used"] == "amount_used"

    def test_known_roles_kept(self):
        roles = match_roles(["fiscal_year", "program_name"],
                            known={"year": "calendar_year", "program": None})
        assert roles["year"] == "calendar_year"
        assert roles["program"] == "program_name"


class TestColumnResolver:
    def test_resolves_from_metadata(self, resolver, dataset_session):
        cmap = resolver.resolve()
        assert cmap == ColumnMap(
            year="calendar_year",
            claimed="credit_amount_claimed",
            used="credit_amount_used",
            program="credit_program",
            taxpayer_type="taxpayer_type",
        )
        # Metadata was enough: no sample query issued
        assert dataset_session.calls_of("v3") == []

    def test_memoized(self, resolver, dataset_session):
        first = resolver.resolve()
        second = resolver.resolve()
        assert first is second
        assert len(dataset_session.calls_of("metadata")) == 1

    def test_reset_forces_rediscovery(self, resolver, dataset_session):
        resolver.resolve()
        resolver.reset()
        assert resolver.cached is None
        resolver.resolve()
        assert len(dataset_session.calls_of("metadata")) == 2

    def test_metadata_failure_falls_back_to_sample(self):
        sample = [{"tax_year": "2020", "program_name": "ITC",
                   "amount_claimed": "5", "amount_used": "1"}]
        session = FakeSession(
            v3=FakeResponse(200, payload=sample),
            metadata=FakeResponse(500, text="down"),
        )
        cmap = ColumnResolver(make_client(session)).resolve()
        assert cmap.year == "tax_year"
        assert cmap.program == "program_name"
        assert cmap.claimed == "amount_claimed"
        assert cmap.used == "amount_used"
        assert cmap.taxpayer_type is None
        assert session.calls_of("v3")[0]["params"] == {"query": "SELECT * LIMIT 1"}

    def test_sample_fills_only_missing_roles(self):
        metadata = {"columns": [{"fieldName": "calendar_year", "name": "Calendar Year"}]}
        sample = envelope(
            [["2020", "Film", "10", "4"]],
            ["year_of_claim", "credit_description", "value_claimed", "value_utilized"],
        )
        session = FakeSession(
            v3=FakeResponse(200, payload=sample),
            metadata=FakeResponse(200, payload=metadata),
        )
        cmap = ColumnResolver(make_client(session)).resolve()
        assert cmap.year == "calendar_year"
        assert cmap.program == "credit_description"
        assert cmap.claimed == "value_claimed"
        assert cmap.used == "value_utilized"

    def test_optional_roles_may_stay_unresolved(self):
        session = FakeSession(
            v3=FakeResponse(200, payload=[{"year": "2020", "notes": "x"}]),
            metadata=FakeResponse(200, payload={"columns": []}),
        )
        cmap = ColumnResolver(make_client(session)).resolve()
        assert cmap.year == "year"
        assert cmap.claimed is None and cmap.used is None and cmap.program is None

    def test_missing_year_is_fatal(self):
        session = FakeSession(
            v3=FakeResponse(200, payload=[{"amount": "1"}]),
            metadata=FakeResponse(200, payload={"columns": [{"fieldName": "amount"}]}),
        )
        with pytest.raises(ColumnResolutionError, match="year column"):
            ColumnResolver(make_client(session)).resolve()

    def test_both_discovery_paths_failing_is_fatal(self):
        session = FakeSession(
            v3=FakeResponse(500, text="down"),
            metadata=FakeResponse(500, text="down"),
        )
        resolver = ColumnResolver(make_client(session))
        with pytest.raises(ColumnResolutionError):
            resolver.resolve()
        assert resolver.cached is None
