"""
Tests for main.py: argument parsing and the export / columns commands
"""
import json

import pytest

import main as cli
from conftest import FakeResponse, FakeSession, make_client


@pytest.fixture()
def use_session(monkeypatch):
    """Make main() build its SocrataClient around the given fake session."""
    def install(session):
        monkeypatch.setattr(cli, "SocrataClient",
                            lambda config: make_client(session, config))
        return session
    return install


class TestBuildParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_serve_defaults(self):
        args = cli.build_parser().parse_args(["serve"])
        assert args.host == "127.0.0.1"
        assert args.port == 8000
        assert args.reload is False

    def test_export_options(self):
        args = cli.build_parser().parse_args([
            "export", "--year-from", "2018", "--year-to", "2020",
            "--program", "A,B", "--format", "csv", "--raw",
        ])
        assert args.year_from == 2018
        assert args.year_to == 2020
        assert args.program == "A,B"
        assert args.format == "csv"
        assert args.raw is True
        assert args.output is None

    def test_export_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["export", "--format", "xml"])


class TestExport:
    def test_json_to_file(self, tmp_path, use_session, dataset_session):
        use_session(dataset_session)
        out = tmp_path / "reports" / "credits.json"
        assert cli.main(["export", "--year-from", "2018", "-o", str(out)]) == 0

        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["ok"] is True
        assert data["meta"]["filters"]["year_from"] == 2018
        assert data["totals"]["claimed"] == 720
        assert "raw" not in data

    def test_raw_json_to_stdout(self, capsys, use_session, dataset_session):
        use_session(dataset_session)
        assert cli.main(["export", "--raw"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert len(data["raw"]) == 4

    def test_csv_to_file(self, tmp_path, use_session, dataset_session):
        use_session(dataset_session)
        out = tmp_path / "credits.csv"
        assert cli.main(["export", "--format", "csv", "-o", str(out)]) == 0
        text = out.read_text(encoding="utf-8")
        assert text.startswith("year,program,claimed,used,taxpayer_type\n")
        assert '"Film, TV & Theatrical"' in text

    def test_failure_returns_1(self, capsys, use_session):
        use_session(FakeSession(
            v3=FakeResponse(200, payload=[{"amount": "1"}]),
            metadata=FakeResponse(200, payload={"columns": []}),
        ))
        assert cli.main(["export"]) == 1
        assert "Error: Unable to identify year column" in capsys.readouterr().err


class TestColumns:
    def test_prints_column_map(self, capsys, use_session, dataset_session):
        use_session(dataset_session)
        assert cli.main(["columns"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data == {
            "year": "calendar_year",
            "claimed": "credit_amount_claimed",
            "used": "credit_amount_used",
            "program": "credit_program",
            "taxpayer_type": "taxpayer_type",
        }
