"""
Smoke tests for the command-line interface.
"""

import json

import pytest

from residency_roll.cli import build_parser, main
from residency_roll.csv_io import write_legs_csv


@pytest.fixture
def trips_csv(tmp_path, usa_weekend_legs, canada_stay_legs):
    path = tmp_path / "trips.csv"
    write_legs_csv(usa_weekend_legs + canada_stay_legs, path)
    return str(path)


class TestParser:
    """Argument parsing."""

    def test_subcommand_required(self):
        """Running without a subcommand exits."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_bad_date(self, trips_csv):
        """Dates are validated by argparse."""
        with pytest.raises(SystemExit):
            main(["count", "--csv", trips_csv, "--start", "yesterday"])

    def test_durations_default(self):
        """Standard durations are the default."""
        args = build_parser().parse_args(["durations", "--country", "USA", "--trip-start", "2025-08-01"])
        assert args.durations == [7, 14, 21]


class TestCommands:
    """Each subcommand runs end to end."""

    def test_count(self, trips_csv, capsys):
        """Tally printed per country."""
        assert main(["count", "--csv", trips_csv]) == 0
        out = capsys.readouterr().out
        assert "USA\t4" in out
        assert "Canada\t4" in out

    def test_count_single_country(self, trips_csv, capsys):
        """Single-country count with its rule."""
        assert main(["count", "--csv", trips_csv, "--country", "USA"]) == 0
        out = capsys.readouterr().out
        assert "USA: 4" in out
        assert "partial_day" in out

    def test_ledger_export(self, trips_csv, tmp_path, capsys):
        """Ledger written to CSV."""
        out_path = tmp_path / "ledger.csv"
        assert main(["ledger", "--csv", trips_csv, "--start", "2025-07-01", "--out", str(out_path)]) == 0
        assert out_path.exists()
        assert "4" in capsys.readouterr().out

    def test_summary_json(self, trips_csv, capsys):
        """JSON rows carry threshold fields."""
        assert main(["summary", "--csv", trips_csv, "--json"]) == 0
        rows = json.loads(capsys.readouterr().out)
        by_country = {r["country"]: r for r in rows}
        assert by_country["USA"]["rule_type"] == "PartialDay"
        assert by_country["Canada"]["threshold_days"] == 183

    def test_summary_text(self, trips_csv, capsys):
        """Text summary includes away/home totals."""
        assert main(["summary", "--csv", trips_csv, "--as-of", "2025-08-01"]) == 0
        assert "居留汇总" in capsys.readouterr().out

    def test_summary_with_rules_file(self, trips_csv, tmp_path, capsys):
        """A rules file overrides thresholds."""
        rules = tmp_path / "rules.json"
        rules.write_text(json.dumps({"Canada": {"threshold_days": 10}}), encoding="utf-8")

        assert main(["summary", "--csv", trips_csv, "--rules", str(rules), "--json"]) == 0
        rows = {r["country"]: r for r in json.loads(capsys.readouterr().out)}
        assert rows["Canada"]["threshold_days"] == 10
        assert rows["Canada"]["is_approaching_threshold"]

    def test_forecast_json(self, trips_csv, capsys):
        """Forecast prints both tallies."""
        args = [
            "forecast", "--csv", trips_csv, "--country", "Japan",
            "--trip-start", "2025-09-01", "--trip-end", "2025-09-11", "--as-of", "2025-08-01", "--json",
        ]
        assert main(args) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["forecast"]["Japan"] == 10

    def test_max_end_date(self, trips_csv, capsys):
        """Latest end date printed."""
        args = ["max-end-date", "--csv", trips_csv, "--country", "Japan", "--trip-start", "2025-09-01", "--day-limit", "10"]
        assert main(args) == 0
        assert "2025-09-11" in capsys.readouterr().out

    def test_durations(self, trips_csv, capsys):
        """One line per duration."""
        args = ["durations", "--csv", trips_csv, "--country", "Japan", "--trip-start", "2025-09-01", "--durations", "5", "50"]
        assert main(args) == 0
        out = capsys.readouterr().out
        assert "5 天" in out
        assert "50 天" in out

    def test_where(self, trips_csv, capsys):
        """Location at an instant."""
        assert main(["where", "--csv", trips_csv, "--at", "2025-07-02 12:00:00"]) == 0
        assert capsys.readouterr().out.strip() == "Canada"
