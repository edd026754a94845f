from datetime import date

import pandas as pd
import pytest

from hoops_ratings import main as cli
from hoops_ratings.data.features.efficiency import compute_ratings
from hoops_ratings.data.ingestion.aggregator import SeasonAggregator, SeasonState
from hoops_ratings.data.ingestion.pipeline import AuditReport, RunReport
from hoops_ratings.data.ingestion.store import JsonFileStore, SeasonSnapshot
from hoops_ratings.data.scrapers.boxscore import BoxScoreExtractor
from hoops_ratings.data.scrapers.scoreboard import MissingGame


@pytest.fixture
def populated_dir(tmp_path, make_boxscore):
    game = BoxScoreExtractor().extract("1", make_boxscore(100, 200, home_name="Team A", away_name="Team B"))
    state = SeasonAggregator().merge(SeasonState.empty(), game)
    JsonFileStore(str(tmp_path), "mens_d1").commit(
        SeasonSnapshot(
            division="mens-d1",
            state=state,
            ratings=compute_ratings(state.teams.values()),
            new_games=[game],
        )
    )
    return tmp_path


def test_parser_defaults():
    args = cli.build_parser().parse_args(["incremental"])
    config = cli.config_from_args(args)
    assert config.division == "mens-d1"
    assert config.lookback_days == 2
    assert config.concurrency == 4
    assert config.request_delay_seconds == 0.4
    assert config.restrict_to_division is None


def test_parser_rejects_bad_dates_and_divisions():
    parser = cli.build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["rebuild", "--season-start", "11/01/2025"])
    with pytest.raises(SystemExit):
        parser.parse_args(["rebuild", "--division", "mens-d3"])
    args = parser.parse_args(["rebuild", "--season-start", "2025-11-01", "-d", "womens-d1"])
    assert args.season_start == date(2025, 11, 1)


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "incremental" in capsys.readouterr().out


def test_ratings_command_prints_table_and_exports_csv(populated_dir, capsys):
    csv_path = populated_dir / "out.csv"
    code = cli.main(["ratings", "--output-dir", str(populated_dir), "--csv", str(csv_path)])

    assert code == 0
    out = capsys.readouterr().out
    assert "Team A" in out
    df = pd.read_csv(csv_path)
    assert df["team_name"].tolist() == ["Team A", "Team B"]
    assert df["rank"].tolist() == [1, 2]


def test_ratings_command_shows_four_factors(populated_dir, capsys):
    assert cli.main(["ratings", "--output-dir", str(populated_dir), "--team", "100"]) == 0
    out = capsys.readouterr().out
    assert "Four factors for 100 (of 2 teams)" in out
    assert "efg" in out


def test_ratings_command_without_data(tmp_path, capsys):
    assert cli.main(["ratings", "--output-dir", str(tmp_path)]) == 1
    assert "Run 'rebuild' first" in capsys.readouterr().out


def test_incremental_command_returns_run_exit_code(monkeypatch, tmp_path):
    seen = {}

    class DummyPipeline:
        def __init__(self, config):
            seen["config"] = config

        def run_incremental(self):
            return RunReport(division="mens-d2", mode="incremental", errors=["BAD RUN: only 3 teams"])

    monkeypatch.setattr(cli, "RatingsPipeline", DummyPipeline)
    code = cli.main(
        ["incremental", "-d", "mens-d2", "--output-dir", str(tmp_path), "--min-teams", "50", "--lookback-days", "4"]
    )
    assert code == 1
    assert seen["config"].min_teams == 50
    assert seen["config"].lookback_days == 4
    assert seen["config"].division == "mens-d2"


def _dummy_audit_pipeline(report):
    class DummyPipeline:
        def __init__(self, config):
            self.profile = cli.get_division(config.division)

        def audit(self, season_start=None):
            return report

    return DummyPipeline


def test_audit_command_fails_when_every_scoreboard_day_fails(monkeypatch, tmp_path, capsys):
    report = AuditReport(days_scanned=5, days_failed=5)
    monkeypatch.setattr(cli, "RatingsPipeline", _dummy_audit_pipeline(report))

    assert cli.main(["audit", "--output-dir", str(tmp_path)]) == 1
    assert "all 5 scoreboard days failed" in capsys.readouterr().out
    assert list(tmp_path.iterdir()) == []


def test_audit_command_writes_report(monkeypatch, tmp_path, capsys):
    report = AuditReport(missing=[MissingGame("42", "2025-12-02")], days_scanned=5, days_failed=1)
    monkeypatch.setattr(cli, "RatingsPipeline", _dummy_audit_pipeline(report))

    assert cli.main(["audit", "--output-dir", str(tmp_path)]) == 0
    assert "1 missing games written" in capsys.readouterr().out
    assert (tmp_path / "mens_d1_missing_games.json").exists()
