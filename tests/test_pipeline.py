import json
from datetime import date

import pandas as pd
import pytest

from hoops_ratings.data.ingestion.pipeline import (
    PipelineConfig,
    RatingsPipeline,
    build_store,
    write_missing_games_report,
)
from hoops_ratings.data.ingestion.store import JsonFileStore, SQLiteStore
from hoops_ratings.data.scrapers.ncaa_api import TransientUpstreamError
from hoops_ratings.data.scrapers.scoreboard import MissingGame

TODAY = date(2025, 12, 3)


class StubClient:
    """Serves canned scoreboards by ISO date and box scores by game id."""

    def __init__(self, scoreboards, boxscores):
        self.scoreboards = scoreboards
        self.boxscores = boxscores
        self.boxscore_calls = []

    def fetch_scoreboard(self, sport, division, day, listing="all-conf"):
        payload = self.scoreboards.get(day.isoformat())
        if payload is None:
            raise TransientUpstreamError(f"/scoreboard/{day}", "HTTP 503", 503)
        return payload

    def fetch_boxscore(self, game_id):
        self.boxscore_calls.append(game_id)
        if game_id not in self.boxscores:
            raise TransientUpstreamError(f"/game/{game_id}/boxscore", "HTTP 428", 428)
        return self.boxscores[game_id]


def _config(tmp_path, **overrides):
    values = dict(
        division="mens-d1",
        output_dir=str(tmp_path),
        min_teams=2,
        request_delay_seconds=0,
        concurrency=2,
    )
    values.update(overrides)
    return PipelineConfig(**values)


def _pipeline(tmp_path, client, **overrides):
    config = _config(tmp_path, **overrides)
    return RatingsPipeline(config, client=client, store=JsonFileStore(str(tmp_path), "mens_d1"))


@pytest.fixture
def one_game_client(make_boxscore, make_scoreboard, make_player):
    players = [make_player(1, "Ann", "Guard", starter=True, points=20, fgm=8, fga=15, minutes=32)]
    return StubClient(
        scoreboards={
            "2025-12-02": make_scoreboard([("5001", "acc", "acc")]),
            "2025-12-01": make_scoreboard([]),
        },
        boxscores={"5001": make_boxscore(100, 200, home_players=players)},
    )


def test_incremental_run_commits_ratings(tmp_path, one_game_client):
    report = _pipeline(tmp_path, one_game_client).run_incremental(today=TODAY)

    assert report.success and report.committed
    assert (report.days_scanned, report.games_found, report.games_parsed) == (2, 1, 1)
    assert (report.teams, report.players) == (2, 1)

    store = JsonFileStore(str(tmp_path), "mens_d1")
    rows = store.load_ratings()
    assert rows[0].team_id == "100"
    assert rows[0].adj_o == pytest.approx(97.90, abs=0.01)
    assert rows[0].conference == "acc"
    games = store.load_games()
    assert games[0]["date"] == "2025-12-02"
    assert games[0]["is_conference_game"] is True


def test_second_run_over_same_window_changes_nothing(tmp_path, one_game_client):
    _pipeline(tmp_path, one_game_client).run_incremental(today=TODAY)
    store = JsonFileStore(str(tmp_path), "mens_d1")
    teams_before = {k: v.to_dict() for k, v in store.load_state().teams.items()}
    ratings_before = store.load_ratings()

    report = _pipeline(tmp_path, one_game_client).run_incremental(today=TODAY)

    assert report.success and not report.committed
    assert report.games_new == 0
    assert one_game_client.boxscore_calls == ["5001"]
    assert {k: v.to_dict() for k, v in store.load_state().teams.items()} == teams_before
    assert store.load_ratings() == ratings_before


def test_sparse_run_is_rejected_and_prior_output_kept(tmp_path, make_boxscore, make_scoreboard):
    games = {"6001": (1, 2), "6002": (3, 4), "6003": (5, 1)}
    client = StubClient(
        scoreboards={"2025-12-02": make_scoreboard([(gid, None, None) for gid in games])},
        boxscores={gid: make_boxscore(h, a) for gid, (h, a) in games.items()},
    )
    _pipeline(tmp_path, client).run_rebuild(season_start=date(2025, 12, 2), today=TODAY)
    before = {p.name: p.read_text() for p in tmp_path.iterdir()}

    report = _pipeline(tmp_path, client, min_teams=200).run_rebuild(
        season_start=date(2025, 12, 2), today=TODAY
    )

    assert not report.success and not report.committed
    assert report.exit_code == 1
    assert report.teams == 5
    assert "only 5 teams found (expected 200+)" in report.errors[0]
    assert {p.name: p.read_text() for p in tmp_path.iterdir()} == before


def test_all_scoreboard_days_failing_fails_the_run(tmp_path):
    report = _pipeline(tmp_path, StubClient({}, {})).run_incremental(today=TODAY)
    assert not report.success
    assert report.days_failed == 2
    assert list(tmp_path.iterdir()) == []


def test_failed_box_score_is_retried_next_run(tmp_path, make_boxscore, make_scoreboard):
    client = StubClient(
        scoreboards={
            "2025-12-02": make_scoreboard([("1", None, None), ("2", None, None)]),
            "2025-12-01": make_scoreboard([]),
        },
        boxscores={"1": make_boxscore(100, 200)},
    )
    report = _pipeline(tmp_path, client).run_incremental(today=TODAY)
    assert (report.games_parsed, report.games_failed) == (1, 1)
    assert list(JsonFileStore(str(tmp_path), "mens_d1").load_state().game_ids) == ["1"]

    client.boxscores["2"] = make_boxscore(300, 400)
    report = _pipeline(tmp_path, client).run_incremental(today=TODAY)
    assert (report.games_new, report.games_parsed) == (1, 1)
    assert client.boxscore_calls.count("1") == 1
    assert set(JsonFileStore(str(tmp_path), "mens_d1").load_state().teams) == {"100", "200", "300", "400"}


def test_nothing_parsed_in_incremental_run_keeps_prior_output(tmp_path, make_scoreboard):
    client = StubClient(
        scoreboards={"2025-12-02": make_scoreboard([("1", None, None)]), "2025-12-01": make_scoreboard([])},
        boxscores={},
    )
    report = _pipeline(tmp_path, client).run_incremental(today=TODAY)
    assert report.success and not report.committed
    assert report.games_failed == 1


def test_fetch_boxscores_keeps_input_order_and_paces_requests(tmp_path, make_boxscore):
    client = StubClient({}, {str(i): make_boxscore(i, i + 100) for i in range(1, 6)})
    sleeps = []
    pipeline = RatingsPipeline(
        _config(tmp_path, request_delay_seconds=0.4, concurrency=3),
        client=client,
        store=JsonFileStore(str(tmp_path), "mens_d1"),
        sleep=sleeps.append,
    )
    results = pipeline.fetch_boxscores(["5", "1", "missing", "3"])
    assert [gid for gid, _ in results] == ["5", "1", "missing", "3"]
    assert results[2][1] is None
    assert sleeps == [0.4] * 4


def test_conference_filter_applies_to_restricted_divisions(tmp_path, make_boxscore, make_scoreboard):
    client = StubClient(
        scoreboards={"2025-12-02": make_scoreboard([("1", "psac", "acc")]), "2025-12-01": make_scoreboard([])},
        boxscores={"1": make_boxscore(100, 200)},
    )
    pipeline = RatingsPipeline(
        _config(tmp_path, division="mens-d2", min_teams=1),
        client=client,
        store=JsonFileStore(str(tmp_path), "mens_d2"),
    )
    report = pipeline.run_incremental(today=TODAY)
    assert report.committed
    assert [r.team_id for r in JsonFileStore(str(tmp_path), "mens_d2").load_ratings()] == ["100"]


def test_audit_lists_unprocessed_games(tmp_path, make_boxscore, make_scoreboard):
    client = StubClient(
        scoreboards={"2025-12-02": make_scoreboard([("1", None, None), ("2", None, None)])},
        boxscores={"1": make_boxscore(100, 200)},
    )
    _pipeline(tmp_path, client).run_rebuild(season_start=date(2025, 12, 2), today=TODAY)
    report = _pipeline(tmp_path, client).audit(season_start=date(2025, 12, 2), today=date(2025, 12, 2))
    assert report.missing == [MissingGame("2", "2025-12-02")]
    assert (report.days_scanned, report.days_failed, report.exit_code) == (1, 0, 0)

    json_path, csv_path = write_missing_games_report(report.missing, str(tmp_path), "mens_d1")
    assert json.loads(json_path.read_text())["total_missing"] == 1
    assert pd.read_csv(csv_path, dtype=str)["status"].tolist() == ["NEEDS_MANUAL_ENTRY"]


def test_audit_with_every_scoreboard_day_down_fails(tmp_path):
    report = _pipeline(tmp_path, StubClient({}, {})).audit(season_start=date(2025, 12, 1), today=TODAY)
    assert report.all_days_failed
    assert report.days_scanned == 3
    assert report.missing == []
    assert report.exit_code == 1


def test_audit_with_some_days_down_still_succeeds(tmp_path, make_scoreboard):
    client = StubClient({"2025-12-02": make_scoreboard([("9", None, None)])}, {})
    report = _pipeline(tmp_path, client).audit(season_start=date(2025, 12, 1), today=TODAY)
    assert report.days_failed == 2
    assert report.missing == [MissingGame("9", "2025-12-02")]
    assert report.exit_code == 0


def test_build_store_selects_backend(tmp_path, monkeypatch):
    pipeline_config = _config(tmp_path, store="sqlite")
    monkeypatch.setenv("HOOPS_RATINGS_DB_PATH", str(tmp_path / "env.db"))
    profile = RatingsPipeline(pipeline_config, client=StubClient({}, {})).profile
    store = build_store(pipeline_config, profile)
    assert isinstance(store, SQLiteStore)
    assert store.db_path == str(tmp_path / "env.db")

    with pytest.raises(ValueError):
        build_store(_config(tmp_path, store="csv"), profile)
