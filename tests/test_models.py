from hoops_ratings.models.game import BoxScoreLine, ConferenceInfo, GameRecord, PlayerGameLine, TeamRef
from hoops_ratings.models.season import GameIdCache, PlayerSeasonTotals, TeamSeasonTotals


def _game():
    return GameRecord(
        game_id="5001",
        date="2025-12-01",
        home_team=TeamRef("100", "Home U", "acc"),
        away_team=TeamRef("200", "Away St", "acc"),
        home_box=BoxScoreLine(points=70, orb=10, trb=35),
        away_box=BoxScoreLine(points=65, orb=8, trb=32),
        player_lines=(
            PlayerGameLine(team_id="100", player_id="100_1_ann_guard", first_name="Ann", last_name="Guard"),
        ),
        conference_info=ConferenceInfo("acc", "acc"),
    )


def test_defensive_rebounds_are_derived_and_never_negative():
    assert BoxScoreLine(orb=10, trb=35).drb == 25
    assert BoxScoreLine(orb=5, trb=3).drb == 0


def test_box_line_dict_round_trip_keeps_minutes():
    line = BoxScoreLine(points=12, fgm=5, fga=9, trb=4, minutes=31.5)
    restored = BoxScoreLine.from_dict(line.to_dict())
    assert restored == line
    assert line.to_dict()["drb"] == 4


def test_conference_game_requires_matching_codes():
    assert ConferenceInfo("acc", "acc").is_conference_game
    assert not ConferenceInfo("acc", "sec").is_conference_game
    assert not ConferenceInfo(None, None).is_conference_game


def test_game_log_entry_groups_players_by_team():
    entry = _game().to_log_entry("mens-d1")
    assert entry["game_id"] == "5001"
    assert entry["home_score"] == 70
    assert entry["away_stats"]["drb"] == 24
    assert entry["is_conference_game"] is True
    assert entry["players"] == [
        {"team_id": "100", "players": [_game().player_lines[0].to_dict()]}
    ]


def test_team_totals_record_win_loss_and_opponent_sums():
    totals = TeamSeasonTotals(team_id="100")
    totals.record_game(BoxScoreLine(points=70, fga=60), BoxScoreLine(points=65, fga=58))
    totals.record_game(BoxScoreLine(points=60, fga=50), BoxScoreLine(points=60, fga=55))

    assert (totals.games, totals.wins, totals.losses) == (2, 1, 1)
    assert totals.points == 130
    assert totals.opp_points == 125
    assert totals.opp_fga == 113


def test_team_minutes_fall_back_to_regulation():
    totals = TeamSeasonTotals(team_id="100", games=3)
    assert totals.team_minutes == 600.0
    totals.minutes = 625.0
    assert totals.team_minutes == 625.0


def test_team_totals_from_dict_ignores_unknown_keys():
    data = TeamSeasonTotals(team_id="100", points=70, games=1).to_dict()
    data["legacy_field"] = "x"
    restored = TeamSeasonTotals.from_dict(data)
    assert restored.points == 70
    assert restored.team_id == "100"


def test_player_totals_count_starts():
    player = PlayerSeasonTotals(player_id="p", team_id="100")
    player.record_game(PlayerGameLine("100", "p", starter=True, box=BoxScoreLine(points=10, minutes=30)))
    player.record_game(PlayerGameLine("100", "p", starter=False, box=BoxScoreLine(points=4, minutes=12)))
    assert (player.games, player.starts, player.points, player.minutes) == (2, 1, 14, 42.0)


def test_game_id_cache_is_ordered_and_deduplicated():
    cache = GameIdCache(["3", "1", "3", " ", 2])
    assert list(cache) == ["3", "1", "2"]
    assert 2 in cache and "2" in cache

    grown = cache.with_ids(["1", "9"])
    assert list(grown) == ["3", "1", "2", "9"]
    assert len(cache) == 3


def test_game_id_cache_tolerates_malformed_payload():
    assert len(GameIdCache.from_dict({"game_ids": "nope"})) == 0
    assert len(GameIdCache.from_dict(None)) == 0
    cache = GameIdCache(["1", "2"])
    assert GameIdCache.from_dict(cache.to_dict()) == cache
    assert cache.to_dict()["total_games"] == 2
