"""Shared payload builders shaped like the upstream scoreboard/box-score feed."""

import pytest

UPSTREAM_KEYS = {
    "points": "points",
    "fgm": "fieldGoalsMade",
    "fga": "fieldGoalsAttempted",
    "tpm": "threePointsMade",
    "tpa": "threePointsAttempted",
    "ftm": "freeThrowsMade",
    "fta": "freeThrowsAttempted",
    "orb": "offensiveRebounds",
    "trb": "totalRebounds",
    "ast": "assists",
    "stl": "steals",
    "blk": "blockedShots",
    "tov": "turnovers",
    "pf": "personalFouls",
    "minutes": "minutesPlayed",
}

# Team A (home) and team B (away) from the reference two-team game.
HOME_LINE = dict(points=70, fgm=25, fga=60, tpm=5, tpa=15, ftm=15, fta=20, orb=10, trb=35, ast=14, stl=6, blk=3, tov=12, pf=16)
AWAY_LINE = dict(points=65, fgm=24, fga=58, tpm=6, tpa=18, ftm=11, fta=15, orb=8, trb=32, ast=12, stl=7, blk=2, tov=14, pf=18)


def upstream_stats(**values):
    return {UPSTREAM_KEYS[k]: str(v) for k, v in values.items()}


def player_row(pid, first, last, starter=False, **stats):
    row = {
        "id": str(pid),
        "firstName": first,
        "lastName": last,
        "number": "1",
        "position": "G",
        "year": "Sr",
        "starter": "true" if starter else "false",
    }
    row.update(upstream_stats(**stats))
    return row


def build_boxscore(
    home_id,
    away_id,
    home_line=None,
    away_line=None,
    home_players=None,
    away_players=None,
    home_name="Home U",
    away_name="Away St",
    decoy=False,
):
    """Box-score payload with team meta, per-team totals and optional player rows."""
    home_line = HOME_LINE if home_line is None else home_line
    away_line = AWAY_LINE if away_line is None else away_line
    payload = {
        "teams": [
            {"teamId": str(home_id), "isHome": True, "nameShort": home_name},
            {"teamId": str(away_id), "isHome": False, "nameShort": away_name},
        ],
        "teamBoxscore": [
            {
                "teamId": int(home_id),
                "playerStats": home_players or [],
                "teamStats": upstream_stats(**home_line),
            },
            {
                "teamId": int(away_id),
                "playerStats": away_players or [],
                "teamStats": upstream_stats(**away_line),
            },
        ],
    }
    if decoy:
        # Zero-filled fragments listed ahead of the real totals.
        summary = {
            "lines": [
                {"teamId": str(home_id), "points": "0", "fieldGoalsAttempted": "0", "steals": "0"},
                {"teamId": str(away_id), "points": "0", "fieldGoalsAttempted": "0", "steals": "0"},
            ]
        }
        payload = {"summary": summary, **payload}
    return payload


def build_scoreboard(games):
    """``games`` is a list of ``(game_id, home_conference, away_conference)``."""
    return {
        "games": [
            {
                "game": {
                    "gameID": str(gid),
                    "url": f"/game/{gid}",
                    "home": {"conferences": [{"conferenceSeo": home_conf}] if home_conf else []},
                    "away": {"conferences": [{"conferenceSeo": away_conf}] if away_conf else []},
                }
            }
            for gid, home_conf, away_conf in games
        ]
    }


@pytest.fixture
def make_boxscore():
    return build_boxscore


@pytest.fixture
def make_scoreboard():
    return build_scoreboard


@pytest.fixture
def make_player():
    return player_row


@pytest.fixture
def home_line():
    return dict(HOME_LINE)


@pytest.fixture
def away_line():
    return dict(AWAY_LINE)
