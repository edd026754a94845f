"""Game-level records produced by box-score extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

# Counting stats carried by every box-score line, in persisted order.
# Defensive rebounds are derived from TRB - ORB and are never stored.
COUNTING_FIELDS: Tuple[str, ...] = (
    "points",
    "fgm",
    "fga",
    "tpm",
    "tpa",
    "ftm",
    "fta",
    "orb",
    "trb",
    "ast",
    "stl",
    "blk",
    "tov",
    "pf",
)


@dataclass(frozen=True)
class BoxScoreLine:
    """Counting stats for one team or player in one game."""

    points: int = 0
    fgm: int = 0
    fga: int = 0
    tpm: int = 0
    tpa: int = 0
    ftm: int = 0
    fta: int = 0
    orb: int = 0
    trb: int = 0
    ast: int = 0
    stl: int = 0
    blk: int = 0
    tov: int = 0
    pf: int = 0
    minutes: float = 0.0

    @property
    def drb(self) -> int:
        return max(0, self.trb - self.orb)

    @property
    def is_empty(self) -> bool:
        return self.minutes <= 0 and self.points <= 0

    def to_dict(self) -> Dict:
        out = {name: getattr(self, name) for name in COUNTING_FIELDS}
        out["drb"] = self.drb
        out["minutes"] = self.minutes
        return out

    @classmethod
    def from_dict(cls, data: Dict) -> "BoxScoreLine":
        kwargs = {name: int(data.get(name) or 0) for name in COUNTING_FIELDS}
        return cls(minutes=float(data.get("minutes") or 0.0), **kwargs)


@dataclass(frozen=True)
class TeamRef:
    team_id: str
    name: str
    conference: Optional[str] = None


@dataclass(frozen=True)
class ConferenceInfo:
    """Scoreboard conference metadata for one game."""

    home_conference: Optional[str] = None
    away_conference: Optional[str] = None

    @property
    def is_conference_game(self) -> bool:
        return bool(
            self.home_conference
            and self.away_conference
            and self.home_conference == self.away_conference
        )


@dataclass(frozen=True)
class PlayerGameLine:
    """One player's line in one game, as reported upstream."""

    team_id: str
    player_id: str
    upstream_id: str = ""
    first_name: str = ""
    last_name: str = ""
    number: str = ""
    position: str = ""
    year: str = ""
    starter: bool = False
    box: BoxScoreLine = field(default_factory=BoxScoreLine)

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict:
        out = {
            "player_id": self.player_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "number": self.number,
            "starter": self.starter,
        }
        out.update(self.box.to_dict())
        return out


@dataclass(frozen=True)
class GameRecord:
    """
    Canonical record of one completed game.

    Created only by successful extraction from a single upstream box-score
    payload, identified by ``game_id``, never mutated afterwards.
    """

    game_id: str
    date: str
    home_team: TeamRef
    away_team: TeamRef
    home_box: BoxScoreLine
    away_box: BoxScoreLine
    player_lines: Tuple[PlayerGameLine, ...] = ()
    conference_info: Optional[ConferenceInfo] = None

    @property
    def is_conference_game(self) -> bool:
        return self.conference_info is not None and self.conference_info.is_conference_game

    @property
    def team_ids(self) -> Tuple[str, str]:
        return self.home_team.team_id, self.away_team.team_id

    def sides(self) -> List[Tuple[TeamRef, BoxScoreLine, TeamRef, BoxScoreLine]]:
        """Return ``(team, line, opponent, opponent_line)`` for home then away."""
        return [
            (self.home_team, self.home_box, self.away_team, self.away_box),
            (self.away_team, self.away_box, self.home_team, self.home_box),
        ]

    def players_for(self, team_id: str) -> List[PlayerGameLine]:
        return [p for p in self.player_lines if p.team_id == team_id]

    def to_log_entry(self, division: str) -> Dict:
        players_by_team: Dict[str, List[Dict]] = {}
        for line in self.player_lines:
            players_by_team.setdefault(line.team_id, []).append(line.to_dict())
        return {
            "game_id": self.game_id,
            "date": self.date,
            "division": division,
            "home_id": self.home_team.team_id,
            "home_team": self.home_team.name,
            "home_score": self.home_box.points,
            "home_conference": self.home_team.conference,
            "home_stats": self.home_box.to_dict(),
            "away_id": self.away_team.team_id,
            "away_team": self.away_team.name,
            "away_score": self.away_box.points,
            "away_conference": self.away_team.conference,
            "away_stats": self.away_box.to_dict(),
            "is_conference_game": self.is_conference_game,
            "players": [
                {"team_id": team_id, "players": rows} for team_id, rows in players_by_team.items()
            ],
        }
