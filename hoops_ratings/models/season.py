"""Season-level accumulators keyed by team, player and game id."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List

from .game import COUNTING_FIELDS, BoxScoreLine, PlayerGameLine

# Regulation team minutes per game (5 players x 40 minutes).
TEAM_MINUTES_PER_GAME = 200.0


@dataclass
class TeamSeasonTotals:
    """Season sums for one team and for the opponents it faced."""

    team_id: str
    team_name: str = ""
    conference: str = ""
    games: int = 0
    wins: int = 0
    losses: int = 0
    minutes: float = 0.0

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

    opp_points: int = 0
    opp_fgm: int = 0
    opp_fga: int = 0
    opp_tpm: int = 0
    opp_tpa: int = 0
    opp_ftm: int = 0
    opp_fta: int = 0
    opp_orb: int = 0
    opp_trb: int = 0
    opp_ast: int = 0
    opp_stl: int = 0
    opp_blk: int = 0
    opp_tov: int = 0
    opp_pf: int = 0

    @property
    def drb(self) -> int:
        return max(0, self.trb - self.orb)

    @property
    def opp_drb(self) -> int:
        return max(0, self.opp_trb - self.opp_orb)

    @property
    def team_minutes(self) -> float:
        """Reported minutes, or regulation minutes when the feed omits them."""
        if self.minutes > 0:
            return self.minutes
        return self.games * TEAM_MINUTES_PER_GAME

    def record_game(self, line: BoxScoreLine, opp_line: BoxScoreLine) -> None:
        self.games += 1
        if line.points > opp_line.points:
            self.wins += 1
        else:
            self.losses += 1
        self.minutes += line.minutes
        for name in COUNTING_FIELDS:
            setattr(self, name, getattr(self, name) + getattr(line, name))
            opp_name = f"opp_{name}"
            setattr(self, opp_name, getattr(self, opp_name) + getattr(opp_line, name))

    def copy(self) -> "TeamSeasonTotals":
        return dataclasses.replace(self)

    def to_dict(self) -> Dict:
        out = dataclasses.asdict(self)
        out["drb"] = self.drb
        out["opp_drb"] = self.opp_drb
        return out

    @classmethod
    def from_dict(cls, data: Dict) -> "TeamSeasonTotals":
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        kwargs["team_id"] = str(kwargs.get("team_id", ""))
        return cls(**kwargs)


@dataclass
class PlayerSeasonTotals:
    """Season sums for one player on one team."""

    player_id: str
    team_id: str
    team_name: str = ""
    first_name: str = ""
    last_name: str = ""
    number: str = ""
    position: str = ""
    year: str = ""
    games: int = 0
    starts: int = 0
    minutes: float = 0.0

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

    @property
    def drb(self) -> int:
        return max(0, self.trb - self.orb)

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def record_game(self, line: PlayerGameLine) -> None:
        self.games += 1
        if line.starter:
            self.starts += 1
        self.minutes += line.box.minutes
        for name in COUNTING_FIELDS:
            setattr(self, name, getattr(self, name) + getattr(line.box, name))

    def copy(self) -> "PlayerSeasonTotals":
        return dataclasses.replace(self)

    def to_dict(self) -> Dict:
        out = dataclasses.asdict(self)
        out["drb"] = self.drb
        return out

    @classmethod
    def from_dict(cls, data: Dict) -> "PlayerSeasonTotals":
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        kwargs["player_id"] = str(kwargs.get("player_id", ""))
        kwargs["team_id"] = str(kwargs.get("team_id", ""))
        return cls(**kwargs)


class GameIdCache:
    """Ordered, immutable set of game ids already folded into season totals."""

    def __init__(self, game_ids: Iterable[str] = ()):
        ordered: List[str] = []
        seen = set()
        for game_id in game_ids:
            gid = str(game_id).strip()
            if gid and gid not in seen:
                seen.add(gid)
                ordered.append(gid)
        self._ids = tuple(ordered)
        self._members = frozenset(ordered)

    def __contains__(self, game_id: object) -> bool:
        return str(game_id) in self._members

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GameIdCache):
            return NotImplemented
        return self._members == other._members

    def __repr__(self) -> str:
        return f"GameIdCache({len(self._ids)} ids)"

    def with_ids(self, game_ids: Iterable[str]) -> "GameIdCache":
        return GameIdCache(list(self._ids) + [str(g) for g in game_ids])

    def to_dict(self) -> Dict:
        return {
            "note": "Contains ONLY successfully processed game IDs - not scheduled games",
            "total_games": len(self._ids),
            "game_ids": list(self._ids),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "GameIdCache":
        ids = data.get("game_ids", []) if isinstance(data, dict) else []
        if not isinstance(ids, list):
            return cls()
        return cls(ids)
